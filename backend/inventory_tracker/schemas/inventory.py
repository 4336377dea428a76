"""Inventory period and record schemas."""

from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, Field


# ── Periods ──
class PeriodCreate(BaseModel):
    name: str = Field(..., min_length=1)
    start_date: date
    notes: str | None = None


class PeriodResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    start_date: date
    end_date: date | None = None
    status: str
    notes: str | None = None
    created_at: datetime
    updated_at: datetime


# ── Records ──
class RecordCreate(BaseModel):
    product_id: int
    quantity: int = Field(..., ge=0)
    notes: str | None = None


class RecordResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    product_id: int
    period_id: int
    quantity: int
    counted_at: datetime
    notes: str | None = None


class RecordProduct(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    price: float


class RecordWithProduct(RecordResponse):
    product: RecordProduct


class CurrentInventoryResponse(BaseModel):
    period: PeriodResponse | None = None
    records: list[RecordWithProduct] = Field(default_factory=list)


class HistoryEntry(BaseModel):
    period_id: int
    period_name: str
    period_date: date
    period_status: str
    quantity: int
    counted_at: datetime
    notes: str | None = None


class ProductHistoryResponse(BaseModel):
    product_id: int
    product_name: str
    history: list[HistoryEntry]
