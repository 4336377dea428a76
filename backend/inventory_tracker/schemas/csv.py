"""CSV import request and summary schemas."""

from pydantic import BaseModel, ConfigDict, Field


class CsvImportRequest(BaseModel):
    csv: str = Field(..., min_length=1)


class ProductImportResult(BaseModel):
    message: str
    success: int
    failed: int
    skipped: int
    total: int
    errors: list[str]


class InventoryImportResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message: str
    period: str
    success: int
    failed: int
    not_found: int = Field(..., alias="notFound")
    total: int
    errors: list[str]
