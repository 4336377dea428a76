"""Inventory periods, records, views and the inventory CSV round-trip."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from inventory_tracker.api.csv_response import csv_attachment
from inventory_tracker.core.deps import get_current_user
from inventory_tracker.db.base import get_db
from inventory_tracker.schemas.auth import CurrentUser
from inventory_tracker.schemas.csv import (
    CsvImportRequest, InventoryImportResult, ProductImportResult,
)
from inventory_tracker.schemas.inventory import (
    CurrentInventoryResponse,
    PeriodCreate,
    PeriodResponse,
    ProductHistoryResponse,
    RecordCreate,
    RecordResponse,
    RecordWithProduct,
)
from inventory_tracker.services import csv_io
from inventory_tracker.services import inventory as service

router = APIRouter(prefix="/inventory", tags=["inventory"])


# ── Periods ──

@router.get("/periods", response_model=list[PeriodResponse])
async def list_periods(
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await service.list_periods(db, current_user.id)


@router.get("/periods/active", response_model=PeriodResponse)
async def get_active_period(
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await service.get_active_period(db, current_user.id)


@router.post("/periods", response_model=PeriodResponse, status_code=201)
async def create_period(
    body: PeriodCreate,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Open a new active period; the previous active one is closed."""
    return await service.create_period(db, current_user.id, body)


@router.post("/periods/{period_id}/close", response_model=PeriodResponse)
async def close_period(
    period_id: int,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await service.close_period(db, current_user.id, period_id)


# ── Records ──

@router.post("/periods/{period_id}/records", response_model=RecordResponse, status_code=201)
async def add_record(
    period_id: int,
    body: RecordCreate,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await service.add_record(db, current_user.id, period_id, body)


@router.get("/periods/{period_id}/records", response_model=list[RecordWithProduct])
async def list_records(
    period_id: int,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await service.list_records(db, current_user.id, period_id)


@router.delete("/periods/{period_id}/records/{product_id}", status_code=204)
async def delete_record(
    period_id: int,
    product_id: int,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await service.delete_record(db, current_user.id, period_id, product_id)


@router.get("/current", response_model=CurrentInventoryResponse)
async def current_inventory(
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await service.current_inventory(db, current_user.id)


@router.get("/products/{product_id}/history", response_model=ProductHistoryResponse)
async def product_history(
    product_id: int,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await service.product_history(db, current_user.id, product_id)


# ── CSV ──

@router.get("/export/current")
async def export_current(
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return csv_attachment(await csv_io.export_current_inventory(db, current_user.id))


@router.get("/export/products")
async def export_catalog(
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return csv_attachment(await csv_io.export_catalog(db, current_user.id))


@router.post("/import/products", response_model=ProductImportResult)
async def import_catalog(
    body: CsvImportRequest,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await csv_io.import_products(
        db, current_user.id, body.csv, name_column="product name", stock_columns=False
    )


@router.post("/import/inventory", response_model=InventoryImportResult)
async def import_counts(
    body: CsvImportRequest,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await csv_io.import_inventory_counts(db, current_user.id, body.csv)
