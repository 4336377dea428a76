"""Product endpoints plus the product CSV export/import."""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from inventory_tracker.api.csv_response import csv_attachment
from inventory_tracker.core.deps import get_current_user
from inventory_tracker.db.base import get_db
from inventory_tracker.schemas.auth import CurrentUser
from inventory_tracker.schemas.common import PaginatedResponse
from inventory_tracker.schemas.csv import CsvImportRequest, ProductImportResult
from inventory_tracker.schemas.product import ProductCreate, ProductResponse, ProductUpdate
from inventory_tracker.services import csv_io
from inventory_tracker.services import products as service

router = APIRouter(prefix="/products", tags=["products"])


@router.get("", response_model=PaginatedResponse[ProductResponse])
async def list_products(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await service.list_products(db, current_user.id, page, limit)


# Fixed paths before /{product_id}
@router.get("/export")
async def export_products(
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return csv_attachment(await csv_io.export_products(db, current_user.id))


@router.post("/import", response_model=ProductImportResult)
async def import_products(
    body: CsvImportRequest,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await csv_io.import_products(db, current_user.id, body.csv)


@router.get("/{product_id}", response_model=ProductResponse)
async def get_product(
    product_id: int,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await service.get_product(db, current_user.id, product_id)


@router.post("", response_model=ProductResponse, status_code=201)
async def create_product(
    body: ProductCreate,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await service.create_product(db, current_user.id, body)


@router.put("/{product_id}", response_model=ProductResponse)
async def update_product(
    product_id: int,
    body: ProductUpdate,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await service.update_product(db, current_user.id, product_id, body)


@router.delete("/{product_id}", status_code=204)
async def delete_product(
    product_id: int,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await service.delete_product(db, current_user.id, product_id)
