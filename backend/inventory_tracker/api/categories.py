"""Category CRUD endpoints, scoped to the authenticated owner."""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from inventory_tracker.core.deps import get_current_user
from inventory_tracker.db.base import get_db
from inventory_tracker.schemas.auth import CurrentUser
from inventory_tracker.schemas.category import CategoryCreate, CategoryResponse, CategoryUpdate
from inventory_tracker.schemas.common import PaginatedResponse
from inventory_tracker.services import categories as service

router = APIRouter(prefix="/categories", tags=["categories"])


@router.get("", response_model=PaginatedResponse[CategoryResponse])
async def list_categories(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await service.list_categories(db, current_user.id, page, limit)


@router.get("/{category_id}", response_model=CategoryResponse)
async def get_category(
    category_id: int,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await service.get_category(db, current_user.id, category_id)


@router.post("", response_model=CategoryResponse, status_code=201)
async def create_category(
    body: CategoryCreate,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await service.create_category(db, current_user.id, body)


@router.put("/{category_id}", response_model=CategoryResponse)
async def update_category(
    category_id: int,
    body: CategoryUpdate,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await service.update_category(db, current_user.id, category_id, body)


@router.delete("/{category_id}", status_code=204)
async def delete_category(
    category_id: int,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await service.delete_category(db, current_user.id, category_id)
