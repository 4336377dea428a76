"""Category CRUD scoped to the owning user."""

from uuid import UUID

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from inventory_tracker.core.errors import ConflictError, NotFoundError
from inventory_tracker.models.category import Category
from inventory_tracker.schemas.category import CategoryCreate, CategoryResponse, CategoryUpdate
from inventory_tracker.schemas.common import PaginatedResponse, Pagination


async def _get_owned(db: AsyncSession, owner_id: UUID, category_id: int) -> Category:
    result = await db.execute(
        select(Category).where(
            Category.id == category_id,
            Category.owner_id == owner_id,
        )
    )
    category = result.scalar_one_or_none()
    if not category:
        raise NotFoundError("Category not found")
    return category


async def _name_taken(
    db: AsyncSession, owner_id: UUID, name: str, exclude_id: int | None = None
) -> bool:
    query = select(Category.id).where(Category.owner_id == owner_id, Category.name == name)
    if exclude_id is not None:
        query = query.where(Category.id != exclude_id)
    result = await db.execute(query)
    return result.first() is not None


async def list_categories(
    db: AsyncSession, owner_id: UUID, page: int = 1, limit: int = 20
) -> PaginatedResponse[CategoryResponse]:
    total = (
        await db.execute(
            select(func.count()).select_from(Category).where(Category.owner_id == owner_id)
        )
    ).scalar_one()

    result = await db.execute(
        select(Category)
        .where(Category.owner_id == owner_id)
        .order_by(Category.id)
        .offset((page - 1) * limit)
        .limit(limit)
    )
    items = result.scalars().all()

    return PaginatedResponse[CategoryResponse](
        data=[CategoryResponse.model_validate(c) for c in items],
        pagination=Pagination.build(page, limit, total),
    )


async def get_category(db: AsyncSession, owner_id: UUID, category_id: int) -> CategoryResponse:
    category = await _get_owned(db, owner_id, category_id)
    return CategoryResponse.model_validate(category)


async def create_category(
    db: AsyncSession, owner_id: UUID, body: CategoryCreate
) -> CategoryResponse:
    if await _name_taken(db, owner_id, body.name):
        raise ConflictError("Category with this name already exists")

    category = Category(**body.model_dump(), owner_id=owner_id)
    db.add(category)
    await db.flush()
    await db.refresh(category)
    return CategoryResponse.model_validate(category)


async def update_category(
    db: AsyncSession, owner_id: UUID, category_id: int, body: CategoryUpdate
) -> CategoryResponse:
    category = await _get_owned(db, owner_id, category_id)

    update_data = body.model_dump(exclude_unset=True)
    if update_data.get("name") is None:
        update_data.pop("name", None)

    if "name" in update_data and update_data["name"] != category.name:
        if await _name_taken(db, owner_id, update_data["name"], exclude_id=category_id):
            raise ConflictError("Category with this name already exists")

    for field, value in update_data.items():
        setattr(category, field, value)

    await db.flush()
    await db.refresh(category)
    return CategoryResponse.model_validate(category)


async def delete_category(db: AsyncSession, owner_id: UUID, category_id: int) -> None:
    """Delete a category; product links are removed by the store's cascade."""
    await _get_owned(db, owner_id, category_id)
    await db.execute(
        delete(Category).where(Category.id == category_id, Category.owner_id == owner_id)
    )
    await db.flush()
