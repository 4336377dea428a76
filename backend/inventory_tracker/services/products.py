"""Product catalog: CRUD, category link replacement and response shaping."""

import logging
from decimal import Decimal
from uuid import UUID

from sqlalchemy import delete, func, insert, select
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from inventory_tracker.core.errors import NotFoundError, ValidationError
from inventory_tracker.models.category import Category
from inventory_tracker.models.product import Product, product_categories
from inventory_tracker.schemas.common import PaginatedResponse, Pagination
from inventory_tracker.schemas.product import (
    ProductCreate, ProductImageResponse, ProductResponse, ProductUpdate,
)

logger = logging.getLogger(__name__)


def to_price(value: float | Decimal | str) -> Decimal:
    return Decimal(str(value)).quantize(Decimal("0.01"))


def to_product_response(product: Product) -> ProductResponse:
    """Flatten a product with its categories and images loaded."""
    images = sorted(product.images, key=lambda img: img.display_order)
    return ProductResponse(
        id=product.id,
        name=product.name,
        price=float(product.price),
        quantity=product.quantity,
        created_at=product.created_at,
        updated_at=product.updated_at,
        category_ids=[c.id for c in product.categories],
        category_names=[c.name for c in product.categories],
        images=[
            ProductImageResponse(id=img.id, url=img.image_url, display_order=img.display_order)
            for img in images
        ],
    )


def product_detail_query(owner_id: UUID):
    """Owner-scoped product select with categories and images eagerly loaded."""
    return (
        select(Product)
        .where(Product.owner_id == owner_id)
        .options(selectinload(Product.categories), selectinload(Product.images))
        .execution_options(populate_existing=True)
    )


async def get_owned_product(db: AsyncSession, owner_id: UUID, product_id: int) -> Product:
    result = await db.execute(
        select(Product).where(Product.id == product_id, Product.owner_id == owner_id)
    )
    product = result.scalar_one_or_none()
    if not product:
        raise NotFoundError("Product not found")
    return product


async def _ensure_categories_owned(
    db: AsyncSession, owner_id: UUID, category_ids: list[int]
) -> None:
    result = await db.execute(
        select(Category.id).where(
            Category.id.in_(category_ids),
            Category.owner_id == owner_id,
        )
    )
    owned = result.scalars().all()
    if len(owned) != len(set(category_ids)):
        raise ValidationError("One or more categories not found or unauthorized")


async def _insert_links(db: AsyncSession, product_id: int, category_ids: list[int]) -> None:
    async with db.begin_nested():
        await db.execute(
            insert(product_categories),
            [{"product_id": product_id, "category_id": cid} for cid in category_ids],
        )


async def list_products(
    db: AsyncSession, owner_id: UUID, page: int = 1, limit: int = 20
) -> PaginatedResponse[ProductResponse]:
    total = (
        await db.execute(
            select(func.count()).select_from(Product).where(Product.owner_id == owner_id)
        )
    ).scalar_one()

    result = await db.execute(
        product_detail_query(owner_id)
        .order_by(Product.id)
        .offset((page - 1) * limit)
        .limit(limit)
    )
    items = result.scalars().all()

    return PaginatedResponse[ProductResponse](
        data=[to_product_response(p) for p in items],
        pagination=Pagination.build(page, limit, total),
    )


async def get_product(db: AsyncSession, owner_id: UUID, product_id: int) -> ProductResponse:
    result = await db.execute(product_detail_query(owner_id).where(Product.id == product_id))
    product = result.scalar_one_or_none()
    if not product:
        raise NotFoundError("Product not found")
    return to_product_response(product)


async def create_product(db: AsyncSession, owner_id: UUID, body: ProductCreate) -> ProductResponse:
    category_ids = list(dict.fromkeys(body.category_ids or []))
    if category_ids:
        await _ensure_categories_owned(db, owner_id, category_ids)

    product = Product(
        name=body.name,
        price=to_price(body.price),
        quantity=body.quantity,
        owner_id=owner_id,
    )
    db.add(product)
    await db.flush()

    if category_ids:
        try:
            await _insert_links(db, product.id, category_ids)
        except DBAPIError:
            # Never leave a product behind without the links it was created with
            logger.warning("Linking categories failed for product %s, removing it", product.id)
            await db.execute(delete(Product).where(Product.id == product.id))
            await db.flush()
            raise

    return await get_product(db, owner_id, product.id)


async def update_product(
    db: AsyncSession, owner_id: UUID, product_id: int, body: ProductUpdate
) -> ProductResponse:
    product = await get_owned_product(db, owner_id, product_id)

    update_data = body.model_dump(exclude_unset=True)
    category_ids = update_data.pop("category_ids", None)
    if category_ids is not None:
        category_ids = list(dict.fromkeys(category_ids))
    # name and price are NOT NULL; an explicit null means "leave unchanged"
    for field in ("name", "price"):
        if field in update_data and update_data[field] is None:
            del update_data[field]

    if not update_data and category_ids is None:
        return await get_product(db, owner_id, product_id)

    if update_data:
        if "price" in update_data:
            update_data["price"] = to_price(update_data["price"])
        for field, value in update_data.items():
            setattr(product, field, value)
        await db.flush()

    if category_ids is not None:
        if category_ids:
            await _ensure_categories_owned(db, owner_id, category_ids)
        await db.execute(
            delete(product_categories).where(product_categories.c.product_id == product_id)
        )
        if category_ids:
            await _insert_links(db, product_id, category_ids)

    return await get_product(db, owner_id, product_id)


async def delete_product(db: AsyncSession, owner_id: UUID, product_id: int) -> None:
    """Delete a product; images, links and records go with it via the store's cascade."""
    await get_owned_product(db, owner_id, product_id)
    await db.execute(
        delete(Product).where(Product.id == product_id, Product.owner_id == owner_id)
    )
    await db.flush()
