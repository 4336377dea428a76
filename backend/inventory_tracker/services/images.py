"""Product images: add, delete with compaction, and reorder.

For a given product the images' display_order values are always the dense
sequence 0..n-1. Adding appends at max+1, deleting shifts every later image
down by one, and reordering only accepts a full permutation.
"""

import logging
import re
import uuid

from sqlalchemy import delete, func, insert, select, update
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncSession

from inventory_tracker.core.config import settings
from inventory_tracker.core.errors import NotFoundError, ValidationError
from inventory_tracker.models.product import ProductImage
from inventory_tracker.schemas.auth import CurrentUser
from inventory_tracker.schemas.product import ImageOrder, ProductResponse
from inventory_tracker.services.products import get_owned_product, get_product
from inventory_tracker.services.storage import StorageClient

logger = logging.getLogger(__name__)

ALLOWED_CONTENT_TYPES = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/webp": "webp",
}
MAX_UPLOAD_BYTES = settings.MAX_UPLOAD_SIZE_MB * 1024 * 1024

IMAGE_URL_PATTERN = re.compile(r"^https?://", re.IGNORECASE)


def is_image_url(url: str) -> bool:
    return bool(IMAGE_URL_PATTERN.match(url))


def check_content_type(content_type: str | None) -> str:
    """Return the file extension for an allowed image type."""
    if content_type not in ALLOWED_CONTENT_TYPES:
        allowed = ", ".join(sorted(ALLOWED_CONTENT_TYPES))
        raise ValidationError(f"File type not allowed. Use: {allowed}")
    return ALLOWED_CONTENT_TYPES[content_type]


def validate_upload(content_type: str | None, size: int) -> str:
    """Check type and size of an upload; returns the file extension to store under."""
    ext = check_content_type(content_type)
    if size > MAX_UPLOAD_BYTES:
        raise ValidationError(f"File too large. Max {settings.MAX_UPLOAD_SIZE_MB}MB")
    if size == 0:
        raise ValidationError("File is empty")
    return ext


async def _next_display_order(db: AsyncSession, product_id: int) -> int:
    """Check the per-product cap and return the order for a new image."""
    row = (
        await db.execute(
            select(func.count(ProductImage.id), func.max(ProductImage.display_order)).where(
                ProductImage.product_id == product_id
            )
        )
    ).one()
    count, max_order = row
    if count >= settings.MAX_IMAGES_PER_PRODUCT:
        raise ValidationError(
            f"Product already has the maximum of {settings.MAX_IMAGES_PER_PRODUCT} images"
        )
    return 0 if max_order is None else max_order + 1


async def _insert_image(
    db: AsyncSession, product_id: int, image_url: str, display_order: int
) -> None:
    await db.execute(
        insert(ProductImage).values(
            product_id=product_id, image_url=image_url, display_order=display_order
        )
    )
    await db.flush()


async def add_image_by_url(
    db: AsyncSession, user: CurrentUser, product_id: int, image_url: str
) -> ProductResponse:
    await get_owned_product(db, user.id, product_id)

    image_url = image_url.strip()
    if not is_image_url(image_url):
        raise ValidationError("Image URL must start with http:// or https://")

    display_order = await _next_display_order(db, product_id)
    await _insert_image(db, product_id, image_url, display_order)
    return await get_product(db, user.id, product_id)


async def add_image_by_upload(
    db: AsyncSession,
    storage: StorageClient,
    user: CurrentUser,
    product_id: int,
    content: bytes,
    content_type: str | None,
) -> ProductResponse:
    await get_owned_product(db, user.id, product_id)
    display_order = await _next_display_order(db, product_id)

    ext = validate_upload(content_type, len(content))
    path = f"{user.id}/{product_id}_{uuid.uuid4().hex}.{ext}"
    image_url = await storage.upload(path, content, content_type, user.token)

    try:
        await _insert_image(db, product_id, image_url, display_order)
    except DBAPIError:
        await storage.remove(path, user.token)
        raise

    logger.info("Stored image %s for product %s", path, product_id)
    return await get_product(db, user.id, product_id)


async def delete_image(
    db: AsyncSession,
    storage: StorageClient,
    user: CurrentUser,
    product_id: int,
    image_id: int,
) -> ProductResponse:
    await get_owned_product(db, user.id, product_id)

    result = await db.execute(
        select(ProductImage).where(
            ProductImage.id == image_id,
            ProductImage.product_id == product_id,
        )
    )
    image = result.scalar_one_or_none()
    if not image:
        raise NotFoundError("Image not found")
    removed_order = image.display_order

    # Best-effort: the row is deleted even if the object removal fails
    path = storage.path_from_public_url(image.image_url)
    if path is not None:
        await storage.remove(path, user.token)

    await db.execute(delete(ProductImage).where(ProductImage.id == image_id))
    await db.flush()

    # Compact: shift later images down one at a time, lowest first, so the
    # unique (product_id, display_order) index never sees a collision
    later = (
        await db.execute(
            select(ProductImage.id, ProductImage.display_order)
            .where(
                ProductImage.product_id == product_id,
                ProductImage.display_order > removed_order,
            )
            .order_by(ProductImage.display_order)
        )
    ).all()
    for later_id, order in later:
        await db.execute(
            update(ProductImage)
            .where(ProductImage.id == later_id, ProductImage.product_id == product_id)
            .values(display_order=order - 1)
        )
    await db.flush()

    return await get_product(db, user.id, product_id)


async def reorder_images(
    db: AsyncSession, user: CurrentUser, product_id: int, orders: list[ImageOrder]
) -> ProductResponse:
    """Apply a full permutation of display orders.

    The submitted ids must be exactly the product's image ids, each listed
    once, and the orders must be exactly 0..n-1.
    """
    await get_owned_product(db, user.id, product_id)

    existing_ids = set(
        (
            await db.execute(
                select(ProductImage.id).where(ProductImage.product_id == product_id)
            )
        ).scalars().all()
    )
    submitted_ids = [o.id for o in orders]
    if len(set(submitted_ids)) != len(submitted_ids):
        raise ValidationError("Each image may appear only once")
    if set(submitted_ids) != existing_ids:
        raise ValidationError("Orders must list every image of the product exactly once")
    if sorted(o.display_order for o in orders) != list(range(len(orders))):
        raise ValidationError("Display orders must be a contiguous sequence starting at 0")

    # Park every image on a negative slot first so no step collides
    for index, order in enumerate(orders):
        await db.execute(
            update(ProductImage)
            .where(ProductImage.id == order.id, ProductImage.product_id == product_id)
            .values(display_order=-(index + 1))
        )
    for order in orders:
        await db.execute(
            update(ProductImage)
            .where(ProductImage.id == order.id, ProductImage.product_id == product_id)
            .values(display_order=order.display_order)
        )
    await db.flush()

    return await get_product(db, user.id, product_id)
