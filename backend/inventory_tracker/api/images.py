"""Product image endpoints: upload, add by URL, reorder, delete."""

from fastapi import APIRouter, Depends, File, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from inventory_tracker.core.config import settings
from inventory_tracker.core.deps import get_current_user
from inventory_tracker.core.errors import ValidationError
from inventory_tracker.db.base import get_db
from inventory_tracker.schemas.auth import CurrentUser
from inventory_tracker.schemas.product import ImageReorderRequest, ImageUrlCreate, ProductResponse
from inventory_tracker.services import images as service
from inventory_tracker.services.storage import StorageClient, get_storage

router = APIRouter(prefix="/products/{product_id}/images", tags=["images"])

CHUNK_SIZE = 64 * 1024


async def _read_upload(file: UploadFile) -> bytes:
    too_large = f"File too large. Max {settings.MAX_UPLOAD_SIZE_MB}MB"

    # Reject early on the declared size when the client sent one
    if file.size and file.size > service.MAX_UPLOAD_BYTES:
        raise ValidationError(too_large)

    chunks = []
    total_size = 0
    while True:
        chunk = await file.read(CHUNK_SIZE)
        if not chunk:
            break
        total_size += len(chunk)
        if total_size > service.MAX_UPLOAD_BYTES:
            raise ValidationError(too_large)
        chunks.append(chunk)
    return b"".join(chunks)


@router.post("", response_model=ProductResponse, status_code=201)
async def upload_image(
    product_id: int,
    file: UploadFile = File(...),
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    storage: StorageClient = Depends(get_storage),
):
    service.check_content_type(file.content_type)
    content = await _read_upload(file)
    return await service.add_image_by_upload(
        db, storage, current_user, product_id, content, file.content_type
    )


@router.post("/url", response_model=ProductResponse, status_code=201)
async def add_image_url(
    product_id: int,
    body: ImageUrlCreate,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await service.add_image_by_url(db, current_user, product_id, body.image_url)


@router.put("/reorder", response_model=ProductResponse)
async def reorder_images(
    product_id: int,
    body: ImageReorderRequest,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await service.reorder_images(db, current_user, product_id, body.orders)


@router.delete("/{image_id}", response_model=ProductResponse)
async def delete_image(
    product_id: int,
    image_id: int,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    storage: StorageClient = Depends(get_storage),
):
    return await service.delete_image(db, storage, current_user, product_id, image_id)
