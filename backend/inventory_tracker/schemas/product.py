"""Product and product image schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

# Numeric(10, 2) holds at most eight integer digits
MAX_PRICE = 100_000_000


class ProductCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(..., min_length=1)
    price: float = Field(..., gt=0, lt=MAX_PRICE)
    quantity: int | None = Field(None, ge=0)
    category_ids: list[int] | None = Field(None, alias="categoryIds")


class ProductUpdate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str | None = Field(None, min_length=1)
    price: float | None = Field(None, gt=0, lt=MAX_PRICE)
    quantity: int | None = Field(None, ge=0)
    category_ids: list[int] | None = Field(None, alias="categoryIds")


class ProductImageResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    url: str
    display_order: int


class ProductResponse(BaseModel):
    """Flattened product view: scalar fields, category ids/names and ordered images."""
    model_config = ConfigDict(populate_by_name=True)

    id: int
    name: str
    price: float
    quantity: int | None = None
    created_at: datetime
    updated_at: datetime
    category_ids: list[int] = Field(default_factory=list, alias="categoryIds")
    category_names: list[str] = Field(default_factory=list, alias="categoryNames")
    images: list[ProductImageResponse] = Field(default_factory=list)


# ── Images ──
class ImageUrlCreate(BaseModel):
    image_url: str = Field(..., min_length=1)


class ImageOrder(BaseModel):
    id: int
    display_order: int = Field(..., ge=0)


class ImageReorderRequest(BaseModel):
    orders: list[ImageOrder] = Field(..., min_length=1)
