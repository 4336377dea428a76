"""Product, product/category link table and product image models."""

import uuid
from decimal import Decimal

from sqlalchemy import (
    CheckConstraint, Column, ForeignKey, Index, Integer, Numeric, Table, Text, Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from inventory_tracker.db.base import Base
from inventory_tracker.models.mixins import (
    BigIntId, CreatedAtMixin, IdentityPrimaryKeyMixin, TimestampMixin,
)

product_categories = Table(
    "product_categories",
    Base.metadata,
    Column("product_id", BigIntId, ForeignKey("products.id", ondelete="CASCADE"), primary_key=True),
    Column("category_id", BigIntId, ForeignKey("categories.id", ondelete="CASCADE"), primary_key=True),
    Index("idx_product_categories_category_id", "category_id"),
)


class Product(IdentityPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "products"
    __table_args__ = (
        CheckConstraint("price > 0", name="chk_price_positive"),
        CheckConstraint("quantity IS NULL OR quantity >= 0", name="chk_quantity_non_negative"),
        Index("idx_products_owner_name", "owner_id", "name"),
        Index("idx_products_id_order", "owner_id", "id"),
    )
    __mapper_args__ = {"eager_defaults": True}

    name: Mapped[str] = mapped_column(Text, nullable=False)
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    # Legacy stock field, superseded by inventory records
    quantity: Mapped[int | None] = mapped_column(Integer)
    owner_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)

    # Links and images are written with core statements; these are read-only views
    categories = relationship(
        "Category", secondary=product_categories, lazy="raise", viewonly=True
    )
    images = relationship(
        "ProductImage", lazy="raise", viewonly=True, order_by="ProductImage.display_order"
    )

    def __repr__(self) -> str:
        return f"<Product {self.id}: {self.name}>"


class ProductImage(IdentityPrimaryKeyMixin, CreatedAtMixin, Base):
    __tablename__ = "product_images"
    __table_args__ = (
        Index("idx_product_images_unique_order", "product_id", "display_order", unique=True),
    )
    __mapper_args__ = {"eager_defaults": True}

    product_id: Mapped[int] = mapped_column(
        BigIntId, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True
    )
    image_url: Mapped[str] = mapped_column(Text, nullable=False)
    display_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    def __repr__(self) -> str:
        return f"<ProductImage product={self.product_id} order={self.display_order}>"
