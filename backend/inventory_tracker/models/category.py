"""Category model."""

import uuid

from sqlalchemy import Index, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from inventory_tracker.db.base import Base
from inventory_tracker.models.mixins import IdentityPrimaryKeyMixin, TimestampMixin


class Category(IdentityPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "categories"
    __table_args__ = (
        UniqueConstraint("owner_id", "name", name="uq_categories_owner_name"),
        Index("idx_categories_id_order", "owner_id", "id"),
    )
    __mapper_args__ = {"eager_defaults": True}

    name: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    owner_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)

    def __repr__(self) -> str:
        return f"<Category {self.id}: {self.name}>"
