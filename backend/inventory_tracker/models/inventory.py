"""Inventory period and inventory record models."""

import enum
import uuid
from datetime import date, datetime

from sqlalchemy import (
    CheckConstraint, Date, DateTime, ForeignKey, Index, Integer, Text, UniqueConstraint,
    Uuid, func, text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from inventory_tracker.db.base import Base
from inventory_tracker.models.mixins import BigIntId, IdentityPrimaryKeyMixin, TimestampMixin


class PeriodStatus(str, enum.Enum):
    ACTIVE = "active"
    CLOSED = "closed"


class InventoryPeriod(IdentityPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "inventory_periods"
    __table_args__ = (
        UniqueConstraint("owner_id", "name", name="uq_periods_owner_name"),
        CheckConstraint("status IN ('active', 'closed')", name="chk_status"),
        Index("idx_inventory_periods_status", "owner_id", "status"),
        # At most one active period per owner, so racing creates surface as conflicts
        Index(
            "uq_periods_one_active_per_owner",
            "owner_id",
            unique=True,
            postgresql_where=text("status = 'active'"),
            sqlite_where=text("status = 'active'"),
        ),
    )
    __mapper_args__ = {"eager_defaults": True}

    name: Mapped[str] = mapped_column(Text, nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date | None] = mapped_column(Date)
    status: Mapped[str] = mapped_column(Text, nullable=False, default=PeriodStatus.ACTIVE.value)
    notes: Mapped[str | None] = mapped_column(Text)
    owner_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)

    def __repr__(self) -> str:
        return f"<InventoryPeriod {self.id}: {self.name} ({self.status})>"


class InventoryRecord(IdentityPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "inventory_records"
    __table_args__ = (
        UniqueConstraint("product_id", "period_id", name="uq_record_product_period"),
        CheckConstraint("quantity >= 0", name="chk_record_quantity_non_negative"),
    )
    __mapper_args__ = {"eager_defaults": True}

    product_id: Mapped[int] = mapped_column(
        BigIntId, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True
    )
    period_id: Mapped[int] = mapped_column(
        BigIntId, ForeignKey("inventory_periods.id", ondelete="CASCADE"), nullable=False, index=True
    )
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    counted_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    notes: Mapped[str | None] = mapped_column(Text)

    product = relationship("Product", lazy="raise", viewonly=True)
    period = relationship("InventoryPeriod", lazy="raise", viewonly=True)

    def __repr__(self) -> str:
        return f"<InventoryRecord product={self.product_id} period={self.period_id} qty={self.quantity}>"
