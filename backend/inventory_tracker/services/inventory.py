"""Inventory periods and the per-period quantity records."""

import logging
from datetime import date, datetime, timezone
from uuid import UUID

from sqlalchemy import delete, func, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from inventory_tracker.core.errors import NotFoundError
from inventory_tracker.models.inventory import InventoryPeriod, InventoryRecord, PeriodStatus
from inventory_tracker.schemas.inventory import (
    CurrentInventoryResponse,
    HistoryEntry,
    PeriodCreate,
    PeriodResponse,
    ProductHistoryResponse,
    RecordCreate,
    RecordResponse,
    RecordWithProduct,
)
from inventory_tracker.services.products import get_owned_product

logger = logging.getLogger(__name__)


# ── Upsert ──────────────────────────────────────────

def _dialect_insert(db: AsyncSession):
    if db.get_bind().dialect.name == "sqlite":
        return sqlite.insert
    return postgresql.insert


async def upsert_records(db: AsyncSession, rows: list[dict]) -> None:
    """Write records keyed by (product_id, period_id) in one statement.

    An existing record for the same pair has its quantity, notes and
    counted_at overwritten.
    """
    if not rows:
        return
    stmt = _dialect_insert(db)(InventoryRecord).values(rows)
    stmt = stmt.on_conflict_do_update(
        index_elements=["product_id", "period_id"],
        set_={
            "quantity": stmt.excluded.quantity,
            "notes": stmt.excluded.notes,
            "counted_at": stmt.excluded.counted_at,
            "updated_at": func.now(),
        },
    )
    await db.execute(stmt)
    await db.flush()


def record_row(period_id: int, product_id: int, quantity: int, notes: str | None) -> dict:
    return {
        "period_id": period_id,
        "product_id": product_id,
        "quantity": quantity,
        "notes": notes,
        "counted_at": datetime.now(timezone.utc),
    }


# ── Periods ──────────────────────────────────────────

async def get_owned_period(db: AsyncSession, owner_id: UUID, period_id: int) -> InventoryPeriod:
    result = await db.execute(
        select(InventoryPeriod)
        .where(
            InventoryPeriod.id == period_id,
            InventoryPeriod.owner_id == owner_id,
        )
        .execution_options(populate_existing=True)
    )
    period = result.scalar_one_or_none()
    if not period:
        raise NotFoundError("Period not found")
    return period


async def find_active_period(db: AsyncSession, owner_id: UUID) -> InventoryPeriod | None:
    result = await db.execute(
        select(InventoryPeriod)
        .where(
            InventoryPeriod.owner_id == owner_id,
            InventoryPeriod.status == PeriodStatus.ACTIVE.value,
        )
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def list_periods(db: AsyncSession, owner_id: UUID) -> list[PeriodResponse]:
    result = await db.execute(
        select(InventoryPeriod)
        .where(InventoryPeriod.owner_id == owner_id)
        .order_by(InventoryPeriod.start_date.desc(), InventoryPeriod.id.desc())
        .execution_options(populate_existing=True)
    )
    return [PeriodResponse.model_validate(p) for p in result.scalars().all()]


async def create_period(db: AsyncSession, owner_id: UUID, body: PeriodCreate) -> PeriodResponse:
    """Close the caller's active period (if any), then open the new one."""
    closed = await db.execute(
        update(InventoryPeriod)
        .where(
            InventoryPeriod.owner_id == owner_id,
            InventoryPeriod.status == PeriodStatus.ACTIVE.value,
        )
        .values(status=PeriodStatus.CLOSED.value, end_date=date.today(), updated_at=func.now())
    )
    if closed.rowcount:
        logger.info("Closed %d active period(s) for owner %s", closed.rowcount, owner_id)

    period = InventoryPeriod(
        **body.model_dump(),
        owner_id=owner_id,
        status=PeriodStatus.ACTIVE.value,
    )
    db.add(period)
    await db.flush()
    await db.refresh(period)
    return PeriodResponse.model_validate(period)


async def close_period(db: AsyncSession, owner_id: UUID, period_id: int) -> PeriodResponse:
    period = await get_owned_period(db, owner_id, period_id)
    period.status = PeriodStatus.CLOSED.value
    period.end_date = date.today()
    await db.flush()
    await db.refresh(period)
    return PeriodResponse.model_validate(period)


async def get_active_period(db: AsyncSession, owner_id: UUID) -> PeriodResponse:
    period = await find_active_period(db, owner_id)
    if not period:
        raise NotFoundError("No active period found")
    return PeriodResponse.model_validate(period)


# ── Records ──────────────────────────────────────────

async def _records_with_product(db: AsyncSession, period_id: int) -> list[RecordWithProduct]:
    result = await db.execute(
        select(InventoryRecord)
        .where(InventoryRecord.period_id == period_id)
        .options(selectinload(InventoryRecord.product))
        .order_by(InventoryRecord.product_id)
        .execution_options(populate_existing=True)
    )
    return [RecordWithProduct.model_validate(r) for r in result.scalars().all()]


async def add_record(
    db: AsyncSession, owner_id: UUID, period_id: int, body: RecordCreate
) -> RecordResponse:
    """Create or overwrite the record for (product, period).

    Recording against a closed period is allowed.
    """
    await get_owned_period(db, owner_id, period_id)
    await get_owned_product(db, owner_id, body.product_id)

    await upsert_records(
        db, [record_row(period_id, body.product_id, body.quantity, body.notes)]
    )

    result = await db.execute(
        select(InventoryRecord)
        .where(
            InventoryRecord.period_id == period_id,
            InventoryRecord.product_id == body.product_id,
        )
        .execution_options(populate_existing=True)
    )
    return RecordResponse.model_validate(result.scalar_one())


async def list_records(
    db: AsyncSession, owner_id: UUID, period_id: int
) -> list[RecordWithProduct]:
    await get_owned_period(db, owner_id, period_id)
    return await _records_with_product(db, period_id)


async def current_inventory(db: AsyncSession, owner_id: UUID) -> CurrentInventoryResponse:
    period = await find_active_period(db, owner_id)
    if not period:
        return CurrentInventoryResponse(period=None, records=[])
    return CurrentInventoryResponse(
        period=PeriodResponse.model_validate(period),
        records=await _records_with_product(db, period.id),
    )


async def product_history(
    db: AsyncSession, owner_id: UUID, product_id: int
) -> ProductHistoryResponse:
    product = await get_owned_product(db, owner_id, product_id)

    result = await db.execute(
        select(InventoryRecord)
        .where(InventoryRecord.product_id == product_id)
        .options(selectinload(InventoryRecord.period))
        .order_by(InventoryRecord.counted_at.desc(), InventoryRecord.id.desc())
        .execution_options(populate_existing=True)
    )
    history = [
        HistoryEntry(
            period_id=record.period.id,
            period_name=record.period.name,
            period_date=record.period.start_date,
            period_status=record.period.status,
            quantity=record.quantity,
            counted_at=record.counted_at,
            notes=record.notes,
        )
        for record in result.scalars().all()
    ]
    return ProductHistoryResponse(
        product_id=product.id, product_name=product.name, history=history
    )


async def delete_record(
    db: AsyncSession, owner_id: UUID, period_id: int, product_id: int
) -> None:
    result = await db.execute(
        select(InventoryRecord)
        .where(
            InventoryRecord.period_id == period_id,
            InventoryRecord.product_id == product_id,
        )
        .options(selectinload(InventoryRecord.period))
        .execution_options(populate_existing=True)
    )
    record = result.scalar_one_or_none()
    # A record in someone else's period is reported the same as a missing one
    if not record or record.period.owner_id != owner_id:
        raise NotFoundError("Record not found")

    await db.execute(
        delete(InventoryRecord).where(
            InventoryRecord.period_id == period_id,
            InventoryRecord.product_id == product_id,
        )
    )
    await db.flush()
