"""Inventory periods, record upsert and the derived views."""

from datetime import date

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from inventory_tracker.core.errors import ConflictError, NotFoundError, translate_db_error
from inventory_tracker.models.inventory import InventoryPeriod, InventoryRecord
from inventory_tracker.schemas.inventory import PeriodCreate, RecordCreate
from inventory_tracker.schemas.product import ProductCreate
from inventory_tracker.services import inventory as service
from inventory_tracker.services.products import create_product, delete_product


async def new_period(db, owner_id, name, start=date(2026, 1, 1)):
    return await service.create_period(db, owner_id, PeriodCreate(name=name, start_date=start))


async def new_product(db, owner_id, name="Spade", price=5):
    return await create_product(db, owner_id, ProductCreate(name=name, price=price))


# ── Periods ───────────────────────────────────────

@pytest.mark.asyncio
async def test_new_period_closes_previous(db, user):
    first = await new_period(db, user.id, "January")
    second = await new_period(db, user.id, "February", date(2026, 2, 1))

    periods = {p.id: p for p in await service.list_periods(db, user.id)}

    assert periods[second.id].status == "active"
    assert periods[first.id].status == "closed"
    assert periods[first.id].end_date == date.today()
    active = [p for p in periods.values() if p.status == "active"]
    assert len(active) == 1


@pytest.mark.asyncio
async def test_periods_of_other_owner_untouched(db, user, other_user):
    theirs = await new_period(db, other_user.id, "January")
    await new_period(db, user.id, "January")

    active = await service.get_active_period(db, other_user.id)
    assert active.id == theirs.id


@pytest.mark.asyncio
async def test_list_periods_newest_first(db, user):
    await new_period(db, user.id, "January", date(2026, 1, 1))
    await new_period(db, user.id, "March", date(2026, 3, 1))
    await new_period(db, user.id, "February", date(2026, 2, 1))

    names = [p.name for p in await service.list_periods(db, user.id)]
    assert names == ["March", "February", "January"]


@pytest.mark.asyncio
async def test_close_period(db, user):
    period = await new_period(db, user.id, "January")

    closed = await service.close_period(db, user.id, period.id)

    assert closed.status == "closed"
    assert closed.end_date == date.today()
    with pytest.raises(NotFoundError):
        await service.get_active_period(db, user.id)


@pytest.mark.asyncio
async def test_close_foreign_period_not_found(db, user, other_user):
    period = await new_period(db, user.id, "January")
    with pytest.raises(NotFoundError):
        await service.close_period(db, other_user.id, period.id)


@pytest.mark.asyncio
async def test_second_active_row_is_a_conflict(db, user):
    """The store itself refuses a second active period for one owner."""
    await new_period(db, user.id, "January")

    with pytest.raises(IntegrityError) as exc_info:
        async with db.begin_nested():
            db.add(InventoryPeriod(
                name="Racing", start_date=date(2026, 1, 2), status="active", owner_id=user.id
            ))
            await db.flush()

    assert isinstance(translate_db_error(exc_info.value), ConflictError)


# ── Records ───────────────────────────────────────

@pytest.mark.asyncio
async def test_record_upsert_keeps_latest(db, user):
    period = await new_period(db, user.id, "January")
    product = await new_product(db, user.id)

    await service.add_record(db, user.id, period.id, RecordCreate(product_id=product.id, quantity=3))
    second = await service.add_record(
        db, user.id, period.id, RecordCreate(product_id=product.id, quantity=8, notes="recount")
    )

    count = await db.execute(
        select(func.count()).select_from(InventoryRecord).where(
            InventoryRecord.product_id == product.id,
            InventoryRecord.period_id == period.id,
        )
    )
    assert count.scalar_one() == 1
    assert second.quantity == 8
    assert second.notes == "recount"


@pytest.mark.asyncio
async def test_record_in_closed_period_allowed(db, user):
    period = await new_period(db, user.id, "January")
    product = await new_product(db, user.id)
    await service.close_period(db, user.id, period.id)

    record = await service.add_record(
        db, user.id, period.id, RecordCreate(product_id=product.id, quantity=1)
    )
    assert record.period_id == period.id


@pytest.mark.asyncio
async def test_record_requires_owned_period_and_product(db, user, other_user):
    period = await new_period(db, user.id, "January")
    theirs = await new_product(db, other_user.id)
    mine = await new_product(db, user.id)

    with pytest.raises(NotFoundError):
        await service.add_record(db, user.id, period.id, RecordCreate(product_id=theirs.id, quantity=1))
    with pytest.raises(NotFoundError):
        await service.add_record(db, other_user.id, period.id, RecordCreate(product_id=mine.id, quantity=1))


@pytest.mark.asyncio
async def test_list_records_joined_with_product(db, user):
    period = await new_period(db, user.id, "January")
    b = await new_product(db, user.id, "B", 2)
    a = await new_product(db, user.id, "A", 1)
    await service.add_record(db, user.id, period.id, RecordCreate(product_id=a.id, quantity=1))
    await service.add_record(db, user.id, period.id, RecordCreate(product_id=b.id, quantity=2))

    records = await service.list_records(db, user.id, period.id)

    assert [r.product_id for r in records] == sorted([a.id, b.id])
    assert records[0].product.name == "B"
    assert records[0].product.price == 2


@pytest.mark.asyncio
async def test_current_inventory_empty_without_active_period(db, user):
    current = await service.current_inventory(db, user.id)
    assert current.period is None
    assert current.records == []


@pytest.mark.asyncio
async def test_current_inventory_uses_active_period(db, user):
    old = await new_period(db, user.id, "January")
    product = await new_product(db, user.id)
    await service.add_record(db, user.id, old.id, RecordCreate(product_id=product.id, quantity=1))
    new = await new_period(db, user.id, "February", date(2026, 2, 1))
    await service.add_record(db, user.id, new.id, RecordCreate(product_id=product.id, quantity=9))

    current = await service.current_inventory(db, user.id)

    assert current.period.id == new.id
    assert [r.quantity for r in current.records] == [9]


@pytest.mark.asyncio
async def test_product_history_most_recent_first(db, user):
    product = await new_product(db, user.id)
    january = await new_period(db, user.id, "January")
    await service.add_record(db, user.id, january.id, RecordCreate(product_id=product.id, quantity=4))
    february = await new_period(db, user.id, "February", date(2026, 2, 1))
    await service.add_record(db, user.id, february.id, RecordCreate(product_id=product.id, quantity=6))

    history = await service.product_history(db, user.id, product.id)

    assert history.product_name == "Spade"
    assert [h.period_name for h in history.history] == ["February", "January"]
    assert [h.quantity for h in history.history] == [6, 4]
    assert history.history[1].period_status == "closed"


@pytest.mark.asyncio
async def test_history_of_foreign_product_not_found(db, user, other_user):
    product = await new_product(db, user.id)
    with pytest.raises(NotFoundError):
        await service.product_history(db, other_user.id, product.id)


@pytest.mark.asyncio
async def test_delete_record(db, user, other_user):
    period = await new_period(db, user.id, "January")
    product = await new_product(db, user.id)
    await service.add_record(db, user.id, period.id, RecordCreate(product_id=product.id, quantity=1))

    with pytest.raises(NotFoundError):
        await service.delete_record(db, other_user.id, period.id, product.id)

    await service.delete_record(db, user.id, period.id, product.id)
    assert await service.list_records(db, user.id, period.id) == []

    with pytest.raises(NotFoundError):
        await service.delete_record(db, user.id, period.id, product.id)


@pytest.mark.asyncio
async def test_deleting_product_removes_its_records(db, user):
    period = await new_period(db, user.id, "January")
    product = await new_product(db, user.id)
    await service.add_record(db, user.id, period.id, RecordCreate(product_id=product.id, quantity=1))

    await delete_product(db, user.id, product.id)

    assert await service.list_records(db, user.id, period.id) == []
