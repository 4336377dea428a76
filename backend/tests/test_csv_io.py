"""CSV export and best-effort CSV import."""

from datetime import date

import pytest
from sqlalchemy import func, select

from inventory_tracker.core.errors import NotFoundError, ValidationError
from inventory_tracker.models.category import Category
from inventory_tracker.models.product import Product
from inventory_tracker.schemas.category import CategoryCreate
from inventory_tracker.schemas.inventory import PeriodCreate, RecordCreate
from inventory_tracker.schemas.product import ProductCreate
from inventory_tracker.services import csv_io
from inventory_tracker.services.categories import create_category
from inventory_tracker.services.images import add_image_by_url
from inventory_tracker.services.inventory import add_record, create_period, list_records
from inventory_tracker.services.products import create_product, list_products


async def count_products(db, owner_id) -> int:
    result = await db.execute(
        select(func.count()).select_from(Product).where(Product.owner_id == owner_id)
    )
    return result.scalar_one()


async def products_by_name(db, owner_id):
    page = await list_products(db, owner_id, page=1, limit=100)
    return {p.name: p for p in page.data}


async def open_period(db, owner_id, name="January 2026"):
    return await create_period(db, owner_id, PeriodCreate(name=name, start_date=date(2026, 1, 1)))


# ── Product import ────────────────────────────────

@pytest.mark.asyncio
async def test_duplicate_in_same_batch_is_skipped(db, user):
    csv = "name,price,categories\nWidget,5.00,\nWidget,6.00,"

    result = await csv_io.import_products(db, user.id, csv)

    assert (result.success, result.failed, result.skipped, result.total) == (1, 0, 1, 2)
    assert result.errors == ['Row 3: Product "Widget" already exists (skipped)']
    assert result.message == "Import completed: 1 created, 0 failed, 1 skipped (duplicates)"
    assert await count_products(db, user.id) == 1
    assert (await products_by_name(db, user.id))["Widget"].price == 5.0


@pytest.mark.asyncio
async def test_existing_product_skipped_case_insensitively(db, user):
    await create_product(db, user.id, ProductCreate(name="Widget", price=1))

    result = await csv_io.import_products(db, user.id, "Name,Price\nWIDGET,2")

    assert result.skipped == 1
    assert result.success == 0


@pytest.mark.asyncio
async def test_bad_rows_fail_alone(db, user):
    csv = "\n".join([
        "name,price,quantity",
        "Good,1.50,3",
        "NoPrice,abc,1",
        "Free,0,1",
        ",2.00,1",
        "BadQty,2.00,-4",
        "Also good,2,",
    ])

    result = await csv_io.import_products(db, user.id, csv)

    assert result.success == 2
    assert result.failed == 4
    assert result.errors == [
        'Row 3: Invalid price: "abc"',
        "Row 4: Price must be greater than 0",
        "Row 5: Product name is required",
        "Row 6: Quantity cannot be negative",
    ]
    products = await products_by_name(db, user.id)
    assert set(products) == {"Good", "Also good"}
    assert products["Good"].quantity == 3
    assert products["Also good"].quantity is None


@pytest.mark.asyncio
async def test_out_of_range_prices_fail_alone(db, user):
    csv = "Name,Price\nHuge,1e30\nBig,100000000\nSmall,5.00"

    result = await csv_io.import_products(db, user.id, csv)

    assert result.success == 1
    assert result.failed == 2
    assert result.errors == [
        'Row 2: Invalid price: "1e30"',
        "Row 3: Price must be less than 100000000",
    ]
    assert set(await products_by_name(db, user.id)) == {"Small"}


@pytest.mark.asyncio
async def test_categories_resolved_and_linked_once(db, user):
    existing = await create_category(db, user.id, CategoryCreate(name="Tools"))
    csv = 'name,price,categories\nHammer,12.50,"Tools;Hardware;tools"\nNails,1,Hardware'

    result = await csv_io.import_products(db, user.id, csv)

    assert result.success == 2
    products = await products_by_name(db, user.id)
    hammer = products["Hammer"]
    assert len(hammer.category_ids) == 2
    assert existing.id in hammer.category_ids
    assert products["Nails"].category_names == ["Hardware"]

    categories = await db.execute(
        select(func.count()).select_from(Category).where(Category.owner_id == user.id)
    )
    assert categories.scalar_one() == 2


@pytest.mark.asyncio
async def test_image_urls_become_ordered_images(db, user):
    csv = (
        "name,price,images\n"
        'Lamp,20,"https://cdn.example.com/a.png;not-a-url;https://cdn.example.com/b.png"'
    )

    result = await csv_io.import_products(db, user.id, csv)

    assert result.success == 1
    assert result.failed == 0
    assert result.errors == ['Row 2: Product created but image "not-a-url" is not a valid URL']
    lamp = (await products_by_name(db, user.id))["Lamp"]
    assert [(img.url, img.display_order) for img in lamp.images] == [
        ("https://cdn.example.com/a.png", 0),
        ("https://cdn.example.com/b.png", 1),
    ]


@pytest.mark.asyncio
async def test_missing_columns_abort(db, user):
    with pytest.raises(ValidationError) as exc_info:
        await csv_io.import_products(db, user.id, "name,quantity\nWidget,1")
    assert exc_info.value.message == "Missing required columns: price"


@pytest.mark.asyncio
async def test_header_only_aborts(db, user):
    with pytest.raises(ValidationError) as exc_info:
        await csv_io.import_products(db, user.id, "name,price\n\n")
    assert exc_info.value.message == "CSV file is empty or has no data rows"


@pytest.mark.asyncio
async def test_catalog_import_uses_product_name_column(db, user):
    csv = 'Product Name,Price,Categories\n"Rope, 10m",8.25,Outdoor'

    result = await csv_io.import_products(
        db, user.id, csv, name_column="product name", stock_columns=False
    )

    assert result.success == 1
    rope = (await products_by_name(db, user.id))["Rope, 10m"]
    assert rope.category_names == ["Outdoor"]
    assert rope.price == 8.25


# ── Inventory count import ────────────────────────

@pytest.mark.asyncio
async def test_inventory_import_requires_active_period(db, user):
    with pytest.raises(NotFoundError):
        await csv_io.import_inventory_counts(db, user.id, "Product Name,Quantity\nWidget,1")


@pytest.mark.asyncio
async def test_inventory_import_after_preamble(db, user):
    period = await open_period(db, user.id)
    widget = await create_product(db, user.id, ProductCreate(name="Widget", price=5))
    bolt = await create_product(db, user.id, ProductCreate(name="Bolt", price=1))
    await add_record(db, user.id, period.id, RecordCreate(product_id=bolt.id, quantity=99))

    csv = "\n".join([
        "Period: January 2026 (2026-01-01)",
        "",
        "Product Name,Quantity,Price,Categories,Notes",
        '"widget",4,5,"",shelf A',
        '"Bolt",7,1,"",',
        '"Ghost",1,1,"",',
        '"Widget",abc,5,"",',
        '"Widget",6,5,"",recount',
    ])

    result = await csv_io.import_inventory_counts(db, user.id, csv)

    assert result.period == "January 2026"
    assert (result.success, result.failed, result.not_found, result.total) == (3, 1, 1, 5)
    assert result.errors == [
        'Row 5: Product "Ghost" not found (skipped)',
        'Row 6: Invalid quantity: "abc"',
    ]

    records = {r.product_id: r for r in await list_records(db, user.id, period.id)}
    assert records[widget.id].quantity == 6
    assert records[widget.id].notes == "recount"
    assert records[bolt.id].quantity == 7
    assert records[bolt.id].notes is None


@pytest.mark.asyncio
async def test_inventory_import_without_header(db, user):
    await open_period(db, user.id)
    with pytest.raises(ValidationError):
        await csv_io.import_inventory_counts(db, user.id, "Name,Count\nWidget,1")


@pytest.mark.asyncio
async def test_inventory_result_serialises_not_found_alias(db, user):
    await open_period(db, user.id)
    result = await csv_io.import_inventory_counts(db, user.id, "Product Name,Quantity\nGhost,1")
    assert result.model_dump(by_alias=True)["notFound"] == 1


# ── Export ────────────────────────────────────────

@pytest.mark.asyncio
async def test_export_products(db, user):
    tools = await create_category(db, user.id, CategoryCreate(name="Tools"))
    hammer = await create_product(
        db, user.id, ProductCreate(name='Hammer "Pro"', price=12.5, quantity=3, category_ids=[tools.id])
    )
    await add_image_by_url(db, user, hammer.id, "https://cdn.example.com/h.png")
    await create_product(db, user.id, ProductCreate(name="Nails", price=100))

    export = await csv_io.export_products(db, user.id)

    lines = export.content.split("\n")
    assert lines[0] == "Name,Quantity,Price,Categories,Images,Created At"
    assert lines[1].startswith('"Hammer ""Pro""",3,12.5,"Tools","https://cdn.example.com/h.png",')
    assert lines[2].startswith('"Nails",,100,"","",')
    assert export.filename == f"products_{date.today().isoformat()}.csv"


@pytest.mark.asyncio
async def test_export_catalog_round_trips_through_catalog_import(db, user, other_user):
    tools = await create_category(db, user.id, CategoryCreate(name="Tools"))
    await create_product(db, user.id, ProductCreate(name="Saw, fine", price=9.99, category_ids=[tools.id]))

    export = await csv_io.export_catalog(db, user.id)
    assert export.content.split("\n") == [
        "Product Name,Price,Categories",
        '"Saw, fine",9.99,"Tools"',
    ]

    result = await csv_io.import_products(
        db, other_user.id, export.content, name_column="product name", stock_columns=False
    )
    assert result.success == 1
    copied = (await products_by_name(db, other_user.id))["Saw, fine"]
    assert copied.category_names == ["Tools"]


@pytest.mark.asyncio
async def test_export_current_inventory(db, user):
    period = await create_period(
        db, user.id, PeriodCreate(name="Spring count", start_date=date(2026, 3, 1))
    )
    product = await create_product(db, user.id, ProductCreate(name="Widget", price=5))
    await add_record(db, user.id, period.id, RecordCreate(product_id=product.id, quantity=4, notes="top shelf"))

    export = await csv_io.export_current_inventory(db, user.id)

    assert export.content.split("\n") == [
        "Period: Spring count (2026-03-01)",
        "",
        "Product Name,Quantity,Price,Categories,Notes",
        '"Widget",4,5,"","top shelf"',
    ]
    assert export.filename == f"inventory_Spring_count_{date.today().isoformat()}.csv"


@pytest.mark.asyncio
async def test_export_current_inventory_requires_period(db, user):
    with pytest.raises(NotFoundError):
        await csv_io.export_current_inventory(db, user.id)


@pytest.mark.asyncio
async def test_exported_inventory_imports_back(db, user):
    period = await open_period(db, user.id)
    product = await create_product(db, user.id, ProductCreate(name="Widget", price=5))
    await add_record(db, user.id, period.id, RecordCreate(product_id=product.id, quantity=4))

    export = await csv_io.export_current_inventory(db, user.id)
    result = await csv_io.import_inventory_counts(
        db, user.id, export.content.replace('"Widget",4', '"Widget",11')
    )

    assert result.success == 1
    records = await list_records(db, user.id, period.id)
    assert records[0].quantity == 11
