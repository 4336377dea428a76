"""CSV export of products and inventory, and best-effort CSV import.

Imports process rows independently: a bad row is counted and reported with
its 1-based line number, and the rest of the batch carries on. Only problems
with the document as a whole (no data rows, missing columns, no active
period) abort the request.
"""

import logging
import re
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal, InvalidOperation
from uuid import UUID

from sqlalchemy import insert, select
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from inventory_tracker.core.config import settings
from inventory_tracker.core.errors import (
    AppError, NotFoundError, ValidationError, translate_db_error,
)
from inventory_tracker.models.inventory import InventoryRecord
from inventory_tracker.models.product import Product, ProductImage, product_categories
from inventory_tracker.schemas.csv import InventoryImportResult, ProductImportResult
from inventory_tracker.schemas.product import MAX_PRICE
from inventory_tracker.services.category_resolver import CategoryResolver
from inventory_tracker.services.csv_parser import parse_csv_line, quote_csv_field, split_csv_lines
from inventory_tracker.services.images import is_image_url
from inventory_tracker.services.inventory import find_active_period, record_row, upsert_records
from inventory_tracker.services.products import product_detail_query, to_price

logger = logging.getLogger(__name__)

PRODUCTS_HEADER = "Name,Quantity,Price,Categories,Images,Created At"
CATALOG_HEADER = "Product Name,Price,Categories"
INVENTORY_HEADER = "Product Name,Quantity,Price,Categories,Notes"

LIST_SEPARATOR = ";"
NO_ACTIVE_PERIOD = "No active period found. Please create a period first."


class RowError(Exception):
    """A problem confined to one CSV row."""


@dataclass
class CsvExport:
    filename: str
    content: str


@dataclass
class _Tally:
    success: int = 0
    failed: int = 0
    skipped: int = 0
    errors: list[str] = field(default_factory=list)

    def note(self, row_number: int, message: str) -> None:
        self.errors.append(f"Row {row_number}: {message}")


# ── Formatting helpers ──────────────────────────────

def format_number(value: Decimal | int | float | None) -> str:
    if value is None:
        return ""
    if isinstance(value, Decimal):
        return format(value.normalize(), "f")
    return str(value)


def _today() -> str:
    return date.today().isoformat()


def _split_list(value: str) -> list[str]:
    return [token.strip() for token in value.split(LIST_SEPARATOR) if token.strip()]


def _cell(values: list[str], index: int | None) -> str:
    if index is None or index >= len(values):
        return ""
    return values[index].strip()


def _read_header(line: str, required: list[str]) -> dict[str, int]:
    headers = [h.strip().lower() for h in parse_csv_line(line)]
    missing = [h for h in required if h not in headers]
    if missing:
        raise ValidationError(f"Missing required columns: {', '.join(missing)}")
    columns: dict[str, int] = {}
    for index, header in enumerate(headers):
        columns.setdefault(header, index)
    return columns


def _parse_price(raw: str) -> Decimal:
    try:
        price = Decimal(raw)
        if not price.is_finite():
            raise InvalidOperation
        rounded = to_price(price)
    except InvalidOperation:
        raise RowError(f'Invalid price: "{raw}"')
    if price <= 0 or rounded <= 0:
        raise RowError("Price must be greater than 0")
    if rounded >= MAX_PRICE:
        raise RowError(f"Price must be less than {MAX_PRICE}")
    return rounded


def _parse_quantity(raw: str) -> int:
    try:
        quantity = int(raw)
    except ValueError:
        raise RowError(f'Invalid quantity: "{raw}"')
    if quantity < 0:
        raise RowError("Quantity cannot be negative")
    return quantity


def _db_failure_message(exc: DBAPIError) -> str:
    translated = translate_db_error(exc)
    return translated.message if translated else "Database error"


# ── Export ──────────────────────────────────────────

async def export_products(db: AsyncSession, owner_id: UUID) -> CsvExport:
    """Full product export: categories and image URLs are ;-joined."""
    result = await db.execute(product_detail_query(owner_id).order_by(Product.id))
    rows = [PRODUCTS_HEADER]
    for product in result.scalars().all():
        categories = LIST_SEPARATOR.join(c.name for c in product.categories)
        images = LIST_SEPARATOR.join(
            img.image_url for img in sorted(product.images, key=lambda img: img.display_order)
        )
        rows.append(
            ",".join([
                quote_csv_field(product.name),
                format_number(product.quantity),
                format_number(product.price),
                quote_csv_field(categories),
                quote_csv_field(images),
                product.created_at.date().isoformat(),
            ])
        )
    return CsvExport(filename=f"products_{_today()}.csv", content="\n".join(rows))


async def export_catalog(db: AsyncSession, owner_id: UUID) -> CsvExport:
    """Product catalog without quantities, in the inventory import's header format."""
    result = await db.execute(product_detail_query(owner_id).order_by(Product.id))
    rows = [CATALOG_HEADER]
    for product in result.scalars().all():
        categories = LIST_SEPARATOR.join(c.name for c in product.categories)
        rows.append(
            ",".join([
                quote_csv_field(product.name),
                format_number(product.price),
                quote_csv_field(categories),
            ])
        )
    return CsvExport(filename=f"products_{_today()}.csv", content="\n".join(rows))


async def export_current_inventory(db: AsyncSession, owner_id: UUID) -> CsvExport:
    period = await find_active_period(db, owner_id)
    if not period:
        raise NotFoundError(NO_ACTIVE_PERIOD)

    result = await db.execute(
        select(InventoryRecord)
        .where(InventoryRecord.period_id == period.id)
        .options(selectinload(InventoryRecord.product).selectinload(Product.categories))
        .order_by(InventoryRecord.product_id)
        .execution_options(populate_existing=True)
    )

    rows = [
        f"Period: {period.name} ({period.start_date.isoformat()})",
        "",
        INVENTORY_HEADER,
    ]
    for record in result.scalars().all():
        product = record.product
        categories = LIST_SEPARATOR.join(c.name for c in product.categories)
        rows.append(
            ",".join([
                quote_csv_field(product.name),
                format_number(record.quantity),
                format_number(product.price),
                quote_csv_field(categories),
                quote_csv_field(record.notes or ""),
            ])
        )

    period_slug = re.sub(r"\s+", "_", period.name)
    return CsvExport(
        filename=f"inventory_{period_slug}_{_today()}.csv", content="\n".join(rows)
    )


# ── Product import ──────────────────────────────────

async def _insert_imported_images(
    db: AsyncSession, product_id: int, urls: list[str]
) -> list[str]:
    """Insert image URLs in order; returns warnings instead of raising."""
    warnings = []
    valid = []
    for url in urls:
        if is_image_url(url):
            valid.append(url)
        else:
            warnings.append(f'Product created but image "{url}" is not a valid URL')

    limit = settings.MAX_IMAGES_PER_PRODUCT
    if len(valid) > limit:
        warnings.append(f"Product created but only the first {limit} images were kept")
        valid = valid[:limit]
    if not valid:
        return warnings

    try:
        async with db.begin_nested():
            await db.execute(
                insert(ProductImage),
                [
                    {"product_id": product_id, "image_url": url, "display_order": index}
                    for index, url in enumerate(valid)
                ],
            )
    except DBAPIError as exc:
        warnings.append(f"Product created but images failed: {_db_failure_message(exc)}")
    return warnings


async def _create_imported_product(
    db: AsyncSession,
    owner_id: UUID,
    resolver: CategoryResolver,
    name: str,
    price: Decimal,
    quantity: int | None,
    categories: list[str],
    image_urls: list[str],
) -> list[str]:
    product = Product(name=name, price=price, quantity=quantity, owner_id=owner_id)
    db.add(product)
    await db.flush()

    linked: set[int] = set()
    for category_name in categories:
        category_id = await resolver.resolve(category_name)
        # Names differing only in case resolve to the same category
        if category_id in linked:
            continue
        await db.execute(
            insert(product_categories).values(product_id=product.id, category_id=category_id)
        )
        linked.add(category_id)

    if image_urls:
        return await _insert_imported_images(db, product.id, image_urls)
    return []


async def import_products(
    db: AsyncSession,
    owner_id: UUID,
    csv_text: str,
    name_column: str = "name",
    stock_columns: bool = True,
) -> ProductImportResult:
    """Create products from CSV rows, skipping names that already exist.

    Required columns are ``name_column`` and ``price``; ``categories`` is
    optional. With ``stock_columns`` the optional ``quantity`` and ``images``
    columns are read as well.
    """
    lines = split_csv_lines(csv_text)
    if len(lines) < 2:
        raise ValidationError("CSV file is empty or has no data rows")

    required = [name_column, "price"]
    columns = _read_header(lines[0], required)
    name_idx = columns[name_column]
    price_idx = columns["price"]
    categories_idx = columns.get("categories")
    quantity_idx = columns.get("quantity") if stock_columns else None
    images_idx = columns.get("images") if stock_columns else None

    existing = await db.execute(select(Product.name).where(Product.owner_id == owner_id))
    known_names = {name.lower() for name in existing.scalars().all()}

    resolver = CategoryResolver(db, owner_id)
    tally = _Tally()

    for offset, line in enumerate(lines[1:]):
        row_number = offset + 2
        values = parse_csv_line(line)
        try:
            if len(values) < len(required):
                raise RowError("Invalid CSV format: not enough columns")

            name = _cell(values, name_idx)
            if not name:
                raise RowError("Product name is required")

            if name.lower() in known_names:
                tally.skipped += 1
                tally.note(row_number, f'Product "{name}" already exists (skipped)')
                continue

            price = _parse_price(_cell(values, price_idx))
            quantity_raw = _cell(values, quantity_idx)
            quantity = _parse_quantity(quantity_raw) if quantity_raw else None

            async with db.begin_nested():
                warnings = await _create_imported_product(
                    db,
                    owner_id,
                    resolver,
                    name=name,
                    price=price,
                    quantity=quantity,
                    categories=_split_list(_cell(values, categories_idx)),
                    image_urls=_split_list(_cell(values, images_idx)),
                )
        except RowError as exc:
            tally.failed += 1
            tally.note(row_number, str(exc))
        except AppError as exc:
            tally.failed += 1
            tally.note(row_number, exc.message)
            resolver.clear()
        except DBAPIError as exc:
            logger.warning("CSV import row %d failed: %s", row_number, exc)
            tally.failed += 1
            tally.note(row_number, _db_failure_message(exc))
            # Categories created inside the rolled-back row are gone too
            resolver.clear()
        else:
            known_names.add(name.lower())
            tally.success += 1
            for warning in warnings:
                tally.note(row_number, warning)

    logger.info(
        "Product import for %s: %d created, %d failed, %d skipped",
        owner_id, tally.success, tally.failed, tally.skipped,
    )
    return ProductImportResult(
        message=(
            f"Import completed: {tally.success} created, {tally.failed} failed, "
            f"{tally.skipped} skipped (duplicates)"
        ),
        success=tally.success,
        failed=tally.failed,
        skipped=tally.skipped,
        total=tally.success + tally.failed + tally.skipped,
        errors=tally.errors,
    )


# ── Inventory count import ──────────────────────────

async def import_inventory_counts(
    db: AsyncSession, owner_id: UUID, csv_text: str
) -> InventoryImportResult:
    """Record counted quantities into the active period.

    Leading preamble lines (as written by the inventory export) are skipped
    up to the first line mentioning "product name". Rows are matched to
    products by case-insensitive name and written with one batched upsert.
    """
    period = await find_active_period(db, owner_id)
    if not period:
        raise NotFoundError(NO_ACTIVE_PERIOD)

    lines = split_csv_lines(csv_text)
    header_idx = next(
        (i for i, line in enumerate(lines) if "product name" in line.lower()), None
    )
    if header_idx is None:
        raise ValidationError('Could not find header row with "Product Name"')

    required = ["product name", "quantity"]
    columns = _read_header(lines[header_idx], required)
    name_idx = columns["product name"]
    quantity_idx = columns["quantity"]
    notes_idx = columns.get("notes")

    products = await db.execute(
        select(Product.id, Product.name).where(Product.owner_id == owner_id)
    )
    product_ids: dict[str, int] = {}
    for product_id, name in products.all():
        product_ids.setdefault(name.lower(), product_id)

    tally = _Tally()
    not_found = 0
    # Keyed by product so a repeated name in one file keeps its last count
    pending: dict[int, dict] = {}

    for offset, line in enumerate(lines[header_idx + 1:]):
        row_number = offset + header_idx + 2
        values = parse_csv_line(line)
        try:
            if len(values) < len(required):
                raise RowError("Invalid CSV format: not enough columns")

            name = _cell(values, name_idx)
            if not name:
                raise RowError("Product name is required")

            quantity = _parse_quantity(_cell(values, quantity_idx))
        except RowError as exc:
            tally.failed += 1
            tally.note(row_number, str(exc))
            continue

        product_id = product_ids.get(name.lower())
        if product_id is None:
            not_found += 1
            tally.note(row_number, f'Product "{name}" not found (skipped)')
            continue

        notes = _cell(values, notes_idx) or None
        pending[product_id] = record_row(period.id, product_id, quantity, notes)
        tally.success += 1

    await upsert_records(db, list(pending.values()))

    logger.info(
        "Inventory import into period %s: %d updated, %d failed, %d not found",
        period.id, tally.success, tally.failed, not_found,
    )
    return InventoryImportResult(
        message=(
            f"Inventory import completed: {tally.success} updated, {tally.failed} failed, "
            f"{not_found} not found"
        ),
        period=period.name,
        success=tally.success,
        failed=tally.failed,
        not_found=not_found,
        total=tally.success + tally.failed + not_found,
        errors=tally.errors,
    )
