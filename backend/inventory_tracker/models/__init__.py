"""SQLAlchemy models for the inventory tracker."""

from inventory_tracker.models.category import Category
from inventory_tracker.models.product import Product, ProductImage, product_categories
from inventory_tracker.models.inventory import InventoryPeriod, InventoryRecord, PeriodStatus

__all__ = [
    "Category",
    "Product",
    "ProductImage",
    "product_categories",
    "InventoryPeriod",
    "InventoryRecord",
    "PeriodStatus",
]
