"""Find-or-create categories by name for a single batch operation."""

import logging
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from inventory_tracker.core.errors import UNIQUE_VIOLATION, sqlstate_of
from inventory_tracker.models.category import Category

logger = logging.getLogger(__name__)


class CategoryResolver:
    """Resolve category names to ids within one owner's scope.

    Resolved ids are cached for the lifetime of the instance, keyed by the
    lower-cased name. Create one resolver per batch; never share it across
    requests.
    """

    def __init__(self, db: AsyncSession, owner_id: UUID):
        self.db = db
        self.owner_id = owner_id
        self._cache: dict[str, int] = {}

    async def _find(self, name: str) -> int | None:
        result = await self.db.execute(
            select(Category.id).where(
                Category.owner_id == self.owner_id,
                Category.name == name,
            )
        )
        return result.scalar_one_or_none()

    async def _create(self, name: str) -> int:
        category = Category(name=name, owner_id=self.owner_id)
        async with self.db.begin_nested():
            self.db.add(category)
            await self.db.flush()
        return category.id

    async def resolve(self, name: str) -> int:
        key = name.lower()
        if key in self._cache:
            return self._cache[key]

        category_id = await self._find(name)
        if category_id is None:
            try:
                category_id = await self._create(name)
            except IntegrityError as exc:
                # Another request created the same name between our read and write
                if sqlstate_of(exc) != UNIQUE_VIOLATION:
                    raise
                logger.info("Category %r created concurrently, re-reading", name)
                category_id = await self._find(name)
                if category_id is None:
                    raise

        self._cache[key] = category_id
        return category_id

    def clear(self) -> None:
        """Forget cached ids, e.g. after the savepoint that created them rolled back."""
        self._cache.clear()
