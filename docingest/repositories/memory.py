"""
In-memory repository.

Default backend for local runs and tests. Entities are stored and returned as
copies so callers never share state with the store, and every call yields to
the event loop once, so concurrent callers interleave the way they would
against a networked database.
"""

import asyncio
import logging
from typing import Any, Dict, Generic, Iterable, List, Optional, Tuple, Type

from docingest.errors import StorageError
from docingest.repositories.base import E, ListCriteria, bookkeeping

logger = logging.getLogger(__name__)


def _matches(value: Any, expected: Any) -> bool:
    if isinstance(expected, (set, frozenset, list, tuple)):
        return value in expected
    return value == expected


def _sort_key(value: Any) -> Tuple[bool, Any]:
    # None sorts before everything else regardless of type
    return (value is not None, value if value is not None else 0)


class InMemoryRepository(Generic[E]):
    def __init__(self, entity_cls: Type[E]) -> None:
        self.entity_cls = entity_cls
        self._items: Dict[str, E] = {}

    async def get(self, entity_id: str) -> Optional[E]:
        await asyncio.sleep(0)
        entity = self._items.get(entity_id)
        return entity.model_copy(deep=True) if entity is not None else None

    async def list(self, criteria: ListCriteria) -> Tuple[List[E], int]:
        await asyncio.sleep(0)
        matched = [e for e in self._items.values() if self._accepts(e, criteria)]
        matched.sort(key=lambda e: _sort_key(getattr(e, criteria.sort_by)), reverse=criteria.descending)
        total = len(matched)
        end = None if criteria.limit is None else criteria.skip + criteria.limit
        return [e.model_copy(deep=True) for e in matched[criteria.skip:end]], total

    async def create(self, entity: E) -> E:
        await asyncio.sleep(0)
        entity_id = getattr(entity, "id")
        if entity_id in self._items:
            raise StorageError(f"Duplicate id {entity_id}", operation="create")
        self._items[entity_id] = entity.model_copy(deep=True)
        return entity.model_copy(deep=True)

    async def save(self, entity: E) -> E:
        await asyncio.sleep(0)
        entity_id = getattr(entity, "id")
        stored = entity.model_copy(update=bookkeeping(entity), deep=True)
        self._items[entity_id] = stored
        return stored.model_copy(deep=True)

    async def update_fields(
        self,
        entity_id: str,
        fields: Dict[str, Any],
        *,
        expected_revision: Optional[int] = None,
        status_in: Optional[Iterable[Any]] = None,
    ) -> Optional[E]:
        await asyncio.sleep(0)
        # No await below this point: the check and the write happen atomically.
        current = self._items.get(entity_id)
        if current is None:
            return None
        if expected_revision is not None and current.revision != expected_revision:
            logger.debug("Stale write to %s: revision %s != %s", entity_id, current.revision, expected_revision)
            return None
        if status_in is not None and current.status not in set(status_in):
            return None
        update = dict(fields, **bookkeeping(current))
        stored = current.model_copy(update=update, deep=True)
        self._items[entity_id] = stored
        return stored.model_copy(deep=True)

    async def delete(self, entity_id: str) -> bool:
        await asyncio.sleep(0)
        return self._items.pop(entity_id, None) is not None

    @staticmethod
    def _accepts(entity: E, criteria: ListCriteria) -> bool:
        for name, expected in criteria.filters.items():
            if not _matches(getattr(entity, name), expected):
                return False
        if criteria.search:
            needle = criteria.search.lower()
            haystacks = (getattr(entity, name) or "" for name in criteria.search_fields)
            if not any(needle in str(text).lower() for text in haystacks):
                return False
        return True
