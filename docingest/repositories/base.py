"""
Repository contract used by the document store and the ingestion engine.

Each call is atomic on its own; there are no cross-call transactions. Anything
that needs a read-then-write sequence (the "one active process per document"
rule) serializes it with a KeyedLock in the engine.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Protocol, Tuple, TypeVar

from pydantic import BaseModel

E = TypeVar("E", bound=BaseModel)


def bookkeeping(entity: BaseModel) -> Dict[str, Any]:
    """Revision and timestamp bump for a write, limited to fields the model declares."""
    fields = type(entity).model_fields
    update: Dict[str, Any] = {}
    if "revision" in fields:
        update["revision"] = getattr(entity, "revision") + 1
    if "updated_at" in fields:
        update["updated_at"] = datetime.now(timezone.utc)
    return update


@dataclass
class ListCriteria:
    """
    Backend-neutral query description.

    filters maps a field name to a value (equality) or to a set/list/tuple of
    values (membership). search is a case-insensitive substring matched against
    any of search_fields.
    """

    filters: Dict[str, Any] = field(default_factory=dict)
    search: Optional[str] = None
    search_fields: Tuple[str, ...] = ()
    sort_by: str = "created_at"
    descending: bool = True
    skip: int = 0
    limit: Optional[int] = None


class Repository(Protocol[E]):
    async def get(self, entity_id: str) -> Optional[E]:
        ...

    async def list(self, criteria: ListCriteria) -> Tuple[List[E], int]:
        """Return the requested page and the total number of matches."""
        ...

    async def create(self, entity: E) -> E:
        ...

    async def save(self, entity: E) -> E:
        ...

    async def update_fields(
        self,
        entity_id: str,
        fields: Dict[str, Any],
        *,
        expected_revision: Optional[int] = None,
        status_in: Optional[Iterable[Any]] = None,
    ) -> Optional[E]:
        """
        Set only the given fields, bump revision and updated_at, and return the
        updated entity. Returns None when the entity is missing, its revision
        differs from expected_revision, or its status is not in status_in.
        """
        ...

    async def delete(self, entity_id: str) -> bool:
        ...
