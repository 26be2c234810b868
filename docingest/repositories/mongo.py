"""
MongoDB repositories backed by Beanie/Motor.

Beanie owns collection registration and indexes. Conditional writes go straight
to the Motor collection with find_one_and_update so that the precondition
check and the write are a single server-side operation.
"""

import logging
import re
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Generic, Iterable, List, Optional, Tuple, Type

from beanie import Document as BeanieDocument
from beanie import Indexed
from pydantic import BaseModel, ConfigDict
from pymongo import ReturnDocument
from pymongo.errors import PyMongoError

from docingest.errors import StorageError
from docingest.repositories.base import E, ListCriteria, bookkeeping

logger = logging.getLogger(__name__)


class UserRecord(BeanieDocument):
    model_config = ConfigDict(extra="allow")

    id: str
    email: Optional[str] = None

    class Settings:
        name = "users"


class DocumentRecord(BeanieDocument):
    model_config = ConfigDict(extra="allow")

    id: str
    owner_id: Indexed(str)
    status: Indexed(str)

    class Settings:
        name = "documents"


class IngestionProcessRecord(BeanieDocument):
    model_config = ConfigDict(extra="allow")

    id: str
    document_id: Indexed(str)
    owner_id: Indexed(str)
    status: Indexed(str)

    class Settings:
        name = "ingestion_processes"


RECORD_MODELS: List[Type[BeanieDocument]] = [UserRecord, DocumentRecord, IngestionProcessRecord]


def _plain(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (set, frozenset, list, tuple)):
        return [_plain(v) for v in value]
    return value


def _encode(entity: BaseModel) -> Dict[str, Any]:
    data = {name: _plain(value) for name, value in entity.model_dump().items()}
    data["_id"] = data.pop("id")
    return data


def _to_query(criteria: ListCriteria) -> Dict[str, Any]:
    query: Dict[str, Any] = {}
    for name, expected in criteria.filters.items():
        if isinstance(expected, (set, frozenset, list, tuple)):
            query[name] = {"$in": _plain(expected)}
        else:
            query[name] = _plain(expected)
    if criteria.search:
        pattern = {"$regex": re.escape(criteria.search), "$options": "i"}
        query["$or"] = [{name: pattern} for name in criteria.search_fields]
    return query


class MongoRepository(Generic[E]):
    def __init__(self, record_cls: Type[BeanieDocument], entity_cls: Type[E]) -> None:
        self.record_cls = record_cls
        self.entity_cls = entity_cls

    def _from_raw(self, raw: Dict[str, Any]) -> E:
        raw = dict(raw)
        raw["id"] = raw.pop("_id")
        return self.entity_cls.model_validate(raw)

    def _from_record(self, record: BeanieDocument) -> E:
        return self.entity_cls.model_validate(record.model_dump())

    async def get(self, entity_id: str) -> Optional[E]:
        try:
            record = await self.record_cls.get(entity_id)
        except PyMongoError as e:
            raise StorageError(str(e), operation="get") from e
        return self._from_record(record) if record else None

    async def list(self, criteria: ListCriteria) -> Tuple[List[E], int]:
        query = _to_query(criteria)
        sort = f"-{criteria.sort_by}" if criteria.descending else f"+{criteria.sort_by}"
        try:
            total = await self.record_cls.find(query).count()
            cursor = self.record_cls.find(query).sort(sort).skip(criteria.skip)
            if criteria.limit is not None:
                cursor = cursor.limit(criteria.limit)
            records = await cursor.to_list()
        except PyMongoError as e:
            raise StorageError(str(e), operation="list") from e
        return [self._from_record(r) for r in records], total

    async def create(self, entity: E) -> E:
        try:
            await self.record_cls.get_motor_collection().insert_one(_encode(entity))
        except PyMongoError as e:
            raise StorageError(str(e), operation="create") from e
        return entity

    async def save(self, entity: E) -> E:
        stored = entity.model_copy(update=bookkeeping(entity))
        data = _encode(stored)
        try:
            await self.record_cls.get_motor_collection().replace_one({"_id": data["_id"]}, data, upsert=True)
        except PyMongoError as e:
            raise StorageError(str(e), operation="save") from e
        return stored

    async def update_fields(
        self,
        entity_id: str,
        fields: Dict[str, Any],
        *,
        expected_revision: Optional[int] = None,
        status_in: Optional[Iterable[Any]] = None,
    ) -> Optional[E]:
        query: Dict[str, Any] = {"_id": entity_id}
        if expected_revision is not None:
            query["revision"] = expected_revision
        if status_in is not None:
            query["status"] = {"$in": _plain(list(status_in))}
        declared = self.entity_cls.model_fields
        changes = {name: _plain(value) for name, value in fields.items()}
        if "updated_at" in declared:
            changes["updated_at"] = datetime.now(timezone.utc)
        update: Dict[str, Any] = {"$set": changes}
        if "revision" in declared:
            update["$inc"] = {"revision": 1}
        try:
            raw = await self.record_cls.get_motor_collection().find_one_and_update(
                query, update, return_document=ReturnDocument.AFTER
            )
        except PyMongoError as e:
            raise StorageError(str(e), operation="update_fields") from e
        if raw is None:
            logger.debug("Conditional update on %s matched nothing: %s", entity_id, query)
            return None
        return self._from_raw(raw)

    async def delete(self, entity_id: str) -> bool:
        try:
            outcome = await self.record_cls.get_motor_collection().delete_one({"_id": entity_id})
        except PyMongoError as e:
            raise StorageError(str(e), operation="delete") from e
        return outcome.deleted_count > 0
