"""
User administration.

Accounts are provisioned from bearer tokens; this service lets admins list
them, change roles and deactivate or remove them. Any user may read their own
record. Password and token handling live with the identity provider.
"""

import logging
from typing import Any, Dict

from docingest.errors import ErrorKind, Result, StorageError
from docingest.models.common import Page, SortOrder
from docingest.models.user import User, UserPatch, UserQuery
from docingest.repositories.base import ListCriteria, Repository
from docingest.services.access_control import authorize_listing

logger = logging.getLogger(__name__)


def _io_failure(e: StorageError) -> Result:
    logger.error("Storage failure: %s", e)
    return Result.fail(ErrorKind.IO_FAILURE, e.message, **e.details)


def _require_admin(actor: User) -> Result[None]:
    decision = authorize_listing(actor)
    if not decision.allowed:
        return Result.from_failure(decision.as_failure())
    if not actor.is_admin:
        return Result.fail(ErrorKind.FORBIDDEN, "Only administrators can manage users")
    return Result.ok(None)


class UserService:
    def __init__(self, repository: Repository[User]) -> None:
        self.repository = repository

    async def list(self, query: UserQuery, actor: User) -> Result[Page[User]]:
        allowed = _require_admin(actor)
        if not allowed.is_ok:
            return Result.from_failure(allowed.error)

        filters: Dict[str, Any] = {}
        if query.role is not None:
            filters["role"] = query.role
        if query.active is not None:
            filters["active"] = query.active
        criteria = ListCriteria(
            filters=filters,
            search=query.search,
            search_fields=("email",),
            sort_by=query.sort_by,
            descending=query.sort_order == SortOrder.DESC,
            skip=query.skip,
            limit=query.limit,
        )
        try:
            users, total = await self.repository.list(criteria)
        except StorageError as e:
            return _io_failure(e)
        return Result.ok(Page[User](items=users, total=total, page=query.page, limit=query.limit))

    async def get(self, user_id: str, actor: User) -> Result[User]:
        """Admins read any account; everyone else only their own."""
        if user_id != actor.id:
            allowed = _require_admin(actor)
            if not allowed.is_ok:
                return Result.from_failure(allowed.error)
        try:
            user = await self.repository.get(user_id)
        except StorageError as e:
            return _io_failure(e)
        if user is None:
            return Result.fail(ErrorKind.NOT_FOUND, "User not found")
        return Result.ok(user)

    async def update(self, user_id: str, patch: UserPatch, actor: User) -> Result[User]:
        allowed = _require_admin(actor)
        if not allowed.is_ok:
            return Result.from_failure(allowed.error)

        changes = patch.changes()
        # An admin locking themselves out leaves nobody to undo it
        if user_id == actor.id and (changes.get("active") is False or changes.get("role", actor.role) != actor.role):
            return Result.fail(ErrorKind.VALIDATION, "Administrators cannot demote or deactivate themselves")

        try:
            if not changes:
                user = await self.repository.get(user_id)
            else:
                user = await self.repository.update_fields(user_id, changes)
        except StorageError as e:
            return _io_failure(e)
        if user is None:
            return Result.fail(ErrorKind.NOT_FOUND, "User not found")
        if changes:
            logger.info("User %s updated by %s: %s", user_id, actor.id, changes)
        return Result.ok(user)

    async def delete(self, user_id: str, actor: User) -> Result[None]:
        """
        Remove an account record. Documents it owns are kept; a later request
        with a valid token provisions the account again, so deactivation is the
        way to lock someone out.
        """
        allowed = _require_admin(actor)
        if not allowed.is_ok:
            return Result.from_failure(allowed.error)
        if user_id == actor.id:
            return Result.fail(ErrorKind.VALIDATION, "Administrators cannot delete their own account")
        try:
            deleted = await self.repository.delete(user_id)
        except StorageError as e:
            return _io_failure(e)
        if not deleted:
            return Result.fail(ErrorKind.NOT_FOUND, "User not found")
        logger.info("User %s deleted by %s", user_id, actor.id)
        return Result.ok(None)
