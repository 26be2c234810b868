"""
Role-based access policy.

authorize() is a pure decision: it never loads anything and never raises.
Callers resolve the resource first and pass None when it does not exist, so a
missing resource is always reported as not found before ownership is looked at.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Protocol

from docingest.errors import ErrorKind, Failure
from docingest.models.user import User, UserRole


class Action(str, Enum):
    READ = "read"
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    INGEST = "ingest"
    CANCEL = "cancel"


MUTATING_ACTIONS = frozenset({Action.CREATE, Action.UPDATE, Action.DELETE, Action.INGEST, Action.CANCEL})


class Owned(Protocol):
    owner_id: str


@dataclass(frozen=True)
class Decision:
    allowed: bool
    kind: Optional[ErrorKind] = None
    reason: str = ""

    def as_failure(self) -> Failure:
        return Failure(kind=self.kind or ErrorKind.FORBIDDEN, message=self.reason)


ALLOW = Decision(allowed=True)


def _deny(kind: ErrorKind, reason: str) -> Decision:
    return Decision(allowed=False, kind=kind, reason=reason)


def authorize(actor: User, action: Action, resource: Optional[Owned], resource_name: str = "Resource") -> Decision:
    """
    Decide whether actor may perform action on resource.

    CREATE is decided on role alone; resource is ignored because nothing exists
    yet. For every other action resource=None means it was not found.
    """
    if not actor.active:
        return _deny(ErrorKind.FORBIDDEN, "User account is inactive")

    if action == Action.CREATE:
        if actor.role == UserRole.VIEWER:
            return _deny(ErrorKind.FORBIDDEN, "Viewers cannot create documents")
        return ALLOW

    if resource is None:
        return _deny(ErrorKind.NOT_FOUND, f"{resource_name} not found")

    if actor.role == UserRole.ADMIN:
        return ALLOW

    owns = resource.owner_id == actor.id
    if actor.role == UserRole.VIEWER and action in MUTATING_ACTIONS:
        return _deny(ErrorKind.FORBIDDEN, f"Viewers cannot {action.value} this {resource_name.lower()}")
    if not owns:
        if action == Action.READ:
            return _deny(ErrorKind.FORBIDDEN, f"You do not have permission to access this {resource_name.lower()}")
        return _deny(ErrorKind.FORBIDDEN, f"Editors can only {action.value} resources they own")
    return ALLOW


def authorize_listing(actor: User) -> Decision:
    if not actor.active:
        return _deny(ErrorKind.FORBIDDEN, "User account is inactive")
    return ALLOW


def owner_scope(actor: User) -> Optional[str]:
    """Owner id that listings must be restricted to, or None when the actor sees everything."""
    return None if actor.role == UserRole.ADMIN else actor.id
