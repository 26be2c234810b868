"""
User administration APIs.

GET /users/me: the caller's own record.
GET /users, GET /users/{id}, PATCH /users/{id}, DELETE /users/{id}: admin only.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Response, status

from docingest.api.auth import get_current_user
from docingest.api.deps import get_user_service
from docingest.api.errors import unwrap_or_raise
from docingest.models.common import Page
from docingest.models.user import User, UserPatch, UserQuery
from docingest.services.user_service import UserService

router = APIRouter()

CurrentUser = Annotated[User, Depends(get_current_user)]
Users = Annotated[UserService, Depends(get_user_service)]


@router.get("/me", response_model=User, summary="Current user")
async def read_me(current_user: CurrentUser) -> User:
    return current_user


@router.get("", response_model=Page[User], summary="List users")
async def list_users(query: Annotated[UserQuery, Query()], current_user: CurrentUser, users: Users) -> Page[User]:
    return unwrap_or_raise(await users.list(query, current_user))


@router.get("/{user_id}", response_model=User, summary="Get a user")
async def get_user(user_id: str, current_user: CurrentUser, users: Users) -> User:
    return unwrap_or_raise(await users.get(user_id, current_user))


@router.patch("/{user_id}", response_model=User, summary="Change a user's role or active flag")
async def update_user(user_id: str, patch: UserPatch, current_user: CurrentUser, users: Users) -> User:
    return unwrap_or_raise(await users.update(user_id, patch, current_user))


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT, summary="Delete a user")
async def delete_user(user_id: str, current_user: CurrentUser, users: Users) -> Response:
    unwrap_or_raise(await users.delete(user_id, current_user))
    return Response(status_code=status.HTTP_204_NO_CONTENT)
