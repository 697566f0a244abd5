"""User resource routes."""

from fastapi import APIRouter, Depends, Request, Response

from llamaio.core.config import constants
from llamaio.core.db_client import DocumentStore
from llamaio.interface.responses import envelope, get_store, no_content, read_body
from llamaio.services import user_service


router = APIRouter(prefix=f"{constants.API_PREFIX}/users", tags=["users"])


@router.get("")
async def list_users(
    *,
    store: DocumentStore = Depends(get_store),
    where: str | None = None,
    sort: str | None = None,
    select: str | None = None,
    skip: str | None = None,
    limit: str | None = None,
    count: str | None = None,
) -> Response:
    """List users with where/sort/select/skip/limit, or count them."""
    result = await user_service.list_users(
        store,
        params={"where": where, "sort": sort, "select": select, "skip": skip, "limit": limit, "count": count},
    )
    if isinstance(result, int):
        return envelope("OK", result)
    return envelope("Users retrieved successfully", result)


@router.post("")
async def create_user(request: Request, store: DocumentStore = Depends(get_store)) -> Response:
    """Create a user."""
    user = await user_service.create_user(store, body=await read_body(request))
    return envelope("User created successfully", user, status_code=constants.HTTP_CREATED)


@router.get("/{user_id}")
async def get_user(user_id: str, store: DocumentStore = Depends(get_store), select: str | None = None) -> Response:
    """Fetch one user."""
    user = await user_service.get_user(store, user_id=user_id, select=select)
    return envelope("User retrieved successfully", user)


@router.put("/{user_id}")
async def update_user(user_id: str, request: Request, store: DocumentStore = Depends(get_store)) -> Response:
    """Replace one user."""
    user = await user_service.update_user(store, user_id=user_id, body=await read_body(request))
    return envelope("User updated successfully", user)


@router.delete("/{user_id}")
async def delete_user(user_id: str, store: DocumentStore = Depends(get_store)) -> Response:
    """Delete one user."""
    await user_service.delete_user(store, user_id=user_id)
    return no_content()
