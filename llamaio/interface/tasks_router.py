"""Task resource routes."""

from fastapi import APIRouter, Depends, Request, Response

from llamaio.core.config import constants
from llamaio.core.db_client import DocumentStore
from llamaio.interface.responses import envelope, get_store, no_content, read_body
from llamaio.services import task_service


router = APIRouter(prefix=f"{constants.API_PREFIX}/tasks", tags=["tasks"])


@router.get("")
async def list_tasks(
    *,
    store: DocumentStore = Depends(get_store),
    where: str | None = None,
    sort: str | None = None,
    select: str | None = None,
    skip: str | None = None,
    limit: str | None = None,
    count: str | None = None,
) -> Response:
    """List tasks with where/sort/select/skip/limit, or count them."""
    result = await task_service.list_tasks(
        store,
        params={"where": where, "sort": sort, "select": select, "skip": skip, "limit": limit, "count": count},
    )
    if isinstance(result, int):
        return envelope("OK", result)
    return envelope("Tasks retrieved successfully", result)


@router.post("")
async def create_task(request: Request, store: DocumentStore = Depends(get_store)) -> Response:
    """Create a task."""
    task = await task_service.create_task(store, body=await read_body(request))
    return envelope("Task created successfully", task, status_code=constants.HTTP_CREATED)


@router.get("/{task_id}")
async def get_task(task_id: str, store: DocumentStore = Depends(get_store), select: str | None = None) -> Response:
    """Fetch one task."""
    task = await task_service.get_task(store, task_id=task_id, select=select)
    return envelope("Task retrieved successfully", task)


@router.put("/{task_id}")
async def update_task(task_id: str, request: Request, store: DocumentStore = Depends(get_store)) -> Response:
    """Replace one task."""
    task = await task_service.update_task(store, task_id=task_id, body=await read_body(request))
    return envelope("Task updated successfully", task)


@router.delete("/{task_id}")
async def delete_task(task_id: str, store: DocumentStore = Depends(get_store)) -> Response:
    """Delete one task."""
    await task_service.delete_task(store, task_id=task_id)
    return no_content()
