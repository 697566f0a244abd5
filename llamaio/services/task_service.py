"""Task service: CRUD orchestration for the tasks collection."""

import logging
from typing import Any

from llamaio.core.config import constants
from llamaio.core.db_client import DocumentStore, RecordNotFoundError
from llamaio.core.errors import ErrorCode, NotFoundError
from llamaio.core.logging import span
from llamaio.domain.fields import utc_now
from llamaio.domain.task import TASK_FIELDS, TaskInput
from llamaio.services import reference_sync
from llamaio.services.payloads import parse_payload, require_fields
from llamaio.services.query_translator import translate_list_query, translate_select


logger = logging.getLogger(__name__)

COLLECTION = "tasks"
REQUIRED_FIELDS = ("name", "deadline")
REQUIRED_MESSAGE = "Name and deadline are required"


def _not_found() -> NotFoundError:
    return NotFoundError("Task not found", code=ErrorCode.ERR_TASK_NOT_FOUND)


async def _load_task(store: DocumentStore, task_id: str) -> dict[str, Any]:
    try:
        return await store.get_record(collection=COLLECTION, record_id=task_id)
    except RecordNotFoundError as e:
        raise _not_found() from e


async def list_tasks(store: DocumentStore, *, params: dict[str, str | None]) -> list[dict[str, Any]] | int:
    """List tasks, or count them when params["count"] is "true".

    Args:
        store: Document store
        params: Raw where/sort/select/skip/limit/count query parameters

    Returns:
        Matching task records, or their number when counting

    Raises:
        InvalidRequestError: If a query parameter is malformed
    """
    with span("task_service.list_tasks"):
        query = translate_list_query(fields=TASK_FIELDS, default_limit=constants.DEFAULT_TASK_LIMIT, **params)
        if query.count:
            return await store.count_records(collection=COLLECTION, where=query.where)
        return await store.find_records(collection=COLLECTION, query=query)


async def create_task(store: DocumentStore, *, body: dict[str, Any]) -> dict[str, Any]:
    """Create a task and add it to its assignee's pendingTasks.

    Raises:
        InvalidRequestError: If required fields are missing or malformed
        ReferenceNotFoundError: If assignedUser does not resolve to a user
    """
    with span("task_service.create_task"):
        require_fields(body, REQUIRED_FIELDS, REQUIRED_MESSAGE)
        payload = parse_payload(TaskInput, body)

        async with store.transaction():
            assigned_user_name = await reference_sync.resolve_assignee(store, payload.assignedUser)
            document = payload.to_document(assigned_user_name=assigned_user_name)
            document["dateCreated"] = utc_now()

            task = await store.create_record(collection=COLLECTION, data=document)
            await reference_sync.sync_task_saved(store, task_id=task["_id"], previous=None, current=task)

        logger.info("Created task %s", task["_id"])
        return task


async def get_task(store: DocumentStore, *, task_id: str, select: str | None = None) -> dict[str, Any]:
    """Fetch a task, optionally projected by a `select` parameter.

    Raises:
        NotFoundError: If the id is malformed or no task has it
        InvalidRequestError: If select is malformed
    """
    with span("task_service.get_task"):
        projection = translate_select(select, TASK_FIELDS)
        task = await _load_task(store, task_id)
        return projection.apply(task) if projection else task


async def update_task(store: DocumentStore, *, task_id: str, body: dict[str, Any]) -> dict[str, Any]:
    """Replace a task and move it between pendingTasks lists as needed.

    Omitted optional fields reset to their defaults.

    Raises:
        InvalidRequestError: If required fields are missing or malformed
        NotFoundError: If the id is malformed or no task has it
        ReferenceNotFoundError: If assignedUser does not resolve to a user
    """
    with span("task_service.update_task"):
        require_fields(body, REQUIRED_FIELDS, REQUIRED_MESSAGE)
        payload = parse_payload(TaskInput, body)

        async with store.transaction():
            current = await _load_task(store, task_id)
            assigned_user_name = await reference_sync.resolve_assignee(store, payload.assignedUser)
            document = payload.to_document(assigned_user_name=assigned_user_name)
            document["dateCreated"] = current.get("dateCreated", utc_now())

            task = await store.replace_record(collection=COLLECTION, record_id=task_id, data=document)
            await reference_sync.sync_task_saved(store, task_id=task_id, previous=current, current=task)

        logger.info("Updated task %s", task_id)
        return task


async def delete_task(store: DocumentStore, *, task_id: str) -> None:
    """Delete a task after removing it from its assignee's pendingTasks.

    Raises:
        NotFoundError: If the id is malformed or no task has it
    """
    with span("task_service.delete_task"):
        async with store.transaction():
            task = await _load_task(store, task_id)
            await reference_sync.sync_task_deleted(store, task=task)
            await store.delete_record(collection=COLLECTION, record_id=task_id)

        logger.info("Deleted task %s", task_id)
