"""Keep Task.assignedUser / assignedUserName and User.pendingTasks in agreement.

The pending owner of a task is its assigned user while the task is not
completed. A user's pendingTasks holds exactly the tasks it is pending owner
of, and every task's assignedUserName mirrors its assigned user's name.

Callers run these functions inside DocumentStore.transaction() so the several
writes of one logical change are applied together.
"""

import logging
from typing import Any

from llamaio.core.config import constants
from llamaio.core.db_client import DocumentStore
from llamaio.core.errors import ReferenceNotFoundError
from llamaio.core.logging import log_with_context, span
from llamaio.core.query import AllOf, field_equals


logger = logging.getLogger(__name__)

TASKS = "tasks"
USERS = "users"
PENDING_TASKS = "pendingTasks"

UNASSIGNED = {"assignedUser": None, "assignedUserName": constants.UNASSIGNED_NAME}


def pending_owner(task: dict[str, Any] | None) -> str | None:
    """Return the user whose pendingTasks must contain this task, if any."""
    if not task or task.get("completed"):
        return None
    return task.get("assignedUser")


async def resolve_assignee(store: DocumentStore, assigned_user: str | None) -> str:
    """Return the name to cache on a task for the given assignee.

    Raises:
        ReferenceNotFoundError: If assigned_user does not resolve to a user
    """
    if not assigned_user:
        return constants.UNASSIGNED_NAME

    user = await store.find_record(collection=USERS, record_id=assigned_user)
    if user is None:
        log_with_context(logger, "warning", "Assigned user not found", user_id=assigned_user)
        raise ReferenceNotFoundError("Assigned user not found")
    return user["name"]


async def sync_task_saved(
    store: DocumentStore,
    *,
    task_id: str,
    previous: dict[str, Any] | None,
    current: dict[str, Any],
) -> None:
    """Move the task between pendingTasks lists after a create or update.

    Args:
        store: Document store
        task_id: ID of the saved task
        previous: Stored task before the write, None on create
        current: Task as written
    """
    with span("reference_sync.sync_task_saved"):
        old_owner = pending_owner(previous)
        new_owner = pending_owner(current)

        if old_owner and old_owner != new_owner:
            await store.pull(collection=USERS, record_id=old_owner, field=PENDING_TASKS, value=task_id)
            log_with_context(logger, "info", "Removed task from pending list", task_id=task_id, user_id=old_owner)

        if new_owner:
            added = await store.add_to_set(collection=USERS, record_id=new_owner, field=PENDING_TASKS, value=task_id)
            if added:
                log_with_context(logger, "info", "Added task to pending list", task_id=task_id, user_id=new_owner)


async def sync_task_deleted(store: DocumentStore, *, task: dict[str, Any]) -> None:
    """Remove a task that is about to be deleted from its owner's pendingTasks."""
    with span("reference_sync.sync_task_deleted"):
        owner = pending_owner(task)
        if owner:
            await store.pull(collection=USERS, record_id=owner, field=PENDING_TASKS, value=task["_id"])
            log_with_context(logger, "info", "Removed deleted task from pending list", task_id=task["_id"], user_id=owner)


async def _claim_task(store: DocumentStore, *, user_id: str, user_name: str, task: dict[str, Any]) -> None:
    """Assign an open task to the user, taking it off another owner's list first."""
    task_id = task["_id"]
    previous_owner = pending_owner(task)
    if previous_owner and previous_owner != user_id:
        await store.pull(collection=USERS, record_id=previous_owner, field=PENDING_TASKS, value=task_id)
        log_with_context(logger, "info", "Task moved between users", task_id=task_id, user_id=previous_owner)

    await store.update_record(
        collection=TASKS,
        record_id=task_id,
        data={"assignedUser": user_id, "assignedUserName": user_name},
    )


async def sync_user_pending_tasks(
    store: DocumentStore,
    *,
    user_id: str,
    user_name: str,
    previous: list[str],
    requested: list[str],
) -> list[str]:
    """Reassign tasks after a user's pendingTasks list changed.

    Tasks dropped from the list are unassigned if they still point at this
    user. Tasks added to the list are assigned to this user; ids that do not
    resolve to a task are skipped, and completed tasks are assigned but left
    out of the returned list.

    Args:
        store: Document store
        user_id: ID of the user being written
        user_name: Name the user will have after the write
        previous: Stored pendingTasks before the write (empty on create)
        requested: pendingTasks sent by the client

    Returns:
        The pendingTasks list to store for the user
    """
    with span("reference_sync.sync_user_pending_tasks"):
        requested_ids = set(requested)
        previous_ids = set(previous)

        for task_id in previous:
            if task_id in requested_ids:
                continue
            await store.update_many(
                collection=TASKS,
                where=AllOf((field_equals("_id", task_id), field_equals("assignedUser", user_id))),
                data=UNASSIGNED,
            )
            log_with_context(logger, "info", "Unassigned task dropped from pending list", task_id=task_id, user_id=user_id)

        pending = []
        for task_id in requested:
            if task_id in previous_ids:
                pending.append(task_id)
                continue

            task = await store.find_record(collection=TASKS, record_id=task_id)
            if task is None:
                log_with_context(logger, "info", "Skipped unknown task", task_id=task_id)
                continue

            await _claim_task(store, user_id=user_id, user_name=user_name, task=task)
            # Completed tasks are assigned but never pending
            if not task.get("completed"):
                pending.append(task_id)

        return pending


async def sync_user_renamed(store: DocumentStore, *, user_id: str, name: str) -> int:
    """Refresh the cached assignedUserName on every task assigned to the user."""
    with span("reference_sync.sync_user_renamed"):
        updated = await store.update_many(
            collection=TASKS,
            where=field_equals("assignedUser", user_id),
            data={"assignedUserName": name},
        )
        log_with_context(logger, "info", "Refreshed assignee name on tasks", user_id=user_id, count=updated)
        return updated


async def sync_user_deleted(store: DocumentStore, *, user: dict[str, Any]) -> int:
    """Unassign the user's pending tasks and any other task still pointing at the user."""
    with span("reference_sync.sync_user_deleted"):
        user_id = user["_id"]
        count = 0
        for task_id in user.get(PENDING_TASKS, []):
            count += await store.update_many(collection=TASKS, where=field_equals("_id", task_id), data=UNASSIGNED)
        count += await store.update_many(collection=TASKS, where=field_equals("assignedUser", user_id), data=UNASSIGNED)

        log_with_context(logger, "info", "Unassigned tasks of deleted user", user_id=user_id, count=count)
        return count
