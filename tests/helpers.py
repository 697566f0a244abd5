"""Shared test helpers."""

from typing import Any

from llamaio.core.db_client import DocumentStore
from llamaio.services import reference_sync


DEADLINE = "2025-06-01T12:00:00.000Z"
MISSING_ID = "0" * 24


async def assert_references_consistent(store: DocumentStore) -> None:
    """Check the task/user reference invariant over the whole store.

    Every task's assignedUserName mirrors its assigned user, and every user's
    pendingTasks holds exactly the open tasks assigned to it.
    """
    users = {user["_id"]: user for user in await store.find_records(collection="users")}
    tasks = await store.find_records(collection="tasks")

    for task in tasks:
        if task["assignedUser"] is None:
            assert task["assignedUserName"] == "unassigned", task
        else:
            assert task["assignedUser"] in users, task
            assert task["assignedUserName"] == users[task["assignedUser"]]["name"], task

    for user_id, user in users.items():
        expected = {task["_id"] for task in tasks if reference_sync.pending_owner(task) == user_id}
        assert set(user["pendingTasks"]) == expected, user
        assert len(user["pendingTasks"]) == len(set(user["pendingTasks"])), user


def task_body(name: str = "Laundry", **overrides: Any) -> dict[str, Any]:
    """Minimal valid task payload."""
    return {"name": name, "deadline": DEADLINE, **overrides}


def user_body(name: str = "Alice", **overrides: Any) -> dict[str, Any]:
    """Minimal valid user payload with an email derived from the name."""
    return {"name": name, "email": f"{name.lower()}@example.com", **overrides}


async def reload(store: DocumentStore, collection: str, record: dict[str, Any]) -> dict[str, Any]:
    """Fetch the stored version of a record."""
    return await store.get_record(collection=collection, record_id=record["_id"])
