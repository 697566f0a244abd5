"""Tests for task CRUD and the reference updates it triggers."""

import pytest

from llamaio.core.errors import InvalidRequestError, NotFoundError, ReferenceNotFoundError
from llamaio.services import task_service
from tests.helpers import DEADLINE, MISSING_ID, assert_references_consistent, reload, task_body


@pytest.mark.unit
class TestCreateTask:
    async def test_defaults(self, store, make_task):
        task = await make_task("Laundry")

        assert task["name"] == "Laundry"
        assert task["description"] == ""
        assert task["deadline"] == DEADLINE
        assert task["completed"] is False
        assert task["assignedUser"] is None
        assert task["assignedUserName"] == "unassigned"
        assert task["dateCreated"].endswith("Z")
        await assert_references_consistent(store)

    async def test_epoch_millisecond_deadline(self, make_task):
        task = await make_task(deadline=1735689600000)

        assert task["deadline"] == "2025-01-01T00:00:00.000Z"

    async def test_assigned_open_task_joins_pending_list(self, store, make_user, make_task):
        user = await make_user("Alice")

        task = await make_task(assignedUser=user["_id"])

        assert task["assignedUserName"] == "Alice"
        assert (await reload(store, "users", user))["pendingTasks"] == [task["_id"]]
        await assert_references_consistent(store)

    async def test_assigned_completed_task_is_not_pending(self, store, make_user, make_task):
        user = await make_user("Alice")

        task = await make_task(assignedUser=user["_id"], completed=True)

        assert task["assignedUserName"] == "Alice"
        assert (await reload(store, "users", user))["pendingTasks"] == []
        await assert_references_consistent(store)

    @pytest.mark.parametrize("body", [{"name": "Laundry"}, {"deadline": DEADLINE}, {"name": "  ", "deadline": DEADLINE}])
    async def test_missing_required_fields(self, store, body):
        with pytest.raises(InvalidRequestError, match="Name and deadline are required"):
            await task_service.create_task(store, body=body)

        assert await store.count_records(collection="tasks") == 0

    async def test_invalid_deadline(self, store):
        with pytest.raises(InvalidRequestError, match="deadline"):
            await task_service.create_task(store, body=task_body(deadline="not a date"))

    @pytest.mark.parametrize("deadline", [10**20, 1e20, -(10**20)])
    async def test_out_of_range_deadline(self, store, deadline):
        with pytest.raises(InvalidRequestError, match="Invalid date"):
            await task_service.create_task(store, body=task_body(deadline=deadline))

        assert await store.count_records(collection="tasks") == 0

    @pytest.mark.parametrize("assigned_user", [MISSING_ID, "not-an-id"])
    async def test_unknown_assignee_rejected(self, store, assigned_user):
        with pytest.raises(ReferenceNotFoundError, match="Assigned user not found"):
            await task_service.create_task(store, body=task_body(assignedUser=assigned_user))

        assert await store.count_records(collection="tasks") == 0

    async def test_empty_assignee_means_unassigned(self, make_task):
        task = await make_task(assignedUser="")

        assert task["assignedUser"] is None
        assert task["assignedUserName"] == "unassigned"


@pytest.mark.unit
class TestGetAndListTasks:
    async def test_get_task(self, store, make_task):
        task = await make_task()

        assert await task_service.get_task(store, task_id=task["_id"]) == task

    async def test_get_task_with_select(self, store, make_task):
        task = await make_task()

        projected = await task_service.get_task(store, task_id=task["_id"], select='{"name": 1}')

        assert projected == {"_id": task["_id"], "name": "Laundry"}

    @pytest.mark.parametrize("task_id", [MISSING_ID, "123"])
    async def test_get_task_not_found(self, store, task_id):
        with pytest.raises(NotFoundError, match="Task not found"):
            await task_service.get_task(store, task_id=task_id)

    async def test_default_limit_is_one_hundred(self, store, make_task):
        for index in range(101):
            await make_task(f"Task {index}")

        tasks = await task_service.list_tasks(store, params={})
        count = await task_service.list_tasks(store, params={"count": "true"})

        assert len(tasks) == 100
        assert count == 101

    async def test_filter_and_sort(self, store, make_task):
        await make_task("Late", deadline="2025-03-01T00:00:00.000Z", completed=True)
        await make_task("Open", deadline="2025-01-01T00:00:00.000Z")
        await make_task("Early", deadline="2025-02-01T00:00:00.000Z", completed=True)

        tasks = await task_service.list_tasks(
            store, params={"where": '{"completed": true}', "sort": '{"deadline": 1}', "limit": "1"}
        )

        assert [task["name"] for task in tasks] == ["Early"]


@pytest.mark.unit
class TestUpdateTask:
    async def test_reassign_moves_between_lists(self, store, make_user, make_task):
        alice = await make_user("Alice")
        bob = await make_user("Bob")
        task = await make_task(assignedUser=alice["_id"])

        updated = await task_service.update_task(store, task_id=task["_id"], body=task_body(assignedUser=bob["_id"]))

        assert updated["assignedUserName"] == "Bob"
        assert (await reload(store, "users", alice))["pendingTasks"] == []
        assert (await reload(store, "users", bob))["pendingTasks"] == [task["_id"]]
        await assert_references_consistent(store)

    async def test_completing_removes_from_pending(self, store, make_user, make_task):
        alice = await make_user("Alice")
        task = await make_task(assignedUser=alice["_id"])

        await task_service.update_task(
            store, task_id=task["_id"], body=task_body(assignedUser=alice["_id"], completed=True)
        )

        assert (await reload(store, "users", alice))["pendingTasks"] == []
        await assert_references_consistent(store)

    async def test_reopening_restores_pending(self, store, make_user, make_task):
        alice = await make_user("Alice")
        task = await make_task(assignedUser=alice["_id"], completed=True)

        await task_service.update_task(store, task_id=task["_id"], body=task_body(assignedUser=alice["_id"]))

        assert (await reload(store, "users", alice))["pendingTasks"] == [task["_id"]]
        await assert_references_consistent(store)

    async def test_update_is_full_replacement(self, store, make_user, make_task):
        alice = await make_user("Alice")
        task = await make_task(description="Whites only", assignedUser=alice["_id"])

        updated = await task_service.update_task(store, task_id=task["_id"], body=task_body("Laundry"))

        assert updated["description"] == ""
        assert updated["assignedUser"] is None
        assert updated["assignedUserName"] == "unassigned"
        assert updated["dateCreated"] == task["dateCreated"]
        assert (await reload(store, "users", alice))["pendingTasks"] == []
        await assert_references_consistent(store)

    async def test_repeated_update_is_idempotent(self, store, make_user, make_task):
        alice = await make_user("Alice")
        task = await make_task()
        body = task_body("Laundry", description="Darks", assignedUser=alice["_id"])

        first = await task_service.update_task(store, task_id=task["_id"], body=body)
        second = await task_service.update_task(store, task_id=task["_id"], body=body)

        assert first == second
        assert (await reload(store, "users", alice))["pendingTasks"] == [task["_id"]]
        await assert_references_consistent(store)

    async def test_unknown_assignee_leaves_task_unchanged(self, store, make_task):
        task = await make_task()

        with pytest.raises(ReferenceNotFoundError):
            await task_service.update_task(store, task_id=task["_id"], body=task_body("Renamed", assignedUser=MISSING_ID))

        assert await reload(store, "tasks", task) == task

    async def test_update_missing_task(self, store):
        with pytest.raises(NotFoundError):
            await task_service.update_task(store, task_id=MISSING_ID, body=task_body())

    async def test_update_requires_fields(self, store, make_task):
        task = await make_task()

        with pytest.raises(InvalidRequestError, match="Name and deadline are required"):
            await task_service.update_task(store, task_id=task["_id"], body={"name": "Only name"})


@pytest.mark.unit
class TestDeleteTask:
    async def test_delete_removes_from_pending(self, store, make_user, make_task):
        alice = await make_user("Alice")
        kept = await make_task("Kept", assignedUser=alice["_id"])
        task = await make_task(assignedUser=alice["_id"])

        await task_service.delete_task(store, task_id=task["_id"])

        assert (await reload(store, "users", alice))["pendingTasks"] == [kept["_id"]]
        assert await store.find_record(collection="tasks", record_id=task["_id"]) is None
        await assert_references_consistent(store)

    async def test_delete_missing_task(self, store):
        with pytest.raises(NotFoundError, match="Task not found"):
            await task_service.delete_task(store, task_id=MISSING_ID)
