"""HTTP tests for the /api/users endpoints."""

import json

import pytest

from tests.helpers import MISSING_ID, task_body, user_body


pytestmark = pytest.mark.integration


def _create_user(client, name: str = "Alice", **overrides) -> dict:
    response = client.post("/api/users", json=user_body(name, **overrides))
    assert response.status_code == 201
    return response.json()["data"]


def _create_task(client, name: str = "Laundry", **overrides) -> dict:
    response = client.post("/api/tasks", json=task_body(name, **overrides))
    assert response.status_code == 201
    return response.json()["data"]


def test_create_user(client):
    response = client.post("/api/users", json=user_body("Alice"))

    assert response.status_code == 201
    body = response.json()
    assert body["message"] == "User created successfully"
    assert body["data"]["email"] == "alice@example.com"
    assert body["data"]["pendingTasks"] == []


def test_create_user_form_encoded_with_pending_tasks(client):
    first = _create_task(client, "First")
    second = _create_task(client, "Second")

    response = client.post(
        "/api/users",
        data={"name": "Alice", "email": "alice@example.com", "pendingTasks[]": [first["_id"], second["_id"]]},
    )

    assert response.status_code == 201
    assert sorted(response.json()["data"]["pendingTasks"]) == sorted([first["_id"], second["_id"]])
    assert client.get(f"/api/tasks/{first['_id']}").json()["data"]["assignedUserName"] == "Alice"


def test_duplicate_email(client):
    _create_user(client, "Alice")

    response = client.post("/api/users", json=user_body("Other", email="alice@example.com"))

    assert response.status_code == 400
    assert response.json() == {"message": "Email already exists", "data": None}


def test_missing_fields(client):
    response = client.post("/api/users", json={"email": "alice@example.com"})

    assert response.status_code == 400
    assert response.json()["message"] == "Name and email are required"


def test_invalid_email(client):
    response = client.post("/api/users", json=user_body(email="alice"))

    assert response.status_code == 400
    assert "Please enter a valid email" in response.json()["message"]


def test_list_users(client):
    _create_user(client, "Alice")
    _create_user(client, "Bob")

    response = client.get("/api/users", params={"sort": json.dumps({"name": -1}), "select": json.dumps({"name": 1})})

    assert response.status_code == 200
    assert response.json()["message"] == "Users retrieved successfully"
    assert [user["name"] for user in response.json()["data"]] == ["Bob", "Alice"]
    assert all(set(user) == {"_id", "name"} for user in response.json()["data"])


def test_count_users(client):
    _create_user(client, "Alice")
    _create_user(client, "Bob")

    response = client.get("/api/users", params={"count": "true", "where": json.dumps({"name": "Bob"})})

    assert response.json() == {"message": "OK", "data": 1}


def test_get_user_with_select(client):
    user = _create_user(client)

    response = client.get(f"/api/users/{user['_id']}", params={"select": json.dumps({"email": 1})})

    assert response.status_code == 200
    assert response.json()["data"] == {"_id": user["_id"], "email": "alice@example.com"}


def test_get_user_not_found(client):
    response = client.get(f"/api/users/{MISSING_ID}")

    assert response.status_code == 404
    assert response.json() == {"message": "User not found", "data": None}


def test_update_user_renames_tasks(client):
    user = _create_user(client)
    task = _create_task(client, assignedUser=user["_id"])

    response = client.put(f"/api/users/{user['_id']}", json=user_body("Alicia", email="alice@example.com"))

    assert response.status_code == 200
    assert response.json()["message"] == "User updated successfully"
    assert response.json()["data"]["pendingTasks"] == [task["_id"]]
    assert client.get(f"/api/tasks/{task['_id']}").json()["data"]["assignedUserName"] == "Alicia"


def test_update_user_duplicate_email(client):
    alice = _create_user(client, "Alice")
    _create_user(client, "Bob")

    response = client.put(f"/api/users/{alice['_id']}", json=user_body("Alice", email="bob@example.com"))

    assert response.status_code == 400
    assert response.json()["message"] == "Email already exists"


def test_delete_user_unassigns_tasks(client):
    user = _create_user(client)
    task = _create_task(client, assignedUser=user["_id"])

    response = client.delete(f"/api/users/{user['_id']}")

    assert response.status_code == 204
    stored = client.get(f"/api/tasks/{task['_id']}").json()["data"]
    assert stored["assignedUser"] is None
    assert stored["assignedUserName"] == "unassigned"


def test_delete_missing_user(client):
    response = client.delete("/api/users/not-an-id")

    assert response.status_code == 404
    assert response.json()["message"] == "User not found"
