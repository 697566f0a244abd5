"""User service: CRUD orchestration for the users collection."""

import logging
from typing import Any

from llamaio.core.db_client import DocumentStore, DuplicateRecordError, RecordNotFoundError
from llamaio.core.errors import DuplicateValueError, ErrorCode, NotFoundError
from llamaio.core.logging import span
from llamaio.domain.fields import utc_now
from llamaio.domain.user import USER_FIELDS, UserInput
from llamaio.services import reference_sync
from llamaio.services.payloads import parse_payload, require_fields
from llamaio.services.query_translator import translate_list_query, translate_select


logger = logging.getLogger(__name__)

COLLECTION = "users"
REQUIRED_FIELDS = ("name", "email")
REQUIRED_MESSAGE = "Name and email are required"


def _not_found() -> NotFoundError:
    return NotFoundError("User not found", code=ErrorCode.ERR_USER_NOT_FOUND)


def _email_taken(error: DuplicateRecordError) -> DuplicateValueError:
    logger.warning("Rejected duplicate email", extra={"field": error.field})
    return DuplicateValueError("Email already exists", code=ErrorCode.ERR_EMAIL_ALREADY_EXISTS)


async def _load_user(store: DocumentStore, user_id: str) -> dict[str, Any]:
    try:
        return await store.get_record(collection=COLLECTION, record_id=user_id)
    except RecordNotFoundError as e:
        raise _not_found() from e


async def list_users(store: DocumentStore, *, params: dict[str, str | None]) -> list[dict[str, Any]] | int:
    """List users, or count them when params["count"] is "true". Users have no default limit."""
    with span("user_service.list_users"):
        query = translate_list_query(fields=USER_FIELDS, default_limit=None, **params)
        if query.count:
            return await store.count_records(collection=COLLECTION, where=query.where)
        return await store.find_records(collection=COLLECTION, query=query)


async def create_user(store: DocumentStore, *, body: dict[str, Any]) -> dict[str, Any]:
    """Create a user and assign the tasks listed in pendingTasks to it.

    Raises:
        InvalidRequestError: If required fields are missing or malformed
        DuplicateValueError: If the email is already registered
    """
    with span("user_service.create_user"):
        require_fields(body, REQUIRED_FIELDS, REQUIRED_MESSAGE)
        payload = parse_payload(UserInput, body)

        try:
            async with store.transaction():
                user = await store.create_record(
                    collection=COLLECTION,
                    data={
                        "name": payload.name,
                        "email": payload.email,
                        "pendingTasks": [],
                        "dateCreated": utc_now(),
                    },
                )
                if payload.pendingTasks:
                    pending = await reference_sync.sync_user_pending_tasks(
                        store,
                        user_id=user["_id"],
                        user_name=payload.name,
                        previous=[],
                        requested=payload.pendingTasks,
                    )
                    user = await store.update_record(
                        collection=COLLECTION, record_id=user["_id"], data={"pendingTasks": pending}
                    )
        except DuplicateRecordError as e:
            raise _email_taken(e) from e

        logger.info("Created user %s", user["_id"])
        return user


async def get_user(store: DocumentStore, *, user_id: str, select: str | None = None) -> dict[str, Any]:
    """Fetch a user, optionally projected by a `select` parameter.

    Raises:
        NotFoundError: If the id is malformed or no user has it
        InvalidRequestError: If select is malformed
    """
    with span("user_service.get_user"):
        projection = translate_select(select, USER_FIELDS)
        user = await _load_user(store, user_id)
        return projection.apply(user) if projection else user


async def update_user(store: DocumentStore, *, user_id: str, body: dict[str, Any]) -> dict[str, Any]:
    """Replace a user's fields and reassign tasks to match its pendingTasks.

    An omitted pendingTasks leaves the stored list untouched. A name change is
    copied onto every task assigned to the user.

    Raises:
        InvalidRequestError: If required fields are missing or malformed
        NotFoundError: If the id is malformed or no user has it
        DuplicateValueError: If the email belongs to another user
    """
    with span("user_service.update_user"):
        require_fields(body, REQUIRED_FIELDS, REQUIRED_MESSAGE)
        payload = parse_payload(UserInput, body)

        try:
            async with store.transaction():
                current = await _load_user(store, user_id)
                previous = list(current.get("pendingTasks", []))
                pending = previous

                if payload.pendingTasks is not None and payload.pendingTasks != previous:
                    pending = await reference_sync.sync_user_pending_tasks(
                        store,
                        user_id=user_id,
                        user_name=payload.name,
                        previous=previous,
                        requested=payload.pendingTasks,
                    )

                if payload.name != current.get("name"):
                    await reference_sync.sync_user_renamed(store, user_id=user_id, name=payload.name)

                user = await store.replace_record(
                    collection=COLLECTION,
                    record_id=user_id,
                    data={
                        "name": payload.name,
                        "email": payload.email,
                        "pendingTasks": pending,
                        "dateCreated": current.get("dateCreated", utc_now()),
                    },
                )
        except DuplicateRecordError as e:
            raise _email_taken(e) from e

        logger.info("Updated user %s", user_id)
        return user


async def delete_user(store: DocumentStore, *, user_id: str) -> None:
    """Unassign the user's tasks, then delete the user.

    Raises:
        NotFoundError: If the id is malformed or no user has it
    """
    with span("user_service.delete_user"):
        async with store.transaction():
            user = await _load_user(store, user_id)
            await reference_sync.sync_user_deleted(store, user=user)
            await store.delete_record(collection=COLLECTION, record_id=user_id)

        logger.info("Deleted user %s", user_id)
