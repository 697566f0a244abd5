"""Welcome and health routes."""

import logging

from fastapi import APIRouter, Depends, Response

from llamaio.core.config import constants
from llamaio.core.db_client import DocumentStore
from llamaio.interface.responses import envelope, get_store


logger = logging.getLogger(__name__)

router = APIRouter(tags=["home"])

ENDPOINTS = [
    {"path": f"{constants.API_PREFIX}/users", "methods": ["GET", "POST"], "description": "User management"},
    {"path": f"{constants.API_PREFIX}/tasks", "methods": ["GET", "POST"], "description": "Task management"},
    {
        "path": f"{constants.API_PREFIX}/users/:id",
        "methods": ["GET", "PUT", "DELETE"],
        "description": "Individual user operations",
    },
    {
        "path": f"{constants.API_PREFIX}/tasks/:id",
        "methods": ["GET", "PUT", "DELETE"],
        "description": "Individual task operations",
    },
]


@router.get("/")
@router.get(constants.API_PREFIX)
async def welcome() -> Response:
    """Describe the API and its endpoints."""
    return envelope(
        "Welcome to Llama.io Task Management API",
        {"version": constants.APP_VERSION, "endpoints": ENDPOINTS},
    )


@router.get("/health")
async def health_check(store: DocumentStore = Depends(get_store)) -> Response:
    """Report whether the document store is reachable."""
    if await store.ping():
        return envelope("OK", {"status": "healthy", "database": "connected"})

    logger.warning("health_check", extra={"database": "disconnected"})
    return envelope(
        "Service unavailable",
        {"status": "unhealthy", "database": "disconnected"},
        status_code=constants.HTTP_SERVICE_UNAVAILABLE,
    )
