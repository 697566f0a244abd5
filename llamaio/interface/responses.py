"""Response envelope and request body helpers shared by the routers."""

import json
import logging
from typing import Any

from fastapi import Request, Response
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from llamaio.core.config import constants
from llamaio.core.db_client import DocumentStore
from llamaio.core.errors import InvalidRequestError


logger = logging.getLogger(__name__)

FORM_CONTENT_TYPES = ("application/x-www-form-urlencoded", "multipart/form-data")


class Envelope(BaseModel):
    """Wrapper used by every endpoint."""

    message: str
    data: Any = None


def envelope(message: str, data: Any = None, *, status_code: int = constants.HTTP_OK) -> JSONResponse:
    """Build a JSON response wrapped in the {message, data} envelope."""
    body = Envelope(message=message, data=data)
    return JSONResponse(content=jsonable_encoder(body), status_code=status_code)


def no_content() -> Response:
    """Empty 204 response used by delete endpoints."""
    return Response(status_code=constants.HTTP_NO_CONTENT)


def get_store(request: Request) -> DocumentStore:
    """FastAPI dependency returning the store created at startup."""
    return request.app.state.store


def _form_to_dict(form: Any) -> dict[str, Any]:
    """Flatten form fields; repeated keys or keys ending in [] become lists."""
    body: dict[str, Any] = {}
    for key in set(form.keys()):
        values = form.getlist(key)
        name = key.removesuffix("[]")
        body[name] = values if key.endswith("[]") or len(values) > 1 else values[0]
    return body


async def read_body(request: Request) -> dict[str, Any]:
    """Read a JSON or form-encoded request body as a dict.

    Raises:
        InvalidRequestError: If the body is not valid JSON or not an object
    """
    content_type = request.headers.get("content-type", "")
    if content_type.startswith(FORM_CONTENT_TYPES):
        return _form_to_dict(await request.form())

    raw = await request.body()
    if not raw.strip():
        return {}

    try:
        body = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        logger.warning("Rejected malformed JSON body", extra={"path": request.url.path})
        raise InvalidRequestError("Invalid JSON body") from e

    if not isinstance(body, dict):
        raise InvalidRequestError("Request body must be a JSON object")
    return body
