"""Request payload validation shared by the resource services."""

from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

from llamaio.core.errors import InvalidRequestError


ModelT = TypeVar("ModelT", bound=BaseModel)


def _is_blank(value: Any) -> bool:
    return value is None or value is False or (isinstance(value, str) and not value.strip())


def require_fields(body: dict[str, Any], fields: tuple[str, ...], message: str) -> None:
    """Raise InvalidRequestError with message if any of fields is missing or blank."""
    if any(_is_blank(body.get(field)) for field in fields):
        raise InvalidRequestError(message)


def _describe(error: dict[str, Any]) -> str:
    location = ".".join(str(part) for part in error.get("loc", ()))
    if error.get("type") == "value_error":
        detail = str(error.get("ctx", {}).get("error", error.get("msg", "")))
    else:
        detail = error.get("msg", "Invalid value")
    return f"{location}: {detail}" if location else detail


def parse_payload(model: type[ModelT], body: dict[str, Any]) -> ModelT:
    """Validate a request body against model, converting failures to InvalidRequestError."""
    try:
        return model.model_validate(body)
    except ValidationError as e:
        message = "; ".join(_describe(error) for error in e.errors())
        raise InvalidRequestError(message) from e
