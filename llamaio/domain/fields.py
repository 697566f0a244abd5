"""Field tables and value coercion shared by the domain models and the query translator."""

import re
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any


# 24 lowercase hex characters, the store's id format
RECORD_ID_PATTERN = re.compile(r"^[0-9a-f]{24}$")


class FieldType(StrEnum):
    """Stored type of a document field."""

    ID = "id"
    ID_LIST = "id_list"
    STRING = "string"
    BOOLEAN = "boolean"
    DATETIME = "datetime"


def is_record_id(value: object) -> bool:
    """Return True if value is a well-formed record id."""
    return isinstance(value, str) and RECORD_ID_PATTERN.match(value) is not None


def format_datetime(value: datetime) -> str:
    """Serialize a datetime as UTC ISO-8601 with millisecond precision and a Z suffix."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    value = value.astimezone(UTC)
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"


def _from_epoch_ms(value: int | float, raw: Any) -> datetime:
    try:
        return datetime.fromtimestamp(value / 1000, tz=UTC)
    except (OverflowError, OSError, ValueError) as e:
        msg = f"Invalid date: {raw!r}"
        raise ValueError(msg) from e


def parse_datetime(value: Any) -> datetime:
    """Parse an ISO-8601 string, a datetime or epoch milliseconds into an aware datetime.

    Raises:
        ValueError: If the value cannot be interpreted as a date
    """
    if isinstance(value, bool):
        msg = f"Invalid date: {value!r}"
        raise ValueError(msg)
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, int | float):
        parsed = _from_epoch_ms(value, value)
    elif isinstance(value, str) and value.strip():
        text = value.strip()
        if re.fullmatch(r"-?\d+", text):
            parsed = _from_epoch_ms(int(text), value)
        else:
            try:
                parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
            except ValueError as e:
                msg = f"Invalid date: {value!r}"
                raise ValueError(msg) from e
    else:
        msg = f"Invalid date: {value!r}"
        raise ValueError(msg)

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    try:
        return parsed.astimezone(UTC)
    except OverflowError as e:
        msg = f"Invalid date: {value!r}"
        raise ValueError(msg) from e


def utc_now() -> str:
    """Current time in the stored date format."""
    return format_datetime(datetime.now(UTC))
