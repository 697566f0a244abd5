"""Domain models and field tables."""

from llamaio.domain.fields import FieldType, format_datetime, is_record_id, parse_datetime
from llamaio.domain.task import TASK_FIELDS, TaskInput
from llamaio.domain.user import USER_FIELDS, UserInput


__all__ = [
    "TASK_FIELDS",
    "USER_FIELDS",
    "FieldType",
    "TaskInput",
    "UserInput",
    "format_datetime",
    "is_record_id",
    "parse_datetime",
]
