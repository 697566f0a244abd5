"""User domain models and field table."""

import re
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from llamaio.domain.fields import FieldType, is_record_id


# Constants for validation
MAX_EMAIL_LENGTH = 254
EMAIL_PATTERN = re.compile(r"^\w+([.-]?\w+)*@\w+([.-]?\w+)*(\.\w{2,3})+$")

USER_FIELDS: dict[str, FieldType] = {
    "_id": FieldType.ID,
    "name": FieldType.STRING,
    "email": FieldType.STRING,
    "pendingTasks": FieldType.ID_LIST,
    "dateCreated": FieldType.DATETIME,
}


class UserInput(BaseModel):
    """User payload accepted by create and update.

    `pendingTasks` is None when the client did not send it.
    """

    model_config = ConfigDict(extra="ignore")

    name: str = Field(..., description="Display name of the user")
    email: str = Field(..., description="Unique email address")
    pendingTasks: list[str] | None = Field(default=None, description="IDs of open tasks assigned to the user")  # noqa: N815

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        """Trim the name and reject blanks."""
        v = v.strip()
        if not v:
            raise ValueError("Name is required")
        return v

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        """Normalize the email to lowercase and check its shape."""
        v = v.strip().lower()
        if len(v) > MAX_EMAIL_LENGTH or not EMAIL_PATTERN.match(v):
            raise ValueError("Please enter a valid email")
        return v

    @field_validator("pendingTasks", mode="before")
    @classmethod
    def wrap_single_task(cls, v: Any) -> Any:
        if isinstance(v, str):
            return [v] if v else []
        return v

    @field_validator("pendingTasks")
    @classmethod
    def validate_task_ids(cls, v: list[str] | None) -> list[str] | None:
        """Reject malformed ids and drop duplicates, keeping first occurrence order."""
        if v is None:
            return None
        for task_id in v:
            if not is_record_id(task_id):
                raise ValueError(f"Invalid task id in pendingTasks: {task_id}")
        return list(dict.fromkeys(v))
