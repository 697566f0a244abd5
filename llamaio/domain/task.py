"""Task domain models and field table."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from llamaio.domain.fields import FieldType, format_datetime, parse_datetime


TASK_FIELDS: dict[str, FieldType] = {
    "_id": FieldType.ID,
    "name": FieldType.STRING,
    "description": FieldType.STRING,
    "deadline": FieldType.DATETIME,
    "completed": FieldType.BOOLEAN,
    "assignedUser": FieldType.ID,
    "assignedUserName": FieldType.STRING,
    "dateCreated": FieldType.DATETIME,
}


class TaskInput(BaseModel):
    """Task payload accepted by create and update.

    Optional fields fall back to their defaults when omitted, so an update
    replaces the whole task.
    """

    model_config = ConfigDict(extra="ignore")

    name: str = Field(..., description="Task name")
    description: str = Field(default="", description="Free-form description")
    deadline: datetime = Field(..., description="Due date (ISO-8601 or epoch milliseconds)")
    completed: bool = Field(default=False, description="Whether the task is done")
    assignedUser: str | None = Field(default=None, description="Assigned user ID")  # noqa: N815

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        """Trim the name and reject blanks."""
        v = v.strip()
        if not v:
            raise ValueError("Task name is required")
        return v

    @field_validator("description", mode="before")
    @classmethod
    def default_description(cls, v: Any) -> Any:
        return "" if v is None else v

    @field_validator("deadline", mode="before")
    @classmethod
    def parse_deadline(cls, v: Any) -> datetime:
        return parse_datetime(v)

    @field_validator("completed", mode="before")
    @classmethod
    def default_completed(cls, v: Any) -> Any:
        return False if v is None or v == "" else v

    @field_validator("assignedUser", mode="before")
    @classmethod
    def blank_assignee_is_none(cls, v: Any) -> Any:
        return v or None

    def to_document(self, *, assigned_user_name: str) -> dict[str, Any]:
        """Build the stored document for this payload (without `_id` and `dateCreated`)."""
        return {
            "name": self.name,
            "description": self.description,
            "deadline": format_datetime(self.deadline),
            "completed": self.completed,
            "assignedUser": self.assignedUser,
            "assignedUserName": assigned_user_name,
        }
