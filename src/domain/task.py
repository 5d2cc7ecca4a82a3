"""Task domain models and enums."""

import logging
from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator

from src.domain.ids import new_record_id
from src.domain.timestamps import format_timestamp


logger = logging.getLogger(__name__)


class Frequency(StrEnum):
    """Recurrence class of a task."""

    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"

    @classmethod
    def parse(cls, value: object) -> "Frequency":
        """Coerce a raw value to a Frequency, falling back to daily."""
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            logger.warning("Unrecognized frequency %r, using daily", value)
            return cls.DAILY


FREQUENCY_LABELS: dict[Frequency, str] = {
    Frequency.DAILY: "Daily",
    Frequency.WEEKLY: "Weekly",
    Frequency.MONTHLY: "Monthly",
}


class Task(BaseModel):
    """Recurring task that awards points when completed."""

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(default_factory=new_record_id, description="Opaque unique task ID")
    title: str = Field(..., description="Task title (e.g., 'Exercise for 30 minutes')")
    description: str = Field(default="", description="Detailed task description")
    frequency: Frequency = Field(default=Frequency.DAILY, description="Recurrence class")
    points: int = Field(..., gt=0, description="Points awarded on completion")
    completed: bool = Field(default=False, description="Whether the task is done for this cycle")
    last_completed: datetime | None = Field(
        default=None, alias="lastCompleted", description="Timestamp of the most recent completion"
    )
    next_due: datetime = Field(..., alias="nextDue", description="When the task is due again")

    @field_validator("frequency", mode="before")
    @classmethod
    def normalize_frequency(cls, v: object) -> Frequency:
        """Unknown frequencies fall back to daily."""
        return Frequency.parse(v)

    @field_serializer("last_completed", "next_due")
    def serialize_timestamp(self, value: datetime | None) -> str | None:
        """Serialize timestamps as ISO 8601 with millisecond precision and a Z suffix."""
        return format_timestamp(value) if value is not None else None
