"""Partial update payloads for storage operations."""

from datetime import datetime

from pydantic import BaseModel


class TaskUpdate(BaseModel):
    """Mutable task fields. Unset fields are left untouched."""

    completed: bool | None = None
    last_completed: datetime | None = None
    next_due: datetime | None = None


class RewardUpdate(BaseModel):
    """Mutable reward fields."""

    claimed: bool | None = None
