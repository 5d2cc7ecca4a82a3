"""Pydantic models for service layer return types."""

from pydantic import BaseModel


class Achievement(BaseModel):
    """Badge unlocked by reaching a threshold. Never persisted."""

    key: str
    name: str
    description: str
    unlocked: bool


class LedgerStats(BaseModel):
    """Progress summary of a ledger."""

    total_points: int
    total_tasks: int
    completed_tasks: int
    pending_tasks: int
    available_rewards: int
    claimed_rewards: int
    completion_rate: int
    milestone: int
    milestone_progress: float
    achievements: list[Achievement]
