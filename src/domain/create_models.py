"""Pydantic models for validating user input before records are created."""

from pydantic import BaseModel, Field, field_validator, model_validator

from src.core.config import constants
from src.domain.task import Frequency


def _require_text(v: str, field_name: str) -> str:
    if not v or not v.strip():
        msg = f"{field_name} cannot be blank"
        raise ValueError(msg)
    return v


class TaskCreate(BaseModel):
    """Input for creating a task."""

    title: str = Field(..., description="Task title")
    description: str = Field(default="", description="Task description")
    frequency: Frequency = Field(default=Frequency.DAILY, description="Recurrence class")
    points: int = Field(default=constants.DEFAULT_TASK_POINTS, description="Points awarded on completion")

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str) -> str:
        """Title must contain more than whitespace."""
        return _require_text(v, "Title")

    @field_validator("frequency", mode="before")
    @classmethod
    def normalize_frequency(cls, v: object) -> Frequency:
        """Unknown frequencies fall back to daily."""
        return Frequency.parse(v)

    @field_validator("points")
    @classmethod
    def validate_points(cls, v: int) -> int:
        """Points must be a positive integer."""
        if v <= 0:
            msg = "Points must be a positive integer"
            raise ValueError(msg)
        return v


class RewardCreate(BaseModel):
    """Input for creating a reward."""

    title: str = Field(..., description="Reward title")
    description: str = Field(default="", description="Reward description")
    cost: int = Field(default=constants.DEFAULT_REWARD_COST, description="Points required to redeem")

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str) -> str:
        """Title must contain more than whitespace."""
        return _require_text(v, "Title")

    @field_validator("cost")
    @classmethod
    def validate_cost(cls, v: int) -> int:
        """Cost must be a positive integer."""
        if v <= 0:
            msg = "Cost must be a positive integer"
            raise ValueError(msg)
        return v


class SignInRequest(BaseModel):
    """Email/password sign-in input."""

    email: str
    password: str

    @model_validator(mode="after")
    def validate_filled(self) -> "SignInRequest":
        """Both fields are required."""
        if not self.email.strip() or not self.password:
            msg = "Please fill in all fields."
            raise ValueError(msg)
        return self


class SignUpRequest(BaseModel):
    """Account registration input."""

    name: str
    email: str
    password: str
    password_confirm: str

    @model_validator(mode="after")
    def validate_signup(self) -> "SignUpRequest":
        """All fields required, passwords must match and meet the minimum length."""
        if not self.name.strip() or not self.email.strip() or not self.password:
            msg = "Please fill in all fields."
            raise ValueError(msg)
        if self.password != self.password_confirm:
            msg = "Passwords do not match."
            raise ValueError(msg)
        if len(self.password) < constants.MIN_PASSWORD_LENGTH:
            msg = f"Password must be at least {constants.MIN_PASSWORD_LENGTH} characters."
            raise ValueError(msg)
        return self
