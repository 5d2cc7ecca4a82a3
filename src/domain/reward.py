"""Reward domain model."""

from pydantic import BaseModel, Field

from src.domain.ids import new_record_id


class Reward(BaseModel):
    """User-defined reward redeemable for points."""

    id: str = Field(default_factory=new_record_id, description="Opaque unique reward ID")
    title: str = Field(..., description="Reward title (e.g., 'Movie night')")
    description: str = Field(default="", description="Detailed reward description")
    cost: int = Field(..., gt=0, description="Points required to redeem")
    claimed: bool = Field(default=False, description="Whether the reward has been redeemed")
