"""Allocation configuration."""

from pydantic import BaseModel, Field


class AllocationConfig(BaseModel):
    """Configuration shared by the strategy, rotation engine and coordinator."""

    equitable_percentage: float = Field(gt=0, lt=1, default=0.5)
    rotation_percentage: float = Field(gt=0, le=1, default=0.2)
    save_batch_size: int = Field(ge=1, default=100)
    history_limit: int = Field(ge=1, default=100)
    rotation_schedule: str = "weekly"       # Preset name or cron expression
