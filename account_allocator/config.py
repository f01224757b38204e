"""
Process settings and logging setup.

Settings are read from ALLOCATOR_* environment variables or a .env file.
"""

import logging

from pydantic_settings import BaseSettings, SettingsConfigDict

from account_allocator.models.config import AllocationConfig


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(env_prefix="ALLOCATOR_", env_file=".env")

    app_name: str = "Account Allocator API"
    app_version: str = "0.1.0"

    # Allocation
    equitable_percentage: float = 0.5
    rotation_percentage: float = 0.2
    save_batch_size: int = 100
    history_limit: int = 100
    rotation_schedule: str = "weekly"
    rotation_scheduler_enabled: bool = False  # start the scheduler with the app

    # Storage
    storage_backend: str = "memory"         # "memory" | "sqlite"
    database_path: str = "allocator.db"

    log_level: str = "INFO"

    def allocation_config(self) -> AllocationConfig:
        return AllocationConfig(
            equitable_percentage=self.equitable_percentage,
            rotation_percentage=self.rotation_percentage,
            save_batch_size=self.save_batch_size,
            history_limit=self.history_limit,
            rotation_schedule=self.rotation_schedule,
        )


def configure_logging(level: str = "INFO") -> None:
    """Configure default logging if no handlers are present."""
    root = logging.getLogger()
    if root.handlers:
        return
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
