"""Configuration for the kanban repository package."""

import os

from pydantic import BaseModel, Field


class KanbanSettings(BaseModel):
    """Tuning knobs for ordering operations."""

    # Attempts per reorder before giving up on a contended group.
    reorder_retries: int = Field(
        default_factory=lambda: int(os.getenv("KANBAN_REORDER_RETRIES", "3")),
        ge=1,
    )
    # Pause between attempts, multiplied by the attempt number.
    reorder_backoff_seconds: float = Field(
        default_factory=lambda: float(os.getenv("KANBAN_REORDER_BACKOFF_SECONDS", "0.05")),
        ge=0,
    )
    # A reindex marker older than this belongs to a writer that died; it may be taken over.
    reorder_lease_seconds: float = Field(
        default_factory=lambda: float(os.getenv("KANBAN_REORDER_LEASE_SECONDS", "30")),
        gt=0,
    )


settings = KanbanSettings()
