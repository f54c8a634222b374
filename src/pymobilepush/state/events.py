"""Typed application lifecycle events.

The host translates its platform lifecycle notifications into these
events. Only the client is allowed to act on them.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class LifecycleKind(StrEnum):
    LAUNCHED = "launched"
    BECAME_ACTIVE = "became_active"
    ENTERED_BACKGROUND = "entered_background"
    TERMINATED = "terminated"


class LifecycleEvent(BaseModel):
    """A single application lifecycle transition."""

    model_config = ConfigDict(frozen=True)

    kind: LifecycleKind
    observed_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    options: dict[str, Any] = Field(
        default_factory=dict,
        description="Launch options (only meaningful for LAUNCHED)",
    )

    @field_validator("observed_at")
    @classmethod
    def _ensure_tz_aware(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value
