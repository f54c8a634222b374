"""Base model and time helpers shared by the pymobilepush models.

Every model inherits from :class:`PushBaseModel` which ignores unknown
keys (so state persisted by a newer release still loads) and accepts
both field names and aliases.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, ConfigDict


def utcnow() -> datetime:
    """Timezone-aware current UTC time."""
    return datetime.now(UTC)


def ensure_utc(value: Any) -> datetime | None:
    """Coerce naive datetimes and epoch numbers to aware UTC datetimes."""
    if value is None:
        return None
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value, tz=UTC)
    parsed = datetime.fromisoformat(str(value))
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=UTC)
    return parsed


UtcDatetime = Annotated[datetime | None, BeforeValidator(ensure_utc)]
"""Optional datetime that is always timezone-aware (UTC)."""


class PushBaseModel(BaseModel):
    """Base for pymobilepush data models."""

    model_config = ConfigDict(
        extra="ignore",
        populate_by_name=True,
    )
