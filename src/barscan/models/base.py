"""
Common base models and utilities.
"""

from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict


class BarscanModel(BaseModel):
    """Base model for scan results and reports."""

    model_config = ConfigDict(
        populate_by_name=True,
    )

    def to_dict(self) -> dict[str, Any]:
        """Convert model to a JSON-friendly dictionary."""
        return self.model_dump(mode="json", exclude_none=True)


def utc_now() -> datetime:
    """Get current UTC datetime."""
    return datetime.now(timezone.utc)
