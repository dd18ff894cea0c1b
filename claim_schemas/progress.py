"""Progress notifications broadcast while a work item is processed."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Literal

from pydantic import BaseModel, Field

ProgressStatus = Literal["processing", "completed", "error"]

TOTAL_STEPS = 5


class ProgressEvent(BaseModel):
    """Ephemeral step notification. Never persisted."""

    work_item_id: str
    step: int = Field(ge=0)
    total_steps: int = TOTAL_STEPS
    message: str
    status: ProgressStatus = "processing"
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    model_config = {"frozen": True}

    @property
    def terminal(self) -> bool:
        return self.status in ("completed", "error")

    def to_wire(self) -> dict[str, Any]:
        """Shape pushed to stream subscribers."""
        return {
            "step": self.step,
            "totalSteps": self.total_steps,
            "message": self.message,
            "status": self.status,
            "timestamp": self.timestamp.isoformat(),
        }


__all__ = ["ProgressEvent", "ProgressStatus", "TOTAL_STEPS"]
