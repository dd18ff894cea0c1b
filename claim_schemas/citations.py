from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field


class PolicyCitation(BaseModel):
    """A payer or CMS policy excerpt supporting a fix suggestion."""

    text: str
    source: str
    relevance_score: float = Field(default=0.0, ge=0.0, le=1.0)
    url: Optional[str] = None

    model_config = {"frozen": True}


__all__ = ["PolicyCitation"]
