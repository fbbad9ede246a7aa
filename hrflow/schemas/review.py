"""Pydantic schemas shared by every two-level review endpoint."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

from hrflow.models.enums import Decision


class LevelReview(BaseModel):
    level: Literal[1, 2]
    decision: Decision
    comment: str | None = Field(default=None, max_length=2000)


class TwoLevelReviewRead(BaseModel):
    level1_status: str
    level1_reviewer_id: int | None
    level1_reviewed_at: datetime | None
    level1_comment: str | None
    level2_status: str
    level2_reviewer_id: int | None
    level2_reviewed_at: datetime | None
    level2_comment: str | None
