"""
Column set shared by every two-level approval record.

Each level carries its own status, reviewer, timestamp and comment.
"""

from __future__ import annotations

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import declared_attr

from hrflow.models.enums import ReviewStatus


class TwoLevelReviewMixin:
    # Unannotated: declarative copies plain mixin columns onto each subclass,
    # but rejects annotated ones that are not Mapped[].
    level1_status = Column(
        String(20),
        nullable=False,
        default=ReviewStatus.PENDING.value,
        server_default=ReviewStatus.PENDING.value,
    )
    level1_reviewed_at = Column(DateTime(timezone=True), nullable=True)
    level1_comment = Column(Text, nullable=True)

    level2_status = Column(
        String(20),
        nullable=False,
        default=ReviewStatus.PENDING.value,
        server_default=ReviewStatus.PENDING.value,
    )
    level2_reviewed_at = Column(DateTime(timezone=True), nullable=True)
    level2_comment = Column(Text, nullable=True)

    @declared_attr
    def level1_reviewer_id(cls):  # noqa: N805
        return Column(Integer, ForeignKey("employees.id"), nullable=True)

    @declared_attr
    def level2_reviewer_id(cls):  # noqa: N805
        return Column(Integer, ForeignKey("employees.id"), nullable=True)
