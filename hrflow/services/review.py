"""
Two-level review state shared by overtime, cash advance and liquidation.

A level is either pending or settled (approved / rejected, with the
reviewer, instant and comment).  The overall outcome is never stored
independently: it is always recomputed with ``derive_final_status``.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from hrflow.core.exceptions import AlreadyReviewed, InvalidTransition, ValidationError
from hrflow.models.enums import Decision, ReviewStatus

LEVELS = (1, 2)


@dataclass(frozen=True)
class ReviewLevel:
    status: ReviewStatus = ReviewStatus.PENDING
    reviewer_id: int | None = None
    at: datetime | None = None
    comment: str | None = None

    @classmethod
    def pending(cls) -> "ReviewLevel":
        return cls()

    @classmethod
    def settled(
        cls, decision: Decision, reviewer_id: int, at: datetime, comment: str | None = None
    ) -> "ReviewLevel":
        status = ReviewStatus.APPROVED if decision == Decision.APPROVE else ReviewStatus.REJECTED
        return cls(status=status, reviewer_id=reviewer_id, at=at, comment=comment)

    @property
    def is_pending(self) -> bool:
        return self.status == ReviewStatus.PENDING


def derive_final_status(level1: ReviewStatus | str, level2: ReviewStatus | str) -> ReviewStatus:
    """Approved iff both levels approved; rejected if either rejected."""
    level1 = ReviewStatus(level1)
    level2 = ReviewStatus(level2)
    if ReviewStatus.REJECTED in (level1, level2):
        return ReviewStatus.REJECTED
    if level1 == ReviewStatus.APPROVED and level2 == ReviewStatus.APPROVED:
        return ReviewStatus.APPROVED
    return ReviewStatus.PENDING


def read_level(record, level: int) -> ReviewLevel:
    _check_level(level)
    return ReviewLevel(
        status=ReviewStatus(getattr(record, f"level{level}_status")),
        reviewer_id=getattr(record, f"level{level}_reviewer_id"),
        at=getattr(record, f"level{level}_reviewed_at"),
        comment=getattr(record, f"level{level}_comment"),
    )


def write_level(record, level: int, value: ReviewLevel) -> None:
    _check_level(level)
    setattr(record, f"level{level}_status", value.status.value)
    setattr(record, f"level{level}_reviewer_id", value.reviewer_id)
    setattr(record, f"level{level}_reviewed_at", value.at)
    setattr(record, f"level{level}_comment", value.comment)


def final_status_of(record) -> ReviewStatus:
    return derive_final_status(record.level1_status, record.level2_status)


def ensure_reviewable(record, level: int) -> None:
    """Raise unless *level* of *record* may receive a decision now."""
    _check_level(level)
    if final_status_of(record) != ReviewStatus.PENDING:
        raise AlreadyReviewed(f"Request already {final_status_of(record).value}")
    if not read_level(record, level).is_pending:
        raise AlreadyReviewed(f"Level {level} has already been reviewed")
    if level == 2 and read_level(record, 1).status != ReviewStatus.APPROVED:
        raise InvalidTransition("Level 1 must be approved before level 2 review")


def apply_decision(
    record,
    level: int,
    decision: Decision,
    reviewer_id: int,
    at: datetime,
    comment: str | None = None,
) -> ReviewStatus:
    """Stamp *level* and return the recomputed overall status."""
    ensure_reviewable(record, level)
    write_level(record, level, ReviewLevel.settled(decision, reviewer_id, at, comment))
    return final_status_of(record)


def clear_review_bookkeeping(record) -> None:
    """Reset both levels to pending with no reviewer, instant or comment."""
    for level in LEVELS:
        write_level(record, level, ReviewLevel.pending())


def _check_level(level: int) -> None:
    if level not in LEVELS:
        raise ValidationError("Review level must be 1 or 2")


# ── Records with a shared ``status`` field ──────────────────────────
def ensure_status_pending(record) -> None:
    if record.status != ReviewStatus.PENDING.value:
        raise AlreadyReviewed(f"Request is already {record.status}")


def settle(record, final: ReviewStatus, reviewer_id: int, at: datetime, comment: str | None) -> None:
    """Copy a two-level outcome onto the shared status fields."""
    record.status = final.value
    if final == ReviewStatus.PENDING:
        return
    record.approved_by = reviewer_id
    record.approved_at = at
    if final == ReviewStatus.REJECTED:
        record.rejection_reason = comment


def reopen(record) -> None:
    """Back to pending with every approval trace cleared."""
    clear_review_bookkeeping(record)
    record.status = ReviewStatus.PENDING.value
    record.approved_by = None
    record.approved_at = None
    record.rejection_reason = None


def override_status(record, status: ReviewStatus | str, actor_id: int, at: datetime) -> None:
    """Administrative status change; returning to pending reopens the record."""
    status = ReviewStatus(status)
    if status.value == record.status:
        return
    if status == ReviewStatus.PENDING:
        reopen(record)
        return
    record.status = status.value
    record.approved_by = actor_id
    record.approved_at = at
