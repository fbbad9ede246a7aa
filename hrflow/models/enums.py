"""
Closed vocabularies stored as plain strings in the database.
"""

from __future__ import annotations

from enum import Enum


class LeaveStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    REVOKED = "revoked"


class LeaveType(str, Enum):
    VACATION = "Vacation"
    SICK = "Sick"
    PERSONAL = "Personal"
    EMERGENCY = "Emergency"
    LEAVE_WITHOUT_PAY = "Leave Without Pay"
    HOLIDAY_LEAVE = "Holiday Leave"


class ReviewStatus(str, Enum):
    """Outcome of one review level, and of a two-level request overall."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class Decision(str, Enum):
    APPROVE = "approve"
    REJECT = "reject"


class CashAdvanceType(str, Enum):
    PERSONAL = "personal"
    SUPPORT = "support"


class LedgerEntryKind(str, Enum):
    RESERVE = "reserve"
    RELEASE = "release"
    DEBIT = "debit"
    CREDIT = "credit"
    SET = "set"
