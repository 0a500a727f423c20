# backend/dormsplit/domain/models.py
from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any, Dict, Optional, Union

# member id -> ISO date -> fraction of that day spent in the dorm
OccupancyMap = Dict[str, Dict[str, float]]

DateLike = Union[date, str]


class ModelValidationError(ValueError):
    """Raised when engine input models fail basic validation."""


def to_date(value: DateLike) -> date:
    """Accept a date or an ISO 'YYYY-MM-DD' string."""
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value.strip()[:10])
        except ValueError as e:
            raise ModelValidationError(f"invalid ISO date: {value}") from e
    raise ModelValidationError(f"expected a date or ISO date string, got {type(value).__name__}")


class LeaveType(str, Enum):
    PERSONAL = "personal"
    HOME = "home"
    OTHER = "other"


@dataclass(frozen=True)
class Member:
    """
    A room occupant taking part in the split.
    stay_days is the aggregate occupancy for the billing period.
    """
    id: str
    stay_days: float = 0

    def __post_init__(self) -> None:
        if not isinstance(self.id, str) or not self.id.strip():
            raise ModelValidationError("Member.id must be a non-empty string")
        if isinstance(self.stay_days, bool) or not isinstance(self.stay_days, (int, float)):
            raise ModelValidationError("Member.stay_days must be a number")
        if not math.isfinite(self.stay_days):
            raise ModelValidationError("Member.stay_days must be finite")
        if self.stay_days < 0:
            raise ModelValidationError("Member.stay_days must be >= 0")


@dataclass(frozen=True)
class LeaveRecord:
    """
    A member-reported absence. Both endpoints are inclusive.
    """
    member_id: str
    start_date: date
    end_date: date
    type: str = LeaveType.PERSONAL.value

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "LeaveRecord":
        if not isinstance(raw, dict):
            raise ModelValidationError("leave record must be an object")
        member_id = raw.get("member_id", raw.get("memberId"))
        if not isinstance(member_id, str) or not member_id.strip():
            raise ModelValidationError("leave record needs a non-empty 'member_id'")
        start = raw.get("start_date", raw.get("startDate"))
        end = raw.get("end_date", raw.get("endDate"))
        if start is None or end is None:
            raise ModelValidationError("leave record needs 'start_date' and 'end_date'")
        leave_type = raw.get("type") or LeaveType.PERSONAL.value
        if not isinstance(leave_type, str):
            raise ModelValidationError("leave record 'type' must be a string")
        return cls(member_id=member_id, start_date=to_date(start), end_date=to_date(end), type=leave_type)


@dataclass(frozen=True)
class Expense:
    """
    A shared bill. total_amount is in the smallest currency unit.
    """
    type: str
    total_amount: int
    custom_settings: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not isinstance(self.type, str):
            raise ModelValidationError("Expense.type must be a string")
        if isinstance(self.total_amount, bool) or not isinstance(self.total_amount, int):
            raise ModelValidationError("Expense.total_amount must be an int")
        if self.total_amount <= 0:
            raise ModelValidationError("Expense.total_amount must be > 0")
        if not isinstance(self.custom_settings, dict):
            raise ModelValidationError("Expense.custom_settings must be a dict")


@dataclass(frozen=True)
class PresenceSummary:
    member_id: str
    total_days: int
    leave_days: int
    present_days: int


@dataclass(frozen=True)
class SplitResult:
    """
    Outcome of a split calculation.

    On success split_amounts holds integer shares that sum exactly to
    total_amount; original_amounts holds the unrounded shares.
    On failure only message is meaningful.
    """
    success: bool
    split_amounts: Dict[str, int] = field(default_factory=dict)
    original_amounts: Dict[str, float] = field(default_factory=dict)
    rounding_rule: Optional[str] = None
    total_amount: Optional[int] = None
    message: Optional[str] = None

    @classmethod
    def ok(
        cls,
        *,
        split_amounts: Dict[str, int],
        original_amounts: Dict[str, float],
        rounding_rule: str,
        total_amount: int,
    ) -> "SplitResult":
        return cls(
            success=True,
            split_amounts=split_amounts,
            original_amounts=original_amounts,
            rounding_rule=rounding_rule,
            total_amount=total_amount,
        )

    @classmethod
    def failure(cls, message: str) -> "SplitResult":
        return cls(success=False, message=message)

    def to_dict(self) -> Dict[str, Any]:
        if not self.success:
            return {"success": False, "message": self.message}
        return {
            "success": True,
            "split_amounts": dict(self.split_amounts),
            "original_amounts": dict(self.original_amounts),
            "rounding_rule": self.rounding_rule,
            "total_amount": self.total_amount,
        }
