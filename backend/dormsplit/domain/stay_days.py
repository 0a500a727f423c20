# backend/dormsplit/domain/stay_days.py
from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Dict, Iterable, Iterator, List, Optional, Sequence

from dormsplit.domain.models import (
    DateLike,
    LeaveRecord,
    LeaveType,
    Member,
    OccupancyMap,
    PresenceSummary,
    to_date,
)

# Home leave longer than this many days only counts 80% as absence.
HOME_LEAVE_FULL_CREDIT_DAYS = 3
HOME_LEAVE_CREDIT_RATIO = 0.8


@dataclass(frozen=True)
class DateSpan:
    """
    Inclusive range of calendar days.

    Iterating yields fresh date objects each time, so a span can be
    walked any number of times. A span whose end precedes its start is
    empty and has a non-positive `days`.
    """
    start: date
    end: date

    @classmethod
    def of(cls, start: DateLike, end: DateLike) -> "DateSpan":
        return cls(to_date(start), to_date(end))

    @property
    def days(self) -> int:
        return (self.end - self.start).days + 1

    def __iter__(self) -> Iterator[date]:
        for offset in range(max(0, self.days)):
            yield self.start + timedelta(days=offset)

    def __len__(self) -> int:
        return max(0, self.days)

    def __contains__(self, day: object) -> bool:
        return isinstance(day, date) and self.start <= day <= self.end

    def overlap(self, other: "DateSpan") -> "DateSpan":
        return DateSpan(max(self.start, other.start), min(self.end, other.end))


def calculate_leave_days(
    start_date: DateLike, end_date: DateLike, leave_type: str = LeaveType.PERSONAL.value
) -> int:
    """
    Number of absent days credited for a leave.

    personal and other leaves count every day of the span. A home leave
    counts every day up to three days; beyond that it counts
    ceil(80% of the span). Unknown types count every day.
    """
    total_days = DateSpan.of(start_date, end_date).days

    if leave_type == LeaveType.HOME.value and total_days > HOME_LEAVE_FULL_CREDIT_DAYS:
        return math.ceil(total_days * HOME_LEAVE_CREDIT_RATIO)
    return total_days


def copy_occupancy(stay_days: OccupancyMap) -> OccupancyMap:
    return {member_id: dict(days) for member_id, days in stay_days.items()}


def update_stay_days_by_leave_records(
    stay_days: OccupancyMap,
    leave_records: Iterable[LeaveRecord],
    start_date: DateLike,
    end_date: DateLike,
) -> OccupancyMap:
    """
    Apply leave records to an occupancy map and return the adjusted copy.

    Each leave spreads its credited absence evenly over its span: every
    day of the span that also falls in the billing period loses
    leave_days / span_days of presence, floored at 0. A day with no entry,
    or a stored 0, starts from 1 (fully present). The caller's map is left untouched.
    """
    period = DateSpan.of(start_date, end_date)
    updated = copy_occupancy(stay_days)

    for record in leave_records:
        member_days = updated.setdefault(record.member_id, {})

        span = DateSpan(record.start_date, record.end_date)
        if span.days <= 0:
            continue

        leave_days = calculate_leave_days(span.start, span.end, record.type)
        daily_leave = leave_days / span.days

        for day in span.overlap(period):
            key = day.isoformat()
            current = member_days.get(key) or 1
            member_days[key] = max(0, current - daily_leave)

    return updated


def build_occupancy_map(
    member_ids: Sequence[str],
    start_date: DateLike,
    end_date: DateLike,
    fraction: float = 1.0,
) -> OccupancyMap:
    """Baseline map with every member present `fraction` of every day of the period."""
    period = DateSpan.of(start_date, end_date)
    keys = [day.isoformat() for day in period]
    return {member_id: {key: fraction for key in keys} for member_id in member_ids}


def aggregate_stay_days(
    stay_days: OccupancyMap,
    start_date: Optional[DateLike] = None,
    end_date: Optional[DateLike] = None,
    member_ids: Optional[Sequence[str]] = None,
) -> List[Member]:
    """
    Sum each member's daily fractions into a Member ready for splitting.

    When both bounds are given only days inside the period are counted.
    member_ids fixes the output order and includes members missing from
    the map with 0 stay days; otherwise the map's own order is used.
    """
    period: Optional[DateSpan] = None
    if start_date is not None and end_date is not None:
        period = DateSpan.of(start_date, end_date)

    ids = list(member_ids) if member_ids is not None else list(stay_days)
    members: List[Member] = []
    for member_id in ids:
        days = stay_days.get(member_id, {})
        total = 0.0
        for key, fraction in days.items():
            if period is not None and to_date(key) not in period:
                continue
            total += fraction
        members.append(Member(id=member_id, stay_days=total))
    return members


def summarize_presence(
    member_ids: Sequence[str],
    leave_records: Iterable[LeaveRecord],
    start_date: DateLike,
    end_date: DateLike,
) -> List[PresenceSummary]:
    """
    Whole-day presence per member for a period.

    leave_days is the raw number of leave days overlapping the period
    (leave-type policy does not apply here); present_days never goes
    below 0.
    """
    period = DateSpan.of(start_date, end_date)
    leave_by_member: Dict[str, int] = {member_id: 0 for member_id in member_ids}

    for record in leave_records:
        if record.member_id not in leave_by_member:
            continue
        overlap = DateSpan(record.start_date, record.end_date).overlap(period)
        leave_by_member[record.member_id] += len(overlap)

    total_days = len(period)
    return [
        PresenceSummary(
            member_id=member_id,
            total_days=total_days,
            leave_days=leave_days,
            present_days=max(0, total_days - leave_days),
        )
        for member_id, leave_days in leave_by_member.items()
    ]
