# backend/dormsplit/services/room_split.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Any, Dict, List, Mapping, Optional

from dormsplit.db.repository import OccupancyRepository
from dormsplit.domain.models import Member, OccupancyMap, PresenceSummary, SplitResult
from dormsplit.domain.split_calculator import calculate_by_stay_days
from dormsplit.domain.stay_days import (
    aggregate_stay_days,
    build_occupancy_map,
    summarize_presence,
    update_stay_days_by_leave_records,
)

logger = logging.getLogger(__name__)


class RoomSplitError(RuntimeError):
    """Raised when a room has nothing to split across."""


@dataclass(frozen=True)
class RoomSplit:
    members: List[Member]
    stay_days: OccupancyMap
    result: SplitResult


def room_presence(
    repo: OccupancyRepository, *, room_id: str, start_date: date, end_date: date
) -> List[PresenceSummary]:
    members = repo.list_active_members(room_id=room_id)
    if not members:
        raise RoomSplitError(f"room {room_id} has no active members")
    leaves = repo.list_approved_leave_records(room_id=room_id, start_date=start_date, end_date=end_date)
    return summarize_presence([m.id for m in members], leaves, start_date, end_date)


def split_room_expense(
    repo: OccupancyRepository,
    *,
    room_id: str,
    start_date: date,
    end_date: date,
    total_amount: int,
    expense_type: str,
    custom_settings: Optional[Mapping[str, Any]] = None,
) -> RoomSplit:
    """
    Split a room's bill for a billing period.

    Every active member starts fully present for each day of the period;
    approved leave records then reduce that occupancy before the
    per-member totals are handed to the split calculator.
    """
    records = repo.list_active_members(room_id=room_id)
    if not records:
        raise RoomSplitError(f"room {room_id} has no active members")
    member_ids = [r.id for r in records]

    leaves = repo.list_approved_leave_records(room_id=room_id, start_date=start_date, end_date=end_date)
    logger.info(
        "splitting %s for room %s (%s..%s): %d members, %d leave records",
        expense_type,
        room_id,
        start_date.isoformat(),
        end_date.isoformat(),
        len(member_ids),
        len(leaves),
    )

    baseline = build_occupancy_map(member_ids, start_date, end_date)
    adjusted = update_stay_days_by_leave_records(baseline, leaves, start_date, end_date)
    members = aggregate_stay_days(adjusted, start_date, end_date, member_ids=member_ids)

    result = calculate_by_stay_days(members, total_amount, expense_type, custom_settings)
    return RoomSplit(members=members, stay_days=adjusted, result=result)


def stay_day_totals(members: List[Member]) -> Dict[str, float]:
    return {m.id: m.stay_days for m in members}
