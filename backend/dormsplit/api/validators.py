from __future__ import annotations

from datetime import date
from typing import Any, Dict, List, Tuple

from dormsplit.domain.models import LeaveRecord, Member, ModelValidationError, OccupancyMap, to_date
from dormsplit.domain.weighting import normalize_settings


class ApiValidationError(ValueError):
    """Raised when request payload validation fails."""


def _is_number(value: object) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def parse_members(raw_members: object) -> List[Member]:
    if not isinstance(raw_members, list) or not raw_members:
        raise ApiValidationError("'members' must be a non-empty list.")

    members: List[Member] = []
    seen: set[str] = set()
    for idx, raw in enumerate(raw_members):
        if not isinstance(raw, dict):
            raise ApiValidationError(f"Member at index {idx} must be an object.")
        member_id = raw.get("id")
        stay_days = raw.get("stay_days", raw.get("stayDays", 0))
        if stay_days is None:
            stay_days = 0
        if not isinstance(member_id, str) or not member_id.strip():
            raise ApiValidationError(f"Member at index {idx} must include a non-empty 'id'.")
        if not _is_number(stay_days):
            raise ApiValidationError(f"Member at index {idx} must include 'stay_days' as a number.")
        if member_id in seen:
            raise ApiValidationError("Member ids must be unique.")
        seen.add(member_id)
        try:
            members.append(Member(id=member_id, stay_days=stay_days))
        except ModelValidationError as e:
            raise ApiValidationError(f"Member at index {idx}: {e}") from e

    return members


def parse_total_amount(raw: object) -> int:
    if isinstance(raw, bool) or not isinstance(raw, int):
        raise ApiValidationError("'total_amount' must be an int in the smallest currency unit.")
    return raw


def parse_custom_settings(raw: object) -> Dict[str, Any]:
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ApiValidationError("'custom_settings' must be an object.")
    return normalize_settings(raw)


def parse_date(raw: object, field_name: str) -> date:
    if not isinstance(raw, str) or not raw.strip():
        raise ApiValidationError(f"'{field_name}' must be an ISO date string (YYYY-MM-DD).")
    try:
        return to_date(raw)
    except ModelValidationError as e:
        raise ApiValidationError(f"'{field_name}' must be an ISO date string (YYYY-MM-DD).") from e


def parse_period(start_raw: object, end_raw: object) -> Tuple[date, date]:
    start = parse_date(start_raw, "start_date")
    end = parse_date(end_raw, "end_date")
    if end < start:
        raise ApiValidationError("'end_date' must not be before 'start_date'.")
    return start, end


def parse_leave_records(raw_records: object) -> List[LeaveRecord]:
    if raw_records is None:
        return []
    if not isinstance(raw_records, list):
        raise ApiValidationError("'leave_records' must be a list.")

    records: List[LeaveRecord] = []
    for idx, raw in enumerate(raw_records):
        try:
            record = LeaveRecord.from_dict(raw)
        except ModelValidationError as e:
            raise ApiValidationError(f"Leave record at index {idx}: {e}") from e
        if record.end_date < record.start_date:
            raise ApiValidationError(f"Leave record at index {idx} ends before it starts.")
        records.append(record)
    return records


def parse_occupancy_map(raw: object) -> OccupancyMap:
    if not isinstance(raw, dict):
        raise ApiValidationError("'stay_days' must be an object mapping member id -> {date: fraction}.")

    occupancy: OccupancyMap = {}
    for member_id, days in raw.items():
        if not isinstance(days, dict):
            raise ApiValidationError(f"'stay_days' entry for {member_id} must be an object.")
        member_days: Dict[str, float] = {}
        for key, fraction in days.items():
            parse_date(key, f"stay_days[{member_id}] date")
            if not _is_number(fraction) or not 0 <= fraction <= 1:
                raise ApiValidationError(
                    f"'stay_days' value for {member_id} on {key} must be a number between 0 and 1."
                )
            member_days[key] = fraction
        occupancy[member_id] = member_days
    return occupancy
