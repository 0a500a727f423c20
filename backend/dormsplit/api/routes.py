from __future__ import annotations

import logging

from flask import Blueprint, current_app, jsonify, request

from dormsplit.api.validators import (
    ApiValidationError,
    parse_custom_settings,
    parse_leave_records,
    parse_members,
    parse_occupancy_map,
    parse_period,
    parse_total_amount,
)
from dormsplit.db.repository import OccupancyRepository
from dormsplit.domain.split_calculator import calculate_by_stay_days
from dormsplit.domain.stay_days import (
    aggregate_stay_days,
    calculate_leave_days,
    update_stay_days_by_leave_records,
)
from dormsplit.domain.weighting import expense_types
from dormsplit.services.room_split import (
    RoomSplitError,
    room_presence,
    split_room_expense,
    stay_day_totals,
)

logger = logging.getLogger(__name__)

api_bp = Blueprint("api", __name__, url_prefix="/api")


def _json_error(message: str, *, status: int = 400, code: str = "bad_request"):
    return jsonify({"error": {"code": code, "message": message}}), status


def _repo() -> OccupancyRepository:
    return OccupancyRepository(current_app.config.get("DATABASE_URL", ""))


def _json_body():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ApiValidationError("Request body must be a JSON object.")
    return data


def _settings_with_default_rounding(raw: object) -> dict:
    settings = parse_custom_settings(raw)
    default_rule = current_app.config.get("DEFAULT_ROUNDING_RULE")
    if default_rule and "rounding_rule" not in settings:
        settings["rounding_rule"] = default_rule
    return settings


def _split_response(result):
    if not result.success:
        logger.warning("split failed: %s", result.message)
        return _json_error(result.message, status=422, code="split_failed")
    return jsonify(result.to_dict()), 200


@api_bp.errorhandler(ApiValidationError)
def _handle_validation_error(e: ApiValidationError):
    return _json_error(str(e), status=400)


@api_bp.get("/health")
def health():
    return jsonify({"status": "ok"}), 200


@api_bp.get("/expense-types")
def list_expense_types():
    return jsonify({"expense_types": expense_types()}), 200


@api_bp.post("/split")
def split_endpoint():
    """
    JSON body:
      - members: [{id, stay_days}]
      - total_amount: int (smallest currency unit)
      - expense_type: string
      - custom_settings: object (optional, shape depends on expense_type)
    """
    data = _json_body()
    members = parse_members(data.get("members"))
    total_amount = parse_total_amount(data.get("total_amount"))
    expense_type = data.get("expense_type") or ""
    if not isinstance(expense_type, str):
        raise ApiValidationError("'expense_type' must be a string.")
    settings = _settings_with_default_rounding(data.get("custom_settings"))

    result = calculate_by_stay_days(members, total_amount, expense_type, settings)
    return _split_response(result)


@api_bp.post("/leave-days")
def leave_days_endpoint():
    data = _json_body()
    start, end = parse_period(data.get("start_date"), data.get("end_date"))
    leave_type = data.get("type") or "personal"
    if not isinstance(leave_type, str):
        raise ApiValidationError("'type' must be a string.")
    return jsonify({"leave_days": calculate_leave_days(start, end, leave_type)}), 200


@api_bp.post("/stay-days/adjust")
def adjust_stay_days_endpoint():
    """
    Apply leave records to a caller-supplied occupancy map.
    Response holds the adjusted map and each member's total for the period.
    """
    data = _json_body()
    stay_days = parse_occupancy_map(data.get("stay_days"))
    records = parse_leave_records(data.get("leave_records"))
    start, end = parse_period(data.get("start_date"), data.get("end_date"))

    adjusted = update_stay_days_by_leave_records(stay_days, records, start, end)
    members = aggregate_stay_days(adjusted, start, end)
    return jsonify({"stay_days": adjusted, "totals": stay_day_totals(members)}), 200


@api_bp.get("/rooms/<room_id>/presence")
def room_presence_endpoint(room_id: str):
    start, end = parse_period(request.args.get("start_date"), request.args.get("end_date"))

    repo = _repo()
    if not repo.enabled:
        return _json_error("Database is not configured.", status=503, code="db_unavailable")

    try:
        summaries = room_presence(repo, room_id=room_id, start_date=start, end_date=end)
    except RoomSplitError as e:
        return _json_error(str(e), status=404, code="room_empty")
    except Exception:
        logger.exception("failed to load presence for room %s", room_id)
        return _json_error("Failed to load room occupancy.", status=500, code="db_error")

    return jsonify(
        {
            "room_id": room_id,
            "presence": [
                {
                    "member_id": s.member_id,
                    "total_days": s.total_days,
                    "leave_days": s.leave_days,
                    "present_days": s.present_days,
                }
                for s in summaries
            ],
        }
    ), 200


@api_bp.post("/rooms/<room_id>/split")
def room_split_endpoint(room_id: str):
    data = _json_body()
    total_amount = parse_total_amount(data.get("total_amount"))
    start, end = parse_period(data.get("start_date"), data.get("end_date"))
    expense_type = data.get("expense_type") or ""
    if not isinstance(expense_type, str):
        raise ApiValidationError("'expense_type' must be a string.")
    settings = _settings_with_default_rounding(data.get("custom_settings"))

    repo = _repo()
    if not repo.enabled:
        return _json_error("Database is not configured.", status=503, code="db_unavailable")

    try:
        split = split_room_expense(
            repo,
            room_id=room_id,
            start_date=start,
            end_date=end,
            total_amount=total_amount,
            expense_type=expense_type,
            custom_settings=settings,
        )
    except RoomSplitError as e:
        return _json_error(str(e), status=404, code="room_empty")
    except Exception:
        logger.exception("failed to split expense for room %s", room_id)
        return _json_error("Failed to load room occupancy.", status=500, code="db_error")

    if not split.result.success:
        return _split_response(split.result)

    body = split.result.to_dict()
    body["room_id"] = room_id
    body["stay_days"] = stay_day_totals(split.members)
    return jsonify(body), 200
