from datetime import date

import pytest
from flask import Flask

from dormsplit import create_app
from dormsplit.api.routes import api_bp
from dormsplit.db.repository import RoomMemberRecord
from dormsplit.domain.models import LeaveRecord


@pytest.fixture()
def app():
    app = Flask(__name__)
    app.register_blueprint(api_bp)
    app.config["TESTING"] = True
    return app


@pytest.fixture()
def client(app):
    return app.test_client()


class FakeRepo:
    enabled = True

    def __init__(self, members=None, leaves=None):
        self.members = members if members is not None else []
        self.leaves = leaves if leaves is not None else []
        self.calls = []

    def list_active_members(self, *, room_id):
        self.calls.append(("members", room_id))
        return self.members

    def list_approved_leave_records(self, *, room_id, start_date, end_date):
        self.calls.append(("leaves", room_id, start_date, end_date))
        return self.leaves


def test_health(client):
    r = client.get("/api/health")
    assert r.status_code == 200
    assert r.get_json() == {"status": "ok"}


def test_expense_types_lists_builtin_strategies(client):
    r = client.get("/api/expense-types")
    assert r.status_code == 200
    assert r.get_json()["expense_types"] == [
        "air_conditioner",
        "custom",
        "electricity",
        "host",
        "internet",
        "lighting",
        "water",
    ]


def test_split_returns_exact_shares(client):
    r = client.post(
        "/api/split",
        json={
            "members": [{"id": "a", "stay_days": 10}, {"id": "b", "stay_days": 10}, {"id": "c", "stay_days": 10}],
            "total_amount": 100,
            "expense_type": "lighting",
        },
    )
    assert r.status_code == 200
    body = r.get_json()
    assert body["success"] is True
    assert body["split_amounts"] == {"a": 33, "b": 33, "c": 34}
    assert body["total_amount"] == 100
    assert body["rounding_rule"] == "ceil"


def test_split_accepts_camel_case_settings(client):
    r = client.post(
        "/api/split",
        json={
            "members": [{"id": "a", "stayDays": 1}, {"id": "b", "stayDays": 1}],
            "total_amount": 100,
            "expense_type": "custom",
            "custom_settings": {"customRule": "custom_ratio", "customRatio": {"a": 1, "b": 3}},
        },
    )
    assert r.status_code == 200
    assert r.get_json()["split_amounts"] == {"a": 25, "b": 75}


def test_split_engine_failure_is_422(client):
    r = client.post(
        "/api/split",
        json={"members": [{"id": "a", "stay_days": 1}], "total_amount": 100, "expense_type": "host"},
    )
    assert r.status_code == 422
    assert r.get_json()["error"]["code"] == "split_failed"


def test_split_zero_stay_days_is_422(client):
    r = client.post(
        "/api/split",
        json={"members": [{"id": "a", "stay_days": 0}], "total_amount": 100, "expense_type": "lighting"},
    )
    assert r.status_code == 422


@pytest.mark.parametrize(
    "payload, fragment",
    [
        ({"total_amount": 100}, "members"),
        ({"members": [{"id": "a", "stay_days": 1}], "total_amount": 1.5}, "total_amount"),
        ({"members": [{"id": "a", "stay_days": "x"}], "total_amount": 100}, "stay_days"),
        ({"members": [{"id": "a"}, {"id": "a"}], "total_amount": 100}, "unique"),
        ({"members": [{"id": "a", "stay_days": -1}], "total_amount": 100}, ">= 0"),
    ],
)
def test_split_rejects_bad_payloads(client, payload, fragment):
    r = client.post("/api/split", json=payload)
    assert r.status_code == 400
    assert fragment in r.get_json()["error"]["message"]


def test_split_requires_json_body(client):
    r = client.post("/api/split", data="not json", content_type="text/plain")
    assert r.status_code == 400


def test_leave_days_endpoint(client):
    r = client.post("/api/leave-days", json={"start_date": "2024-03-01", "end_date": "2024-03-04", "type": "home"})
    assert r.status_code == 200
    assert r.get_json() == {"leave_days": 4}


def test_leave_days_rejects_reversed_dates(client):
    r = client.post("/api/leave-days", json={"start_date": "2024-03-04", "end_date": "2024-03-01"})
    assert r.status_code == 400


def test_adjust_stay_days_endpoint(client):
    r = client.post(
        "/api/stay-days/adjust",
        json={
            "stay_days": {"a": {"2024-03-01": 1, "2024-03-02": 1}, "b": {"2024-03-01": 1, "2024-03-02": 1}},
            "leave_records": [{"member_id": "b", "start_date": "2024-03-02", "end_date": "2024-03-02"}],
            "start_date": "2024-03-01",
            "end_date": "2024-03-02",
        },
    )
    assert r.status_code == 200
    body = r.get_json()
    assert body["stay_days"]["b"] == {"2024-03-01": 1, "2024-03-02": 0}
    assert body["totals"] == {"a": 2, "b": 1}


def test_adjust_stay_days_rejects_fraction_out_of_range(client):
    r = client.post(
        "/api/stay-days/adjust",
        json={"stay_days": {"a": {"2024-03-01": 2}}, "start_date": "2024-03-01", "end_date": "2024-03-02"},
    )
    assert r.status_code == 400


def test_room_split_requires_db(client):
    r = client.post(
        "/api/rooms/7/split",
        json={"total_amount": 500, "expense_type": "lighting", "start_date": "2024-03-01", "end_date": "2024-03-30"},
    )
    assert r.status_code == 503
    assert r.get_json()["error"]["code"] == "db_unavailable"


def test_room_split_applies_approved_leave(client, monkeypatch):
    repo = FakeRepo(
        members=[RoomMemberRecord(id="u1", username="alice"), RoomMemberRecord(id="u2", username="bob")],
        leaves=[LeaveRecord(member_id="u2", start_date=date(2024, 3, 1), end_date=date(2024, 3, 10), type="personal")],
    )
    monkeypatch.setattr("dormsplit.api.routes._repo", lambda: repo)

    r = client.post(
        "/api/rooms/7/split",
        json={"total_amount": 500, "expense_type": "lighting", "start_date": "2024-03-01", "end_date": "2024-03-30"},
    )

    assert r.status_code == 200
    body = r.get_json()
    assert body["room_id"] == "7"
    assert body["split_amounts"] == {"u1": 300, "u2": 200}
    assert body["stay_days"] == {"u1": 30, "u2": 20}
    assert ("leaves", "7", date(2024, 3, 1), date(2024, 3, 30)) in repo.calls


def test_room_split_empty_room_is_404(client, monkeypatch):
    monkeypatch.setattr("dormsplit.api.routes._repo", lambda: FakeRepo())
    r = client.post(
        "/api/rooms/7/split",
        json={"total_amount": 500, "expense_type": "lighting", "start_date": "2024-03-01", "end_date": "2024-03-30"},
    )
    assert r.status_code == 404
    assert r.get_json()["error"]["code"] == "room_empty"


def test_room_split_store_error_is_500(client, monkeypatch):
    class BrokenRepo(FakeRepo):
        def list_active_members(self, *, room_id):
            raise RuntimeError("connection refused")

    monkeypatch.setattr("dormsplit.api.routes._repo", lambda: BrokenRepo())
    r = client.post(
        "/api/rooms/7/split",
        json={"total_amount": 500, "expense_type": "lighting", "start_date": "2024-03-01", "end_date": "2024-03-30"},
    )
    assert r.status_code == 500
    assert r.get_json()["error"]["code"] == "db_error"


def test_room_presence(client, monkeypatch):
    repo = FakeRepo(
        members=[RoomMemberRecord(id="u1", username="alice")],
        leaves=[LeaveRecord(member_id="u1", start_date=date(2024, 2, 28), end_date=date(2024, 3, 2), type="home")],
    )
    monkeypatch.setattr("dormsplit.api.routes._repo", lambda: repo)

    r = client.get("/api/rooms/7/presence?start_date=2024-03-01&end_date=2024-03-31")
    assert r.status_code == 200
    assert r.get_json() == {
        "room_id": "7",
        "presence": [{"member_id": "u1", "total_days": 31, "leave_days": 2, "present_days": 29}],
    }


class FloorConfig:
    DATABASE_URL = ""
    DEFAULT_ROUNDING_RULE = "floor"
    LOG_LEVEL = "WARNING"
    CORS_ORIGINS = "*"


def test_create_app_applies_default_rounding_rule():
    client = create_app(FloorConfig).test_client()
    r = client.post(
        "/api/split",
        json={
            "members": [{"id": "a", "stay_days": 1}, {"id": "b", "stay_days": 1}, {"id": "c", "stay_days": 1}],
            "total_amount": 100,
            "expense_type": "internet",
        },
    )
    assert r.status_code == 200
    body = r.get_json()
    assert body["rounding_rule"] == "floor"
    assert body["split_amounts"] == {"a": 34, "b": 33, "c": 33}


def test_explicit_rounding_rule_beats_default():
    client = create_app(FloorConfig).test_client()
    r = client.post(
        "/api/split",
        json={
            "members": [{"id": "a", "stay_days": 1}, {"id": "b", "stay_days": 1}],
            "total_amount": 7,
            "custom_settings": {"rounding_rule": "ceil"},
        },
    )
    assert r.get_json()["rounding_rule"] == "ceil"
