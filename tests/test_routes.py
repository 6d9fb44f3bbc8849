from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from consultq.config import Settings, get_settings
from consultq.dependencies.services import get_clock, get_queue_store
from consultq.main import app


@pytest.fixture
def api(store, clock, seed_queue):
    seeded = seed_queue(3, recall_check_interval=2)
    app.dependency_overrides[get_queue_store] = lambda: store
    app.dependency_overrides[get_clock] = lambda: clock
    test_client = TestClient(app)
    test_client.headers.update({"X-Doctor-Id": seeded.doctor.doctor_id})
    test_client.seeded = seeded
    yield test_client
    app.dependency_overrides.clear()


def test_health_reports_mock_mode() -> None:
    response = TestClient(app).get("/health")

    assert response.status_code == 200
    assert response.json() == {"ok": True, "mode": "mock"}


def test_doctor_header_is_required(api) -> None:
    response = api.get("/doctor/status", headers={"X-Doctor-Id": ""})

    assert response.status_code == 401


def test_consultation_flow(api) -> None:
    started = api.post("/doctor/consultation/start")
    assert started.status_code == 200
    assert started.json()["token_number"] == 1

    called = api.post("/doctor/consultation/next", json={"expected_current_token": 1})
    assert called.status_code == 200
    assert called.json()["message"] == "Calling Token #2"

    missed = api.get("/doctor/consultation/missed")
    assert missed.json()["missed_tokens"] == [1]

    state = api.get("/doctor/consultation/state").json()
    assert state["current_token"] == 2
    assert state["calls_until_recall"] == 0

    recalled = api.post("/doctor/consultation/next").json()
    assert recalled["token_number"] == 1
    assert recalled["is_recall"] is True
    assert recalled["missed_tokens_count"] == 1


def test_stale_call_maps_to_conflict(api) -> None:
    api.post("/doctor/consultation/start")

    response = api.post("/doctor/consultation/next", json={"expected_current_token": 5})

    assert response.status_code == 409
    detail = response.json()["detail"]
    assert detail["success"] is False
    assert detail["code"] == "stale_precondition"


def test_retried_call_next_fails_without_advancing_twice(api) -> None:
    api.post("/doctor/consultation/start")

    first = api.post("/doctor/consultation/next", json={"expected_current_token": 1})
    retry = api.post("/doctor/consultation/next", json={"expected_current_token": 1})

    assert first.status_code == 200
    assert first.json()["token_number"] == 2
    assert retry.status_code == 409
    assert retry.json()["detail"]["code"] == "stale_precondition"

    state = api.get("/doctor/consultation/state").json()
    assert state["current_token"] == 2
    assert state["queue_position"] == 2
    assert state["missed_tokens"] == [1]


def test_starting_twice_is_a_conflict(api) -> None:
    api.post("/doctor/consultation/start")

    response = api.post("/doctor/consultation/start", json={})

    assert response.status_code == 409
    assert response.json()["detail"]["code"] == "invalid_transition"


def test_complete_and_next_until_day_complete(api) -> None:
    current = api.post("/doctor/consultation/start").json()
    for expected_next in (2, 3):
        body = api.post(
            "/doctor/consultation/complete-and-next",
            json={
                "appointment_id": current["appointment"]["appointment_id"],
                "doctor_notes": "Reviewed",
                "expected_current_token": current["token_number"],
            },
        ).json()
        assert body["completed"]["success"] is True
        assert body["day_complete"] is False
        assert body["next"]["token_number"] == expected_next
        current = body["next"]

    final = api.post(
        "/doctor/consultation/complete-and-next",
        json={"appointment_id": current["appointment"]["appointment_id"]},
    )
    assert final.status_code == 200
    assert final.json()["day_complete"] is True
    assert final.json()["next"] is None

    exhausted = api.post("/doctor/consultation/next")
    assert exhausted.status_code == 404
    assert exhausted.json()["detail"]["code"] == "no_more_appointments"


def test_no_show_route(api) -> None:
    started = api.post("/doctor/consultation/start").json()

    response = api.post(
        "/doctor/consultation/no-show",
        json={"appointment_id": started["appointment"]["appointment_id"]},
    )

    assert response.status_code == 200
    assert response.json()["token_number"] == 1
    assert response.json()["callback_id"]


def test_today_appointments_route(api) -> None:
    api.post("/doctor/consultation/start")

    body = api.get("/doctor/appointments/today").json()

    assert body["total_today"] == 3
    assert body["pending"] == 2
    assert body["current_token"] == 1
    assert body["active_appointment"]["token_number"] == 1


def test_status_routes(api) -> None:
    updated = api.put(
        "/doctor/status",
        json={"status": "on_break", "break_duration": 10, "break_reason": "Tea"},
    )
    assert updated.status_code == 200
    assert updated.json()["break_ends_at"] is not None

    current = api.get("/doctor/status").json()
    assert current["status"] == "on_break"
    assert current["is_available"] is False

    view = api.get("/doctor/status/break").json()
    assert view["on_break"] is True
    assert view["remaining_seconds"] == 600

    resume = api.post("/doctor/status/break/resume").json()
    assert resume["resumed"] is False

    blocked = api.post("/doctor/consultation/start")
    assert blocked.status_code == 409


def test_invalid_status_value_is_unprocessable(api) -> None:
    response = api.put("/doctor/status", json={"status": "asleep"})

    assert response.status_code == 422


def test_recall_settings_routes(api) -> None:
    session_id = api.seeded.session.session_id

    updated = api.put(
        "/doctor/session/recall-settings",
        json={"session_id": session_id, "recall_check_interval": 4},
    )
    assert updated.status_code == 200
    assert updated.json()["settings"] == {"recall_check_interval": 4, "recall_enabled": True}

    loaded = api.get("/doctor/session/recall-settings", params={"session_id": session_id})
    assert loaded.json()["settings"]["recall_check_interval"] == 4

    rejected = api.put(
        "/doctor/session/recall-settings",
        json={"session_id": session_id, "recall_check_interval": 30},
    )
    assert rejected.status_code == 400
    assert rejected.json()["detail"]["code"] == "validation_failed"

    missing = api.get("/doctor/session/recall-settings", params={"session_id": "SES-404"})
    assert missing.status_code == 404


def test_api_key_is_enforced_when_configured(api) -> None:
    app.dependency_overrides[get_settings] = lambda: Settings(api_key="secret")

    denied = api.get("/doctor/status")
    allowed = api.get("/doctor/status", headers={"X-API-Key": "secret"})

    assert denied.status_code == 401
    assert allowed.status_code == 200


def test_callbacks_route(api) -> None:
    started = api.post("/doctor/consultation/start").json()
    api.post(
        "/doctor/consultation/no-show",
        json={"appointment_id": started["appointment"]["appointment_id"], "reason": "Away"},
    )

    body = api.get("/doctor/appointments/callbacks").json()

    assert body["count"] == 1
    assert body["callbacks"][0]["missed_token_number"] == 1
    assert body["callbacks"][0]["callback_notes"] == "Away"

    closed = api.get("/doctor/appointments/callbacks", params={"status": "completed"}).json()
    assert closed["count"] == 0
