import asyncio
import json
from datetime import date

import httpx
import pytest

from consultq.clients.store_service import StoreServiceClient
from consultq.services import QueueService
from consultq.services.calendar import day_name
from consultq.services.exceptions import DownstreamServiceError, StalePrecondition
from consultq.services.remote_store import RemoteQueueStore
from consultq.services.store import Changeset

BASE_URL = "http://records.test"


def _client(handler) -> StoreServiceClient:
    return StoreServiceClient(BASE_URL, use_mock_data=False, transport=httpx.MockTransport(handler))


def _doctor(status: str = "online") -> dict:
    return {"doctor_id": "DOC-1", "name": "Dr. Remote", "status": status, "version": 4}


def _session(day: str) -> dict:
    return {
        "session_id": "SES-1",
        "doctor_id": "DOC-1",
        "hospital_id": "HSP-1",
        "day_of_week": day,
        "start_time": "09:00",
        "end_time": "12:00",
        "recall_check_interval": 3,
        "version": 7,
    }


def _appointment(token: int, day: str) -> dict:
    return {
        "appointment_id": f"APT-{token}",
        "doctor_id": "DOC-1",
        "hospital_id": "HSP-1",
        "session_id": "SES-1",
        "appointment_date": day,
        "token_number": token,
        "status": "confirmed",
        "version": 1,
    }


def test_missing_record_reads_as_none() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/doctors/DOC-404"
        return httpx.Response(404, json={"detail": "not found"})

    store = RemoteQueueStore(_client(handler))

    assert asyncio.run(store.get_doctor("DOC-404")) is None


def test_list_appointments_sends_filters_and_sorts() -> None:
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen.update(request.url.params)
        items = [_appointment(3, "2026-10-19"), _appointment(1, "2026-10-19")]
        return httpx.Response(200, json={"items": items})

    store = RemoteQueueStore(_client(handler))
    items = asyncio.run(store.list_appointments("DOC-1", date(2026, 10, 19), "SES-1"))

    assert [item.token_number for item in items] == [1, 3]
    assert seen == {"doctor_id": "DOC-1", "date": "2026-10-19", "session_id": "SES-1"}


@pytest.mark.parametrize("status_code", [409, 412])
def test_commit_conflict_is_stale_precondition(status_code: int) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status_code, json={"detail": "version mismatch"})

    store = RemoteQueueStore(_client(handler))

    with pytest.raises(StalePrecondition):
        asyncio.run(store.commit(Changeset()))


def test_backend_failure_is_downstream_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, json={"detail": "boom"})

    store = RemoteQueueStore(_client(handler))

    with pytest.raises(DownstreamServiceError) as excinfo:
        asyncio.run(store.list_sessions("DOC-1"))
    assert excinfo.value.status_code == 500


def test_start_session_sends_one_versioned_changeset(clock) -> None:
    today = clock().date()
    commits = []

    def handler(request: httpx.Request) -> httpx.Response:
        path = request.url.path
        if request.method == "POST" and path == "/commit":
            commits.append(json.loads(request.content))
            return httpx.Response(200, json={"ok": True})
        if path == "/doctors/DOC-1":
            return httpx.Response(200, json=_doctor())
        if path == "/sessions":
            return httpx.Response(200, json={"items": [_session(day_name(today))]})
        if path == "/appointments":
            items = [_appointment(token, today.isoformat()) for token in (1, 2)]
            return httpx.Response(200, json={"items": items})
        if path == "/token-calls":
            return httpx.Response(200, json={"items": []})
        return httpx.Response(404)

    service = QueueService(_client(handler), clock=clock)
    response = asyncio.run(service.start_session("DOC-1"))

    assert response.token_number == 1
    assert len(commits) == 1
    payload = commits[0]
    assert payload["sessions"][0]["current_token"] == 1
    assert payload["sessions"][0]["version"] == 7
    assert payload["doctors"][0]["status"] == "consulting"
    assert payload["doctors"][0]["version"] == 4
    assert payload["appointments"][0]["status"] == "in-progress"
    assert payload["token_calls"][0]["version"] == 0
    assert payload["token_calls"][0]["token_number"] == 1


def test_list_callbacks_reads_items_for_doctor() -> None:
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen.update(request.url.params)
        item = {
            "callback_id": "CBK-1",
            "appointment_id": "APT-2",
            "doctor_id": "DOC-1",
            "hospital_id": "HSP-1",
            "missed_date": "2026-10-19",
            "missed_token_number": 2,
            "version": 1,
        }
        return httpx.Response(200, json={"items": [item]})

    store = RemoteQueueStore(_client(handler))
    items = asyncio.run(store.list_callbacks("DOC-1"))

    assert seen == {"path": "/callbacks", "doctor_id": "DOC-1"}
    assert len(items) == 1
    assert items[0].missed_token_number == 2
    assert items[0].callback_status == "pending"


def test_client_sends_bearer_token_and_reads_empty_commit_reply() -> None:
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["auth"] = request.headers.get("Authorization")
        seen["body"] = json.loads(request.content)
        return httpx.Response(204)

    client = StoreServiceClient(
        BASE_URL, use_mock_data=False, token="s3cret", transport=httpx.MockTransport(handler)
    )

    assert asyncio.run(client.post("/commit", {"sessions": []})) == {}
    assert seen == {"auth": "Bearer s3cret", "body": {"sessions": []}}


def test_mock_mode_client_never_connects() -> None:
    client = StoreServiceClient(BASE_URL, use_mock_data=True)

    with pytest.raises(RuntimeError):
        asyncio.run(client.get("/doctors/DOC-1"))
    assert StoreServiceClient(None, use_mock_data=False).use_mock_data is True
