import asyncio
import os
import sys
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from consultq.schemas.records import DoctorRecord, SessionRecord
from consultq.services.calendar import day_name
from consultq.services.locks import DoctorLockRegistry
from consultq.services.mock_store import build_mock_store, reset_mock_store

# A Monday morning.
FIXED_NOW = datetime(2026, 10, 19, 9, 0, tzinfo=timezone.utc)
DOCTOR_ID = "DOC-TEST1"
HOSPITAL_ID = "HSP-TEST1"
SESSION_ID = "SES-TEST1"


class FakeClock:
    """Clock that only moves when a test tells it to."""

    def __init__(self, now: datetime = FIXED_NOW) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, minutes: int) -> None:
        self.now += timedelta(minutes=minutes)


class MockLatencyClient:
    """Client stub that records simulate_latency calls."""

    def __init__(self) -> None:
        self.use_mock_data = True
        self.latency_calls = 0

    async def simulate_latency(self) -> None:
        self.latency_calls += 1
        await asyncio.sleep(0)


@pytest.fixture(autouse=True)
def _reset_store() -> None:
    reset_mock_store()
    yield
    reset_mock_store()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store():
    return build_mock_store()


@pytest.fixture
def locks() -> DoctorLockRegistry:
    return DoctorLockRegistry()


@pytest.fixture
def client() -> MockLatencyClient:
    return MockLatencyClient()


@pytest.fixture
def seed_queue(store, clock):
    """Create one doctor with today's session and ``tokens`` confirmed bookings."""

    def _seed(
        tokens: int = 6,
        *,
        doctor_status: str = "online",
        recall_check_interval: int = 3,
        recall_enabled: bool = True,
    ) -> SimpleNamespace:
        today = clock().date()
        doctor = store.doctors.add(
            DoctorRecord(
                doctor_id=DOCTOR_ID,
                name="Dr. Test",
                status=doctor_status,
                is_available=doctor_status == "online",
            )
        )
        session = store.sessions.add(
            SessionRecord(
                session_id=SESSION_ID,
                doctor_id=DOCTOR_ID,
                hospital_id=HOSPITAL_ID,
                day_of_week=day_name(today),
                start_time="09:00",
                end_time="13:00",
                recall_check_interval=recall_check_interval,
                recall_enabled=recall_enabled,
            )
        )
        appointments = [
            store.appointments.book(session, today, patient_name=f"Patient {number}")
            for number in range(1, tokens + 1)
        ]
        return SimpleNamespace(
            doctor=doctor,
            session=session,
            appointments=appointments,
            by_token={item.token_number: item for item in appointments},
        )

    return _seed
