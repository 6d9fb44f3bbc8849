import asyncio

import pytest

from consultq.config import get_settings
from consultq.services.calendar import day_name, system_clock
from consultq.services.exceptions import StalePrecondition
from consultq.services.mock_store import DEMO_DOCTOR_ID, build_mock_store, get_mock_store
from consultq.services.store import Changeset


def test_commit_applies_everything_or_nothing(store, seed_queue) -> None:
    seeded = seed_queue(2)
    first, second = seeded.appointments
    stale_session = seeded.session.model_copy(update={"version": 0, "current_token": 9})

    changes = Changeset()
    changes.add(first.model_copy(update={"status": "in-progress"}))
    changes.add(stale_session)

    with pytest.raises(StalePrecondition):
        asyncio.run(store.commit(changes))

    assert store.appointments.get(first.appointment_id).status == "confirmed"
    assert store.sessions.get(seeded.session.session_id).current_token == 0

    asyncio.run(store.commit(Changeset().add(second.model_copy(update={"status": "cancelled"}))))
    stored = store.appointments.get(second.appointment_id)
    assert stored.status == "cancelled"
    assert stored.version == second.version + 1


def test_reads_are_detached_copies(store, seed_queue) -> None:
    seeded = seed_queue(1)

    copy = store.sessions.get(seeded.session.session_id)
    copy.current_token = 42

    assert store.sessions.get(seeded.session.session_id).current_token == 0


def test_booking_assigns_sequential_tokens_and_estimates(store, seed_queue) -> None:
    seeded = seed_queue(3)

    assert [item.token_number for item in seeded.appointments] == [1, 2, 3]
    assert [item.estimated_time for item in seeded.appointments] == ["09:00", "09:15", "09:30"]


def test_changeset_rejects_unknown_records() -> None:
    with pytest.raises(TypeError):
        Changeset().add({"appointment_id": "APT-1"})


def test_demo_seed_books_todays_session() -> None:
    clock = system_clock(get_settings().timezone)
    store = build_mock_store(seed=True, clock=clock)
    today = clock().date()

    sessions = store.sessions.for_doctor(DEMO_DOCTOR_ID)
    todays = [item for item in sessions if item.day_of_week == day_name(today)]

    assert len(sessions) == 7
    assert len(todays) == 1
    assert len(store.appointments.for_day(DEMO_DOCTOR_ID, today)) == 8


def test_shared_store_is_reused_until_reset() -> None:
    assert get_mock_store() is get_mock_store()
