from __future__ import annotations

import itertools
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Dict, Generic, List, Optional, TypeVar

from pydantic import BaseModel

from consultq.config import get_settings
from consultq.schemas.records import (
    AppointmentRecord,
    CallbackRecord,
    DoctorRecord,
    SessionRecord,
    TokenCallRecord,
)
from consultq.services.calendar import DAY_NAMES, Clock, system_clock
from consultq.services.exceptions import StalePrecondition
from consultq.services.store import Changeset

RecordT = TypeVar("RecordT", bound=BaseModel)


class _BaseRepository(Generic[RecordT]):
    def __init__(self, prefix: str, key: str) -> None:
        self._prefix = prefix
        self._key = key
        self._counter = itertools.count(1)
        self._records: Dict[str, RecordT] = {}

    def _next_id(self) -> str:
        return f"{self._prefix}-{next(self._counter):05d}"

    def _id_of(self, record: RecordT) -> str:
        return getattr(record, self._key)

    def add(self, record: RecordT) -> RecordT:
        """Store ``record`` as-is, bypassing version checks. Used for seeding."""

        stored = record.model_copy(update={"version": max(record.version, 1)})
        self._records[self._id_of(stored)] = stored
        return stored.model_copy()

    def get(self, record_id: str) -> Optional[RecordT]:
        record = self._records.get(record_id)
        return record.model_copy() if record is not None else None

    def values(self) -> List[RecordT]:
        return [record.model_copy() for record in self._records.values()]

    def check(self, record: RecordT) -> None:
        record_id = self._id_of(record)
        stored = self._records.get(record_id)
        if stored is None:
            if record.version != 0:
                raise StalePrecondition(f"{self._prefix} {record_id} no longer exists")
            return
        if record.version != stored.version:
            raise StalePrecondition(
                f"{self._prefix} {record_id} changed concurrently "
                f"(expected version {record.version}, found {stored.version})"
            )

    def apply(self, record: RecordT) -> None:
        self._records[self._id_of(record)] = record.model_copy(
            update={"version": record.version + 1}
        )


class DoctorRepository(_BaseRepository[DoctorRecord]):
    def __init__(self) -> None:
        super().__init__("DOC", "doctor_id")


class SessionRepository(_BaseRepository[SessionRecord]):
    def __init__(self) -> None:
        super().__init__("SES", "session_id")

    def for_doctor(self, doctor_id: str) -> List[SessionRecord]:
        items = [item for item in self._records.values() if item.doctor_id == doctor_id]
        items.sort(key=lambda item: (item.start_time, item.session_id))
        return [item.model_copy() for item in items]


class AppointmentRepository(_BaseRepository[AppointmentRecord]):
    def __init__(self) -> None:
        super().__init__("APT", "appointment_id")

    def for_day(
        self, doctor_id: str, day: date, session_id: Optional[str] = None
    ) -> List[AppointmentRecord]:
        items = [
            item
            for item in self._records.values()
            if item.doctor_id == doctor_id
            and item.appointment_date == day
            and (session_id is None or item.session_id == session_id)
        ]
        items.sort(key=lambda item: (item.token_number, item.session_id))
        return [item.model_copy() for item in items]

    def book(
        self,
        session: SessionRecord,
        day: date,
        *,
        patient_name: str,
        status: str = "confirmed",
        token_number: Optional[int] = None,
    ) -> AppointmentRecord:
        """Create an appointment with the next free token. Seeding helper."""

        if token_number is None:
            taken = [
                item.token_number
                for item in self._records.values()
                if item.session_id == session.session_id and item.appointment_date == day
            ]
            token_number = max(taken, default=0) + 1
        start = datetime.strptime(session.start_time, "%H:%M")
        eta = start + timedelta(minutes=(token_number - 1) * session.avg_minutes_per_patient)
        record = AppointmentRecord(
            appointment_id=self._next_id(),
            doctor_id=session.doctor_id,
            hospital_id=session.hospital_id,
            session_id=session.session_id,
            appointment_date=day,
            token_number=token_number,
            status=status,
            estimated_time=eta.strftime("%H:%M"),
            patient_name=patient_name,
        )
        return self.add(record)


class TokenCallRepository(_BaseRepository[TokenCallRecord]):
    def __init__(self) -> None:
        super().__init__("CALL", "call_id")

    def for_session(self, session_id: str, day: date) -> List[TokenCallRecord]:
        items = [
            item
            for item in self._records.values()
            if item.session_id == session_id and item.appointment_date == day
        ]
        items.sort(key=lambda item: item.called_at)
        return [item.model_copy() for item in items]


class CallbackRepository(_BaseRepository[CallbackRecord]):
    def __init__(self) -> None:
        super().__init__("CBK", "callback_id")

    def for_doctor(self, doctor_id: str) -> List[CallbackRecord]:
        return [item.model_copy() for item in self._records.values() if item.doctor_id == doctor_id]


@dataclass
class MockDataStore:
    doctors: DoctorRepository
    sessions: SessionRepository
    appointments: AppointmentRepository
    token_calls: TokenCallRepository
    callbacks: CallbackRepository

    async def get_doctor(self, doctor_id: str) -> Optional[DoctorRecord]:
        return self.doctors.get(doctor_id)

    async def get_session(self, session_id: str) -> Optional[SessionRecord]:
        return self.sessions.get(session_id)

    async def list_sessions(self, doctor_id: str) -> List[SessionRecord]:
        return self.sessions.for_doctor(doctor_id)

    async def get_appointment(self, appointment_id: str) -> Optional[AppointmentRecord]:
        return self.appointments.get(appointment_id)

    async def list_appointments(
        self, doctor_id: str, day: date, session_id: Optional[str] = None
    ) -> List[AppointmentRecord]:
        return self.appointments.for_day(doctor_id, day, session_id)

    async def list_token_calls(self, session_id: str, day: date) -> List[TokenCallRecord]:
        return self.token_calls.for_session(session_id, day)

    async def list_callbacks(self, doctor_id: str) -> List[CallbackRecord]:
        return self.callbacks.for_doctor(doctor_id)

    async def commit(self, changes: Changeset) -> None:
        # Check everything before touching anything; there is no await in
        # between, so no other task can observe a half-applied changeset.
        batches = [
            (self.doctors, changes.doctors),
            (self.sessions, changes.sessions),
            (self.appointments, changes.appointments),
            (self.token_calls, changes.token_calls),
            (self.callbacks, changes.callbacks),
        ]
        for repository, records in batches:
            for record in records:
                repository.check(record)
        for repository, records in batches:
            for record in records:
                repository.apply(record)


DEMO_DOCTOR_ID = "DOC-00001"
DEMO_HOSPITAL_ID = "HSP-00001"
_DEMO_PATIENTS = [
    "Aarav Sharma",
    "Priya Menon",
    "Rahul Verma",
    "Sneha Iyer",
    "Vikram Rao",
    "Ananya Das",
    "Karthik Reddy",
    "Meera Pillai",
]


def _seed_demo_data(store: MockDataStore, clock: Clock) -> None:
    settings = get_settings()
    today = clock().date()
    store.doctors.add(
        DoctorRecord(
            doctor_id=DEMO_DOCTOR_ID,
            name="Dr. Nisha Kapoor",
            status="online",
            is_available=True,
        )
    )
    # One morning slot for every weekday so the demo queue exists whatever
    # day the service starts on.
    for index, day in enumerate(DAY_NAMES, start=1):
        session = store.sessions.add(
            SessionRecord(
                session_id=f"SES-{index:05d}",
                doctor_id=DEMO_DOCTOR_ID,
                hospital_id=DEMO_HOSPITAL_ID,
                day_of_week=day,
                start_time="09:00",
                end_time="13:00",
                max_tokens=30,
                avg_minutes_per_patient=15,
                recall_check_interval=settings.default_recall_interval,
            )
        )
        if day != DAY_NAMES[today.weekday()]:
            continue
        for name in _DEMO_PATIENTS:
            store.appointments.book(session, today, patient_name=name)


def build_mock_store(*, seed: bool = False, clock: Clock | None = None) -> MockDataStore:
    store = MockDataStore(
        doctors=DoctorRepository(),
        sessions=SessionRepository(),
        appointments=AppointmentRepository(),
        token_calls=TokenCallRepository(),
        callbacks=CallbackRepository(),
    )
    if seed:
        _seed_demo_data(store, clock or system_clock(get_settings().timezone))
    return store


_mock_store: Optional[MockDataStore] = None


def get_mock_store() -> MockDataStore:
    global _mock_store
    if _mock_store is None:
        _mock_store = build_mock_store(seed=get_settings().seed_demo_data)
    return _mock_store


def reset_mock_store() -> None:
    global _mock_store
    _mock_store = None
