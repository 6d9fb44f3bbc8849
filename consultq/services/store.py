"""Storage interface used by the queue services.

Reads return detached copies. Writes go through :meth:`QueueStore.commit`,
which applies a whole :class:`Changeset` or nothing. Every record carries the
``version`` it was read at; the store rejects the changeset with
:class:`StalePrecondition` if any stored version moved in the meantime.
A record with ``version == 0`` is an insert.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, List, Optional, Protocol

from consultq.schemas.records import (
    AppointmentRecord,
    CallbackRecord,
    DoctorRecord,
    SessionRecord,
    TokenCallRecord,
)


@dataclass
class Changeset:
    doctors: List[DoctorRecord] = field(default_factory=list)
    sessions: List[SessionRecord] = field(default_factory=list)
    appointments: List[AppointmentRecord] = field(default_factory=list)
    token_calls: List[TokenCallRecord] = field(default_factory=list)
    callbacks: List[CallbackRecord] = field(default_factory=list)

    def add(self, record: Any) -> "Changeset":
        if isinstance(record, DoctorRecord):
            self.doctors.append(record)
        elif isinstance(record, SessionRecord):
            self.sessions.append(record)
        elif isinstance(record, AppointmentRecord):
            self.appointments.append(record)
        elif isinstance(record, TokenCallRecord):
            self.token_calls.append(record)
        elif isinstance(record, CallbackRecord):
            self.callbacks.append(record)
        else:
            raise TypeError(f"Unsupported record type: {type(record).__name__}")
        return self

    def to_payload(self) -> Dict[str, List[Dict[str, Any]]]:
        return {
            "doctors": [r.model_dump(mode="json") for r in self.doctors],
            "sessions": [r.model_dump(mode="json") for r in self.sessions],
            "appointments": [r.model_dump(mode="json") for r in self.appointments],
            "token_calls": [r.model_dump(mode="json") for r in self.token_calls],
            "callbacks": [r.model_dump(mode="json") for r in self.callbacks],
        }


class QueueStore(Protocol):
    async def get_doctor(self, doctor_id: str) -> Optional[DoctorRecord]: ...

    async def get_session(self, session_id: str) -> Optional[SessionRecord]: ...

    async def list_sessions(self, doctor_id: str) -> List[SessionRecord]: ...

    async def get_appointment(self, appointment_id: str) -> Optional[AppointmentRecord]: ...

    async def list_appointments(
        self, doctor_id: str, day: date, session_id: Optional[str] = None
    ) -> List[AppointmentRecord]: ...

    async def list_token_calls(self, session_id: str, day: date) -> List[TokenCallRecord]: ...

    async def list_callbacks(self, doctor_id: str) -> List[CallbackRecord]: ...

    async def commit(self, changes: Changeset) -> None: ...
