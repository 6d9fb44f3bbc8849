from __future__ import annotations

import logging
from datetime import date
from typing import List, Optional

from consultq.clients.store_service import StoreServiceClient
from consultq.config import get_settings
from consultq.schemas.records import DoctorRecord, SessionRecord
from consultq.services.calendar import Clock, day_name, system_clock
from consultq.services.exceptions import DoctorNotFound, SessionNotFound
from consultq.services.locks import DoctorLockRegistry
from consultq.services.mock_store import get_mock_store
from consultq.services.remote_store import RemoteQueueStore
from consultq.services.store import Changeset, QueueStore

logger = logging.getLogger(__name__)


def resolve_store(client: StoreServiceClient) -> QueueStore:
    if client.use_mock_data:
        return get_mock_store()
    return RemoteQueueStore(client)


class QueueServiceBase:
    """Wiring and lookups shared by the queue and doctor-status services."""

    def __init__(
        self,
        client: StoreServiceClient,
        *,
        store: QueueStore | None = None,
        locks: DoctorLockRegistry | None = None,
        clock: Clock | None = None,
    ) -> None:
        self._client = client
        self._store = store if store is not None else resolve_store(client)
        self._locks = locks if locks is not None else DoctorLockRegistry()
        self._clock = clock or system_clock(get_settings().timezone)

    def _today(self) -> date:
        return self._clock().date()

    async def _commit(self, changes: Changeset) -> None:
        if self._client.use_mock_data:
            await self._client.simulate_latency()
        await self._store.commit(changes)

    async def _require_doctor(self, doctor_id: str) -> DoctorRecord:
        doctor = await self._store.get_doctor(doctor_id)
        if doctor is None:
            raise DoctorNotFound(f"Doctor '{doctor_id}' not found")
        return doctor

    async def _today_sessions(self, doctor_id: str) -> List[SessionRecord]:
        weekday = day_name(self._today())
        sessions = await self._store.list_sessions(doctor_id)
        return [
            session
            for session in sessions
            if session.is_active
            and session.day_of_week == weekday
            and session.approval_status == "approved"
        ]

    async def _find_today_session(
        self, doctor_id: str, session_id: Optional[str] = None
    ) -> Optional[SessionRecord]:
        sessions = await self._today_sessions(doctor_id)
        if session_id is not None:
            return next((s for s in sessions if s.session_id == session_id), None)
        # A session already under way wins over the first one on the timetable.
        running = next((s for s in sessions if s.in_progress), None)
        if running is not None:
            return running
        return sessions[0] if sessions else None

    async def _require_today_session(
        self, doctor_id: str, session_id: Optional[str] = None
    ) -> SessionRecord:
        session = await self._find_today_session(doctor_id, session_id)
        if session is None:
            if session_id is not None:
                raise SessionNotFound(f"Session '{session_id}' is not active for today")
            raise SessionNotFound("No active session for today")
        return session
