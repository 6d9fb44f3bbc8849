"""Records backend reached over HTTP.

The backend owns the durable tables. Reads are plain GETs; every write is a
single ``POST /commit`` carrying the whole changeset, which the backend
applies in one transaction. It answers ``409`` or ``412`` when a record's
version no longer matches.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Any, Dict, List, Optional, Type, TypeVar

from pydantic import BaseModel

from consultq.clients.store_service import VERSION_CONFLICT_STATUSES, StoreServiceClient
from consultq.schemas.records import (
    AppointmentRecord,
    CallbackRecord,
    DoctorRecord,
    SessionRecord,
    TokenCallRecord,
)
from consultq.services.exceptions import DownstreamServiceError, StalePrecondition
from consultq.services.store import Changeset

logger = logging.getLogger(__name__)

RecordT = TypeVar("RecordT", bound=BaseModel)


class RemoteQueueStore:
    def __init__(self, client: StoreServiceClient) -> None:
        self._client = client

    async def _get_one(self, path: str, model: Type[RecordT]) -> Optional[RecordT]:
        try:
            data = await self._client.get(path)
        except DownstreamServiceError as exc:
            if exc.status_code == 404:
                return None
            raise
        return model.model_validate(data)

    async def _get_many(
        self, path: str, model: Type[RecordT], params: Dict[str, Any]
    ) -> List[RecordT]:
        data = await self._client.get(path, params=params)
        return [model.model_validate(item) for item in data.get("items", [])]

    async def get_doctor(self, doctor_id: str) -> Optional[DoctorRecord]:
        return await self._get_one(f"/doctors/{doctor_id}", DoctorRecord)

    async def get_session(self, session_id: str) -> Optional[SessionRecord]:
        return await self._get_one(f"/sessions/{session_id}", SessionRecord)

    async def list_sessions(self, doctor_id: str) -> List[SessionRecord]:
        return await self._get_many("/sessions", SessionRecord, {"doctor_id": doctor_id})

    async def get_appointment(self, appointment_id: str) -> Optional[AppointmentRecord]:
        return await self._get_one(f"/appointments/{appointment_id}", AppointmentRecord)

    async def list_appointments(
        self, doctor_id: str, day: date, session_id: Optional[str] = None
    ) -> List[AppointmentRecord]:
        params: Dict[str, Any] = {"doctor_id": doctor_id, "date": day.isoformat()}
        if session_id:
            params["session_id"] = session_id
        items = await self._get_many("/appointments", AppointmentRecord, params)
        return sorted(items, key=lambda item: item.token_number)

    async def list_token_calls(self, session_id: str, day: date) -> List[TokenCallRecord]:
        return await self._get_many(
            "/token-calls",
            TokenCallRecord,
            {"session_id": session_id, "date": day.isoformat()},
        )

    async def list_callbacks(self, doctor_id: str) -> List[CallbackRecord]:
        return await self._get_many("/callbacks", CallbackRecord, {"doctor_id": doctor_id})

    async def commit(self, changes: Changeset) -> None:
        try:
            await self._client.post("/commit", changes.to_payload())
        except DownstreamServiceError as exc:
            if exc.status_code in VERSION_CONFLICT_STATUSES:
                logger.info("Records service rejected a stale changeset (%s)", exc.status_code)
                raise StalePrecondition(
                    "Queue state changed concurrently; refresh and try again", cause=exc
                ) from exc
            raise
