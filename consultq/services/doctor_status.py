"""Doctor availability.

Any status may follow any other. The status only gates the queue: calling
patients needs ``online`` or ``consulting``, and ``consulting`` needs a
session under way. Changing status never touches the session cursor, so a
doctor coming back from a break resumes at the same token.

Timed breaks are recorded, not enforced. Callers poll :meth:`break_status`
or call :meth:`resume_if_break_expired` to bring the doctor back online.
"""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Any, Dict, Optional, get_args

from consultq.schemas.records import BreakType, DoctorRecord, DoctorStatus
from consultq.schemas.session import SessionSummary
from consultq.schemas.status import (
    BreakStatusResponse,
    DoctorStatusResponse,
    ResumeFromBreakResponse,
    SetStatusResponse,
)
from consultq.services.base import QueueServiceBase
from consultq.services.exceptions import InvalidTransition, ValidationFailed
from consultq.services.store import Changeset

logger = logging.getLogger(__name__)

_CLEARED_BREAK: Dict[str, Any] = {
    "break_type": None,
    "break_duration_minutes": None,
    "break_reason": None,
    "break_started_at": None,
    "break_ends_at": None,
}


class DoctorStatusService(QueueServiceBase):
    async def get_status(self, doctor_id: str) -> DoctorStatusResponse:
        doctor = await self._require_doctor(doctor_id)
        session = await self._find_today_session(doctor_id)
        return DoctorStatusResponse(
            doctor_id=doctor.doctor_id,
            status=doctor.status,
            is_available=doctor.is_available,
            break_type=doctor.break_type,
            break_reason=doctor.break_reason,
            break_started_at=doctor.break_started_at,
            break_ends_at=doctor.break_ends_at,
            current_session=SessionSummary.from_record(session) if session else None,
        )

    async def set_status(
        self,
        doctor_id: str,
        status: DoctorStatus,
        *,
        break_type: Optional[BreakType] = None,
        break_duration: Optional[int] = None,
        break_reason: Optional[str] = None,
    ) -> SetStatusResponse:
        if status not in get_args(DoctorStatus):
            raise ValidationFailed(f"Invalid status '{status}'")
        if break_duration is not None and break_duration <= 0:
            raise ValidationFailed("Break duration must be a positive number of minutes")
        if break_type == "timed" and break_duration is None:
            raise ValidationFailed("A timed break needs a duration")

        async with self._locks.lock_for(doctor_id):
            doctor = await self._require_doctor(doctor_id)
            if status == "consulting":
                session = await self._find_today_session(doctor_id)
                if session is None or not session.in_progress:
                    raise InvalidTransition("Start the session before switching to consulting")

            update: Dict[str, Any] = {"status": status, "is_available": status == "online"}
            if status == "on_break":
                now = self._clock()
                timed = break_duration is not None
                update.update(
                    break_type="timed" if timed else "indefinite",
                    break_duration_minutes=break_duration,
                    break_reason=break_reason,
                    break_started_at=now,
                    break_ends_at=now + timedelta(minutes=break_duration) if timed else None,
                )
            else:
                update.update(_CLEARED_BREAK)
            updated = doctor.model_copy(update=update)
            await self._commit(Changeset().add(updated))

        logger.info("Doctor %s status %s -> %s", doctor_id, doctor.status, status)
        return SetStatusResponse(
            message="Status updated successfully",
            status=updated.status,
            break_ends_at=updated.break_ends_at,
        )

    async def break_status(self, doctor_id: str) -> BreakStatusResponse:
        doctor = await self._require_doctor(doctor_id)
        return self._break_view(doctor)

    async def resume_if_break_expired(self, doctor_id: str) -> ResumeFromBreakResponse:
        async with self._locks.lock_for(doctor_id):
            doctor = await self._require_doctor(doctor_id)
            if not self._break_view(doctor).expired:
                return ResumeFromBreakResponse(resumed=False, status=doctor.status)
            updated = doctor.model_copy(
                update={"status": "online", "is_available": True, **_CLEARED_BREAK}
            )
            await self._commit(Changeset().add(updated))

        logger.info("Doctor %s break ended; back online", doctor_id)
        return ResumeFromBreakResponse(resumed=True, status=updated.status)

    def _break_view(self, doctor: DoctorRecord) -> BreakStatusResponse:
        if doctor.status != "on_break":
            return BreakStatusResponse(doctor_id=doctor.doctor_id, on_break=False)
        remaining = None
        expired = False
        if doctor.break_ends_at is not None:
            left = (doctor.break_ends_at - self._clock()).total_seconds()
            remaining = max(int(left), 0)
            expired = left <= 0
        return BreakStatusResponse(
            doctor_id=doctor.doctor_id,
            on_break=True,
            break_type=doctor.break_type,
            break_reason=doctor.break_reason,
            break_started_at=doctor.break_started_at,
            break_ends_at=doctor.break_ends_at,
            remaining_seconds=remaining,
            expired=expired,
        )
