from __future__ import annotations

import logging
import uuid
from typing import Any, Dict, List, Optional

from consultq.config import get_settings
from consultq.schemas.consultation import (
    AppointmentView,
    CallbacksResponse,
    CallbackView,
    CallNextResponse,
    CompleteConsultationResponse,
    MissedTokensResponse,
    NoShowResponse,
    QueueStateResponse,
    TodayAppointmentsResponse,
)
from consultq.schemas.records import (
    ADVANCING_STATUSES,
    AppointmentRecord,
    CallbackRecord,
    DoctorRecord,
    SessionRecord,
    TokenCallRecord,
)
from consultq.schemas.session import RecallSettings, RecallSettingsResponse
from consultq.services import recall
from consultq.services.base import QueueServiceBase
from consultq.services.exceptions import (
    AppointmentNotFound,
    InvalidTransition,
    NoAppointmentsToday,
    SessionNotFound,
    StalePrecondition,
    ValidationFailed,
)
from consultq.services.store import Changeset

logger = logging.getLogger(__name__)

DEFAULT_NO_SHOW_REASON = "Patient did not show up for consultation"
_RESOLVABLE_STATUSES = ("confirmed", "in-progress")


def _new_id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:12]}"


class QueueService(QueueServiceBase):
    """Single authority over which token a doctor is serving and which comes next.

    Every mutating operation holds the doctor's in-process lock for its whole
    read-decide-write cycle and commits one versioned changeset, so it either
    lands completely or fails without writing anything.
    """

    async def start_session(
        self,
        doctor_id: str,
        *,
        session_id: Optional[str] = None,
        called_by: Optional[str] = None,
    ) -> CallNextResponse:
        async with self._locks.lock_for(doctor_id):
            doctor = await self._require_doctor(doctor_id)
            self._ensure_can_advance(doctor)
            sessions = await self._today_sessions(doctor_id)
            running = next((s for s in sessions if s.in_progress), None)
            if running is not None:
                raise InvalidTransition(
                    f"Session {running.session_id} is already in progress "
                    f"at token #{running.current_token}"
                )
            session = await self._require_today_session(doctor_id, session_id)
            appointments = await self._store.list_appointments(
                doctor_id, self._today(), session.session_id
            )
            if not recall.confirmed_tokens(appointments):
                raise NoAppointmentsToday("No confirmed appointments for today")
            logger.info("Starting session %s for doctor %s", session.session_id, doctor_id)
            return await self._advance(doctor, session, appointments, called_by=called_by)

    async def call_next(
        self,
        doctor_id: str,
        *,
        expected_current_token: Optional[int] = None,
        session_id: Optional[str] = None,
        called_by: Optional[str] = None,
    ) -> CallNextResponse:
        async with self._locks.lock_for(doctor_id):
            doctor = await self._require_doctor(doctor_id)
            self._ensure_can_advance(doctor)
            session = await self._require_today_session(doctor_id, session_id)
            self._check_expected(session, expected_current_token)
            appointments = await self._store.list_appointments(
                doctor_id, self._today(), session.session_id
            )
            return await self._advance(doctor, session, appointments, called_by=called_by)

    async def complete_current(
        self,
        doctor_id: str,
        appointment_id: str,
        *,
        diagnosis: Optional[str] = None,
        doctor_notes: Optional[str] = None,
        prescription: Optional[str] = None,
        expected_current_token: Optional[int] = None,
    ) -> CompleteConsultationResponse:
        async with self._locks.lock_for(doctor_id):
            appointment = await self._require_appointment(doctor_id, appointment_id)
            session = await self._require_session(doctor_id, appointment.session_id)
            self._check_expected(session, expected_current_token)
            self._ensure_resolvable(appointment)
            if appointment.token_number != session.current_token:
                raise InvalidTransition(
                    f"Token #{appointment.token_number} is not the current token "
                    f"(#{session.current_token})"
                )

            now = self._clock()
            changes = Changeset()
            changes.add(
                appointment.model_copy(
                    update={
                        "status": "completed",
                        "diagnosis": diagnosis,
                        "doctor_notes": doctor_notes,
                        "prescription": prescription,
                        "consultation_ended_at": now,
                        "attended_after_recall": appointment.is_recalled,
                    }
                )
            )
            # Re-saving the session bumps its version, so a concurrent call
            # that moved the cursor makes this commit fail instead.
            changes.add(session)
            call = await self._latest_call(session, appointment)
            if call is not None:
                changes.add(call.model_copy(update={"patient_attended": True, "attended_at": now}))
            await self._commit(changes)

        logger.info(
            "Doctor %s completed token #%s (%s)",
            doctor_id,
            appointment.token_number,
            appointment.appointment_id,
        )
        return CompleteConsultationResponse(
            message="Consultation completed successfully",
            appointment_id=appointment.appointment_id,
            token_number=appointment.token_number,
        )

    async def mark_no_show(
        self,
        doctor_id: str,
        appointment_id: str,
        *,
        reason: Optional[str] = None,
        expected_current_token: Optional[int] = None,
    ) -> NoShowResponse:
        async with self._locks.lock_for(doctor_id):
            appointment = await self._require_appointment(doctor_id, appointment_id)
            session = await self._require_session(doctor_id, appointment.session_id)
            self._check_expected(session, expected_current_token)
            self._ensure_resolvable(appointment)
            is_current = appointment.token_number == session.current_token
            already_passed = (
                appointment.status == "confirmed"
                and appointment.token_number <= session.queue_position
            )
            if not (is_current or already_passed):
                raise InvalidTransition(
                    f"Token #{appointment.token_number} has not been called yet"
                )

            now = self._clock()
            reason = reason or DEFAULT_NO_SHOW_REASON
            callback = CallbackRecord(
                callback_id=_new_id("CBK"),
                appointment_id=appointment.appointment_id,
                doctor_id=appointment.doctor_id,
                hospital_id=appointment.hospital_id,
                missed_date=appointment.appointment_date,
                missed_token_number=appointment.token_number,
                callback_notes=reason,
                created_at=now,
            )
            changes = Changeset()
            changes.add(
                appointment.model_copy(update={"status": "no-show", "no_show_reason": reason})
            )
            changes.add(session)
            changes.add(callback)
            call = await self._latest_call(session, appointment)
            if call is not None:
                changes.add(
                    call.model_copy(update={"patient_attended": False, "skipped_reason": reason})
                )
            await self._commit(changes)

        logger.info(
            "Doctor %s marked token #%s as no-show (%s)",
            doctor_id,
            appointment.token_number,
            appointment.appointment_id,
        )
        return NoShowResponse(
            message="Marked as no-show",
            appointment_id=appointment.appointment_id,
            token_number=appointment.token_number,
            callback_id=callback.callback_id,
        )

    async def callbacks(
        self, doctor_id: str, *, status: Optional[str] = "pending"
    ) -> CallbacksResponse:
        """Front-desk follow-ups raised by no-shows, oldest first."""

        await self._require_doctor(doctor_id)
        records = await self._store.list_callbacks(doctor_id)
        if status is not None:
            records = [item for item in records if item.callback_status == status]
        records.sort(key=lambda item: (item.missed_date, item.missed_token_number))
        return CallbacksResponse(
            callbacks=[CallbackView.from_record(item) for item in records],
            count=len(records),
        )

    async def today_appointments(self, doctor_id: str) -> TodayAppointmentsResponse:
        await self._require_doctor(doctor_id)
        today = self._today()
        session = await self._find_today_session(doctor_id)
        appointments = await self._store.list_appointments(doctor_id, today)
        active = next((item for item in appointments if item.status == "in-progress"), None)
        missed: List[int] = []
        if session is not None:
            own = [item for item in appointments if item.session_id == session.session_id]
            missed = recall.missed_tokens(recall.confirmed_tokens(own), session.queue_position)
        return TodayAppointmentsResponse(
            date=today.isoformat(),
            appointments=[AppointmentView.from_record(item) for item in appointments],
            current_token=session.current_token if session is not None else 0,
            active_appointment=AppointmentView.from_record(active) if active else None,
            total_today=len(appointments),
            completed=sum(1 for item in appointments if item.status == "completed"),
            pending=sum(1 for item in appointments if item.status == "confirmed"),
            missed_tokens=missed,
        )

    async def missed_tokens(self, doctor_id: str) -> MissedTokensResponse:
        session = await self._require_today_session(doctor_id)
        missed = await self._missed_for(session)
        return MissedTokensResponse(
            session_id=session.session_id,
            current_token=session.current_token,
            missed_tokens=missed,
            count=len(missed),
        )

    async def queue_state(self, doctor_id: str) -> QueueStateResponse:
        session = await self._require_today_session(doctor_id)
        return QueueStateResponse(
            session_id=session.session_id,
            current_token=session.current_token,
            queue_position=session.queue_position,
            served_since_recall=session.served_since_recall,
            recall_enabled=session.recall_enabled,
            recall_check_interval=session.recall_check_interval,
            calls_until_recall=recall.calls_until_recall(
                session.served_since_recall,
                session.recall_check_interval,
                session.recall_enabled,
            ),
            missed_tokens=await self._missed_for(session),
        )

    async def get_recall_settings(self, doctor_id: str, session_id: str) -> RecallSettingsResponse:
        session = await self._require_session(doctor_id, session_id)
        return self._settings_response(session, "Recall settings loaded")

    async def update_recall_settings(
        self,
        doctor_id: str,
        session_id: str,
        *,
        recall_check_interval: Optional[int] = None,
        recall_enabled: Optional[bool] = None,
    ) -> RecallSettingsResponse:
        settings = get_settings()
        if recall_check_interval is not None and not (
            settings.min_recall_interval <= recall_check_interval <= settings.max_recall_interval
        ):
            raise ValidationFailed(
                f"Recall interval must be between {settings.min_recall_interval} "
                f"and {settings.max_recall_interval}"
            )

        async with self._locks.lock_for(doctor_id):
            session = await self._require_session(doctor_id, session_id)
            update: Dict[str, Any] = {}
            if recall_check_interval is not None:
                update["recall_check_interval"] = recall_check_interval
            if recall_enabled is not None:
                update["recall_enabled"] = recall_enabled
            updated = session.model_copy(update=update)
            await self._commit(Changeset().add(updated))

        logger.info(
            "Recall settings for session %s: every %s, enabled=%s",
            session_id,
            updated.recall_check_interval,
            updated.recall_enabled,
        )
        return self._settings_response(updated, "Recall settings updated successfully")

    async def _advance(
        self,
        doctor: DoctorRecord,
        session: SessionRecord,
        appointments: List[AppointmentRecord],
        *,
        called_by: Optional[str],
    ) -> CallNextResponse:
        now = self._clock()
        by_token = {item.token_number: item for item in appointments}
        serving = by_token.get(session.current_token) if session.in_progress else None
        passed_over = serving if serving is not None and serving.status == "in-progress" else None

        decision = recall.decide_next(
            recall.confirmed_tokens(appointments),
            position=session.queue_position,
            served_since_recall=session.served_since_recall,
            recall_enabled=session.recall_enabled,
            recall_check_interval=session.recall_check_interval,
        )
        chosen = by_token[decision.token_number]

        changes = Changeset()
        # The patient moved past waits again and is missed from the next call.
        if passed_over is not None:
            changes.add(passed_over.model_copy(update={"status": "confirmed"}))

        chosen_update: Dict[str, Any] = {"status": "in-progress", "consultation_started_at": now}
        if decision.is_recall:
            chosen_update.update(
                is_recalled=True,
                recall_count=chosen.recall_count + 1,
                last_recalled_at=now,
            )
        called = chosen.model_copy(update=chosen_update)
        changes.add(called)

        session_update: Dict[str, Any] = {
            "current_token": decision.token_number,
            "last_token_called_at": now,
        }
        if decision.is_recall:
            session_update["served_since_recall"] = 0
        else:
            session_update["queue_position"] = decision.token_number
            session_update["served_since_recall"] = session.served_since_recall + 1
        changes.add(session.model_copy(update=session_update))

        if doctor.status == "online":
            changes.add(doctor.model_copy(update={"status": "consulting", "is_available": False}))

        changes.add(
            TokenCallRecord(
                call_id=_new_id("CALL"),
                session_id=session.session_id,
                appointment_id=chosen.appointment_id,
                appointment_date=chosen.appointment_date,
                token_number=decision.token_number,
                call_type="recall" if decision.is_recall else "normal",
                is_recall=decision.is_recall,
                recall_reason=self._recall_reason(decision, session),
                called_at=now,
                called_by=called_by or doctor.doctor_id,
            )
        )
        await self._commit(changes)

        if decision.reason == "forced":
            message = f"No more appointments - Recalling missed Token #{decision.token_number}"
        elif decision.is_recall:
            message = f"Recalling Token #{decision.token_number}"
        else:
            message = f"Calling Token #{decision.token_number}"
        logger.info(
            "Doctor %s session %s: %s (%s missed)",
            doctor.doctor_id,
            session.session_id,
            message,
            decision.missed_tokens_count,
        )
        return CallNextResponse(
            message=message,
            token_number=decision.token_number,
            is_recall=decision.is_recall,
            missed_tokens_count=decision.missed_tokens_count,
            appointment=AppointmentView.from_record(called),
        )

    @staticmethod
    def _recall_reason(decision: recall.CallDecision, session: SessionRecord) -> Optional[str]:
        if decision.reason == "interval":
            return f"Auto-recall after {session.served_since_recall} patients"
        if decision.reason == "forced":
            return "No new appointments left"
        return None

    async def _missed_for(self, session: SessionRecord) -> List[int]:
        appointments = await self._store.list_appointments(
            session.doctor_id, self._today(), session.session_id
        )
        return recall.missed_tokens(recall.confirmed_tokens(appointments), session.queue_position)

    async def _latest_call(
        self, session: SessionRecord, appointment: AppointmentRecord
    ) -> Optional[TokenCallRecord]:
        calls = await self._store.list_token_calls(session.session_id, appointment.appointment_date)
        matching = [call for call in calls if call.appointment_id == appointment.appointment_id]
        return matching[-1] if matching else None

    async def _require_appointment(self, doctor_id: str, appointment_id: str) -> AppointmentRecord:
        appointment = await self._store.get_appointment(appointment_id)
        if appointment is None or appointment.doctor_id != doctor_id:
            raise AppointmentNotFound(f"Appointment '{appointment_id}' not found")
        if appointment.appointment_date != self._today():
            raise InvalidTransition(
                f"Appointment '{appointment_id}' is booked for "
                f"{appointment.appointment_date.isoformat()}, not today"
            )
        return appointment

    async def _require_session(self, doctor_id: str, session_id: str) -> SessionRecord:
        session = await self._store.get_session(session_id)
        if session is None or session.doctor_id != doctor_id:
            raise SessionNotFound(f"Session '{session_id}' not found")
        return session

    @staticmethod
    def _ensure_can_advance(doctor: DoctorRecord) -> None:
        if doctor.status not in ADVANCING_STATUSES:
            raise InvalidTransition(
                f"Doctor is {doctor.status}; go online before calling patients"
            )

    @staticmethod
    def _ensure_resolvable(appointment: AppointmentRecord) -> None:
        if appointment.status not in _RESOLVABLE_STATUSES:
            raise InvalidTransition(
                f"Appointment for token #{appointment.token_number} is already {appointment.status}"
            )

    @staticmethod
    def _check_expected(session: SessionRecord, expected_current_token: Optional[int]) -> None:
        if expected_current_token is not None and session.current_token != expected_current_token:
            raise StalePrecondition(
                f"Current token is #{session.current_token}, not #{expected_current_token}; "
                "refresh the queue and try again"
            )

    @staticmethod
    def _settings_response(session: SessionRecord, message: str) -> RecallSettingsResponse:
        return RecallSettingsResponse(
            message=message,
            session_id=session.session_id,
            settings=RecallSettings(
                recall_check_interval=session.recall_check_interval,
                recall_enabled=session.recall_enabled,
            ),
        )
