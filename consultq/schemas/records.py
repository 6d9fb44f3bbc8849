"""Persisted record shapes shared by the in-memory and remote stores."""

from __future__ import annotations

from datetime import date, datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field

AppointmentStatus = Literal[
    "pending", "confirmed", "in-progress", "completed", "cancelled", "no-show"
]
DoctorStatus = Literal["offline", "online", "consulting", "on_break", "emergency"]
BreakType = Literal["timed", "indefinite"]
CallType = Literal["normal", "recall"]

ADVANCING_STATUSES = frozenset({"online", "consulting"})


class AppointmentRecord(BaseModel):
    appointment_id: str
    doctor_id: str
    hospital_id: str
    session_id: str
    appointment_date: date
    token_number: int = Field(..., gt=0)
    status: AppointmentStatus = "confirmed"
    estimated_time: Optional[str] = None
    patient_name: Optional[str] = None
    patient_phone: Optional[str] = None
    patient_email: Optional[str] = None
    patient_complaints: Optional[str] = None
    doctor_notes: Optional[str] = None
    diagnosis: Optional[str] = None
    prescription: Optional[str] = None
    is_recalled: bool = False
    recall_count: int = 0
    last_recalled_at: Optional[datetime] = None
    attended_after_recall: bool = False
    consultation_started_at: Optional[datetime] = None
    consultation_ended_at: Optional[datetime] = None
    no_show_reason: Optional[str] = None
    version: int = 0


class SessionRecord(BaseModel):
    """A doctor's recurring slot, carrying today's queue cursor.

    ``current_token`` is the token being served right now. ``queue_position``
    is the highest token reached by sequential calls; a recall moves the
    former back without touching the latter.
    """

    session_id: str
    doctor_id: str
    hospital_id: str
    day_of_week: str
    start_time: str
    end_time: str
    max_tokens: int = 30
    avg_minutes_per_patient: int = 15
    is_active: bool = True
    approval_status: str = "approved"
    current_token: int = 0
    queue_position: int = 0
    served_since_recall: int = 0
    recall_enabled: bool = True
    recall_check_interval: int = Field(default=5, gt=0)
    last_token_called_at: Optional[datetime] = None
    version: int = 0

    @property
    def in_progress(self) -> bool:
        return self.current_token > 0


class DoctorRecord(BaseModel):
    doctor_id: str
    name: str
    status: DoctorStatus = "offline"
    is_available: bool = False
    break_type: Optional[BreakType] = None
    break_duration_minutes: Optional[int] = None
    break_reason: Optional[str] = None
    break_started_at: Optional[datetime] = None
    break_ends_at: Optional[datetime] = None
    version: int = 0


class TokenCallRecord(BaseModel):
    call_id: str
    session_id: str
    appointment_id: str
    appointment_date: date
    token_number: int
    call_type: CallType = "normal"
    is_recall: bool = False
    recall_reason: Optional[str] = None
    called_at: datetime
    called_by: Optional[str] = None
    patient_attended: bool = False
    attended_at: Optional[datetime] = None
    skipped_reason: Optional[str] = None
    version: int = 0


class CallbackRecord(BaseModel):
    """Front-desk follow-up for a patient marked as a no-show."""

    callback_id: str
    appointment_id: str
    doctor_id: str
    hospital_id: str
    missed_date: date
    missed_token_number: int
    callback_status: str = "pending"
    callback_attempts: int = 0
    callback_notes: Optional[str] = None
    created_at: Optional[datetime] = None
    version: int = 0
