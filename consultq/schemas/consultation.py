from __future__ import annotations

from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from consultq.schemas.records import AppointmentRecord, AppointmentStatus, CallbackRecord


class AppointmentView(BaseModel):
    appointment_id: str
    token_number: int
    status: AppointmentStatus
    session_id: str
    estimated_time: Optional[str] = None
    patient_name: Optional[str] = None
    patient_phone: Optional[str] = None
    patient_email: Optional[str] = None
    patient_complaints: Optional[str] = None
    doctor_notes: Optional[str] = None
    is_recalled: bool = False
    recall_count: int = 0
    consultation_started_at: Optional[datetime] = None
    consultation_ended_at: Optional[datetime] = None

    @classmethod
    def from_record(cls, record: AppointmentRecord) -> "AppointmentView":
        return cls(
            appointment_id=record.appointment_id,
            token_number=record.token_number,
            status=record.status,
            session_id=record.session_id,
            estimated_time=record.estimated_time,
            patient_name=record.patient_name,
            patient_phone=record.patient_phone,
            patient_email=record.patient_email,
            patient_complaints=record.patient_complaints,
            doctor_notes=record.doctor_notes,
            is_recalled=record.is_recalled,
            recall_count=record.recall_count,
            consultation_started_at=record.consultation_started_at,
            consultation_ended_at=record.consultation_ended_at,
        )


class StartSessionRequest(BaseModel):
    session_id: Optional[str] = Field(
        None, description="Pick one of today's sessions when the doctor has several."
    )


class CallNextRequest(BaseModel):
    expected_current_token: Optional[int] = Field(
        None,
        ge=0,
        description="Token the caller last saw as current. The call fails instead of advancing if it moved.",
    )
    session_id: Optional[str] = None


class CallNextResponse(BaseModel):
    success: bool = True
    message: str
    token_number: int
    is_recall: bool
    missed_tokens_count: int
    appointment: AppointmentView


class CompleteConsultationRequest(BaseModel):
    appointment_id: str
    diagnosis: Optional[str] = None
    doctor_notes: Optional[str] = None
    prescription: Optional[str] = None
    expected_current_token: Optional[int] = Field(None, ge=0)


class CompleteConsultationResponse(BaseModel):
    success: bool = True
    message: str
    appointment_id: str
    token_number: int


class CompleteAndNextResponse(BaseModel):
    completed: CompleteConsultationResponse
    next: Optional[CallNextResponse] = None
    day_complete: bool = False


class NoShowRequest(BaseModel):
    appointment_id: str
    reason: Optional[str] = None
    expected_current_token: Optional[int] = Field(None, ge=0)


class NoShowResponse(BaseModel):
    success: bool = True
    message: str
    appointment_id: str
    token_number: int
    callback_id: str


class TodayAppointmentsResponse(BaseModel):
    date: str
    appointments: List[AppointmentView]
    current_token: int
    active_appointment: Optional[AppointmentView] = None
    total_today: int
    completed: int
    pending: int
    missed_tokens: List[int] = Field(default_factory=list)


class MissedTokensResponse(BaseModel):
    session_id: str
    current_token: int
    missed_tokens: List[int]
    count: int


class QueueStateResponse(BaseModel):
    session_id: str
    current_token: int
    queue_position: int
    served_since_recall: int
    recall_enabled: bool
    recall_check_interval: int
    calls_until_recall: Optional[int] = None
    missed_tokens: List[int]


class CallbackView(BaseModel):
    callback_id: str
    appointment_id: str
    missed_date: date
    missed_token_number: int
    callback_status: str
    callback_attempts: int
    callback_notes: Optional[str] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_record(cls, record: CallbackRecord) -> "CallbackView":
        return cls(
            callback_id=record.callback_id,
            appointment_id=record.appointment_id,
            missed_date=record.missed_date,
            missed_token_number=record.missed_token_number,
            callback_status=record.callback_status,
            callback_attempts=record.callback_attempts,
            callback_notes=record.callback_notes,
            created_at=record.created_at,
        )


class CallbacksResponse(BaseModel):
    callbacks: List[CallbackView]
    count: int
