from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from consultq.schemas.records import BreakType, DoctorStatus
from consultq.schemas.session import SessionSummary


class DoctorStatusResponse(BaseModel):
    doctor_id: str
    status: DoctorStatus
    is_available: bool
    break_type: Optional[BreakType] = None
    break_reason: Optional[str] = None
    break_started_at: Optional[datetime] = None
    break_ends_at: Optional[datetime] = None
    current_session: Optional[SessionSummary] = None


class SetStatusRequest(BaseModel):
    status: DoctorStatus
    break_type: Optional[BreakType] = None
    break_duration: Optional[int] = Field(
        None, description="Break length in minutes. Implies a timed break."
    )
    break_reason: Optional[str] = None


class SetStatusResponse(BaseModel):
    success: bool = True
    message: str
    status: DoctorStatus
    break_ends_at: Optional[datetime] = None


class BreakStatusResponse(BaseModel):
    doctor_id: str
    on_break: bool
    break_type: Optional[BreakType] = None
    break_reason: Optional[str] = None
    break_started_at: Optional[datetime] = None
    break_ends_at: Optional[datetime] = None
    remaining_seconds: Optional[int] = None
    expired: bool = False


class ResumeFromBreakResponse(BaseModel):
    success: bool = True
    resumed: bool
    status: DoctorStatus
