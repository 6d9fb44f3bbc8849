from __future__ import annotations

from typing import Optional

from pydantic import BaseModel

from consultq.schemas.records import SessionRecord


class SessionSummary(BaseModel):
    session_id: str
    hospital_id: str
    day_of_week: str
    start_time: str
    end_time: str
    max_tokens: int
    avg_minutes_per_patient: int
    current_token: int
    queue_position: int
    recall_enabled: bool
    recall_check_interval: int

    @classmethod
    def from_record(cls, record: SessionRecord) -> "SessionSummary":
        return cls(
            session_id=record.session_id,
            hospital_id=record.hospital_id,
            day_of_week=record.day_of_week,
            start_time=record.start_time,
            end_time=record.end_time,
            max_tokens=record.max_tokens,
            avg_minutes_per_patient=record.avg_minutes_per_patient,
            current_token=record.current_token,
            queue_position=record.queue_position,
            recall_enabled=record.recall_enabled,
            recall_check_interval=record.recall_check_interval,
        )


class RecallSettings(BaseModel):
    recall_check_interval: int
    recall_enabled: bool


class RecallSettingsRequest(BaseModel):
    session_id: str
    recall_check_interval: Optional[int] = None
    recall_enabled: Optional[bool] = None


class RecallSettingsResponse(BaseModel):
    success: bool = True
    message: str
    session_id: str
    settings: RecallSettings
