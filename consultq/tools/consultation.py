from typing import Optional

from fastapi import APIRouter, Depends

from consultq.dependencies.auth import require_api_key, require_doctor_id
from consultq.dependencies.services import get_queue_service
from consultq.schemas.consultation import (
    CallNextRequest,
    CallNextResponse,
    CompleteAndNextResponse,
    CompleteConsultationRequest,
    CompleteConsultationResponse,
    MissedTokensResponse,
    NoShowRequest,
    NoShowResponse,
    QueueStateResponse,
    StartSessionRequest,
)
from consultq.services import QueueService
from consultq.services.exceptions import NoMoreAppointments, ServiceError
from consultq.tools.errors import http_error

router = APIRouter(dependencies=[Depends(require_api_key)])


@router.post("/start", response_model=CallNextResponse)
async def start_session(
    req: Optional[StartSessionRequest] = None,
    doctor_id: str = Depends(require_doctor_id),
    service: QueueService = Depends(get_queue_service),
):
    try:
        return await service.start_session(
            doctor_id, session_id=req.session_id if req else None
        )
    except ServiceError as exc:
        raise http_error(exc) from exc


@router.post("/next", response_model=CallNextResponse)
async def call_next(
    req: Optional[CallNextRequest] = None,
    doctor_id: str = Depends(require_doctor_id),
    service: QueueService = Depends(get_queue_service),
):
    req = req or CallNextRequest()
    try:
        return await service.call_next(
            doctor_id,
            expected_current_token=req.expected_current_token,
            session_id=req.session_id,
        )
    except ServiceError as exc:
        raise http_error(exc) from exc


@router.post("/complete", response_model=CompleteConsultationResponse)
async def complete_consultation(
    req: CompleteConsultationRequest,
    doctor_id: str = Depends(require_doctor_id),
    service: QueueService = Depends(get_queue_service),
):
    try:
        return await service.complete_current(
            doctor_id,
            req.appointment_id,
            diagnosis=req.diagnosis,
            doctor_notes=req.doctor_notes,
            prescription=req.prescription,
            expected_current_token=req.expected_current_token,
        )
    except ServiceError as exc:
        raise http_error(exc) from exc


@router.post("/complete-and-next", response_model=CompleteAndNextResponse)
async def complete_and_call_next(
    req: CompleteConsultationRequest,
    doctor_id: str = Depends(require_doctor_id),
    service: QueueService = Depends(get_queue_service),
):
    """Complete the current patient, then call the next one.

    The two steps commit separately. If the completion succeeds and the call
    fails, the completion stands and the error from the call is returned.
    """
    try:
        completed = await service.complete_current(
            doctor_id,
            req.appointment_id,
            diagnosis=req.diagnosis,
            doctor_notes=req.doctor_notes,
            prescription=req.prescription,
            expected_current_token=req.expected_current_token,
        )
    except ServiceError as exc:
        raise http_error(exc) from exc

    try:
        called = await service.call_next(doctor_id, expected_current_token=completed.token_number)
    except NoMoreAppointments:
        return CompleteAndNextResponse(completed=completed, day_complete=True)
    except ServiceError as exc:
        raise http_error(exc) from exc
    return CompleteAndNextResponse(completed=completed, next=called)


@router.post("/no-show", response_model=NoShowResponse)
async def mark_no_show(
    req: NoShowRequest,
    doctor_id: str = Depends(require_doctor_id),
    service: QueueService = Depends(get_queue_service),
):
    try:
        return await service.mark_no_show(
            doctor_id,
            req.appointment_id,
            reason=req.reason,
            expected_current_token=req.expected_current_token,
        )
    except ServiceError as exc:
        raise http_error(exc) from exc


@router.get("/missed", response_model=MissedTokensResponse)
async def missed_tokens(
    doctor_id: str = Depends(require_doctor_id),
    service: QueueService = Depends(get_queue_service),
):
    try:
        return await service.missed_tokens(doctor_id)
    except ServiceError as exc:
        raise http_error(exc) from exc


@router.get("/state", response_model=QueueStateResponse)
async def queue_state(
    doctor_id: str = Depends(require_doctor_id),
    service: QueueService = Depends(get_queue_service),
):
    try:
        return await service.queue_state(doctor_id)
    except ServiceError as exc:
        raise http_error(exc) from exc
