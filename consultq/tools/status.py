from fastapi import APIRouter, Depends

from consultq.dependencies.auth import require_api_key, require_doctor_id
from consultq.dependencies.services import get_doctor_status_service
from consultq.schemas.status import (
    BreakStatusResponse,
    DoctorStatusResponse,
    ResumeFromBreakResponse,
    SetStatusRequest,
    SetStatusResponse,
)
from consultq.services import DoctorStatusService
from consultq.services.exceptions import ServiceError
from consultq.tools.errors import http_error

router = APIRouter(dependencies=[Depends(require_api_key)])


@router.get("", response_model=DoctorStatusResponse)
async def get_status(
    doctor_id: str = Depends(require_doctor_id),
    service: DoctorStatusService = Depends(get_doctor_status_service),
):
    try:
        return await service.get_status(doctor_id)
    except ServiceError as exc:
        raise http_error(exc) from exc


@router.put("", response_model=SetStatusResponse)
async def set_status(
    req: SetStatusRequest,
    doctor_id: str = Depends(require_doctor_id),
    service: DoctorStatusService = Depends(get_doctor_status_service),
):
    try:
        return await service.set_status(
            doctor_id,
            req.status,
            break_type=req.break_type,
            break_duration=req.break_duration,
            break_reason=req.break_reason,
        )
    except ServiceError as exc:
        raise http_error(exc) from exc


@router.get("/break", response_model=BreakStatusResponse)
async def break_status(
    doctor_id: str = Depends(require_doctor_id),
    service: DoctorStatusService = Depends(get_doctor_status_service),
):
    try:
        return await service.break_status(doctor_id)
    except ServiceError as exc:
        raise http_error(exc) from exc


@router.post("/break/resume", response_model=ResumeFromBreakResponse)
async def resume_from_break(
    doctor_id: str = Depends(require_doctor_id),
    service: DoctorStatusService = Depends(get_doctor_status_service),
):
    try:
        return await service.resume_if_break_expired(doctor_id)
    except ServiceError as exc:
        raise http_error(exc) from exc
