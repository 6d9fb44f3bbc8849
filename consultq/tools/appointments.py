from typing import Optional

from fastapi import APIRouter, Depends, Query

from consultq.dependencies.auth import require_api_key, require_doctor_id
from consultq.dependencies.services import get_queue_service
from consultq.schemas.consultation import CallbacksResponse, TodayAppointmentsResponse
from consultq.services import QueueService
from consultq.services.exceptions import ServiceError
from consultq.tools.errors import http_error

router = APIRouter(dependencies=[Depends(require_api_key)])


@router.get("/today", response_model=TodayAppointmentsResponse)
async def today_appointments(
    doctor_id: str = Depends(require_doctor_id),
    service: QueueService = Depends(get_queue_service),
):
    try:
        return await service.today_appointments(doctor_id)
    except ServiceError as exc:
        raise http_error(exc) from exc


@router.get("/callbacks", response_model=CallbacksResponse)
async def callbacks(
    status: Optional[str] = Query("pending"),
    doctor_id: str = Depends(require_doctor_id),
    service: QueueService = Depends(get_queue_service),
):
    try:
        return await service.callbacks(doctor_id, status=status)
    except ServiceError as exc:
        raise http_error(exc) from exc
