from fastapi import APIRouter, Depends, Query

from consultq.dependencies.auth import require_api_key, require_doctor_id
from consultq.dependencies.services import get_queue_service
from consultq.schemas.session import RecallSettingsRequest, RecallSettingsResponse
from consultq.services import QueueService
from consultq.services.exceptions import ServiceError
from consultq.tools.errors import http_error

router = APIRouter(dependencies=[Depends(require_api_key)])


@router.get("/recall-settings", response_model=RecallSettingsResponse)
async def get_recall_settings(
    session_id: str = Query(...),
    doctor_id: str = Depends(require_doctor_id),
    service: QueueService = Depends(get_queue_service),
):
    try:
        return await service.get_recall_settings(doctor_id, session_id)
    except ServiceError as exc:
        raise http_error(exc) from exc


@router.put("/recall-settings", response_model=RecallSettingsResponse)
async def update_recall_settings(
    req: RecallSettingsRequest,
    doctor_id: str = Depends(require_doctor_id),
    service: QueueService = Depends(get_queue_service),
):
    try:
        return await service.update_recall_settings(
            doctor_id,
            req.session_id,
            recall_check_interval=req.recall_check_interval,
            recall_enabled=req.recall_enabled,
        )
    except ServiceError as exc:
        raise http_error(exc) from exc
