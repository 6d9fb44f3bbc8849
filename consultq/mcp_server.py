# consultq/mcp_server.py
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from mcp.server.fastmcp import FastMCP

from consultq.config import get_settings
from consultq.dependencies.services import get_doctor_locks, get_store_client_cached
from consultq.services import DoctorStatusService, QueueService
from consultq.services.calendar import system_clock
from consultq.services.exceptions import ServiceError

log = logging.getLogger("consultq.mcp")

# Name shown to MCP clients
mcp = FastMCP("consultq")


def _queue_service() -> QueueService:
    client = get_store_client_cached()
    return QueueService(
        client, locks=get_doctor_locks(), clock=system_clock(get_settings().timezone)
    )


def _status_service() -> DoctorStatusService:
    client = get_store_client_cached()
    return DoctorStatusService(
        client, locks=get_doctor_locks(), clock=system_clock(get_settings().timezone)
    )


def _error(exc: ServiceError) -> Dict[str, Any]:
    return {"success": False, "code": exc.code, "message": str(exc)}


@mcp.tool(name="queue_state", description="Current token, recall counters and missed tokens")
async def queue_state(doctor_id: str) -> Dict[str, Any]:
    log.debug("queue_state doctor_id=%s", doctor_id)
    try:
        state = await _queue_service().queue_state(doctor_id)
    except ServiceError as exc:
        return _error(exc)
    return state.model_dump(mode="json")


@mcp.tool(name="call_next", description="Call the next token for a doctor")
async def call_next(doctor_id: str, expected_current_token: Optional[int] = None) -> Dict[str, Any]:
    log.debug("call_next doctor_id=%s expected=%s", doctor_id, expected_current_token)
    try:
        result = await _queue_service().call_next(
            doctor_id, expected_current_token=expected_current_token, called_by="mcp"
        )
    except ServiceError as exc:
        return _error(exc)
    return result.model_dump(mode="json")


@mcp.tool(name="missed_tokens", description="Tokens passed over and still waiting")
async def missed_tokens(doctor_id: str) -> Dict[str, Any]:
    log.debug("missed_tokens doctor_id=%s", doctor_id)
    try:
        result = await _queue_service().missed_tokens(doctor_id)
    except ServiceError as exc:
        return _error(exc)
    return result.model_dump(mode="json")


@mcp.tool(name="doctor_status", description="Doctor availability and break details")
async def doctor_status(doctor_id: str) -> Dict[str, Any]:
    log.debug("doctor_status doctor_id=%s", doctor_id)
    try:
        result = await _status_service().get_status(doctor_id)
    except ServiceError as exc:
        return _error(exc)
    return result.model_dump(mode="json")
