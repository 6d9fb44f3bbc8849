from fastapi import APIRouter, Depends

from consultq.config import Settings, get_settings

router = APIRouter()


@router.get("/health")
def health(settings: Settings = Depends(get_settings)):
    return {"ok": True, "mode": "mock" if settings.use_mock_data else "live"}


@router.get("/mcp/info")
def mcp_info():
    return {"status": "ok", "transport": "streamable-http", "path": "/mcp"}
