from typing import Optional

from fastapi import Depends, Header, HTTPException

from consultq.config import Settings, get_settings


def require_api_key(
    x_api_key: Optional[str] = Header(None),
    settings: Settings = Depends(get_settings),
):
    expected = settings.api_key
    if expected and x_api_key != expected:
        raise HTTPException(status_code=401, detail="Invalid or missing API key")
    return True


def require_doctor_id(x_doctor_id: Optional[str] = Header(None)) -> str:
    """Doctor identity resolved by the upstream auth layer."""

    if not x_doctor_id:
        raise HTTPException(status_code=401, detail="Unauthorized")
    return x_doctor_id
