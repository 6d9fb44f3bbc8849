from fastapi import HTTPException

from consultq.services.exceptions import QueueError, ServiceError


def http_error(exc: ServiceError) -> HTTPException:
    """Translate a service failure into the response the UI expects."""

    status_code = exc.status_code if isinstance(exc, QueueError) else 502
    return HTTPException(
        status_code=status_code,
        detail={"success": False, "code": exc.code, "message": str(exc)},
    )
