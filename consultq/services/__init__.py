"""Service package public API definitions.

The HTTP client imports ``consultq.services.exceptions``, which executes this
module first. The service implementations import the client in turn, so they
are loaded lazily on first access to keep that import cycle from forming at
start up.
"""

from __future__ import annotations

from importlib import import_module
from typing import TYPE_CHECKING, Any

__all__ = [
    "DoctorStatusService",
    "QueueService",
]

_SERVICE_MODULES = {
    "DoctorStatusService": "doctor_status",
    "QueueService": "queue",
}


def __getattr__(name: str) -> Any:
    if name not in _SERVICE_MODULES:
        raise AttributeError(f"module {__name__!r} has no attribute {name!r}")

    module = import_module(f".{_SERVICE_MODULES[name]}", __name__)
    attr = getattr(module, name)
    globals()[name] = attr
    return attr


if TYPE_CHECKING:  # pragma: no cover - import for static analysis only
    from .doctor_status import DoctorStatusService as DoctorStatusService
    from .queue import QueueService as QueueService
