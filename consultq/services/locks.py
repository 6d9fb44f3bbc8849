"""Per-doctor serialization for requests handled by one process."""

from __future__ import annotations

import asyncio
from threading import Lock
from typing import Dict, Tuple


class DoctorLockRegistry:
    """Hands out one ``asyncio.Lock`` per doctor.

    Locks are bound to the event loop that created them, so a doctor's lock
    is replaced when it is requested from a different running loop.
    """

    def __init__(self) -> None:
        self._locks: Dict[str, Tuple[asyncio.AbstractEventLoop, asyncio.Lock]] = {}
        self._guard = Lock()

    def lock_for(self, doctor_id: str) -> asyncio.Lock:
        loop = asyncio.get_running_loop()
        with self._guard:
            entry = self._locks.get(doctor_id)
            if entry is None or entry[0] is not loop:
                entry = (loop, asyncio.Lock())
                self._locks[doctor_id] = entry
            return entry[1]
