from __future__ import annotations

from functools import lru_cache

from fastapi import Depends

from consultq.clients.store_service import StoreServiceClient
from consultq.config import Settings, get_settings
from consultq.services import DoctorStatusService, QueueService
from consultq.services.base import resolve_store
from consultq.services.calendar import Clock, system_clock
from consultq.services.locks import DoctorLockRegistry
from consultq.services.store import QueueStore


@lru_cache(maxsize=1)
def get_store_client_cached() -> StoreServiceClient:
    settings = get_settings()
    return StoreServiceClient(
        str(settings.store_service_base_url) if settings.store_service_base_url else None,
        timeout=settings.store_service_timeout,
        use_mock_data=settings.use_mock_data,
        token=settings.store_service_token,
    )


@lru_cache(maxsize=1)
def get_doctor_locks() -> DoctorLockRegistry:
    return DoctorLockRegistry()


def get_store_client(settings: Settings = Depends(get_settings)) -> StoreServiceClient:
    return get_store_client_cached()


def get_queue_store(
    client: StoreServiceClient = Depends(get_store_client),
) -> QueueStore:
    return resolve_store(client)


def get_clock(settings: Settings = Depends(get_settings)) -> Clock:
    return system_clock(settings.timezone)


def get_queue_service(
    client: StoreServiceClient = Depends(get_store_client),
    store: QueueStore = Depends(get_queue_store),
    locks: DoctorLockRegistry = Depends(get_doctor_locks),
    clock: Clock = Depends(get_clock),
) -> QueueService:
    return QueueService(client, store=store, locks=locks, clock=clock)


def get_doctor_status_service(
    client: StoreServiceClient = Depends(get_store_client),
    store: QueueStore = Depends(get_queue_store),
    locks: DoctorLockRegistry = Depends(get_doctor_locks),
    clock: Clock = Depends(get_clock),
) -> DoctorStatusService:
    return DoctorStatusService(client, store=store, locks=locks, clock=clock)
