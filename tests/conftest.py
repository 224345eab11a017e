from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from servicedesk.metrics import MetricsRegistry, register_default_metrics
from servicedesk.notifications import NotificationIntent
from servicedesk.requests import (
    AdminPrincipal,
    GeoLocation,
    InMemoryRequestStore,
    NewRequest,
    RequestLifecycleService,
    SequenceAllocator,
    UserPrincipal,
)


class RecordingEmitter:
    """Collects intents instead of delivering them."""

    def __init__(self) -> None:
        self.intents: list[NotificationIntent] = []

    def emit(self, intent: NotificationIntent) -> None:
        self.intents.append(intent)

    def clear(self) -> None:
        self.intents.clear()


class SteppingClock:
    """Deterministic clock advancing one second per reading."""

    def __init__(self, start: datetime | None = None) -> None:
        self.current = start or datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        self.current += timedelta(seconds=1)
        return self.current


@pytest.fixture
def registry() -> MetricsRegistry:
    registry = MetricsRegistry()
    register_default_metrics(registry)
    return registry


@pytest.fixture
def store() -> InMemoryRequestStore:
    return InMemoryRequestStore()


@pytest.fixture
def emitter() -> RecordingEmitter:
    return RecordingEmitter()


@pytest.fixture
def clock() -> SteppingClock:
    return SteppingClock()


@pytest.fixture
def service(store, emitter, clock, registry) -> RequestLifecycleService:
    return RequestLifecycleService(
        store,
        emitter=emitter,
        allocator=SequenceAllocator(store, registry=registry),
        clock=clock,
        admin_recipient="vendor@example.com",
        registry=registry,
    )


@pytest.fixture
def admin() -> AdminPrincipal:
    return AdminPrincipal(id="admin-1", display_name="Vendor Admin")


@pytest.fixture
def owner() -> UserPrincipal:
    return UserPrincipal(
        id="user-1",
        display_name="Mei Tan",
        location=GeoLocation(lat=1.3521, lng=103.8198),
        address="10 Orchard Road",
    )


@pytest.fixture
def stranger() -> UserPrincipal:
    return UserPrincipal(
        id="user-2",
        display_name="Ravi Kumar",
        location=GeoLocation(lat=1.29, lng=103.85),
        address="1 Marina Boulevard",
    )


@pytest.fixture
def service_request_payload():
    def build(**overrides) -> NewRequest:
        fields = {
            "category": "CCTV",
            "title": "Camera offline",
            "description": "Entrance camera shows no picture",
            "location": GeoLocation(lat=1.3, lng=103.8),
            "address": "5 Outlet Street",
            "outlet_name": "Orchard Outlet",
            "camera_type": "Dome",
            "camera_count": 4,
        }
        fields.update(overrides)
        return NewRequest(**fields)

    return build


@pytest.fixture
def ticket_payload():
    def build(**overrides) -> NewRequest:
        fields = {
            "category": "Plumbing",
            "title": "Leaking sink",
            "description": "Water pooling under the kitchen sink",
        }
        fields.update(overrides)
        return NewRequest(**fields)

    return build
