from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Generic, Sequence, TypeVar

from .variants import RequestCategory, RequestKind, RequestStatus

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class GeoLocation:
    """Latitude/longitude pair of an outlet."""

    lat: float
    lng: float


@dataclass(frozen=True, slots=True)
class PriceLine:
    """Descriptive priced line item quoted on a service request."""

    sequence_no: int
    description: str
    price: float


@dataclass(slots=True)
class TimelineEntry:
    """Append-only note attached to a request."""

    position: int
    note: str
    added_by: str
    added_at: datetime
    attachments: list[str] = field(default_factory=list)
    seen_by: list[str] = field(default_factory=list)
    price_list: list[PriceLine] = field(default_factory=list)
    total_price: float = 0.0

    def is_seen_by(self, user_id: str) -> bool:
        return user_id in self.seen_by


@dataclass(slots=True)
class ServiceDeskRequest:
    """Aggregate representing a ticket or a service request."""

    id: str
    kind: RequestKind
    human_id: str
    owner_id: str
    category: RequestCategory
    title: str
    description: str
    status: RequestStatus
    location: GeoLocation
    address: str
    created_at: datetime
    updated_at: datetime
    attachments: list[str] = field(default_factory=list)
    outlet_name: str | None = None
    camera_type: str | None = None
    camera_count: int | None = None
    preferred_visit_at: datetime | None = None
    assigned_visit_at: datetime | None = None
    completed_at: datetime | None = None
    viewed_by_admin: bool = False
    timeline: list[TimelineEntry] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class RequestFilter:
    """Predicate used for listing and counting requests."""

    owner_id: str | None = None
    unviewed_only: bool = False


@dataclass(slots=True)
class Page(Generic[T]):
    """Slice of a newest-first listing."""

    items: Sequence[T]
    total: int
    page: int
    limit: int

    @property
    def pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0

    @property
    def has_more(self) -> bool:
        return self.page * self.limit < self.total
