"""Variant descriptors for the two request shapes handled by the desk."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class RequestKind(str, Enum):
    """Storage discriminator for request variants."""

    TICKET = "ticket"
    SERVICE_REQUEST = "service_request"


class RequestStatus(str, Enum):
    """Every status value any variant may use."""

    NEW = "New"
    IN_PROGRESS = "In Progress"
    COMPLETED = "Completed"
    REJECTED = "Rejected"
    CLOSED = "Closed"


class RequestCategory(str, Enum):
    """Closed set of service categories offered by the vendor."""

    CCTV = "CCTV"
    FIRE_ALARM = "Fire Alarm"
    SECURITY_ALARM = "Security Alarm"
    INTRUDER_ALARM = "Intruder Alarm"
    ELECTRICAL = "Electrical"
    PLUMBING = "Plumbing"
    AIR_CONDITIONING = "Air Conditioning"


@dataclass(frozen=True, slots=True)
class RequestVariant:
    """Everything that differs between tickets and service requests.

    Lifecycle, timeline and access rules are shared; only this table changes.
    """

    kind: RequestKind
    prefix: str
    noun: str
    categories: tuple[RequestCategory, ...]
    statuses: tuple[RequestStatus, ...]
    completed_status: RequestStatus
    rejected_status: RequestStatus | None = None
    supports_pricing: bool = False
    tracks_admin_view: bool = False
    requires_outlet_name: bool = False
    location_from_profile: bool = False
    completion_lines: tuple[str, ...] = ()

    @property
    def initial_status(self) -> RequestStatus:
        return self.statuses[0]

    @property
    def final_statuses(self) -> tuple[RequestStatus, ...]:
        if self.rejected_status is None:
            return (self.completed_status,)
        return (self.completed_status, self.rejected_status)

    def allows_category(self, category: RequestCategory) -> bool:
        return category in self.categories

    def allows_status(self, status: RequestStatus) -> bool:
        return status in self.statuses


TICKET = RequestVariant(
    kind=RequestKind.TICKET,
    prefix="TKT",
    noun="ticket",
    categories=(
        RequestCategory.CCTV,
        RequestCategory.FIRE_ALARM,
        RequestCategory.SECURITY_ALARM,
        RequestCategory.ELECTRICAL,
        RequestCategory.PLUMBING,
        RequestCategory.AIR_CONDITIONING,
    ),
    statuses=(RequestStatus.NEW, RequestStatus.IN_PROGRESS, RequestStatus.CLOSED),
    completed_status=RequestStatus.CLOSED,
    tracks_admin_view=True,
    location_from_profile=True,
    completion_lines=(
        "Your ticket has been closed as the service is completed.",
        "Thank you for using our service. If you have any further issues, please create a new ticket.",
    ),
)

SERVICE_REQUEST = RequestVariant(
    kind=RequestKind.SERVICE_REQUEST,
    prefix="SRV",
    noun="service request",
    categories=tuple(RequestCategory),
    statuses=(
        RequestStatus.NEW,
        RequestStatus.IN_PROGRESS,
        RequestStatus.COMPLETED,
        RequestStatus.REJECTED,
    ),
    completed_status=RequestStatus.COMPLETED,
    rejected_status=RequestStatus.REJECTED,
    supports_pricing=True,
    requires_outlet_name=True,
    completion_lines=(
        "Your service request has been completed.",
        "Thank you for using our service.",
    ),
)

VARIANTS: dict[RequestKind, RequestVariant] = {
    RequestKind.TICKET: TICKET,
    RequestKind.SERVICE_REQUEST: SERVICE_REQUEST,
}


def get_variant(kind: RequestKind | str) -> RequestVariant:
    return VARIANTS[RequestKind(kind)]
