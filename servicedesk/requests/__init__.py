"""Request lifecycle domain: variants, timeline, sequencing and storage."""

from .errors import ConflictError, ForbiddenError, InvalidInputError, NotFoundError, ServiceDeskError, UnavailableError
from .models import GeoLocation, Page, PriceLine, RequestFilter, ServiceDeskRequest, TimelineEntry
from .policy import Action, can_access, ensure_access
from .principals import AdminPrincipal, Principal, Role, UserPrincipal
from .repository import InMemoryRequestStore, RequestStore
from .sequence import SequenceAllocator, format_human_id, parse_sequence
from .service import NewRequest, RequestLifecycleService
from .sql_repository import SqlRequestStore
from .state import CompletionEffect, RequestStateMachine, TransitionDecision
from .timeline import TimelineLog, parse_price_list
from .variants import (
    SERVICE_REQUEST,
    TICKET,
    RequestCategory,
    RequestKind,
    RequestStatus,
    RequestVariant,
    get_variant,
)

__all__ = [
    "Action",
    "AdminPrincipal",
    "CompletionEffect",
    "ConflictError",
    "ForbiddenError",
    "GeoLocation",
    "InMemoryRequestStore",
    "InvalidInputError",
    "NewRequest",
    "NotFoundError",
    "Page",
    "PriceLine",
    "Principal",
    "RequestCategory",
    "RequestFilter",
    "RequestKind",
    "RequestLifecycleService",
    "RequestStateMachine",
    "RequestStatus",
    "RequestStore",
    "RequestVariant",
    "Role",
    "SERVICE_REQUEST",
    "SequenceAllocator",
    "ServiceDeskError",
    "ServiceDeskRequest",
    "SqlRequestStore",
    "TICKET",
    "TimelineEntry",
    "TimelineLog",
    "TransitionDecision",
    "UnavailableError",
    "UserPrincipal",
    "can_access",
    "ensure_access",
    "format_human_id",
    "get_variant",
    "parse_price_list",
]
