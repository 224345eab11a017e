from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Iterable, Sequence

from opentelemetry import trace

from servicedesk.metrics import metrics_registry
from servicedesk.metrics.registry import MetricsRegistry
from servicedesk.notifications.dispatcher import NotificationIntentEmitter
from servicedesk.notifications.models import NotificationIntent

from .errors import InvalidInputError, NotFoundError
from .messages import comment_intent, created_intents, status_update_intent
from .models import GeoLocation, Page, RequestFilter, ServiceDeskRequest
from .policy import Action, ensure_access
from .principals import Principal
from .repository import RequestStore
from .sequence import SequenceAllocator
from .state import CompletionEffect, RequestStateMachine
from .timeline import PriceListInput, TimelineLog, normalize_attachments
from .variants import TICKET, RequestCategory, RequestKind, RequestStatus, RequestVariant, get_variant

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

MISSING_PROFILE_LOCATION = "User location is not set. Please update your profile."


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _required_text(value: str | None, label: str) -> str:
    text = (value or "").strip()
    if not text:
        raise InvalidInputError(f"Please provide {label}")
    return text


def _validate_location(location: GeoLocation | None) -> GeoLocation:
    if location is None:
        raise InvalidInputError("Please provide location")
    if not -90.0 <= location.lat <= 90.0 or not -180.0 <= location.lng <= 180.0:
        raise InvalidInputError("Location coordinates are out of range")
    return location


@dataclass(slots=True)
class NewRequest:
    """Caller-supplied fields for a ticket or service request."""

    category: RequestCategory | str
    title: str
    description: str
    attachments: Sequence[str] = field(default_factory=list)
    preferred_visit_at: datetime | None = None
    location: GeoLocation | None = None
    address: str | None = None
    outlet_name: str | None = None
    camera_type: str | None = None
    camera_count: int | None = None


@dataclass(slots=True)
class _StatusChange:
    previous: RequestStatus | None = None
    requested: RequestStatus | None = None
    status_changed: bool = False
    visit_assigned: bool = False

    @property
    def changed(self) -> bool:
        return self.status_changed or self.visit_assigned


class RequestLifecycleService:
    """High level orchestration for ticket and service request lifecycles.

    Every operation authorises the actor before touching storage, persists
    its change in one store call and only then queues notification intents.
    """

    def __init__(
        self,
        store: RequestStore,
        *,
        emitter: NotificationIntentEmitter,
        allocator: SequenceAllocator | None = None,
        timeline: TimelineLog | None = None,
        clock: Callable[[], datetime] | None = None,
        admin_recipient: str = "admin@system.local",
        default_page_size: int = 10,
        max_page_size: int = 100,
        registry: MetricsRegistry | None = None,
    ) -> None:
        self._store = store
        self._emitter = emitter
        self._clock = clock or _utcnow
        self._registry = registry or metrics_registry
        self._allocator = allocator or SequenceAllocator(store, registry=self._registry)
        self._timeline = timeline or TimelineLog(store, clock=self._clock, registry=self._registry)
        self._admin_recipient = admin_recipient
        self._default_page_size = default_page_size
        self._max_page_size = max_page_size
        self._machines = {kind: RequestStateMachine(get_variant(kind)) for kind in RequestKind}

    async def create(self, kind: RequestKind | str, actor: Principal, payload: NewRequest) -> ServiceDeskRequest:
        variant = get_variant(kind)
        with tracer.start_as_current_span("requests.create") as span:
            span.set_attribute("request.kind", variant.kind.value)
            fields = self._validate_new_request(variant, actor, payload)
            now = self._clock()

            def build(human_id: str) -> ServiceDeskRequest:
                return ServiceDeskRequest(
                    id=str(uuid.uuid4()),
                    kind=variant.kind,
                    human_id=human_id,
                    owner_id=actor.id,
                    status=self._machines[variant.kind].initial_state(),
                    created_at=now,
                    updated_at=now,
                    **fields,
                )

            request = await self._allocator.allocate(variant, build)
            span.set_attribute("request.human_id", request.human_id)

        self._registry.counter("requests_created_total", label_names=("kind",)).inc(
            labels={"kind": variant.kind.value}
        )
        logger.info("Created %s %s for %s", variant.noun, request.human_id, actor.id)
        for intent in created_intents(request, self._admin_recipient):
            self._emit(intent)
        return request

    async def get(self, kind: RequestKind | str, request_id: str, actor: Principal) -> ServiceDeskRequest:
        request = await self._load(get_variant(kind), request_id)
        ensure_access(actor, request, Action.READ)
        return request

    async def list(
        self,
        kind: RequestKind | str,
        actor: Principal,
        *,
        page: int = 1,
        limit: int | None = None,
        show_all: bool = False,
    ) -> Page[ServiceDeskRequest]:
        variant = get_variant(kind)
        limit = self._default_page_size if limit is None else limit
        if page < 1:
            raise InvalidInputError("Page must be 1 or greater")
        if not 1 <= limit <= self._max_page_size:
            raise InvalidInputError(f"Limit must be between 1 and {self._max_page_size}")

        if not actor.is_admin:
            criteria = RequestFilter(owner_id=actor.id)
        else:
            criteria = RequestFilter(unviewed_only=variant.tracks_admin_view and not show_all)

        total = await self._store.count(variant.kind, criteria)
        items = await self._store.list(variant.kind, criteria, offset=(page - 1) * limit, limit=limit)
        return Page(items=list(items), total=total, page=page, limit=limit)

    async def update_status(
        self,
        kind: RequestKind | str,
        request_id: str,
        actor: Principal,
        *,
        status: RequestStatus | str | None = None,
        assigned_visit_at: datetime | None = None,
    ) -> ServiceDeskRequest:
        variant = get_variant(kind)
        ensure_access(actor, None, Action.UPDATE_STATUS)
        machine = self._machines[variant.kind]
        requested = status if status is not None and status != "" else None
        new_visit = _as_utc(assigned_visit_at)
        change = _StatusChange()

        # runs under the store lock on the freshest copy of the record
        def apply(current: ServiceDeskRequest) -> ServiceDeskRequest | None:
            change.previous = current.status
            if requested is not None:
                decision = machine.evaluate(current.status, requested, actor.role)
                change.requested = decision.target
                if decision.changed:
                    change.status_changed = True
                    current.status = decision.target
                    if decision.completion is CompletionEffect.SET:
                        current.completed_at = self._clock()
                    elif decision.completion is CompletionEffect.CLEAR:
                        current.completed_at = None

            if new_visit is not None and new_visit != _as_utc(current.assigned_visit_at):
                change.visit_assigned = True
                current.assigned_visit_at = new_visit

            if not change.changed:
                return None
            current.updated_at = self._clock()
            return current

        with tracer.start_as_current_span("requests.update_status") as span:
            persisted = await self._store.update(variant.kind, request_id, apply)
            if persisted is None:
                raise NotFoundError(f"{variant.noun.capitalize()} not found")
            span.set_attribute("request.human_id", persisted.human_id)
            span.set_attribute("request.status", persisted.status.value)

        if not change.changed:
            logger.debug("No changes requested for %s", persisted.human_id)
            return persisted

        if change.status_changed:
            self._registry.counter("request_status_changes_total", label_names=("kind", "status")).inc(
                labels={"kind": variant.kind.value, "status": persisted.status.value}
            )
            logger.info(
                "%s %s moved %s -> %s by %s",
                variant.noun.capitalize(),
                persisted.human_id,
                change.previous.value,
                persisted.status.value,
                actor.id,
            )
        intent = status_update_intent(
            persisted,
            persisted.owner_id,
            visit_assigned=change.visit_assigned,
            new_status=persisted.status if change.status_changed else None,
            requested_status=change.requested,
        )
        if intent is not None:
            self._emit(intent)
        return persisted

    async def add_comment(
        self,
        kind: RequestKind | str,
        request_id: str,
        actor: Principal,
        *,
        note: str | None,
        attachments: Iterable[str] | None = None,
        price_list: PriceListInput = None,
        total_price: Any = None,
    ) -> ServiceDeskRequest:
        variant = get_variant(kind)
        _required_text(note, "a note")
        request = await self._load(variant, request_id)
        ensure_access(actor, request, Action.ADD_COMMENT)

        updated = await self._timeline.append(
            request,
            note=note,
            author=actor.display_name,
            attachments=attachments,
            price_list=price_list,
            total_price=total_price,
        )
        if actor.is_admin:
            self._emit(comment_intent(updated, updated.owner_id, updated.timeline[-1].note))
        return updated

    async def mark_seen(
        self, kind: RequestKind | str, request_id: str, position: int, actor: Principal
    ) -> ServiceDeskRequest:
        request = await self._load(get_variant(kind), request_id)
        ensure_access(actor, request, Action.MARK_SEEN)
        return await self._timeline.mark_seen(request, position, actor.id)

    async def delete(self, kind: RequestKind | str, request_id: str, actor: Principal) -> None:
        variant = get_variant(kind)
        request = await self._load(variant, request_id)
        ensure_access(actor, request, Action.DELETE)
        if not await self._store.delete(variant.kind, request_id):
            raise NotFoundError(f"{variant.noun.capitalize()} not found")
        logger.info("Deleted %s %s by %s", variant.noun, request.human_id, actor.id)

    async def mark_viewed(self, request_ids: Iterable[str], actor: Principal) -> int:
        ensure_access(actor, None, Action.MARK_VIEWED_BULK)
        ids = [request_id for request_id in request_ids if request_id]
        if not ids:
            raise InvalidInputError("Please provide an array of ticket IDs")
        updated = await self._store.mark_viewed(TICKET.kind, ids)
        logger.info("Marked %d of %d tickets as viewed by %s", updated, len(ids), actor.id)
        return updated

    async def _load(self, variant: RequestVariant, request_id: str) -> ServiceDeskRequest:
        request = await self._store.get(variant.kind, request_id)
        if request is None:
            raise NotFoundError(f"{variant.noun.capitalize()} not found")
        return request

    def _emit(self, intent: NotificationIntent) -> None:
        try:
            self._emitter.emit(intent)
        except Exception:
            logger.exception("Could not queue %s notification for %s", intent.event.value, intent.related_entity_id)

    def _validate_new_request(
        self, variant: RequestVariant, actor: Principal, payload: NewRequest
    ) -> dict[str, Any]:
        try:
            category = RequestCategory(payload.category)
        except ValueError as exc:
            raise InvalidInputError(f"Unknown category: {payload.category}") from exc
        if not variant.allows_category(category):
            raise InvalidInputError(f"Category '{category.value}' is not available for a {variant.noun}")

        title = _required_text(payload.title, "a title")
        description = _required_text(payload.description, "a description")

        if variant.location_from_profile:
            location = getattr(actor, "location", None)
            address = getattr(actor, "address", None)
            if location is None or not (address or "").strip():
                raise InvalidInputError(MISSING_PROFILE_LOCATION)
        else:
            location = payload.location
            address = payload.address
        location = _validate_location(location)
        address = _required_text(address, "an address")

        outlet_name = None
        camera_type = None
        camera_count = None
        if variant.requires_outlet_name:
            outlet_name = _required_text(payload.outlet_name, "an outlet name")
            camera_type = (payload.camera_type or "").strip() or None
            if payload.camera_count is not None:
                if payload.camera_count < 0:
                    raise InvalidInputError("Camera count cannot be negative")
                camera_count = int(payload.camera_count)

        return {
            "category": category,
            "title": title,
            "description": description,
            "attachments": normalize_attachments(payload.attachments),
            "preferred_visit_at": _as_utc(payload.preferred_visit_at),
            "location": location,
            "address": address,
            "outlet_name": outlet_name,
            "camera_type": camera_type,
            "camera_count": camera_count,
        }
