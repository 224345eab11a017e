from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from servicedesk.notifications import NotificationEvent
from servicedesk.requests import (
    ForbiddenError,
    GeoLocation,
    InMemoryRequestStore,
    InvalidInputError,
    NotFoundError,
    RequestKind,
    RequestLifecycleService,
    RequestStatus,
    UserPrincipal,
)

SR = RequestKind.SERVICE_REQUEST
TK = RequestKind.TICKET


@pytest.mark.asyncio
async def test_create_service_request_assigns_id_and_notifies(service, owner, emitter, registry, service_request_payload):
    request = await service.create(SR, owner, service_request_payload())

    assert request.human_id == "SRV-000001"
    assert request.status is RequestStatus.NEW
    assert request.owner_id == owner.id
    assert request.outlet_name == "Orchard Outlet"
    assert request.camera_count == 4
    assert [intent.event for intent in emitter.intents] == [
        NotificationEvent.REQUEST_CREATED,
        NotificationEvent.REQUEST_RECEIVED,
    ]
    assert emitter.intents[0].recipient == "vendor@example.com"
    assert emitter.intents[1].recipient == owner.id
    created = registry.counter("requests_created_total", label_names=("kind",))
    assert created.value(labels={"kind": "service_request"}) == 1


@pytest.mark.asyncio
async def test_back_to_back_tickets_get_sequential_ids(service, owner, ticket_payload):
    first = await service.create(TK, owner, ticket_payload())
    second = await service.create(TK, owner, ticket_payload(title="Blocked drain"))

    assert (first.human_id, second.human_id) == ("TKT-000001", "TKT-000002")


@pytest.mark.asyncio
async def test_ticket_takes_location_from_profile(service, owner, ticket_payload):
    ticket = await service.create(
        TK,
        owner,
        ticket_payload(location=GeoLocation(lat=50.0, lng=50.0), address="Ignored", outlet_name="Ignored"),
    )

    assert ticket.location == owner.location
    assert ticket.address == "10 Orchard Road"
    assert ticket.outlet_name is None


@pytest.mark.asyncio
async def test_ticket_without_profile_location_is_rejected(service, store, ticket_payload):
    user = UserPrincipal(id="user-9", display_name="No Profile")

    with pytest.raises(InvalidInputError, match="User location is not set"):
        await service.create(TK, user, ticket_payload())
    assert await store.latest_human_id(TK) is None


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "overrides",
    [
        {"outlet_name": "  "},
        {"title": ""},
        {"description": None},
        {"category": "Gardening"},
        {"location": None},
        {"location": GeoLocation(lat=91.0, lng=0.0)},
        {"location": GeoLocation(lat=0.0, lng=-180.5)},
        {"address": ""},
        {"camera_count": -1},
    ],
)
async def test_invalid_service_request_fields(service, owner, service_request_payload, overrides):
    with pytest.raises(InvalidInputError):
        await service.create(SR, owner, service_request_payload(**overrides))


@pytest.mark.asyncio
async def test_tickets_do_not_offer_intruder_alarm(service, owner, ticket_payload):
    with pytest.raises(InvalidInputError):
        await service.create(TK, owner, ticket_payload(category="Intruder Alarm"))


@pytest.mark.asyncio
async def test_completion_round_trip(service, owner, admin, emitter, service_request_payload):
    request = await service.create(SR, owner, service_request_payload())
    emitter.clear()

    completed = await service.update_status(SR, request.id, admin, status="Completed")

    assert completed.status is RequestStatus.COMPLETED
    assert completed.completed_at is not None
    intent = emitter.intents[-1]
    assert intent.event is NotificationEvent.STATUS_UPDATED
    assert intent.recipient == owner.id
    assert "completed" in intent.body
    assert intent.is_final
    assert "dashboard" not in intent.body

    reopened = await service.update_status(SR, request.id, admin, status=RequestStatus.IN_PROGRESS)

    assert reopened.completed_at is None
    assert emitter.intents[-1].body == (
        "Your service request status has been updated to: In Progress.\n\n"
        "Please check your dashboard for more details."
    )
    assert not emitter.intents[-1].is_final


@pytest.mark.asyncio
async def test_moves_between_open_statuses_leave_completed_at(service, owner, admin, service_request_payload):
    request = await service.create(SR, owner, service_request_payload())

    rejected = await service.update_status(SR, request.id, admin, status="Rejected")

    assert rejected.completed_at is None


@pytest.mark.asyncio
async def test_closing_ticket_uses_ticket_wording(service, owner, admin, emitter, ticket_payload):
    ticket = await service.create(TK, owner, ticket_payload())

    await service.update_status(TK, ticket.id, admin, status="Closed")

    assert emitter.intents[-1].body.startswith("Your ticket has been closed as the service is completed.")


@pytest.mark.asyncio
async def test_unchanged_update_writes_nothing(service, store, owner, admin, emitter, service_request_payload):
    request = await service.create(SR, owner, service_request_payload())
    emitter.clear()

    result = await service.update_status(SR, request.id, admin, status="New")

    assert result.updated_at == request.updated_at
    assert (await store.get(SR, request.id)).updated_at == request.updated_at
    assert emitter.intents == []


@pytest.mark.asyncio
async def test_visit_assignment_notifies_once_per_instant(service, owner, admin, emitter, service_request_payload):
    request = await service.create(SR, owner, service_request_payload())
    emitter.clear()
    visit = datetime(2026, 3, 5, 10, 0, tzinfo=timezone.utc)

    updated = await service.update_status(SR, request.id, admin, assigned_visit_at=visit)

    assert updated.assigned_visit_at == visit
    assert emitter.intents[-1].body == (
        "A visit has been scheduled for your service request.\n\n"
        "Please check your dashboard for more details."
    )
    assert emitter.intents[-1].assigned_visit_at == visit

    same_instant = visit.astimezone(timezone(timedelta(hours=8)))
    await service.update_status(SR, request.id, admin, assigned_visit_at=same_instant)

    assert len(emitter.intents) == 1


@pytest.mark.asyncio
async def test_visit_and_status_in_one_update(service, owner, admin, emitter, service_request_payload):
    request = await service.create(SR, owner, service_request_payload())
    visit = datetime(2026, 3, 5, 10, 0, tzinfo=timezone.utc)

    await service.update_status(SR, request.id, admin, status="In Progress", assigned_visit_at=visit)

    body = emitter.intents[-1].body
    assert body.startswith("A visit has been scheduled")
    assert "updated to: In Progress." in body


@pytest.mark.asyncio
async def test_owner_cannot_update_status(service, store, owner, service_request_payload):
    request = await service.create(SR, owner, service_request_payload())

    with pytest.raises(ForbiddenError, match="Admin access required"):
        await service.update_status(SR, request.id, owner, status="Completed")
    assert (await store.get(SR, request.id)).status is RequestStatus.NEW


@pytest.mark.asyncio
async def test_update_unknown_request(service, admin):
    with pytest.raises(NotFoundError):
        await service.update_status(SR, "missing", admin, status="Completed")


@pytest.mark.asyncio
async def test_invalid_status_for_variant(service, owner, admin, ticket_payload):
    ticket = await service.create(TK, owner, ticket_payload())

    with pytest.raises(InvalidInputError):
        await service.update_status(TK, ticket.id, admin, status="Completed")


@pytest.mark.asyncio
async def test_stranger_is_denied(service, owner, stranger, admin, service_request_payload):
    request = await service.create(SR, owner, service_request_payload())
    await service.add_comment(SR, request.id, admin, note="Quote to follow")

    with pytest.raises(ForbiddenError):
        await service.get(SR, request.id, stranger)
    with pytest.raises(ForbiddenError):
        await service.add_comment(SR, request.id, stranger, note="Me too")
    with pytest.raises(ForbiddenError):
        await service.mark_seen(SR, request.id, 0, stranger)
    with pytest.raises(ForbiddenError):
        await service.delete(SR, request.id, stranger)


@pytest.mark.asyncio
async def test_admin_comment_notifies_owner(service, owner, admin, emitter, service_request_payload):
    request = await service.create(SR, owner, service_request_payload())
    emitter.clear()

    updated = await service.add_comment(
        SR,
        request.id,
        admin,
        note="Quote attached",
        price_list='[{"sNo": 1, "description": "Camera", "price": 150}]',
        total_price=150,
    )

    entry = updated.timeline[-1]
    assert entry.added_by == "Vendor Admin"
    assert entry.price_list[0].price == 150.0
    assert emitter.intents[-1].event is NotificationEvent.COMMENT_ADDED
    assert emitter.intents[-1].body == "Quote attached"


@pytest.mark.asyncio
async def test_owner_comment_is_not_notified(service, owner, emitter, ticket_payload):
    ticket = await service.create(TK, owner, ticket_payload())
    emitter.clear()

    updated = await service.add_comment(TK, ticket.id, owner, note="Still leaking")

    assert updated.timeline[-1].added_by == "Mei Tan"
    assert emitter.intents == []


@pytest.mark.asyncio
async def test_empty_comment_rejected_without_mutation(service, store, owner, ticket_payload):
    ticket = await service.create(TK, owner, ticket_payload())

    with pytest.raises(InvalidInputError):
        await service.add_comment(TK, ticket.id, owner, note="")
    assert (await store.get(TK, ticket.id)).timeline == []


@pytest.mark.asyncio
async def test_mark_seen_through_service(service, owner, admin, service_request_payload):
    request = await service.create(SR, owner, service_request_payload())
    await service.add_comment(SR, request.id, admin, note="Technician booked")

    await service.mark_seen(SR, request.id, 0, owner)
    result = await service.mark_seen(SR, request.id, 0, owner)

    assert result.timeline[0].seen_by == [owner.id]
    with pytest.raises(NotFoundError):
        await service.mark_seen(SR, request.id, 3, owner)


@pytest.mark.asyncio
async def test_list_scopes_by_role(service, owner, stranger, admin, ticket_payload):
    for _ in range(3):
        await service.create(TK, owner, ticket_payload())
    await service.create(TK, stranger, ticket_payload())

    mine = await service.list(TK, owner, page=1, limit=2)
    everything = await service.list(TK, admin, show_all=True)

    assert mine.total == 3
    assert mine.pages == 2
    assert mine.has_more
    assert [item.human_id for item in mine.items] == ["TKT-000003", "TKT-000002"]
    assert everything.total == 4


@pytest.mark.asyncio
async def test_admin_ticket_list_hides_viewed(service, owner, admin, ticket_payload):
    first = await service.create(TK, owner, ticket_payload())
    await service.create(TK, owner, ticket_payload())

    updated = await service.mark_viewed([first.id, "unknown-id", first.id], admin)
    unviewed = await service.list(TK, admin)
    every = await service.list(TK, admin, show_all=True)

    assert updated == 1
    assert unviewed.total == 1
    assert every.total == 2


@pytest.mark.asyncio
async def test_bulk_mark_viewed_ignores_unknown_ids(service, owner, admin, ticket_payload):
    first = await service.create(TK, owner, ticket_payload())
    second = await service.create(TK, owner, ticket_payload())

    updated = await service.mark_viewed([first.id, second.id, "nope"], admin)

    assert updated == 2
    assert (await service.get(TK, first.id, admin)).viewed_by_admin


@pytest.mark.asyncio
async def test_bulk_mark_viewed_validation(service, owner, admin):
    with pytest.raises(InvalidInputError):
        await service.mark_viewed([], admin)
    with pytest.raises(ForbiddenError):
        await service.mark_viewed(["x"], owner)


@pytest.mark.asyncio
@pytest.mark.parametrize(("page", "limit"), [(0, 10), (1, 0), (1, 101)])
async def test_list_rejects_bad_paging(service, admin, page, limit):
    with pytest.raises(InvalidInputError):
        await service.list(SR, admin, page=page, limit=limit)


@pytest.mark.asyncio
async def test_owner_can_delete(service, owner, service_request_payload):
    request = await service.create(SR, owner, service_request_payload())

    await service.delete(SR, request.id, owner)

    with pytest.raises(NotFoundError):
        await service.get(SR, request.id, owner)


@pytest.mark.asyncio
async def test_kind_mismatch_is_not_found(service, owner, ticket_payload):
    ticket = await service.create(TK, owner, ticket_payload())

    with pytest.raises(NotFoundError):
        await service.get(SR, ticket.id, owner)


@pytest.mark.asyncio
async def test_emitter_failure_does_not_fail_operation(store, owner, registry, service_request_payload):
    class BrokenEmitter:
        def emit(self, intent):
            raise RuntimeError("queue gone")

    service = RequestLifecycleService(store, emitter=BrokenEmitter(), registry=registry)

    request = await service.create(SR, owner, service_request_payload())

    assert (await store.get(SR, request.id)) is not None


class YieldingStore(InMemoryRequestStore):
    """Hands control back to the event loop before every read and write."""

    async def get(self, kind, request_id):
        await asyncio.sleep(0)
        return await super().get(kind, request_id)

    async def latest_human_id(self, kind):
        await asyncio.sleep(0)
        return await super().latest_human_id(kind)

    async def update(self, kind, request_id, mutate):
        await asyncio.sleep(0)
        return await super().update(kind, request_id, mutate)


@pytest.fixture
def yielding_store() -> YieldingStore:
    return YieldingStore()


@pytest.fixture
def yielding_service(yielding_store, emitter, clock, registry) -> RequestLifecycleService:
    return RequestLifecycleService(yielding_store, emitter=emitter, clock=clock, registry=registry)


@pytest.mark.asyncio
async def test_concurrent_status_and_visit_updates_both_apply(
    yielding_service, yielding_store, owner, admin, emitter, service_request_payload
):
    request = await yielding_service.create(SR, owner, service_request_payload())
    emitter.clear()
    visit = datetime(2026, 3, 5, 10, 0, tzinfo=timezone.utc)

    await asyncio.gather(
        yielding_service.update_status(SR, request.id, admin, status="Completed"),
        yielding_service.update_status(SR, request.id, admin, assigned_visit_at=visit),
    )

    final = await yielding_store.get(SR, request.id)
    assert final.status is RequestStatus.COMPLETED
    assert final.completed_at is not None
    assert final.assigned_visit_at == visit
    assert len(emitter.intents) == 2


@pytest.mark.asyncio
async def test_racing_status_changes_keep_completion_consistent(
    yielding_service, yielding_store, owner, admin, emitter, service_request_payload
):
    request = await yielding_service.create(SR, owner, service_request_payload())
    emitter.clear()

    results = await asyncio.gather(
        yielding_service.update_status(SR, request.id, admin, status="Completed"),
        yielding_service.update_status(SR, request.id, admin, status="Rejected"),
    )

    final = await yielding_store.get(SR, request.id)
    assert final.status is results[-1].status
    assert (final.status is RequestStatus.COMPLETED) == (final.completed_at is not None)
    assert [intent.is_final for intent in emitter.intents] == [True, True]


@pytest.mark.asyncio
async def test_burst_of_creations_gets_distinct_ids(yielding_service, owner, service_request_payload):
    results = await asyncio.gather(
        *(yielding_service.create(SR, owner, service_request_payload()) for _ in range(12))
    )

    assert sorted(request.human_id for request in results) == [f"SRV-{n:06d}" for n in range(1, 13)]


@pytest.mark.asyncio
async def test_visit_on_completed_request_resent_as_completed_has_no_hint(
    service, owner, admin, emitter, service_request_payload
):
    request = await service.create(SR, owner, service_request_payload())
    await service.update_status(SR, request.id, admin, status="Completed")
    emitter.clear()
    visit = datetime(2026, 3, 9, 14, 0, tzinfo=timezone.utc)

    updated = await service.update_status(SR, request.id, admin, status="Completed", assigned_visit_at=visit)

    assert updated.assigned_visit_at == visit
    intent = emitter.intents[-1]
    assert intent.body == "A visit has been scheduled for your service request."
    assert intent.is_final is True
