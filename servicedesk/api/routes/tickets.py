from __future__ import annotations

from servicedesk.dependencies.auth import CurrentPrincipal
from servicedesk.dependencies.requests import LifecycleServiceDep
from servicedesk.requests.errors import ServiceDeskError
from servicedesk.requests.variants import TICKET

from .lifecycle import build_lifecycle_router, http_error
from .schemas import MarkViewedPayload, MarkViewedResponse

router = build_lifecycle_router(TICKET, prefix="/tickets", tag="tickets")


@router.post("/mark-viewed", response_model=MarkViewedResponse)
async def mark_tickets_viewed(
    payload: MarkViewedPayload,
    service: LifecycleServiceDep,
    principal: CurrentPrincipal,
) -> MarkViewedResponse:
    """Flag tickets as seen by the admin dashboard; unknown ids are skipped."""

    try:
        updated = await service.mark_viewed(payload.ticket_ids, principal)
    except ServiceDeskError as exc:
        raise http_error(exc) from exc
    return MarkViewedResponse(updated=updated)
