"""Customer-facing wording of lifecycle notifications."""

from __future__ import annotations

from servicedesk.notifications.models import NotificationEvent, NotificationIntent

from .models import ServiceDeskRequest
from .variants import RequestStatus, RequestVariant, get_variant

_DASHBOARD_HINT = "Please check your dashboard for more details."


def status_update_message(
    variant: RequestVariant,
    *,
    visit_assigned: bool,
    new_status: RequestStatus | None,
    requested_status: RequestStatus | None = None,
) -> str:
    """Compose the owner message for a status or visit change.

    ``new_status`` is ``None`` when the status did not change, while
    ``requested_status`` is whatever the admin submitted. A final requested
    status suppresses the dashboard hint even when it was already set.
    Returns an empty string when there is nothing to tell.
    """

    parts: list[str] = []
    if visit_assigned:
        parts.append(f"A visit has been scheduled for your {variant.noun}.")

    if new_status is not None:
        if new_status == variant.completed_status:
            parts.extend(variant.completion_lines)
        elif new_status == variant.rejected_status:
            parts.append(f"Your {variant.noun} has been rejected.")
        else:
            parts.append(f"Your {variant.noun} status has been updated to: {new_status.value}.")

    if not parts:
        return ""
    if (requested_status or new_status) not in variant.final_statuses:
        parts.append(_DASHBOARD_HINT)
    return "\n\n".join(parts)


def status_update_intent(
    request: ServiceDeskRequest,
    recipient: str,
    *,
    visit_assigned: bool,
    new_status: RequestStatus | None,
    requested_status: RequestStatus | None = None,
) -> NotificationIntent | None:
    variant = get_variant(request.kind)
    requested = requested_status or new_status
    body = status_update_message(
        variant, visit_assigned=visit_assigned, new_status=new_status, requested_status=requested
    )
    if not body:
        return None
    return NotificationIntent(
        recipient=recipient,
        subject=f"Update on your {variant.noun} {request.human_id}",
        body=body,
        related_entity_id=request.id,
        event=NotificationEvent.STATUS_UPDATED,
        assigned_visit_at=request.assigned_visit_at if visit_assigned else None,
        is_final=requested in variant.final_statuses,
    )


def comment_intent(request: ServiceDeskRequest, recipient: str, note: str) -> NotificationIntent:
    variant = get_variant(request.kind)
    return NotificationIntent(
        recipient=recipient,
        subject=f"New reply on your {variant.noun} {request.human_id}",
        body=note,
        related_entity_id=request.id,
        event=NotificationEvent.COMMENT_ADDED,
        assigned_visit_at=request.assigned_visit_at,
    )


def created_intents(request: ServiceDeskRequest, admin_recipient: str) -> list[NotificationIntent]:
    """Alert for the vendor plus a confirmation for the submitter."""

    variant = get_variant(request.kind)
    where = request.outlet_name or request.address
    return [
        NotificationIntent(
            recipient=admin_recipient,
            subject=f"New {variant.noun} {request.human_id}: {request.title}",
            body=f"{request.category.value} issue reported at {where}.\n\n{request.description}",
            related_entity_id=request.id,
            event=NotificationEvent.REQUEST_CREATED,
        ),
        NotificationIntent(
            recipient=request.owner_id,
            subject=f"We received your {variant.noun} {request.human_id}",
            body=f"Your {variant.noun} \"{request.title}\" has been received. {_DASHBOARD_HINT}",
            related_entity_id=request.id,
            event=NotificationEvent.REQUEST_RECEIVED,
        ),
    ]
