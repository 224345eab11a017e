from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any


class NotificationEvent(str, Enum):
    """Lifecycle events that produce a notification intent."""

    REQUEST_CREATED = "request_created"
    REQUEST_RECEIVED = "request_received"
    STATUS_UPDATED = "status_updated"
    COMMENT_ADDED = "comment_added"


@dataclass(frozen=True, slots=True)
class NotificationIntent:
    """Description of a message to deliver, decoupled from delivery itself."""

    recipient: str
    subject: str
    body: str
    related_entity_id: str
    event: NotificationEvent
    assigned_visit_at: datetime | None = None
    is_final: bool = False

    def to_payload(self) -> dict[str, Any]:
        return {
            "recipient": self.recipient,
            "subject": self.subject,
            "body": self.body,
            "relatedEntityId": self.related_entity_id,
            "event": self.event.value,
            "assignedVisitAt": self.assigned_visit_at.isoformat() if self.assigned_visit_at else None,
            "isFinal": self.is_final,
        }
