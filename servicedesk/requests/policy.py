"""Access policy gating every lifecycle operation."""

from __future__ import annotations

import logging
from enum import Enum

from .errors import ForbiddenError
from .models import ServiceDeskRequest
from .principals import Principal

logger = logging.getLogger(__name__)


class Action(str, Enum):
    """Operations that require an access decision."""

    READ = "read"
    UPDATE_STATUS = "update-status"
    DELETE = "delete"
    ADD_COMMENT = "add-comment"
    MARK_SEEN = "mark-seen"
    MARK_VIEWED_BULK = "mark-viewed-bulk"


_OWNER_ACTIONS = frozenset({Action.READ, Action.DELETE, Action.ADD_COMMENT, Action.MARK_SEEN})


def can_access(actor: Principal, request: ServiceDeskRequest | None, action: Action) -> bool:
    """Return whether ``actor`` may perform ``action`` on ``request``.

    ``request`` is ``None`` for bulk actions that do not target one record.
    """

    if actor.is_admin:
        return True
    if action not in _OWNER_ACTIONS or request is None:
        return False
    return request.owner_id == actor.id


def ensure_access(actor: Principal, request: ServiceDeskRequest | None, action: Action) -> None:
    if can_access(actor, request, action):
        return
    target = request.human_id if request is not None else "<bulk>"
    logger.warning("Denied %s on %s for principal %s (%s)", action.value, target, actor.id, actor.role.value)
    if action in (Action.UPDATE_STATUS, Action.MARK_VIEWED_BULK):
        raise ForbiddenError("Admin access required")
    raise ForbiddenError("Access denied")
