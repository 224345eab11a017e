from datetime import datetime, timezone

import pytest

from servicedesk.requests import (
    Action,
    ForbiddenError,
    GeoLocation,
    RequestCategory,
    RequestKind,
    RequestStatus,
    ServiceDeskRequest,
    can_access,
    ensure_access,
)


def _request(owner_id: str = "user-1") -> ServiceDeskRequest:
    now = datetime.now(timezone.utc)
    return ServiceDeskRequest(
        id="req-1",
        kind=RequestKind.SERVICE_REQUEST,
        human_id="SRV-000001",
        owner_id=owner_id,
        category=RequestCategory.CCTV,
        title="Camera",
        description="Offline",
        status=RequestStatus.NEW,
        location=GeoLocation(lat=0.0, lng=0.0),
        address="Somewhere",
        created_at=now,
        updated_at=now,
        outlet_name="Outlet",
    )


@pytest.mark.parametrize("action", list(Action))
def test_admin_may_do_everything(admin, action):
    assert can_access(admin, _request(), action)
    assert can_access(admin, None, action)


@pytest.mark.parametrize("action", [Action.READ, Action.DELETE, Action.ADD_COMMENT, Action.MARK_SEEN])
def test_owner_actions(owner, stranger, action):
    request = _request(owner_id=owner.id)
    assert can_access(owner, request, action)
    assert not can_access(stranger, request, action)
    with pytest.raises(ForbiddenError, match="Access denied"):
        ensure_access(stranger, request, action)


@pytest.mark.parametrize("action", [Action.UPDATE_STATUS, Action.MARK_VIEWED_BULK])
def test_admin_only_actions_are_denied_to_owners(owner, action):
    request = _request(owner_id=owner.id)
    assert not can_access(owner, request, action)
    with pytest.raises(ForbiddenError, match="Admin access required"):
        ensure_access(owner, request, action)


def test_bulk_action_without_request_is_denied_to_users(owner):
    assert not can_access(owner, None, Action.READ)
