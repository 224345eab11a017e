from __future__ import annotations

import logging
from typing import Annotated, Mapping

from fastapi import Depends, HTTPException, Request, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from servicedesk.core.config import Settings, UserProfile, get_settings
from servicedesk.requests.models import GeoLocation
from servicedesk.requests.principals import AdminPrincipal, Principal, Role, UserPrincipal

logger = logging.getLogger(__name__)


class TokenRegistry:
    """Static bearer tokens mapped onto principals."""

    def __init__(self, principals: Mapping[str, Principal] | None = None) -> None:
        self._principals: dict[str, Principal] = dict(principals or {})

    @classmethod
    def from_settings(cls, settings: Settings) -> "TokenRegistry":
        return cls(parse_api_tokens(settings.api_tokens, settings.user_profiles))

    def resolve(self, token: str) -> Principal | None:
        return self._principals.get(token)

    def __len__(self) -> int:
        return len(self._principals)


def parse_api_tokens(raw: str, profiles: Mapping[str, UserProfile] | None = None) -> dict[str, Principal]:
    """Parse ``token:role:id:Display Name`` entries separated by commas.

    Users pick up their location from ``profiles`` keyed by user id.
    """

    profiles = profiles or {}
    principals: dict[str, Principal] = {}
    for chunk in raw.split(","):
        chunk = chunk.strip()
        if not chunk:
            continue
        parts = chunk.split(":", 3)
        if len(parts) != 4 or not all(part.strip() for part in parts):
            raise ValueError(f"Malformed API token entry: {chunk!r}")
        token, role, user_id, display_name = (part.strip() for part in parts)
        try:
            role = Role(role.lower())
        except ValueError as exc:
            raise ValueError(f"Unknown role {role!r} for token entry of {user_id}") from exc

        if role is Role.ADMIN:
            principals[token] = AdminPrincipal(id=user_id, display_name=display_name)
            continue
        profile = profiles.get(user_id)
        principals[token] = UserPrincipal(
            id=user_id,
            display_name=display_name,
            location=GeoLocation(lat=profile.lat, lng=profile.lng) if profile else None,
            address=profile.address if profile else None,
        )
    return principals


bearer_scheme = HTTPBearer(auto_error=False)


def _get_registry(request: Request) -> TokenRegistry:
    registry = getattr(request.app.state, "token_registry", None)
    if registry is None:
        registry = TokenRegistry.from_settings(get_settings())
        request.app.state.token_registry = registry
    return registry


async def get_current_principal(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Security(bearer_scheme)],
    request: Request,
) -> Principal:
    cached = getattr(request.state, "principal", None)
    if isinstance(cached, (UserPrincipal, AdminPrincipal)):
        return cached

    if credentials is None:
        raise HTTPException(status_code=401, detail="Not authenticated")
    principal = _get_registry(request).resolve(credentials.credentials)
    if principal is None:
        logger.info("Rejected unknown bearer token")
        raise HTTPException(status_code=401, detail="Invalid authentication credentials")

    request.state.principal = principal
    return principal


CurrentPrincipal = Annotated[Principal, Depends(get_current_principal)]
