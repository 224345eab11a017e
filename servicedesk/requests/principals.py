"""Authenticated principals handed to the lifecycle by the identity layer."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from .models import GeoLocation


class Role(str, Enum):
    """Supported roles."""

    ADMIN = "admin"
    USER = "user"


@dataclass(frozen=True, slots=True)
class UserPrincipal:
    """Outlet customer backed by a user record.

    ``location`` and ``address`` are the profile snapshot taken when the
    principal was resolved; tickets inherit them at creation time.
    """

    id: str
    display_name: str
    location: GeoLocation | None = None
    address: str | None = None

    @property
    def role(self) -> Role:
        return Role.USER

    @property
    def is_admin(self) -> bool:
        return False


@dataclass(frozen=True, slots=True)
class AdminPrincipal:
    """Vendor administrator. Never persisted as a user record."""

    id: str
    display_name: str

    @property
    def role(self) -> Role:
        return Role.ADMIN

    @property
    def is_admin(self) -> bool:
        return True


Principal = UserPrincipal | AdminPrincipal
