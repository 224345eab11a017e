"""SQLModel table definitions for the service desk data layer."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import Boolean, Column, DateTime, Float, ForeignKey, Integer, JSON, String, Text, UniqueConstraint
from sqlmodel import Field, SQLModel


def _utcnow() -> datetime:
    """Return a timezone aware UTC timestamp."""

    return datetime.now(timezone.utc)


def _uuid_str() -> str:
    """Generate a random UUID string."""

    return str(uuid.uuid4())


class ServiceDeskRequestTable(SQLModel, table=True):
    """Tickets and service requests, discriminated by ``kind``."""

    __tablename__ = "service_desk_requests"
    __table_args__ = (UniqueConstraint("kind", "human_id", name="uq_service_desk_requests_kind_human_id"),)

    id: str = Field(default_factory=_uuid_str, primary_key=True, index=True)
    kind: str = Field(sa_column=Column(String(32), nullable=False, index=True))
    human_id: str = Field(sa_column=Column(String(32), nullable=False))
    owner_id: str = Field(sa_column=Column(String(255), nullable=False, index=True))
    category: str = Field(sa_column=Column(String(64), nullable=False))
    title: str = Field(sa_column=Column(String(255), nullable=False))
    description: str = Field(sa_column=Column(Text, nullable=False))
    attachments: list[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    status: str = Field(sa_column=Column(String(32), nullable=False))
    lat: float = Field(sa_column=Column(Float, nullable=False))
    lng: float = Field(sa_column=Column(Float, nullable=False))
    address: str = Field(sa_column=Column(Text, nullable=False))
    outlet_name: str | None = Field(default=None, sa_column=Column(String(255), nullable=True))
    camera_type: str | None = Field(default=None, sa_column=Column(String(255), nullable=True))
    camera_count: int | None = Field(default=None, sa_column=Column(Integer, nullable=True))
    preferred_visit_at: datetime | None = Field(default=None, sa_column=Column(DateTime(timezone=True), nullable=True))
    assigned_visit_at: datetime | None = Field(default=None, sa_column=Column(DateTime(timezone=True), nullable=True))
    completed_at: datetime | None = Field(default=None, sa_column=Column(DateTime(timezone=True), nullable=True))
    viewed_by_admin: bool = Field(default=False, sa_column=Column(Boolean, nullable=False, default=False))
    created_at: datetime = Field(default_factory=_utcnow, sa_column=Column(DateTime(timezone=True), nullable=False))
    updated_at: datetime = Field(default_factory=_utcnow, sa_column=Column(DateTime(timezone=True), nullable=False))


class RequestTimelineEntryTable(SQLModel, table=True):
    """Append-only timeline entries; ``position`` is the insertion index."""

    __tablename__ = "request_timeline_entries"
    __table_args__ = (UniqueConstraint("request_id", "position", name="uq_request_timeline_entries_position"),)

    id: str = Field(default_factory=_uuid_str, primary_key=True, index=True)
    request_id: str = Field(
        sa_column=Column(String(36), ForeignKey("service_desk_requests.id", ondelete="CASCADE"), nullable=False)
    )
    position: int = Field(sa_column=Column(Integer, nullable=False))
    note: str = Field(sa_column=Column(Text, nullable=False))
    added_by: str = Field(sa_column=Column(String(255), nullable=False))
    added_at: datetime = Field(default_factory=_utcnow, sa_column=Column(DateTime(timezone=True), nullable=False))
    attachments: list[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    price_list: list[dict[str, Any]] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    total_price: float = Field(default=0.0, sa_column=Column(Float, nullable=False, default=0.0))


class TimelineEntryViewTable(SQLModel, table=True):
    """One acknowledgement of a timeline entry by a user."""

    __tablename__ = "timeline_entry_views"
    __table_args__ = (UniqueConstraint("entry_id", "user_id", name="uq_timeline_entry_views_entry_user"),)

    id: str = Field(default_factory=_uuid_str, primary_key=True, index=True)
    entry_id: str = Field(
        sa_column=Column(String(36), ForeignKey("request_timeline_entries.id", ondelete="CASCADE"), nullable=False)
    )
    user_id: str = Field(sa_column=Column(String(255), nullable=False))
    seen_at: datetime = Field(default_factory=_utcnow, sa_column=Column(DateTime(timezone=True), nullable=False))
