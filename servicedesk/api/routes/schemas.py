from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from servicedesk.requests.models import GeoLocation, Page, PriceLine, ServiceDeskRequest, TimelineEntry
from servicedesk.requests.service import NewRequest
from servicedesk.requests.variants import RequestCategory, RequestKind, RequestStatus


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class LocationModel(CamelModel):
    lat: float
    lng: float


class PriceLineModel(CamelModel):
    s_no: int = Field(alias="sNo")
    description: str
    price: float

    @classmethod
    def from_entity(cls, line: PriceLine) -> "PriceLineModel":
        return cls(s_no=line.sequence_no, description=line.description, price=line.price)


class TimelineEntryModel(CamelModel):
    position: int
    note: str
    added_by: str
    added_at: datetime
    attachments: list[str] = Field(default_factory=list)
    seen_by: list[str] = Field(default_factory=list)
    price_list: list[PriceLineModel] = Field(default_factory=list)
    total_price: float = 0.0

    @classmethod
    def from_entity(cls, entry: TimelineEntry) -> "TimelineEntryModel":
        return cls(
            position=entry.position,
            note=entry.note,
            added_by=entry.added_by,
            added_at=entry.added_at,
            attachments=list(entry.attachments),
            seen_by=list(entry.seen_by),
            price_list=[PriceLineModel.from_entity(line) for line in entry.price_list],
            total_price=entry.total_price,
        )


class RequestModel(CamelModel):
    id: str
    human_id: str
    kind: RequestKind
    owner_id: str
    category: RequestCategory
    title: str
    description: str
    status: RequestStatus
    location: LocationModel
    address: str
    attachments: list[str]
    outlet_name: str | None = None
    camera_type: str | None = None
    camera_count: int | None = None
    preferred_visit_at: datetime | None = None
    assigned_visit_at: datetime | None = None
    completed_at: datetime | None = None
    viewed_by_admin: bool = False
    timeline: list[TimelineEntryModel]
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_entity(cls, request: ServiceDeskRequest) -> "RequestModel":
        return cls(
            id=request.id,
            human_id=request.human_id,
            kind=request.kind,
            owner_id=request.owner_id,
            category=request.category,
            title=request.title,
            description=request.description,
            status=request.status,
            location=LocationModel(lat=request.location.lat, lng=request.location.lng),
            address=request.address,
            attachments=list(request.attachments),
            outlet_name=request.outlet_name,
            camera_type=request.camera_type,
            camera_count=request.camera_count,
            preferred_visit_at=request.preferred_visit_at,
            assigned_visit_at=request.assigned_visit_at,
            completed_at=request.completed_at,
            viewed_by_admin=request.viewed_by_admin,
            timeline=[TimelineEntryModel.from_entity(entry) for entry in request.timeline],
            created_at=request.created_at,
            updated_at=request.updated_at,
        )


class RequestPageModel(CamelModel):
    items: list[RequestModel]
    total: int
    page: int
    pages: int
    has_more: bool

    @classmethod
    def from_page(cls, page: Page[ServiceDeskRequest]) -> "RequestPageModel":
        return cls(
            items=[RequestModel.from_entity(item) for item in page.items],
            total=page.total,
            page=page.page,
            pages=page.pages,
            has_more=page.has_more,
        )


class CreateRequestPayload(CamelModel):
    category: RequestCategory
    title: str
    description: str
    attachments: list[str] = Field(default_factory=list)
    preferred_visit_at: datetime | None = None
    location: LocationModel | None = None
    address: str | None = None
    outlet_name: str | None = None
    camera_type: str | None = None
    camera_count: int | None = Field(default=None, ge=0)

    def to_new_request(self) -> NewRequest:
        return NewRequest(
            category=self.category,
            title=self.title,
            description=self.description,
            attachments=list(self.attachments),
            preferred_visit_at=self.preferred_visit_at,
            location=GeoLocation(lat=self.location.lat, lng=self.location.lng) if self.location else None,
            address=self.address,
            outlet_name=self.outlet_name,
            camera_type=self.camera_type,
            camera_count=self.camera_count,
        )


class UpdateStatusPayload(CamelModel):
    # kept as text so values outside the variant reach the lifecycle and fail with 400
    status: str | None = None
    assigned_visit_at: datetime | None = None


class CommentPayload(CamelModel):
    note: str | None = None
    attachments: list[str] = Field(default_factory=list)
    # either a list of line items or the JSON text of one, as sent by multipart forms
    price_list: str | list[dict[str, Any]] | None = None
    total_price: float | str | None = None


class MarkViewedPayload(CamelModel):
    ticket_ids: list[str] = Field(default_factory=list)


class MarkViewedResponse(CamelModel):
    updated: int
