from __future__ import annotations

import asyncio
from collections import defaultdict
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Iterable, Iterator, Sequence

from sqlalchemy import delete as sa_delete, func, update as sa_update
from sqlalchemy.exc import DBAPIError, IntegrityError, InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker
from sqlmodel import SQLModel, select

from servicedesk.db.models import RequestTimelineEntryTable, ServiceDeskRequestTable, TimelineEntryViewTable

from .errors import ConflictError, NotFoundError, UnavailableError
from .models import GeoLocation, PriceLine, RequestFilter, ServiceDeskRequest, TimelineEntry
from .repository import RequestMutation
from .variants import RequestCategory, RequestKind, RequestStatus


@contextmanager
def _translate_errors() -> Iterator[None]:
    try:
        yield
    except IntegrityError as exc:
        raise ConflictError("Request violates a uniqueness constraint") from exc
    except (OperationalError, InterfaceError, OSError) as exc:
        raise UnavailableError("Request store is unavailable") from exc
    except DBAPIError as exc:
        if exc.connection_invalidated:
            raise UnavailableError("Request store connection was lost") from exc
        raise


class SqlRequestStore:
    """Persistence helper wrapping requests, timeline entries and their views.

    Row locks (``SELECT ... FOR UPDATE``) serialise writers across processes on
    PostgreSQL. SQLite ignores them, so writes issued by this process are also
    serialised through a local lock.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        engine: AsyncEngine | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._engine: AsyncEngine | None = engine
        self._write_lock = asyncio.Lock()

    async def ensure_schema(self) -> None:
        if self._engine is None:
            raise RuntimeError("Session factory is not bound to an async engine")
        with _translate_errors():
            async with self._engine.begin() as connection:
                await connection.run_sync(SQLModel.metadata.create_all)

    async def insert(self, request: ServiceDeskRequest) -> ServiceDeskRequest:
        async with self._write_lock:
            with _translate_errors():
                async with self._session_factory() as session:
                    async with session.begin():
                        session.add(self._request_to_table(request))
                        for entry in request.timeline:
                            session.add(self._entry_to_table(request.id, entry))
        return request

    async def get(self, kind: RequestKind, request_id: str) -> ServiceDeskRequest | None:
        with _translate_errors():
            async with self._session_factory() as session:
                row = await session.get(ServiceDeskRequestTable, request_id)
                if row is None or row.kind != kind.value:
                    return None
                timelines = await self._load_timelines(session, [row.id])
        return self._table_to_request(row, timelines[row.id])

    async def list(
        self, kind: RequestKind, criteria: RequestFilter, *, offset: int, limit: int
    ) -> Sequence[ServiceDeskRequest]:
        statement = (
            self._apply_filter(select(ServiceDeskRequestTable), kind, criteria)
            .order_by(ServiceDeskRequestTable.created_at.desc(), ServiceDeskRequestTable.human_id.desc())
            .offset(offset)
            .limit(limit)
        )
        with _translate_errors():
            async with self._session_factory() as session:
                result = await session.execute(statement)
                rows = list(result.scalars().all())
                timelines = await self._load_timelines(session, [row.id for row in rows])
        return [self._table_to_request(row, timelines[row.id]) for row in rows]

    async def count(self, kind: RequestKind, criteria: RequestFilter) -> int:
        statement = self._apply_filter(
            select(func.count()).select_from(ServiceDeskRequestTable), kind, criteria
        )
        with _translate_errors():
            async with self._session_factory() as session:
                result = await session.execute(statement)
                return int(result.scalar_one())

    async def update(
        self, kind: RequestKind, request_id: str, mutate: RequestMutation
    ) -> ServiceDeskRequest | None:
        async with self._write_lock:
            with _translate_errors():
                async with self._session_factory() as session:
                    async with session.begin():
                        row = await session.get(ServiceDeskRequestTable, request_id, with_for_update=True)
                        if row is None or row.kind != kind.value:
                            return None
                        timelines = await self._load_timelines(session, [row.id])
                        current = self._table_to_request(row, timelines[row.id])
                        changed = mutate(current)
                        if changed is None:
                            return current
                        row.status = changed.status.value
                        row.assigned_visit_at = changed.assigned_visit_at
                        row.completed_at = changed.completed_at
                        row.updated_at = changed.updated_at
        return await self.get(kind, request_id)

    async def delete(self, kind: RequestKind, request_id: str) -> bool:
        async with self._write_lock:
            with _translate_errors():
                async with self._session_factory() as session:
                    async with session.begin():
                        row = await session.get(ServiceDeskRequestTable, request_id)
                        if row is None or row.kind != kind.value:
                            return False
                        entry_ids = select(RequestTimelineEntryTable.id).where(
                            RequestTimelineEntryTable.request_id == request_id
                        )
                        await session.execute(
                            sa_delete(TimelineEntryViewTable).where(TimelineEntryViewTable.entry_id.in_(entry_ids))
                        )
                        await session.execute(
                            sa_delete(RequestTimelineEntryTable).where(
                                RequestTimelineEntryTable.request_id == request_id
                            )
                        )
                        await session.delete(row)
        return True

    async def latest_human_id(self, kind: RequestKind) -> str | None:
        statement = (
            select(ServiceDeskRequestTable.human_id)
            .where(ServiceDeskRequestTable.kind == kind.value)
            .order_by(func.length(ServiceDeskRequestTable.human_id).desc(), ServiceDeskRequestTable.human_id.desc())
            .limit(1)
        )
        with _translate_errors():
            async with self._session_factory() as session:
                result = await session.execute(statement)
                return result.scalar_one_or_none()

    async def append_timeline_entry(
        self, kind: RequestKind, request_id: str, entry: TimelineEntry
    ) -> ServiceDeskRequest | None:
        async with self._write_lock:
            with _translate_errors():
                async with self._session_factory() as session:
                    async with session.begin():
                        # the parent row lock serialises appends to one timeline
                        row = await session.get(ServiceDeskRequestTable, request_id, with_for_update=True)
                        if row is None or row.kind != kind.value:
                            return None
                        result = await session.execute(
                            select(func.count())
                            .select_from(RequestTimelineEntryTable)
                            .where(RequestTimelineEntryTable.request_id == request_id)
                        )
                        entry.position = int(result.scalar_one())
                        session.add(self._entry_to_table(request_id, entry))
                        row.updated_at = max(_ensure_datetime(row.updated_at), entry.added_at)
        return await self.get(kind, request_id)

    async def add_seen_by(
        self, kind: RequestKind, request_id: str, position: int, user_id: str
    ) -> ServiceDeskRequest | None:
        async with self._write_lock:
            with _translate_errors():
                async with self._session_factory() as session:
                    row = await session.get(ServiceDeskRequestTable, request_id)
                    if row is None or row.kind != kind.value:
                        return None
                    entry_result = await session.execute(
                        select(RequestTimelineEntryTable.id).where(
                            RequestTimelineEntryTable.request_id == request_id,
                            RequestTimelineEntryTable.position == position,
                        )
                    )
                    entry_id = entry_result.scalar_one_or_none()
                    if entry_id is None:
                        raise NotFoundError("Timeline item not found")
                    session.add(TimelineEntryViewTable(entry_id=entry_id, user_id=user_id))
                    try:
                        await session.commit()
                    except IntegrityError:
                        # the unique (entry, user) index already holds this acknowledgement
                        await session.rollback()
        return await self.get(kind, request_id)

    async def mark_viewed(self, kind: RequestKind, request_ids: Iterable[str]) -> int:
        ids = list(dict.fromkeys(request_ids))
        if not ids:
            return 0
        statement = (
            sa_update(ServiceDeskRequestTable)
            .where(
                ServiceDeskRequestTable.kind == kind.value,
                ServiceDeskRequestTable.id.in_(ids),
                ServiceDeskRequestTable.viewed_by_admin.is_(False),
            )
            .values(viewed_by_admin=True)
        )
        async with self._write_lock:
            with _translate_errors():
                async with self._session_factory() as session:
                    async with session.begin():
                        result = await session.execute(statement)
        return int(result.rowcount or 0)

    @staticmethod
    def _apply_filter(statement: Any, kind: RequestKind, criteria: RequestFilter) -> Any:
        statement = statement.where(ServiceDeskRequestTable.kind == kind.value)
        if criteria.owner_id is not None:
            statement = statement.where(ServiceDeskRequestTable.owner_id == criteria.owner_id)
        if criteria.unviewed_only:
            statement = statement.where(ServiceDeskRequestTable.viewed_by_admin.is_(False))
        return statement

    async def _load_timelines(self, session: AsyncSession, request_ids: list[str]) -> dict[str, list[TimelineEntry]]:
        timelines: dict[str, list[TimelineEntry]] = {request_id: [] for request_id in request_ids}
        if not request_ids:
            return timelines

        entry_result = await session.execute(
            select(RequestTimelineEntryTable)
            .where(RequestTimelineEntryTable.request_id.in_(request_ids))
            .order_by(RequestTimelineEntryTable.request_id, RequestTimelineEntryTable.position.asc())
        )
        entry_rows = list(entry_result.scalars().all())

        seen_by: dict[str, list[str]] = defaultdict(list)
        if entry_rows:
            view_result = await session.execute(
                select(TimelineEntryViewTable)
                .where(TimelineEntryViewTable.entry_id.in_([row.id for row in entry_rows]))
                .order_by(TimelineEntryViewTable.seen_at.asc())
            )
            for view in view_result.scalars().all():
                seen_by[view.entry_id].append(view.user_id)

        for row in entry_rows:
            timelines[row.request_id].append(self._table_to_entry(row, seen_by[row.id]))
        return timelines

    @staticmethod
    def _request_to_table(request: ServiceDeskRequest) -> ServiceDeskRequestTable:
        return ServiceDeskRequestTable(
            id=request.id,
            kind=request.kind.value,
            human_id=request.human_id,
            owner_id=request.owner_id,
            category=request.category.value,
            title=request.title,
            description=request.description,
            attachments=list(request.attachments),
            status=request.status.value,
            lat=request.location.lat,
            lng=request.location.lng,
            address=request.address,
            outlet_name=request.outlet_name,
            camera_type=request.camera_type,
            camera_count=request.camera_count,
            preferred_visit_at=request.preferred_visit_at,
            assigned_visit_at=request.assigned_visit_at,
            completed_at=request.completed_at,
            viewed_by_admin=request.viewed_by_admin,
            created_at=request.created_at,
            updated_at=request.updated_at,
        )

    @staticmethod
    def _entry_to_table(request_id: str, entry: TimelineEntry) -> RequestTimelineEntryTable:
        return RequestTimelineEntryTable(
            request_id=request_id,
            position=entry.position,
            note=entry.note,
            added_by=entry.added_by,
            added_at=entry.added_at,
            attachments=list(entry.attachments),
            price_list=[
                {"sNo": line.sequence_no, "description": line.description, "price": line.price}
                for line in entry.price_list
            ],
            total_price=entry.total_price,
        )

    @staticmethod
    def _table_to_entry(row: RequestTimelineEntryTable, seen_by: list[str]) -> TimelineEntry:
        return TimelineEntry(
            position=row.position,
            note=row.note,
            added_by=row.added_by,
            added_at=_ensure_datetime(row.added_at),
            attachments=list(row.attachments or []),
            seen_by=list(seen_by),
            price_list=[
                PriceLine(
                    sequence_no=int(item["sNo"]),
                    description=str(item["description"]),
                    price=float(item["price"]),
                )
                for item in row.price_list or []
            ],
            total_price=float(row.total_price or 0.0),
        )

    @staticmethod
    def _table_to_request(row: ServiceDeskRequestTable, timeline: list[TimelineEntry]) -> ServiceDeskRequest:
        return ServiceDeskRequest(
            id=row.id,
            kind=RequestKind(row.kind),
            human_id=row.human_id,
            owner_id=row.owner_id,
            category=RequestCategory(row.category),
            title=row.title,
            description=row.description,
            status=RequestStatus(row.status),
            location=GeoLocation(lat=float(row.lat), lng=float(row.lng)),
            address=row.address,
            created_at=_ensure_datetime(row.created_at),
            updated_at=_ensure_datetime(row.updated_at),
            attachments=list(row.attachments or []),
            outlet_name=row.outlet_name,
            camera_type=row.camera_type,
            camera_count=row.camera_count,
            preferred_visit_at=_optional_datetime(row.preferred_visit_at),
            assigned_visit_at=_optional_datetime(row.assigned_visit_at),
            completed_at=_optional_datetime(row.completed_at),
            viewed_by_admin=bool(row.viewed_by_admin),
            timeline=timeline,
        )


def _ensure_datetime(value: datetime | None) -> datetime:
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value
    raise TypeError("Expected datetime value from database")


def _optional_datetime(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    return _ensure_datetime(value)
