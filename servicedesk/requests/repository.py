from __future__ import annotations

import asyncio
import copy
from dataclasses import replace
from typing import Callable, Iterable, Protocol, Sequence

from .errors import ConflictError, NotFoundError
from .models import RequestFilter, ServiceDeskRequest, TimelineEntry
from .variants import RequestKind

RequestMutation = Callable[[ServiceDeskRequest], ServiceDeskRequest | None]


class RequestStore(Protocol):
    """Persistence contract for tickets and service requests."""

    async def insert(self, request: ServiceDeskRequest) -> ServiceDeskRequest:
        """Persist a new request. Raises ``ConflictError`` on a duplicate human id."""

    async def get(self, kind: RequestKind, request_id: str) -> ServiceDeskRequest | None:
        ...

    async def list(
        self, kind: RequestKind, criteria: RequestFilter, *, offset: int, limit: int
    ) -> Sequence[ServiceDeskRequest]:
        """Return matching requests newest first."""

    async def count(self, kind: RequestKind, criteria: RequestFilter) -> int:
        ...

    async def update(
        self, kind: RequestKind, request_id: str, mutate: RequestMutation
    ) -> ServiceDeskRequest | None:
        """Apply ``mutate`` to the locked current record and persist the result.

        ``mutate`` receives a private copy and returns the changed record, or
        ``None`` to leave storage untouched; anything it raises aborts the
        update. Only status, visit, completion and ``updated_at`` are written.
        Returns ``None`` when the request does not exist.
        """

    async def delete(self, kind: RequestKind, request_id: str) -> bool:
        ...

    async def latest_human_id(self, kind: RequestKind) -> str | None:
        """Return the numerically highest human id stored for ``kind``."""

    async def append_timeline_entry(
        self, kind: RequestKind, request_id: str, entry: TimelineEntry
    ) -> ServiceDeskRequest | None:
        """Atomically append ``entry`` at the end of the timeline."""

    async def add_seen_by(
        self, kind: RequestKind, request_id: str, position: int, user_id: str
    ) -> ServiceDeskRequest | None:
        """Idempotently add ``user_id`` to the seen-by set of one entry."""

    async def mark_viewed(self, kind: RequestKind, request_ids: Iterable[str]) -> int:
        """Flag requests as viewed by an admin; unknown ids are ignored."""


def human_id_sort_key(human_id: str) -> tuple[int, str]:
    # zero padding keeps lexical order numeric until the width grows
    return (len(human_id), human_id)


class InMemoryRequestStore:
    """Process-local store used for local runs and tests.

    Records are copied on the way in and out so callers never share state
    with the store.
    """

    def __init__(self) -> None:
        self._records: dict[str, ServiceDeskRequest] = {}
        self._order: dict[str, int] = {}
        self._counter = 0
        self._lock = asyncio.Lock()

    async def insert(self, request: ServiceDeskRequest) -> ServiceDeskRequest:
        async with self._lock:
            for existing in self._records.values():
                if existing.kind == request.kind and existing.human_id == request.human_id:
                    raise ConflictError(f"Human id {request.human_id} already exists")
            if request.id in self._records:
                raise ConflictError(f"Request {request.id} already exists")
            self._counter += 1
            self._order[request.id] = self._counter
            self._records[request.id] = copy.deepcopy(request)
            return copy.deepcopy(request)

    async def get(self, kind: RequestKind, request_id: str) -> ServiceDeskRequest | None:
        record = self._find(kind, request_id)
        return copy.deepcopy(record) if record is not None else None

    async def list(
        self, kind: RequestKind, criteria: RequestFilter, *, offset: int, limit: int
    ) -> Sequence[ServiceDeskRequest]:
        matches = sorted(
            self._matching(kind, criteria),
            key=lambda item: (item.created_at, self._order[item.id]),
            reverse=True,
        )
        return [copy.deepcopy(item) for item in matches[offset : offset + limit]]

    async def count(self, kind: RequestKind, criteria: RequestFilter) -> int:
        return len(self._matching(kind, criteria))

    async def update(
        self, kind: RequestKind, request_id: str, mutate: RequestMutation
    ) -> ServiceDeskRequest | None:
        async with self._lock:
            record = self._find(kind, request_id)
            if record is None:
                return None
            changed = mutate(copy.deepcopy(record))
            if changed is None:
                return copy.deepcopy(record)
            updated = replace(
                record,
                status=changed.status,
                assigned_visit_at=changed.assigned_visit_at,
                completed_at=changed.completed_at,
                updated_at=changed.updated_at,
            )
            self._records[request_id] = updated
            return copy.deepcopy(updated)

    async def delete(self, kind: RequestKind, request_id: str) -> bool:
        async with self._lock:
            if self._find(kind, request_id) is None:
                return False
            del self._records[request_id]
            del self._order[request_id]
            return True

    async def latest_human_id(self, kind: RequestKind) -> str | None:
        human_ids = [item.human_id for item in self._records.values() if item.kind == kind]
        if not human_ids:
            return None
        return max(human_ids, key=human_id_sort_key)

    async def append_timeline_entry(
        self, kind: RequestKind, request_id: str, entry: TimelineEntry
    ) -> ServiceDeskRequest | None:
        async with self._lock:
            record = self._find(kind, request_id)
            if record is None:
                return None
            stored = copy.deepcopy(entry)
            stored.position = len(record.timeline)
            record.timeline.append(stored)
            record.updated_at = max(record.updated_at, stored.added_at)
            return copy.deepcopy(record)

    async def add_seen_by(
        self, kind: RequestKind, request_id: str, position: int, user_id: str
    ) -> ServiceDeskRequest | None:
        async with self._lock:
            record = self._find(kind, request_id)
            if record is None:
                return None
            if position < 0 or position >= len(record.timeline):
                raise NotFoundError("Timeline item not found")
            entry = record.timeline[position]
            if user_id not in entry.seen_by:
                entry.seen_by.append(user_id)
            return copy.deepcopy(record)

    async def mark_viewed(self, kind: RequestKind, request_ids: Iterable[str]) -> int:
        updated = 0
        async with self._lock:
            for request_id in set(request_ids):
                record = self._find(kind, request_id)
                if record is None or record.viewed_by_admin:
                    continue
                record.viewed_by_admin = True
                updated += 1
        return updated

    def _find(self, kind: RequestKind, request_id: str) -> ServiceDeskRequest | None:
        record = self._records.get(request_id)
        if record is None or record.kind != kind:
            return None
        return record

    def _matching(self, kind: RequestKind, criteria: RequestFilter) -> list[ServiceDeskRequest]:
        results: list[ServiceDeskRequest] = []
        for item in self._records.values():
            if item.kind != kind:
                continue
            if criteria.owner_id is not None and item.owner_id != criteria.owner_id:
                continue
            if criteria.unviewed_only and item.viewed_by_admin:
                continue
            results.append(item)
        return results
