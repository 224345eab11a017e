"""Allocation of human readable request identifiers (``TKT-000123``)."""

from __future__ import annotations

import asyncio
import logging
import re
from typing import Awaitable, Callable

from servicedesk.metrics import metrics_registry
from servicedesk.metrics.registry import MetricsRegistry

from .errors import ConflictError, UnavailableError
from .models import ServiceDeskRequest
from .repository import RequestStore
from .variants import RequestKind, RequestVariant

logger = logging.getLogger(__name__)

SEQUENCE_WIDTH = 6
_NON_DIGITS = re.compile(r"\D")


def format_human_id(prefix: str, sequence: int) -> str:
    return f"{prefix}-{sequence:0{SEQUENCE_WIDTH}d}"


def parse_sequence(human_id: str | None) -> int:
    """Extract the numeric suffix of a human id; ``0`` when there is none."""

    if not human_id:
        return 0
    digits = _NON_DIGITS.sub("", human_id)
    return int(digits) if digits else 0


class SequenceAllocator:
    """Hand out the next identifier for a variant and retry on collisions.

    The next value is derived from the highest identifier already stored.
    Allocations for one kind are serialised within the process; writers in
    other processes can still compute the same value, in which case the
    store's unique index rejects the loser and it recomputes.
    """

    def __init__(
        self,
        store: RequestStore,
        *,
        max_attempts: int = 10,
        registry: MetricsRegistry | None = None,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self._store = store
        self._max_attempts = max_attempts
        self._registry = registry or metrics_registry
        self._locks: dict[RequestKind, asyncio.Lock] = {}

    async def next_human_id(self, variant: RequestVariant) -> str:
        latest = await self._store.latest_human_id(variant.kind)
        return format_human_id(variant.prefix, parse_sequence(latest) + 1)

    async def allocate(
        self,
        variant: RequestVariant,
        build: Callable[[str], ServiceDeskRequest],
        insert: Callable[[ServiceDeskRequest], Awaitable[ServiceDeskRequest]] | None = None,
    ) -> ServiceDeskRequest:
        """Build a record around a fresh identifier and persist it."""

        persist = insert or self._store.insert
        conflicts = self._registry.counter("sequence_conflicts_total", label_names=("kind",))
        lock = self._locks.setdefault(variant.kind, asyncio.Lock())
        async with lock:
            for attempt in range(1, self._max_attempts + 1):
                human_id = await self.next_human_id(variant)
                try:
                    return await persist(build(human_id))
                except ConflictError:
                    conflicts.inc(labels={"kind": variant.kind.value})
                    logger.warning(
                        "Human id %s already taken (attempt %d/%d); recomputing",
                        human_id,
                        attempt,
                        self._max_attempts,
                    )
        raise UnavailableError(
            f"Could not allocate a {variant.noun} identifier after {self._max_attempts} attempts"
        )
