"""Append-only timeline attached to every request."""

from __future__ import annotations

import json
import logging
import math
from datetime import datetime, timezone
from typing import Any, Callable, Iterable, Mapping, Sequence

from servicedesk.metrics import metrics_registry
from servicedesk.metrics.registry import MetricsRegistry

from .errors import InvalidInputError, NotFoundError
from .models import PriceLine, ServiceDeskRequest, TimelineEntry
from .repository import RequestStore
from .variants import get_variant

logger = logging.getLogger(__name__)

PriceListInput = str | Sequence[Mapping[str, Any] | PriceLine] | None


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def normalize_attachments(attachments: Iterable[str] | None) -> list[str]:
    """Return attachment URLs in order, dropping blanks; ``None`` becomes empty."""

    if attachments is None:
        return []
    if isinstance(attachments, str):
        attachments = [attachments]
    return [url.strip() for url in attachments if url and url.strip()]


def _parse_price(value: Any, label: str) -> float:
    try:
        price = float(value)
    except (TypeError, ValueError) as exc:
        raise InvalidInputError(f"{label} must be a number") from exc
    if math.isnan(price) or math.isinf(price) or price < 0:
        raise InvalidInputError(f"{label} must be a non-negative number")
    return price


def _parse_line(raw: Mapping[str, Any] | PriceLine, index: int) -> PriceLine:
    if isinstance(raw, PriceLine):
        raw = {"sNo": raw.sequence_no, "description": raw.description, "price": raw.price}
    if not isinstance(raw, Mapping):
        raise InvalidInputError(f"Price line {index + 1} must be an object")

    sequence_no = raw.get("sNo", raw.get("sequenceNo", raw.get("sequence_no", index + 1)))
    try:
        sequence_no = int(sequence_no)
    except (TypeError, ValueError) as exc:
        raise InvalidInputError(f"Price line {index + 1} has an invalid sequence number") from exc
    if sequence_no < 1:
        raise InvalidInputError(f"Price line {index + 1} has an invalid sequence number")

    description = str(raw.get("description") or "").strip()
    if not description:
        raise InvalidInputError(f"Price line {index + 1} needs a description")

    price = _parse_price(raw.get("price"), f"Price of line {index + 1}")
    return PriceLine(sequence_no=sequence_no, description=description, price=price)


def parse_price_list(price_list: PriceListInput) -> list[PriceLine]:
    """Accept a price list as parsed objects or as a JSON string from a form field."""

    if price_list is None or price_list == "":
        return []
    if isinstance(price_list, str):
        try:
            price_list = json.loads(price_list)
        except json.JSONDecodeError as exc:
            raise InvalidInputError("Price list is not valid JSON") from exc
        if price_list is None:
            return []
    if isinstance(price_list, Mapping) or not isinstance(price_list, Sequence):
        raise InvalidInputError("Price list must be a list of line items")
    return [_parse_line(item, index) for index, item in enumerate(price_list)]


class TimelineLog:
    """Validate and append timeline entries, and record acknowledgements."""

    def __init__(
        self,
        store: RequestStore,
        *,
        clock: Callable[[], datetime] | None = None,
        registry: MetricsRegistry | None = None,
    ) -> None:
        self._store = store
        self._clock = clock or _utcnow
        self._entries = (registry or metrics_registry).counter("timeline_entries_total", label_names=("kind",))

    def build_entry(
        self,
        request: ServiceDeskRequest,
        *,
        note: str | None,
        author: str,
        attachments: Iterable[str] | None = None,
        price_list: PriceListInput = None,
        total_price: Any = None,
    ) -> TimelineEntry:
        note = (note or "").strip()
        if not note:
            raise InvalidInputError("Please provide a note")

        variant = get_variant(request.kind)
        lines = parse_price_list(price_list)
        has_total = total_price not in (None, "")
        if not variant.supports_pricing and (lines or has_total):
            raise InvalidInputError(f"Price lists are not supported on a {variant.noun}")
        total = _parse_price(total_price, "Total price") if has_total else 0.0

        return TimelineEntry(
            position=len(request.timeline),
            note=note,
            added_by=author,
            added_at=self._clock(),
            attachments=normalize_attachments(attachments),
            seen_by=[],
            price_list=lines,
            total_price=total,
        )

    async def append(
        self,
        request: ServiceDeskRequest,
        *,
        note: str | None,
        author: str,
        attachments: Iterable[str] | None = None,
        price_list: PriceListInput = None,
        total_price: Any = None,
    ) -> ServiceDeskRequest:
        entry = self.build_entry(
            request,
            note=note,
            author=author,
            attachments=attachments,
            price_list=price_list,
            total_price=total_price,
        )
        updated = await self._store.append_timeline_entry(request.kind, request.id, entry)
        if updated is None:
            raise NotFoundError(f"{get_variant(request.kind).noun.capitalize()} not found")
        self._entries.inc(labels={"kind": request.kind.value})
        logger.info(
            "Appended timeline entry #%d to %s by %s",
            len(updated.timeline) - 1,
            updated.human_id,
            author,
        )
        return updated

    async def mark_seen(self, request: ServiceDeskRequest, position: int, user_id: str) -> ServiceDeskRequest:
        if position < 0 or position >= len(request.timeline):
            raise NotFoundError("Timeline item not found")
        if request.timeline[position].is_seen_by(user_id):
            return request

        updated = await self._store.add_seen_by(request.kind, request.id, position, user_id)
        if updated is None:
            raise NotFoundError(f"{get_variant(request.kind).noun.capitalize()} not found")
        logger.debug("Timeline entry #%d of %s seen by %s", position, request.human_id, user_id)
        return updated
