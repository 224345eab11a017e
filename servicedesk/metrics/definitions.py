"""Metric definitions used across the application."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple


@dataclass(frozen=True)
class MetricDefinition:
    """Describe a metric that should exist in the registry."""

    name: str
    metric_type: str
    description: str
    label_names: Tuple[str, ...] = ()


DEFAULT_METRIC_DEFINITIONS: Tuple[MetricDefinition, ...] = (
    MetricDefinition(
        name="requests_created_total",
        metric_type="counter",
        description="Tickets and service requests created.",
        label_names=("kind",),
    ),
    MetricDefinition(
        name="request_status_changes_total",
        metric_type="counter",
        description="Status transitions applied by administrators.",
        label_names=("kind", "status"),
    ),
    MetricDefinition(
        name="timeline_entries_total",
        metric_type="counter",
        description="Timeline entries appended to requests.",
        label_names=("kind",),
    ),
    MetricDefinition(
        name="sequence_conflicts_total",
        metric_type="counter",
        description="Human id allocations that collided and were retried.",
        label_names=("kind",),
    ),
    MetricDefinition(
        name="notifications_emitted_total",
        metric_type="counter",
        description="Notification intents queued for delivery.",
        label_names=("event",),
    ),
    MetricDefinition(
        name="notifications_dropped_total",
        metric_type="counter",
        description="Notification intents dropped because the queue was full.",
    ),
    MetricDefinition(
        name="notification_failures_total",
        metric_type="counter",
        description="Notification deliveries that raised.",
        label_names=("event",),
    ),
    MetricDefinition(
        name="notification_dispatch_duration_seconds",
        metric_type="distribution",
        description="Time spent delivering one notification intent.",
    ),
)
