"""Database models and utilities."""

from .models import RequestTimelineEntryTable, ServiceDeskRequestTable, TimelineEntryViewTable

__all__ = [
    "RequestTimelineEntryTable",
    "ServiceDeskRequestTable",
    "TimelineEntryViewTable",
]
