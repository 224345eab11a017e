from __future__ import annotations

from servicedesk.requests.variants import SERVICE_REQUEST

from .lifecycle import build_lifecycle_router

router = build_lifecycle_router(SERVICE_REQUEST, prefix="/service-requests", tag="service-requests")
