from fastapi import APIRouter, Request, Response

from servicedesk.metrics import metrics_registry
from servicedesk.metrics.exporters import CONTENT_TYPE, PrometheusExporter

router = APIRouter(tags=["observability"])


@router.get("/metrics", summary="Prometheus metrics", include_in_schema=False)
async def metrics(request: Request) -> Response:
    registry = getattr(request.app.state, "metrics_registry", None) or metrics_registry
    payload = PrometheusExporter(registry).build_payload()
    return Response(content=payload, media_type=CONTENT_TYPE)
