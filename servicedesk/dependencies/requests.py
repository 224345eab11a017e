from __future__ import annotations

from typing import Annotated

from fastapi import Depends, HTTPException, Request

from servicedesk.requests.service import RequestLifecycleService


async def get_lifecycle_service(request: Request) -> RequestLifecycleService:
    service = getattr(request.app.state, "lifecycle_service", None)
    if service is None:
        raise HTTPException(status_code=503, detail="Service desk is not configured")
    return service


LifecycleServiceDep = Annotated[RequestLifecycleService, Depends(get_lifecycle_service)]
