"""Router factory shared by the ticket and service request endpoints."""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, Query, status

from servicedesk.dependencies.auth import CurrentPrincipal
from servicedesk.dependencies.requests import LifecycleServiceDep
from servicedesk.requests.errors import ServiceDeskError
from servicedesk.requests.variants import RequestVariant

from .schemas import CommentPayload, CreateRequestPayload, RequestModel, RequestPageModel, UpdateStatusPayload

_STATUS_BY_CATEGORY = {
    "validation": status.HTTP_400_BAD_REQUEST,
    "forbidden": status.HTTP_403_FORBIDDEN,
    "not_found": status.HTTP_404_NOT_FOUND,
    "conflict": status.HTTP_409_CONFLICT,
    "unavailable": status.HTTP_503_SERVICE_UNAVAILABLE,
}


def http_error(exc: ServiceDeskError) -> HTTPException:
    return HTTPException(status_code=_STATUS_BY_CATEGORY.get(exc.category, 500), detail=str(exc))


def build_lifecycle_router(variant: RequestVariant, *, prefix: str, tag: str) -> APIRouter:
    router = APIRouter(prefix=prefix, tags=[tag])
    kind = variant.kind

    @router.post("", response_model=RequestModel, status_code=status.HTTP_201_CREATED)
    async def create_request(
        payload: CreateRequestPayload,
        service: LifecycleServiceDep,
        principal: CurrentPrincipal,
    ) -> RequestModel:
        try:
            request = await service.create(kind, principal, payload.to_new_request())
        except ServiceDeskError as exc:
            raise http_error(exc) from exc
        return RequestModel.from_entity(request)

    @router.get("", response_model=RequestPageModel)
    async def list_requests(
        service: LifecycleServiceDep,
        principal: CurrentPrincipal,
        page: int = Query(default=1),
        limit: int | None = Query(default=None),
        show_all: bool = Query(default=False, alias="showAll"),
    ) -> RequestPageModel:
        try:
            result = await service.list(kind, principal, page=page, limit=limit, show_all=show_all)
        except ServiceDeskError as exc:
            raise http_error(exc) from exc
        return RequestPageModel.from_page(result)

    @router.get("/{request_id}", response_model=RequestModel)
    async def get_request(request_id: str, service: LifecycleServiceDep, principal: CurrentPrincipal) -> RequestModel:
        try:
            request = await service.get(kind, request_id, principal)
        except ServiceDeskError as exc:
            raise http_error(exc) from exc
        return RequestModel.from_entity(request)

    @router.put("/{request_id}", response_model=RequestModel)
    async def update_request(
        request_id: str,
        payload: UpdateStatusPayload,
        service: LifecycleServiceDep,
        principal: CurrentPrincipal,
    ) -> RequestModel:
        try:
            request = await service.update_status(
                kind,
                request_id,
                principal,
                status=payload.status,
                assigned_visit_at=payload.assigned_visit_at,
            )
        except ServiceDeskError as exc:
            raise http_error(exc) from exc
        return RequestModel.from_entity(request)

    @router.delete("/{request_id}", status_code=status.HTTP_204_NO_CONTENT)
    async def delete_request(request_id: str, service: LifecycleServiceDep, principal: CurrentPrincipal) -> None:
        try:
            await service.delete(kind, request_id, principal)
        except ServiceDeskError as exc:
            raise http_error(exc) from exc

    @router.post("/{request_id}/comments", response_model=RequestModel, status_code=status.HTTP_201_CREATED)
    async def add_comment(
        request_id: str,
        payload: CommentPayload,
        service: LifecycleServiceDep,
        principal: CurrentPrincipal,
    ) -> RequestModel:
        try:
            request = await service.add_comment(
                kind,
                request_id,
                principal,
                note=payload.note,
                attachments=payload.attachments,
                price_list=payload.price_list,
                total_price=payload.total_price,
            )
        except ServiceDeskError as exc:
            raise http_error(exc) from exc
        return RequestModel.from_entity(request)

    @router.put("/{request_id}/replies/{index}/seen", response_model=RequestModel)
    async def mark_reply_seen(
        request_id: str,
        index: int,
        service: LifecycleServiceDep,
        principal: CurrentPrincipal,
    ) -> RequestModel:
        try:
            request = await service.mark_seen(kind, request_id, index, principal)
        except ServiceDeskError as exc:
            raise http_error(exc) from exc
        return RequestModel.from_entity(request)

    return router
