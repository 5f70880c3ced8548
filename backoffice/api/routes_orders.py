from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.orm import Session

from backoffice.core.config import get_settings
from backoffice.core.security import get_claims
from backoffice.domain.orders.models import (
    BulkStatusUpdateRequest,
    CardIdsRequest,
    OrderCreateRequest,
    OrderFilters,
    OrderStatus,
    OrderUpdateRequest,
    SortField,
    SortOrder,
    StatusUpdateRequest,
)
from backoffice.domain.orders.service import OrderService
from backoffice.governance import Claims
from backoffice.persistence.pg import get_session

router = APIRouter(tags=["orders"])


def get_order_service(session: Session = Depends(get_session)) -> OrderService:
    return OrderService(session)


@router.post("/orders", status_code=201)
def create_order(
    request: OrderCreateRequest,
    claims: Claims = Depends(get_claims),
    service: OrderService = Depends(get_order_service),
):
    result = service.create(request, claims)
    return {
        "order": result.order.model_dump(mode="json"),
        "tracking_code": result.order.tracking_code,
        "warnings": result.warnings,
    }


@router.get("/orders")
def list_orders(
    page: int = Query(default=1, ge=1),
    limit: int | None = Query(default=None, ge=1, le=1000),
    status: OrderStatus | None = Query(default=None),
    store_id: str | None = Query(default=None),
    customer_id: str | None = Query(default=None),
    search: str | None = Query(default=None),
    sort_by: SortField = Query(default="created_at"),
    sort_order: SortOrder = Query(default="desc"),
    claims: Claims = Depends(get_claims),
    service: OrderService = Depends(get_order_service),
):
    filters = OrderFilters(
        page=page,
        limit=limit or get_settings().default_page_size,
        status=status,
        store_id=store_id,
        customer_id=customer_id,
        search=search,
        sort_by=sort_by,
        sort_order=sort_order,
    )
    return service.list_orders(filters, claims).model_dump(mode="json")


@router.get("/orders/by-tracking-code/{tracking_code}")
def get_order_by_tracking_code(tracking_code: str, service: OrderService = Depends(get_order_service)):
    # Public endpoint used by the customer-facing tracking page.
    return {"order": service.get_by_tracking_code(tracking_code).model_dump(mode="json")}


@router.post("/orders/bulk-update")
def bulk_update_orders(
    request: BulkStatusUpdateRequest,
    claims: Claims = Depends(get_claims),
    service: OrderService = Depends(get_order_service),
):
    return service.bulk_update_status(request.order_ids, request.status, request.performed_by, claims)


@router.get("/orders/{order_id}")
def get_order(
    order_id: str,
    claims: Claims = Depends(get_claims),
    service: OrderService = Depends(get_order_service),
):
    return {"order": service.get(order_id, claims).model_dump(mode="json")}


@router.put("/orders/{order_id}")
def update_order(
    order_id: str,
    request: OrderUpdateRequest,
    claims: Claims = Depends(get_claims),
    service: OrderService = Depends(get_order_service),
):
    result = service.update(order_id, request, claims)
    return {"order": result.order.model_dump(mode="json"), "warnings": result.warnings}


@router.delete("/orders/{order_id}", status_code=204)
def delete_order(
    order_id: str,
    claims: Claims = Depends(get_claims),
    service: OrderService = Depends(get_order_service),
):
    service.delete(order_id, claims)
    return Response(status_code=204)


@router.get("/orders/{order_id}/status")
def get_order_status_options(
    order_id: str,
    claims: Claims = Depends(get_claims),
    service: OrderService = Depends(get_order_service),
):
    return service.status_options(order_id, claims)


@router.put("/orders/{order_id}/status")
def update_order_status(
    order_id: str,
    request: StatusUpdateRequest,
    claims: Claims = Depends(get_claims),
    service: OrderService = Depends(get_order_service),
):
    order = service.update_status(
        order_id,
        request.status,
        request.performed_by,
        claims,
        expected_version=request.expected_version,
    )
    return {"order": order.model_dump(mode="json")}


@router.post("/orders/{order_id}/assign-cards")
def assign_cards(
    order_id: str,
    request: CardIdsRequest,
    claims: Claims = Depends(get_claims),
    service: OrderService = Depends(get_order_service),
):
    result = service.assign_cards(order_id, request.card_ids, claims)
    return {"order": result.order.model_dump(mode="json"), "warnings": result.warnings}


@router.post("/orders/{order_id}/remove-cards")
def remove_cards(
    order_id: str,
    request: CardIdsRequest,
    claims: Claims = Depends(get_claims),
    service: OrderService = Depends(get_order_service),
):
    result = service.remove_cards(order_id, request.card_ids, claims)
    return {"order": result.order.model_dump(mode="json"), "warnings": result.warnings}
