from __future__ import annotations

from fastapi import APIRouter, Depends

from backoffice.api.routes_orders import get_order_service
from backoffice.core.security import get_claims
from backoffice.domain.errors import Forbidden
from backoffice.domain.orders.models import PricingRequest
from backoffice.domain.orders.service import OrderService
from backoffice.governance import Claims, StoreOwnerClaims

router = APIRouter(tags=["pricing"])


@router.post("/pricing/calculate")
def calculate_pricing(
    request: PricingRequest,
    claims: Claims = Depends(get_claims),
    service: OrderService = Depends(get_order_service),
):
    if not claims.api_access:
        raise Forbidden("api access not granted")
    store_id = request.store_id
    if isinstance(claims, StoreOwnerClaims):
        # store owners always quote their own store's prices
        store_id = claims.store_id
    return service.calculate_pricing(store_id, request.items).model_dump(mode="json")
