from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal

from backoffice.domain.errors import Forbidden, InvalidRole
from backoffice.domain.orders.models import Order, OrderCreateRequest, OrderFilters
from backoffice.governance.claims import AdminClaims, Claims, CustomerClaims, StoreOwnerClaims


OrderAction = Literal["read", "write", "delete"]


@dataclass(frozen=True)
class AccessDecision:
    allowed: bool
    action: str
    role: str
    reason: str

    def to_audit_dict(self) -> dict[str, Any]:
        return {
            "allowed": self.allowed,
            "action": self.action,
            "role": self.role,
            "reason": self.reason,
        }


def _role(claims: Claims) -> str:
    return getattr(claims, "role", type(claims).__name__)


class AccessControlEvaluator:
    def evaluate_order(self, claims: Claims, order: Order, action: OrderAction = "read") -> AccessDecision:
        role = _role(claims)
        if not claims.api_access:
            return AccessDecision(False, action, role, "api access not granted")

        if isinstance(claims, AdminClaims):
            if action == "delete":
                return AccessDecision(True, action, role, "admin may delete orders")
            return AccessDecision(True, action, role, "admin has full access")

        if action == "delete":
            return AccessDecision(False, action, role, "only admins may delete orders")

        if isinstance(claims, StoreOwnerClaims):
            if order.store_id is not None and order.store_id == claims.store_id:
                return AccessDecision(True, action, role, "order belongs to caller's store")
            return AccessDecision(False, action, role, f"order is not bound to store {claims.store_id}")

        if isinstance(claims, CustomerClaims):
            if order.customer_id is not None and order.customer_id == claims.customer_id:
                return AccessDecision(True, action, role, "order belongs to caller")
            return AccessDecision(False, action, role, f"order is not bound to customer {claims.customer_id}")

        return AccessDecision(False, action, role, f"unknown role {role!r}")

    def can_read_order(self, claims: Claims, order: Order) -> bool:
        return self.evaluate_order(claims, order, "read").allowed

    def can_write_order(self, claims: Claims, order: Order) -> bool:
        return self.evaluate_order(claims, order, "write").allowed

    def authorize_order(self, claims: Claims, order: Order, action: OrderAction) -> AccessDecision:
        decision = self.evaluate_order(claims, order, action)
        if not decision.allowed:
            raise Forbidden(f"{action} access to order {order.id} denied: {decision.reason}")
        return decision

    def derive_list_filter(self, claims: Claims, requested: OrderFilters | None = None) -> OrderFilters:
        """Merge caller filters with the constraints forced by the caller's role."""
        filters = requested or OrderFilters()
        if not claims.api_access:
            raise Forbidden("api access not granted")
        if isinstance(claims, AdminClaims):
            return filters
        if isinstance(claims, StoreOwnerClaims):
            return filters.model_copy(update={"store_id": claims.store_id})
        if isinstance(claims, CustomerClaims):
            return filters.model_copy(update={"customer_id": claims.customer_id})
        raise InvalidRole(f"invalid role: {_role(claims)!r}")

    def enforce_create(self, claims: Claims, request: OrderCreateRequest) -> OrderCreateRequest:
        if not claims.api_access:
            raise Forbidden("api access not granted")
        if isinstance(claims, AdminClaims):
            return request
        if isinstance(claims, StoreOwnerClaims):
            return request.model_copy(update={"store_id": claims.store_id})
        if isinstance(claims, CustomerClaims):
            return request.model_copy(update={"customer_id": claims.customer_id})
        raise InvalidRole(f"invalid role: {_role(claims)!r}")

    def can_access_customer(self, claims: Claims, customer_id: str) -> bool:
        if not claims.api_access:
            return False
        if isinstance(claims, AdminClaims):
            return True
        if isinstance(claims, CustomerClaims):
            return claims.customer_id == customer_id
        return False

    def can_access_store(self, claims: Claims, store_id: str) -> bool:
        if not claims.api_access:
            return False
        if isinstance(claims, AdminClaims):
            return True
        if isinstance(claims, StoreOwnerClaims):
            return claims.store_id == store_id
        return False

    def has_permission(self, claims: Claims, permission: str) -> bool:
        if not claims.api_access:
            return False
        return "*" in claims.permissions or permission in claims.permissions

    def require_admin(self, claims: Claims, detail: str = "admin role required") -> None:
        if not claims.api_access or not isinstance(claims, AdminClaims):
            raise Forbidden(detail)


def get_access_control() -> AccessControlEvaluator:
    return AccessControlEvaluator()
