from __future__ import annotations

from typing import Any, Literal, Mapping

from pydantic import BaseModel, ConfigDict, Field

from backoffice.domain.errors import InvalidRole, MissingTenantBinding


UserRole = Literal["admin", "store_owner", "customer"]


class _BaseClaims(BaseModel):
    model_config = ConfigDict(frozen=True)

    api_access: bool = True
    subject: str | None = None
    permissions: tuple[str, ...] = ()


class AdminClaims(_BaseClaims):
    role: Literal["admin"] = "admin"
    permissions: tuple[str, ...] = ("*",)


class StoreOwnerClaims(_BaseClaims):
    role: Literal["store_owner"] = "store_owner"
    store_id: str = Field(min_length=1)
    permissions: tuple[str, ...] = ("manage:orders", "read:customers")


class CustomerClaims(_BaseClaims):
    role: Literal["customer"] = "customer"
    customer_id: str = Field(min_length=1)


Claims = AdminClaims | StoreOwnerClaims | CustomerClaims


def parse_claims(raw: Mapping[str, Any]) -> Claims:
    """Build typed claims from an untrusted mapping (token payload, CLI args).

    A tenant role without its tenant id is rejected instead of being widened.
    """
    role = raw.get("role")
    common: dict[str, Any] = {
        "api_access": bool(raw.get("api_access", False)),
        "subject": raw.get("subject") or raw.get("sub"),
    }
    if raw.get("permissions") is not None:
        common["permissions"] = tuple(str(p) for p in raw["permissions"])

    if role == "admin":
        return AdminClaims(**common)
    if role == "store_owner":
        store_id = raw.get("store_id")
        if not store_id:
            raise MissingTenantBinding("store_owner claims carry no store_id")
        return StoreOwnerClaims(store_id=str(store_id), **common)
    if role == "customer":
        customer_id = raw.get("customer_id")
        if not customer_id:
            raise MissingTenantBinding("customer claims carry no customer_id")
        return CustomerClaims(customer_id=str(customer_id), **common)
    raise InvalidRole(f"invalid role: {role!r}")


def claims_to_dict(claims: Claims) -> dict[str, Any]:
    data = claims.model_dump()
    data["permissions"] = list(data["permissions"])
    return data
