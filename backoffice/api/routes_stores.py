from __future__ import annotations

from typing import Literal

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from backoffice.core.security import get_claims
from backoffice.domain.errors import Forbidden, NotFound
from backoffice.governance import AccessControlEvaluator, Claims, get_access_control
from backoffice.persistence.models import StoreModel
from backoffice.persistence.pg import get_session
from backoffice.persistence.repositories import StoreRepository

router = APIRouter(tags=["stores"])


class StoreCreateRequest(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    email: str = Field(min_length=3, pattern=r"^[^@\s]+@[^@\s]+$")
    phone: str | None = None
    address: str | None = None
    status: Literal["active", "inactive"] = "active"
    grading_price: float = Field(default=280, ge=100, le=500)
    mystery_pack_price: float = Field(default=120, ge=50, le=300)


def _store_dict(store: StoreModel) -> dict:
    return {
        "id": store.id,
        "name": store.name,
        "email": store.email,
        "phone": store.phone,
        "address": store.address,
        "status": store.status,
        "grading_price": store.grading_price,
        "mystery_pack_price": store.mystery_pack_price,
    }


@router.post("/stores", status_code=201)
def create_store(
    request: StoreCreateRequest,
    claims: Claims = Depends(get_claims),
    access: AccessControlEvaluator = Depends(get_access_control),
    session: Session = Depends(get_session),
):
    access.require_admin(claims, "only admins may create stores")
    store = StoreRepository(session).create(**request.model_dump())
    return {"store": _store_dict(store)}


@router.get("/stores/{store_id}")
def get_store(
    store_id: str,
    claims: Claims = Depends(get_claims),
    access: AccessControlEvaluator = Depends(get_access_control),
    session: Session = Depends(get_session),
):
    if not access.can_access_store(claims, store_id):
        raise Forbidden(f"access to store {store_id} denied")
    store = StoreRepository(session).get_by_id(store_id)
    if store is None:
        raise NotFound(f"store {store_id} not found")
    return {"store": _store_dict(store)}
