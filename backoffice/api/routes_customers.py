from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from backoffice.core.security import get_claims
from backoffice.domain.errors import Forbidden, NotFound
from backoffice.governance import AccessControlEvaluator, Claims, get_access_control
from backoffice.persistence.pg import get_session
from backoffice.persistence.repositories import CardRepository, CustomerRepository

router = APIRouter(tags=["customers"])


class CustomerCreateRequest(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    phone: str = Field(min_length=1)
    email: str | None = None


class CardCreateRequest(BaseModel):
    certification_number: str = Field(min_length=1)
    name: str | None = None


@router.post("/customers", status_code=201)
def create_customer(
    request: CustomerCreateRequest,
    claims: Claims = Depends(get_claims),
    access: AccessControlEvaluator = Depends(get_access_control),
    session: Session = Depends(get_session),
):
    access.require_admin(claims, "only admins may create customers")
    customer = CustomerRepository(session).create(**request.model_dump())
    return {"customer": {"id": customer.id, "name": customer.name, "phone": customer.phone, "email": customer.email}}


@router.get("/customers/{customer_id}")
def get_customer(
    customer_id: str,
    claims: Claims = Depends(get_claims),
    access: AccessControlEvaluator = Depends(get_access_control),
    session: Session = Depends(get_session),
):
    if not access.can_access_customer(claims, customer_id):
        raise Forbidden(f"access to customer {customer_id} denied")
    customer = CustomerRepository(session).get_by_id(customer_id)
    if customer is None:
        raise NotFound(f"customer {customer_id} not found")
    return {"customer": {"id": customer.id, "name": customer.name, "phone": customer.phone, "email": customer.email}}


@router.post("/cards", status_code=201)
def create_card(
    request: CardCreateRequest,
    claims: Claims = Depends(get_claims),
    access: AccessControlEvaluator = Depends(get_access_control),
    session: Session = Depends(get_session),
):
    access.require_admin(claims, "only admins may register cards")
    card = CardRepository(session).create(**request.model_dump())
    return {
        "card": {
            "id": card.id,
            "certification_number": card.certification_number,
            "name": card.name,
            "order_id": card.order_id,
        }
    }
