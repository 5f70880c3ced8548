from __future__ import annotations

import logging
from typing import Any
from uuid import uuid4

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backoffice.core.clock import now_utc
from backoffice.core.config import Settings, get_settings
from backoffice.domain.errors import (
    BackofficeError,
    ConcurrentModification,
    InactiveStore,
    IrreversibleState,
    NotFound,
    ValidationError,
)
from backoffice.domain.orders.models import (
    ORDER_STATUS_METADATA,
    ORDER_STATUSES,
    Order,
    OrderCreateRequest,
    OrderFilters,
    OrderPage,
    OrderUpdateRequest,
    OrderWriteResult,
    PricingItemRequest,
    PricingQuote,
    PublicOrderView,
)
from backoffice.domain.orders.pricing import PricingCalculator
from backoffice.domain.orders.state_machine import OrderStateMachine
from backoffice.domain.orders.timeline import TimelineGenerator
from backoffice.governance import AccessControlEvaluator, Claims
from backoffice.persistence.models import StoreModel
from backoffice.persistence.repositories import (
    CardRepository,
    CustomerRepository,
    OrderRepository,
    StoreRepository,
)

logger = logging.getLogger(__name__)

# Orders at or past this status can no longer be deleted.
DELETE_CUTOFF_STATUS = "completed"
MIN_TRACKING_CODE_LENGTH = 5


class OrderService:
    def __init__(
        self,
        session: Session,
        pricing: PricingCalculator | None = None,
        state_machine: OrderStateMachine | None = None,
        access: AccessControlEvaluator | None = None,
        settings: Settings | None = None,
    ):
        self.session = session
        self.settings = settings or get_settings()
        self.pricing = pricing or PricingCalculator.from_settings()
        self.state_machine = state_machine or OrderStateMachine()
        self.timeline: TimelineGenerator = self.state_machine.timeline
        self.access = access or AccessControlEvaluator()
        self.orders = OrderRepository(session)
        self.stores = StoreRepository(session)
        self.customers = CustomerRepository(session)
        self.cards = CardRepository(session)

    def _load(self, order_id: str) -> Order:
        order = self.orders.get(order_id)
        if order is None:
            raise NotFound(f"order {order_id} not found")
        return order

    def _active_store(self, store_id: str) -> StoreModel:
        store = self.stores.get_by_id(store_id)
        if store is None:
            raise NotFound(f"store {store_id} not found")
        if store.status != "active":
            raise InactiveStore(f"store {store.name} is not active")
        return store

    def _new_tracking_code(self) -> str:
        length = self.settings.tracking_code_length
        for _ in range(5):
            code = uuid4().hex[:length].upper()
            if self.orders.get_by_tracking_code(code) is None:
                return code
        raise RuntimeError("could not allocate a unique tracking code")

    def _check_version(self, order: Order, expected_version: int | None) -> None:
        if expected_version is not None and expected_version != order.version:
            raise ConcurrentModification(
                f"order {order.id} is at version {order.version}, expected {expected_version}"
            )

    def _persist(self, original: Order, updated: Order) -> Order:
        updated = updated.model_copy(update={"updated_at": now_utc()})
        return self.orders.update(updated, expected_version=original.version)

    def _attach_cards(self, order: Order, card_ids: list[str]) -> list[str]:
        """Best-effort card linking; failures become warnings, never errors."""
        customer_ref = order.customer_id or order.customer_name
        try:
            with self.session.begin_nested():
                missing = self.cards.attach_cards_to_order(order.id, card_ids, customer_ref)
        except SQLAlchemyError as exc:
            logger.warning("failed to link %s card(s) to order %s: %s", len(card_ids), order.id, exc)
            return [f"cards could not be linked to order {order.id}"]
        if missing:
            logger.warning("order %s references unknown cards: %s", order.id, missing)
            return [f"cards not found and not linked: {', '.join(missing)}"]
        return []

    def create(self, request: OrderCreateRequest, claims: Claims) -> OrderWriteResult:
        request = self.access.enforce_create(claims, request)

        customer_name = request.customer_name
        if request.customer_id:
            customer = self.customers.get_by_id(request.customer_id)
            if customer is None:
                raise NotFound(f"customer {request.customer_id} not found")
            customer_name = customer.name

        store_name = None
        if request.store_id:
            store_name = self._active_store(request.store_id).name

        items = [item.to_item() for item in request.items]
        totals = self.pricing.calculate_total(items)
        card_ids = list(dict.fromkeys(request.card_ids))
        now = now_utc()

        order = Order(
            id=str(uuid4()),
            tracking_code=self._new_tracking_code(),
            customer_id=request.customer_id,
            customer_name=customer_name,
            store_id=request.store_id,
            store_name=store_name,
            items=items,
            card_ids=card_ids,
            status="pending",
            total=totals.amount,
            timeline=self.timeline.generate_initial(),
            version=1,
            created_at=now,
            updated_at=now,
        )
        order = self.orders.create(order)

        warnings = list(totals.warnings)
        if card_ids:
            warnings.extend(self._attach_cards(order, card_ids))

        logger.info(
            "order created: id=%s tracking_code=%s store_id=%s total=%s",
            order.id,
            order.tracking_code,
            order.store_id,
            order.total,
        )
        return OrderWriteResult(order=order, warnings=warnings)

    def get(self, order_id: str, claims: Claims) -> Order:
        order = self._load(order_id)
        self.access.authorize_order(claims, order, "read")
        return order

    def get_by_tracking_code(self, tracking_code: str) -> PublicOrderView:
        code = (tracking_code or "").strip()
        if len(code) < MIN_TRACKING_CODE_LENGTH:
            raise ValidationError("invalid tracking code")
        order = self.orders.get_by_tracking_code(code)
        if order is None:
            raise NotFound("order not found")

        cards = [
            {"certification_number": card.certification_number, "name": card.name}
            for card in self.cards.get_many(order.card_ids)
        ]
        return PublicOrderView(
            tracking_code=order.tracking_code,
            status=order.status,
            status_title=ORDER_STATUS_METADATA[order.status].title,
            customer_name=order.customer_name,
            store_name=order.store_name,
            total=order.total,
            estimated_delivery=order.estimated_delivery,
            created_at=order.created_at,
            timeline=order.timeline,
            cards=cards,
        )

    def list_orders(self, filters: OrderFilters, claims: Claims) -> OrderPage:
        filters = self.access.derive_list_filter(claims, filters)
        limit = min(filters.limit, self.settings.max_page_size)
        offset = (filters.page - 1) * limit

        total = self.orders.count(filters)
        orders = self.orders.query(filters, offset=offset, limit=limit)
        fetched = len(orders)

        # Text search runs over the cached names on the fetched page only.
        if filters.search:
            needle = filters.search.lower()
            orders = [
                order
                for order in orders
                if needle in order.customer_name.lower()
                or needle in order.tracking_code.lower()
                or needle in (order.store_name or "").lower()
                or needle in order.id.lower()
            ]

        return OrderPage(
            items=orders,
            total=len(orders) if filters.search else total,
            has_next=offset + fetched < total,
            page=filters.page,
            limit=limit,
        )

    def update_status(
        self,
        order_id: str,
        new_status: str,
        performed_by: str | None,
        claims: Claims,
        expected_version: int | None = None,
    ) -> Order:
        order = self._load(order_id)
        self.access.authorize_order(claims, order, "write")
        self._check_version(order, expected_version)

        updated = self.state_machine.apply_transition(order, new_status, performed_by)
        saved = self._persist(order, updated)
        logger.info(
            "order status changed: id=%s %s -> %s performed_by=%s",
            order.id,
            order.status,
            saved.status,
            performed_by,
        )
        return saved

    def update(self, order_id: str, request: OrderUpdateRequest, claims: Claims) -> OrderWriteResult:
        order = self._load(order_id)
        self.access.authorize_order(claims, order, "write")
        self._check_version(order, request.expected_version)

        warnings: list[str] = []
        changes: dict[str, Any] = {}
        provided = request.model_fields_set
        if request.customer_name is not None:
            changes["customer_name"] = request.customer_name
        if "assigned_to" in provided:
            changes["assigned_to"] = request.assigned_to
        if "estimated_delivery" in provided:
            changes["estimated_delivery"] = request.estimated_delivery
        if request.items is not None:
            items = [item.to_item() for item in request.items]
            totals = self.pricing.calculate_total(items)
            changes["items"] = items
            changes["total"] = totals.amount
            warnings.extend(totals.warnings)

        updated = order.model_copy(update=changes)
        if request.status is not None and request.status != order.status:
            updated = self.state_machine.apply_transition(updated, request.status, request.performed_by)

        saved = self._persist(order, updated)
        return OrderWriteResult(order=saved, warnings=warnings)

    def status_options(self, order_id: str, claims: Claims) -> dict[str, Any]:
        order = self.get(order_id, claims)

        def describe(status: str) -> dict[str, str]:
            meta = ORDER_STATUS_METADATA[status]
            return {"value": status, "label": meta.title, "description": meta.description}

        return {
            "current_status": describe(order.status),
            "valid_next_statuses": [describe(s) for s in self.state_machine.valid_next_statuses(order.status)],
            "timeline": [entry.model_dump(mode="json") for entry in order.timeline],
            "version": order.version,
        }

    def bulk_update_status(
        self,
        order_ids: list[str],
        new_status: str,
        performed_by: str | None,
        claims: Claims,
    ) -> dict[str, Any]:
        self.access.require_admin(claims, "bulk updates require the admin role")

        results: list[Order] = []
        errors: list[dict[str, str]] = []
        for order_id in dict.fromkeys(order_ids):
            try:
                results.append(self.update_status(order_id, new_status, performed_by, claims))
            except BackofficeError as exc:
                errors.append({"order_id": order_id, "error": exc.code, "detail": str(exc)})

        return {
            "updated": len(results),
            "total": len(results) + len(errors),
            "errors": errors,
            "results": [order.model_dump(mode="json") for order in results],
        }

    def assign_cards(self, order_id: str, card_ids: list[str], claims: Claims) -> OrderWriteResult:
        order = self._load(order_id)
        self.access.authorize_order(claims, order, "write")

        merged = list(dict.fromkeys([*order.card_ids, *card_ids]))
        warnings = self._attach_cards(order, card_ids)
        saved = self._persist(order, order.model_copy(update={"card_ids": merged}))
        return OrderWriteResult(order=saved, warnings=warnings)

    def remove_cards(self, order_id: str, card_ids: list[str], claims: Claims) -> OrderWriteResult:
        order = self._load(order_id)
        self.access.authorize_order(claims, order, "write")

        to_remove = set(card_ids)
        remaining = [card_id for card_id in order.card_ids if card_id not in to_remove]
        self.cards.detach_cards(order.id, card_ids)
        saved = self._persist(order, order.model_copy(update={"card_ids": remaining}))
        return OrderWriteResult(order=saved)

    def delete(self, order_id: str, claims: Claims) -> None:
        self.access.require_admin(claims, "only admins may delete orders")
        order = self._load(order_id)
        self.access.authorize_order(claims, order, "delete")

        if ORDER_STATUSES.index(order.status) >= ORDER_STATUSES.index(DELETE_CUTOFF_STATUS):
            raise IrreversibleState(
                f"order {order.id} is {order.status}; orders at or past {DELETE_CUTOFF_STATUS} cannot be deleted"
            )

        self.cards.detach_cards(order.id, order.card_ids)
        self.orders.delete(order.id)
        logger.info("order deleted: id=%s tracking_code=%s", order.id, order.tracking_code)

    def calculate_pricing(self, store_id: str | None, items: list[PricingItemRequest]) -> PricingQuote:
        store = self._active_store(store_id) if store_id else None

        prices = self.pricing.resolve_prices(store)
        line_items = [
            self.pricing.build_line_item(item.product_type, item.quantity, store, prices=prices) for item in items
        ]
        totals = self.pricing.calculate_total(line_items)
        return PricingQuote(
            items=line_items,
            total=totals.amount,
            pricing_info={
                "is_direct_customer": store is None,
                "store_name": store.name if store is not None else None,
                "grading_price": prices.grading,
                "mystery_pack_price": prices.mysterypack,
            },
            warnings=totals.warnings,
        )
