from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Iterable

from sqlalchemy import Select, asc, delete, desc, func, select, update
from sqlalchemy.orm import Session

from backoffice.core.clock import now_utc
from backoffice.domain.errors import ConcurrentModification, NotFound
from backoffice.domain.orders.models import Order, OrderFilters
from backoffice.persistence.models import CardModel, CustomerModel, OrderModel, StoreModel


SORT_COLUMNS = {
    "created_at": OrderModel.created_at,
    "updated_at": OrderModel.updated_at,
    "total": OrderModel.total,
    "customer_name": OrderModel.customer_name,
}


def _as_utc(value: datetime | None) -> datetime | None:
    # SQLite drops tzinfo on the way back.
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _order_from_row(row: OrderModel) -> Order:
    return Order.model_validate(
        {
            "id": row.id,
            "tracking_code": row.tracking_code,
            "customer_id": row.customer_id,
            "customer_name": row.customer_name,
            "store_id": row.store_id,
            "store_name": row.store_name,
            "items": row.items or [],
            "card_ids": row.card_ids or [],
            "status": row.status,
            "total": row.total,
            "timeline": row.timeline or [],
            "assigned_to": row.assigned_to,
            "estimated_delivery": _as_utc(row.estimated_delivery),
            "version": row.version,
            "created_at": _as_utc(row.created_at),
            "updated_at": _as_utc(row.updated_at),
        }
    )


def _order_values(order: Order) -> dict[str, Any]:
    return {
        "tracking_code": order.tracking_code,
        "customer_id": order.customer_id,
        "customer_name": order.customer_name,
        "store_id": order.store_id,
        "store_name": order.store_name,
        "items": [item.model_dump(mode="json") for item in order.items],
        "card_ids": list(order.card_ids),
        "status": order.status,
        "total": order.total,
        "timeline": [entry.model_dump(mode="json") for entry in order.timeline],
        "assigned_to": order.assigned_to,
        "estimated_delivery": order.estimated_delivery,
        "created_at": order.created_at,
        "updated_at": order.updated_at,
    }


class OrderRepository:
    def __init__(self, session: Session):
        self.session = session

    def get(self, order_id: str) -> Order | None:
        row = self.session.get(OrderModel, order_id)
        return _order_from_row(row) if row is not None else None

    def get_by_tracking_code(self, tracking_code: str) -> Order | None:
        stmt = select(OrderModel).where(OrderModel.tracking_code == tracking_code.upper()).limit(1)
        row = self.session.scalar(stmt)
        return _order_from_row(row) if row is not None else None

    def _filtered(self, stmt: Select, filters: OrderFilters) -> Select:
        if filters.status:
            stmt = stmt.where(OrderModel.status == filters.status)
        if filters.store_id:
            stmt = stmt.where(OrderModel.store_id == filters.store_id)
        if filters.customer_id:
            stmt = stmt.where(OrderModel.customer_id == filters.customer_id)
        return stmt

    def count(self, filters: OrderFilters) -> int:
        stmt = self._filtered(select(func.count()).select_from(OrderModel), filters)
        return int(self.session.scalar(stmt) or 0)

    def query(self, filters: OrderFilters, offset: int, limit: int) -> list[Order]:
        column = SORT_COLUMNS[filters.sort_by]
        ordering = asc(column) if filters.sort_order == "asc" else desc(column)
        stmt = (
            self._filtered(select(OrderModel), filters)
            .order_by(ordering, OrderModel.id.asc())
            .offset(offset)
            .limit(limit)
        )
        return [_order_from_row(row) for row in self.session.scalars(stmt).all()]

    def create(self, order: Order) -> Order:
        row = OrderModel(id=order.id, version=order.version, **_order_values(order))
        self.session.add(row)
        self.session.flush()
        return _order_from_row(row)

    def update(self, order: Order, expected_version: int) -> Order:
        """Compare-and-swap write keyed on ``version``."""
        values = _order_values(order)
        values.pop("created_at")
        values["version"] = expected_version + 1
        result = self.session.execute(
            update(OrderModel)
            .where(OrderModel.id == order.id)
            .where(OrderModel.version == expected_version)
            .values(**values)
        )
        if result.rowcount == 0:
            if self.session.get(OrderModel, order.id) is None:
                raise NotFound(f"order {order.id} not found")
            raise ConcurrentModification(
                f"order {order.id} was modified concurrently (expected version {expected_version})"
            )
        return order.model_copy(update={"version": expected_version + 1})

    def delete(self, order_id: str) -> None:
        self.session.execute(delete(OrderModel).where(OrderModel.id == order_id))


class StoreRepository:
    def __init__(self, session: Session):
        self.session = session

    def get_by_id(self, store_id: str) -> StoreModel | None:
        return self.session.get(StoreModel, store_id)

    def create(self, **fields: Any) -> StoreModel:
        now = now_utc()
        row = StoreModel(created_at=now, updated_at=now, **fields)
        self.session.add(row)
        self.session.flush()
        return row


class CustomerRepository:
    def __init__(self, session: Session):
        self.session = session

    def get_by_id(self, customer_id: str) -> CustomerModel | None:
        return self.session.get(CustomerModel, customer_id)

    def create(self, **fields: Any) -> CustomerModel:
        now = now_utc()
        row = CustomerModel(created_at=now, updated_at=now, **fields)
        self.session.add(row)
        self.session.flush()
        return row


class CardRepository:
    def __init__(self, session: Session):
        self.session = session

    def create(self, **fields: Any) -> CardModel:
        row = CardModel(updated_at=now_utc(), **fields)
        self.session.add(row)
        self.session.flush()
        return row

    def get_many(self, card_ids: Iterable[str]) -> list[CardModel]:
        ids = list(card_ids)
        if not ids:
            return []
        return list(self.session.scalars(select(CardModel).where(CardModel.id.in_(ids))).all())

    def attach_cards_to_order(self, order_id: str, card_ids: Iterable[str], customer_ref: str | None) -> list[str]:
        """Link cards to an order; returns the ids that do not exist."""
        ids = list(dict.fromkeys(card_ids))
        found = {card.id for card in self.get_many(ids)}
        if found:
            self.session.execute(
                update(CardModel)
                .where(CardModel.id.in_(sorted(found)))
                .values(order_id=order_id, customer_id=customer_ref, updated_at=now_utc())
            )
        return [card_id for card_id in ids if card_id not in found]

    def detach_cards(self, order_id: str, card_ids: Iterable[str]) -> None:
        ids = list(card_ids)
        if not ids:
            return
        self.session.execute(
            update(CardModel)
            .where(CardModel.id.in_(ids))
            .where(CardModel.order_id == order_id)
            .values(order_id=None, updated_at=now_utc())
        )
