from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, Float, Index, Integer, String, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import JSON


def _json_type():
    return JSON().with_variant(JSONB(astext_type=Text()), "postgresql")


def _new_id() -> str:
    return str(uuid.uuid4())


class Base(DeclarativeBase):
    pass


class OrderModel(Base):
    __tablename__ = "orders"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    tracking_code: Mapped[str] = mapped_column(String(32), unique=True, nullable=False)
    customer_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    customer_name: Mapped[str] = mapped_column(String(200), nullable=False)
    store_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    store_name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    items: Mapped[list] = mapped_column(_json_type(), default=list, nullable=False)
    card_ids: Mapped[list] = mapped_column(_json_type(), default=list, nullable=False)
    status: Mapped[str] = mapped_column(String(32), default="pending", nullable=False)
    total: Mapped[float] = mapped_column(Float, default=0, nullable=False)
    timeline: Mapped[list] = mapped_column(_json_type(), default=list, nullable=False)
    assigned_to: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    estimated_delivery: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    version: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class StoreModel(Base):
    __tablename__ = "stores"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[str] = mapped_column(String(200), nullable=False)
    phone: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    address: Mapped[Optional[str]] = mapped_column(String(300), nullable=True)
    status: Mapped[str] = mapped_column(String(16), default="active", nullable=False)
    grading_price: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    mystery_pack_price: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class CustomerModel(Base):
    __tablename__ = "customers"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    phone: Mapped[str] = mapped_column(String(32), nullable=False)
    email: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class CardModel(Base):
    __tablename__ = "cards"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    certification_number: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    order_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    customer_id: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


Index("ix_orders_status", OrderModel.status)
Index("ix_orders_store_id", OrderModel.store_id)
Index("ix_orders_customer_id", OrderModel.customer_id)
Index("ix_orders_created_at", OrderModel.created_at)
Index("ix_cards_order_id", CardModel.order_id)
