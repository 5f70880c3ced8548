from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime
from types import MappingProxyType
from typing import Any, Literal, Mapping

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


OrderStatus = Literal[
    "pending",
    "received",
    "processing",
    "encapsulated",
    "completed",
    "shipped",
    "delivered",
]
ProductType = Literal["grading", "mysterypack"]
TimelineState = Literal["completed", "current", "pending"]
SortField = Literal["created_at", "updated_at", "total", "customer_name"]
SortOrder = Literal["asc", "desc"]

ORDER_STATUSES: tuple[str, ...] = (
    "pending",
    "received",
    "processing",
    "encapsulated",
    "completed",
    "shipped",
    "delivered",
)
PRODUCT_TYPES: tuple[str, ...] = ("grading", "mysterypack")


@dataclass(frozen=True)
class StatusMetadata:
    step: int
    title: str
    description: str
    estimated_days: int


ORDER_STATUS_TRANSITIONS: Mapping[str, tuple[str, ...]] = MappingProxyType(
    {
        "pending": ("received",),
        "received": ("processing",),
        "processing": ("encapsulated",),
        "encapsulated": ("completed",),
        "completed": ("shipped",),
        "shipped": ("delivered",),
        "delivered": (),
    }
)

ORDER_STATUS_METADATA: Mapping[str, StatusMetadata] = MappingProxyType(
    {
        "pending": StatusMetadata(
            step=1,
            title="Order Created",
            description="Waiting for the cards to arrive at our facility",
            estimated_days=0,
        ),
        "received": StatusMetadata(
            step=2,
            title="Cards Received",
            description="The cards have arrived and are being catalogued",
            estimated_days=1,
        ),
        "processing": StatusMetadata(
            step=3,
            title="Grading In Progress",
            description="The cards are being evaluated by our graders",
            estimated_days=7,
        ),
        "encapsulated": StatusMetadata(
            step=4,
            title="Cards Encapsulated",
            description="The cards have been slabbed with their grade",
            estimated_days=10,
        ),
        "completed": StatusMetadata(
            step=5,
            title="Grading Completed",
            description="The grading process has been completed",
            estimated_days=12,
        ),
        "shipped": StatusMetadata(
            step=6,
            title="Shipped",
            description="The cards have been shipped back",
            estimated_days=14,
        ),
        "delivered": StatusMetadata(
            step=7,
            title="Delivered",
            description="The cards have been delivered to the customer",
            estimated_days=16,
        ),
    }
)


class OrderItem(BaseModel):
    """Line item as stored on an order.

    Stored rows are read leniently: a subtotal that is not a real number is
    loaded as ``None`` so the total calculation can skip and report it.
    """

    product_type: ProductType
    quantity: int = Field(ge=1)
    unit_price: int | float = Field(ge=0)
    subtotal: int | float | None = None

    @field_validator("subtotal", mode="before")
    @classmethod
    def _lenient_subtotal(cls, value: Any) -> Any:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return None
        return value


class OrderItemInput(BaseModel):
    product_type: ProductType
    quantity: int = Field(ge=1)
    unit_price: int | float = Field(ge=0)
    subtotal: int | float = Field(ge=0)

    @model_validator(mode="after")
    def _subtotal_matches(self) -> "OrderItemInput":
        expected = self.unit_price * self.quantity
        if not math.isclose(self.subtotal, expected, rel_tol=1e-9, abs_tol=1e-9):
            raise ValueError(
                f"subtotal {self.subtotal} does not equal unit_price x quantity ({expected})"
            )
        return self

    def to_item(self) -> OrderItem:
        return OrderItem(**self.model_dump())


class TimelineEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    step: int
    state: TimelineState
    title: str
    description: str
    date: datetime | None = None
    estimated_date: datetime | None = None
    performed_by: str | None = None


class Order(BaseModel):
    id: str
    tracking_code: str
    customer_id: str | None = None
    customer_name: str
    store_id: str | None = None
    store_name: str | None = None
    items: list[OrderItem] = Field(default_factory=list)
    card_ids: list[str] = Field(default_factory=list)
    status: OrderStatus = "pending"
    total: int | float = 0
    timeline: list[TimelineEntry] = Field(default_factory=list)
    assigned_to: str | None = None
    estimated_delivery: datetime | None = None
    version: int = 1
    created_at: datetime
    updated_at: datetime

    def current_step(self) -> TimelineEntry | None:
        for entry in self.timeline:
            if entry.state == "current":
                return entry
        return None


class OrderCreateRequest(BaseModel):
    customer_id: str | None = None
    customer_name: str = Field(min_length=1)
    store_id: str | None = None
    items: list[OrderItemInput] = Field(min_length=1)
    card_ids: list[str] = Field(default_factory=list)


class OrderUpdateRequest(BaseModel):
    customer_name: str | None = Field(default=None, min_length=1)
    status: OrderStatus | None = None
    items: list[OrderItemInput] | None = Field(default=None, min_length=1)
    assigned_to: str | None = None
    estimated_delivery: datetime | None = None
    performed_by: str | None = None
    expected_version: int | None = Field(default=None, ge=1)


class StatusUpdateRequest(BaseModel):
    status: OrderStatus
    performed_by: str | None = None
    expected_version: int | None = Field(default=None, ge=1)


class BulkStatusUpdateRequest(BaseModel):
    order_ids: list[str] = Field(min_length=1)
    status: OrderStatus
    performed_by: str | None = None


class CardIdsRequest(BaseModel):
    card_ids: list[str] = Field(min_length=1)


class OrderFilters(BaseModel):
    status: OrderStatus | None = None
    store_id: str | None = None
    customer_id: str | None = None
    search: str | None = None
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=20, ge=1)
    sort_by: SortField = "created_at"
    sort_order: SortOrder = "desc"


class OrderPage(BaseModel):
    items: list[Order]
    total: int
    has_next: bool
    page: int
    limit: int


class OrderWriteResult(BaseModel):
    order: Order
    warnings: list[str] = Field(default_factory=list)


class PricingItemRequest(BaseModel):
    product_type: str
    quantity: int | float


class PricingRequest(BaseModel):
    store_id: str | None = None
    items: list[PricingItemRequest] = Field(min_length=1)


class PricingQuote(BaseModel):
    items: list[OrderItem]
    total: int | float
    pricing_info: dict[str, Any]
    warnings: list[str] = Field(default_factory=list)


class PublicOrderView(BaseModel):
    """What the unauthenticated tracking page may see."""

    tracking_code: str
    status: OrderStatus
    status_title: str
    customer_name: str
    store_name: str | None = None
    total: int | float
    estimated_delivery: datetime | None = None
    created_at: datetime
    timeline: list[TimelineEntry]
    cards: list[dict[str, Any]] = Field(default_factory=list)
