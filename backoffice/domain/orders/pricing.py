from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Iterable, Protocol

from backoffice.core.config import get_settings
from backoffice.domain.errors import InvalidPricing, InvalidProductType, InvalidQuantity
from backoffice.domain.orders.models import PRODUCT_TYPES, OrderItem

logger = logging.getLogger(__name__)

Number = int | float

# product type -> attribute carrying the tenant's price for it
TENANT_PRICE_FIELDS = {
    "grading": "grading_price",
    "mysterypack": "mystery_pack_price",
}


class TenantPricing(Protocol):
    name: str
    grading_price: Number | None
    mystery_pack_price: Number | None


@dataclass(frozen=True)
class PriceTable:
    grading: Number
    mysterypack: Number

    def get(self, product_type: str) -> Number:
        return getattr(self, product_type)


PUBLIC_PRICE_TABLE = PriceTable(grading=350, mysterypack=150)
STORE_FALLBACK_PRICE_TABLE = PriceTable(grading=280, mysterypack=120)


@dataclass(frozen=True)
class TotalResult:
    amount: Number
    warnings: list[str] = field(default_factory=list)


def _is_real_number(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)


class PricingCalculator:
    def __init__(
        self,
        public_prices: PriceTable = PUBLIC_PRICE_TABLE,
        store_fallback_prices: PriceTable = STORE_FALLBACK_PRICE_TABLE,
    ):
        self.public_prices = public_prices
        self.store_fallback_prices = store_fallback_prices

    @classmethod
    def from_settings(cls) -> "PricingCalculator":
        settings = get_settings()
        return cls(
            public_prices=PriceTable(
                grading=settings.public_grading_price,
                mysterypack=settings.public_mysterypack_price,
            ),
            store_fallback_prices=PriceTable(
                grading=settings.fallback_store_grading_price,
                mysterypack=settings.fallback_store_mysterypack_price,
            ),
        )

    def price_for(self, product_type: str, tenant: TenantPricing | None = None) -> Number:
        if product_type not in PRODUCT_TYPES:
            raise InvalidProductType(f"invalid product type: {product_type!r}")

        if tenant is None:
            price = self.public_prices.get(product_type)
        else:
            price = getattr(tenant, TENANT_PRICE_FIELDS[product_type], None)
            if price is None or (isinstance(price, float) and math.isnan(price)):
                # Stores created before per-store pricing have no price set.
                price = self.store_fallback_prices.get(product_type)
                logger.warning(
                    "store %s has no %s, using fallback price %s",
                    getattr(tenant, "name", "<unknown>"),
                    TENANT_PRICE_FIELDS[product_type],
                    price,
                )

        if not _is_real_number(price) or price <= 0:
            logger.warning("invalid pricing for product_type=%s: %r", product_type, price)
            raise InvalidPricing(f"invalid pricing for {product_type}: {price!r}")
        return price

    def resolve_prices(self, tenant: TenantPricing | None = None) -> PriceTable:
        """Resolve every product price for one caller."""
        return PriceTable(
            grading=self.price_for("grading", tenant),
            mysterypack=self.price_for("mysterypack", tenant),
        )

    def build_line_item(
        self,
        product_type: str,
        quantity: Number,
        tenant: TenantPricing | None = None,
        prices: PriceTable | None = None,
    ) -> OrderItem:
        if product_type not in PRODUCT_TYPES:
            raise InvalidProductType(f"invalid product type: {product_type!r}")
        if not _is_real_number(quantity) or quantity <= 0:
            raise InvalidQuantity(f"invalid quantity: {quantity!r}")
        whole_quantity = math.floor(quantity)
        if whole_quantity < 1:
            raise InvalidQuantity(f"invalid quantity: {quantity!r}")

        unit_price = prices.get(product_type) if prices is not None else self.price_for(product_type, tenant)
        return OrderItem(
            product_type=product_type,
            quantity=whole_quantity,
            unit_price=unit_price,
            subtotal=unit_price * whole_quantity,
        )

    def calculate_total(self, items: Iterable[OrderItem | dict[str, Any]]) -> TotalResult:
        amount: Number = 0
        warnings: list[str] = []
        for index, item in enumerate(items):
            if isinstance(item, dict):
                subtotal = item.get("subtotal")
            else:
                subtotal = getattr(item, "subtotal", None)
            if not _is_real_number(subtotal):
                # TODO: decide with finance whether a corrupt line should fail the order instead.
                logger.warning("skipping item %s with invalid subtotal: %r", index, subtotal)
                warnings.append(f"item {index} has an invalid subtotal ({subtotal!r}) and was excluded from the total")
                continue
            amount += subtotal
        return TotalResult(amount=amount, warnings=warnings)

    def total(self, items: Iterable[OrderItem | dict[str, Any]]) -> Number:
        return self.calculate_total(items).amount

    def validate_line_item(self, item: OrderItem, tenant: TenantPricing | None = None) -> bool:
        expected_price = self.price_for(item.product_type, tenant)
        return item.unit_price == expected_price and item.subtotal == expected_price * item.quantity
