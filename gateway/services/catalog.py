"""In-app purchase product catalog.

The mapping is fixed at deploy time and exposed read-only.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from types import MappingProxyType
from typing import Literal, Mapping

from dateutil.relativedelta import relativedelta

ANNUAL_SUFFIX = ".annual"

BillingPeriod = Literal["month", "year"]


class UnknownProduct(LookupError):
    """Raised for product ids outside the catalog."""

    def __init__(self, product_id: str) -> None:
        super().__init__(f"Invalid product ID: {product_id}")
        self.product_id = product_id


@dataclass(frozen=True)
class Product:
    product_id: str
    tier: str
    monthly_cap: int

    @property
    def billing_period(self) -> BillingPeriod:
        return billing_period_for(self.product_id)

    def period_end(self, start: datetime) -> datetime:
        """Return ``start`` plus one billing period."""
        return add_billing_period(start, self.billing_period)


def billing_period_for(product_id: str) -> BillingPeriod:
    return "year" if product_id.endswith(ANNUAL_SUFFIX) else "month"


def add_billing_period(start: datetime, period: BillingPeriod) -> datetime:
    # relativedelta clamps to the last valid day: Jan 31 + 1 month -> Feb 28/29.
    if period == "year":
        return start + relativedelta(years=1)
    return start + relativedelta(months=1)


def _product(product_id: str, tier: str, monthly_cap: int) -> tuple[str, Product]:
    return product_id, Product(product_id=product_id, tier=tier, monthly_cap=monthly_cap)


PRODUCT_CATALOG: Mapping[str, Product] = MappingProxyType(
    dict(
        [
            _product("com.skininsightpro.solo.monthly", "solo", 100),
            _product("com.skininsightpro.solo.annual", "solo", 100),
            _product("com.skininsightpro.starter.monthly", "starter", 400),
            _product("com.skininsightpro.starter.annual", "starter", 400),
            _product("com.skininsightpro.professional.monthly", "professional", 1500),
            _product("com.skininsightpro.business.monthly", "business", 5000),
            _product("com.skininsightpro.enterprise.monthly", "enterprise", 15000),
        ]
    )
)


def get_product(product_id: str) -> Product:
    try:
        return PRODUCT_CATALOG[product_id]
    except KeyError:
        raise UnknownProduct(product_id) from None


__all__ = [
    "ANNUAL_SUFFIX",
    "PRODUCT_CATALOG",
    "Product",
    "UnknownProduct",
    "add_billing_period",
    "billing_period_for",
    "get_product",
]
