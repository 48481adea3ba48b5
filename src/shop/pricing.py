# src/shop/pricing.py
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from shop.models import Product, SessionUser
from utils import settings


@dataclass(frozen=True)
class PriceQuote:
    base: int
    final: int
    discounted: bool


class PricingPolicy:
    """
    The one place a unit price is decided.

    The cart asks for a price once, when a product goes in, and stores the
    result. Views use quote() to show the same number the cart will charge.
    """

    def __init__(self, discount_rate: float | None = None):
        rate = settings.DISCOUNT_RATE if discount_rate is None else discount_rate
        if not 0 <= rate < 1:
            raise ValueError(f"Discount rate must be in [0, 1), got {rate}")
        self.discount_rate = Decimal(str(rate))

    def is_eligible(self, user: Optional[SessionUser]) -> bool:
        return bool(user and user.role == "user" and user.discount_eligible)

    def quote(self, product: Product, user: Optional[SessionUser]) -> PriceQuote:
        if not self.is_eligible(user) or not self.discount_rate:
            return PriceQuote(base=product.price, final=product.price, discounted=False)

        final = (Decimal(product.price) * (1 - self.discount_rate)).quantize(
            Decimal("1"), rounding=ROUND_HALF_UP
        )
        return PriceQuote(base=product.price, final=int(final), discounted=True)

    def unit_price(self, product: Product, user: Optional[SessionUser]) -> int:
        return self.quote(product, user).final
