# src/shop/checkout.py
from __future__ import annotations

import random
from typing import Optional

from shop.cart import Cart
from shop.models import CheckoutResult, OrderLine, OrderPayload, OrderStatus
from shop.orders import OrderController
from storage.kv import KeyValueStore, StoreError
from utils import settings
from utils.logger import get_logger
from utils.state import SessionContext

logger = get_logger(__name__)

POINTS_PER_AMOUNT = 100  # one point per 100 spent
POINT_VALUE = 10


class CheckoutError(ValueError):
    """Checkout refused before anything was sent to the server."""


def points_for(total: int) -> int:
    return max(total, 0) // POINTS_PER_AMOUNT


class CheckoutService:
    """
    Turns the cart into an order.

    1. Validates session and cart locally, nothing is sent if that fails
    2. Submits the order through the order controller
    3. Only once the server confirmed: awards points and clears the cart
    """

    def __init__(
        self,
        cart: Cart,
        orders: OrderController,
        session: SessionContext,
        store: KeyValueStore,
        rng: Optional[random.Random] = None,
    ):
        self.cart = cart
        self.orders = orders
        self.session = session
        self.store = store
        self._rng = rng or random.Random()

    async def points_balance(self) -> int:
        value = await self.store.get_json(settings.POINTS_KEY, default=0)
        try:
            return int(value)
        except (TypeError, ValueError):
            logger.error(f"Stored points balance {value!r} is unreadable, using 0")
            return 0

    def build_payload(self, address: Optional[str] = None) -> OrderPayload:
        user = self.session.user
        if user is None:
            raise CheckoutError("You must log in to complete your purchase.")
        if self.cart.is_empty:
            raise CheckoutError("Your cart is empty.")

        lines = tuple(
            OrderLine(
                code=line.code,
                name=line.product.name,
                quantity=line.quantity,
                unit_price=line.unit_price,
            )
            for line in self.cart.lines
        )
        if not all(ol.code and ol.quantity > 0 and ol.unit_price > 0 for ol in lines):
            raise CheckoutError("Some products in the cart have invalid data.")

        return OrderPayload(
            user_id=user.id,
            lines=lines,
            status=OrderStatus.IN_PREPARATION,
            address=(address or user.address or None),
        )

    async def checkout(self, address: Optional[str] = None) -> CheckoutResult:
        payload = self.build_payload(address)
        total = self.cart.total_amount
        lines = list(self.cart.lines)

        # raises on failure, cart and points untouched
        order = await self.orders.create_order(payload)

        earned = points_for(total)
        balance = await self.points_balance() + earned
        try:
            await self.store.set_json(settings.POINTS_KEY, balance)
        except StoreError as e:
            logger.error(f"Points for order {order.id} could not be saved: {e}")
        await self.cart.clear_cart()

        shipping_code = self._rng.randint(100000, 999999)
        logger.info(
            f"Checkout done: order {order.id}, {earned} point(s) earned, "
            f"shipping code #{shipping_code}"
        )
        return CheckoutResult(
            order=order,
            points_earned=earned,
            points_total=balance,
            shipping_code=shipping_code,
            lines=lines,
        )
