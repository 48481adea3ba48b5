# src/shop/cart.py
from __future__ import annotations

from typing import List, Optional, Tuple

from shop.models import CartLine, Product
from shop.pricing import PricingPolicy
from storage.kv import KeyValueStore, StoreError
from utils import settings
from utils.logger import get_logger
from utils.state import SessionContext

logger = get_logger(__name__)


class Cart:
    """
    Client-side cart: an ordered list of CartLines, one per product code.

    Each mutation changes the in-memory list and then overwrites the whole
    collection in the durable store. Store failures are logged and swallowed,
    the in-memory cart stays authoritative for this run.

    The cart is not shared between running instances: two instances pointed
    at the same store will each keep their own copy until load() is called.
    """

    def __init__(
        self,
        store: KeyValueStore,
        pricing: PricingPolicy,
        session: SessionContext,
        key: str = settings.CART_KEY,
    ):
        self.store = store
        self.pricing = pricing
        self.session = session
        self.key = key
        self._lines: List[CartLine] = []

    # queries
    @property
    def lines(self) -> Tuple[CartLine, ...]:
        return tuple(self._lines)

    @property
    def total_amount(self) -> int:
        return sum(line.unit_price * line.quantity for line in self._lines)

    @property
    def item_count(self) -> int:
        return sum(line.quantity for line in self._lines)

    @property
    def is_empty(self) -> bool:
        return not self._lines

    def get_line(self, code: str) -> Optional[CartLine]:
        for line in self._lines:
            if line.code == code:
                return line
        return None

    def quantity_of(self, code: str) -> int:
        line = self.get_line(code)
        return line.quantity if line else 0

    # commands
    async def load(self) -> None:
        """Replace the in-memory cart with what the store holds, or nothing."""
        data = await self.store.get_json(self.key, default=[])
        lines: List[CartLine] = []
        try:
            if not isinstance(data, list):
                raise ValueError(f"expected a list, got {type(data).__name__}")
            for item in data:
                line = CartLine.from_store(item)
                if any(existing.code == line.code for existing in lines):
                    raise ValueError(f"duplicate line for product {line.code}")
                lines.append(line)
        except (KeyError, TypeError, ValueError) as e:
            logger.error(f"Stored cart is unreadable, starting empty: {e}")
            lines = []
        self._lines = lines
        logger.info(f"Cart loaded with {len(self._lines)} line(s)")

    async def add_to_cart(self, product: Product, quantity: int = 1) -> CartLine:
        """
        Add ``quantity`` units. The unit price is resolved now, once; a line
        that already exists keeps the price it was added at.
        """
        for i, line in enumerate(self._lines):
            if line.code == product.code:
                updated = CartLine(
                    product=line.product,
                    unit_price=line.unit_price,
                    quantity=line.quantity + quantity,
                )
                self._lines[i] = updated
                logger.info(
                    f"Product {product.code} already in cart, quantity "
                    f"{line.quantity} -> {updated.quantity}"
                )
                break
        else:
            updated = CartLine(
                product=product,
                unit_price=self.pricing.unit_price(product, self.session.user),
                quantity=quantity,
            )
            self._lines.append(updated)
            logger.info(f"Added product {product.code} x{quantity} to cart")

        await self._persist()
        return updated

    async def remove_from_cart(self, code: str, quantity_to_remove: int = 1) -> None:
        for i, line in enumerate(self._lines):
            if line.code != code:
                continue
            remaining = line.quantity - quantity_to_remove
            if remaining <= 0:
                del self._lines[i]
                logger.info(f"Removed product {code} from cart")
            else:
                self._lines[i] = CartLine(
                    product=line.product,
                    unit_price=line.unit_price,
                    quantity=remaining,
                )
                logger.info(f"Product {code} quantity {line.quantity} -> {remaining}")
            await self._persist()
            return

    async def clear_cart(self) -> None:
        self._lines = []
        logger.info("Cart cleared")
        await self._persist()

    async def _persist(self) -> None:
        try:
            await self.store.set_json(
                self.key, [line.to_store() for line in self._lines]
            )
        except StoreError as e:
            logger.error(f"Cart could not be saved: {e}")
