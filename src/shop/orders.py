# src/shop/orders.py
from __future__ import annotations

import asyncio
import uuid
from typing import Any, Callable, Dict, List, Optional

from api.client import ApiError, call_blocking
from api.orders import OrderService
from shop.broadcast import ORDER_CREATED, Broadcast
from shop.models import Order, OrderPayload, OrderStatus
from utils import settings
from utils.logger import get_logger

logger = get_logger(__name__)

# server data we could not turn into Orders counts as a failed read
_READ_ERRORS = (ApiError, KeyError, TypeError, ValueError)


class InvalidStatusTransition(ValueError):
    pass


class OrderController:
    """
    Keeps a local list of orders in step with the order service.

    - create_order: optimistic append of the server's answer, then an
      order_created event for the other running instances
    - load_all / load_by_user: wholesale replacement by the server listing;
      on failure the list is emptied and ``error`` is set, never left stale
    - update_status: forward-only status change, local entry replaced by the
      server's version
    - watch: on an order_created event for the watched user, reload from the
      server instead of trusting the event

    A reload that is still running when another one starts is cancelled and
    its result thrown away, so an old response can never overwrite a newer one.
    """

    def __init__(
        self,
        service: OrderService,
        broadcast: Optional[Broadcast] = None,
        deadline: float | None = None,
    ):
        self.service = service
        self.broadcast = broadcast
        self.deadline = settings.REQUEST_DEADLINE if deadline is None else deadline
        self.instance_id = uuid.uuid4().hex

        self.orders: List[Order] = []
        self.error: Optional[str] = None

        self._busy = 0
        self._reload_task: Optional[asyncio.Future] = None
        self._subscription = None

    @property
    def loading(self) -> bool:
        return self._busy > 0

    def find(self, order_id: int) -> Optional[Order]:
        for order in self.orders:
            if order.id == order_id:
                return order
        return None

    # reads
    async def load_all(self) -> List[Order]:
        return await self._reload("Error loading orders", self.service.list_all)

    async def load_by_user(self, user_id: int) -> List[Order]:
        return await self._reload(
            "Error loading the user's orders", self.service.list_by_user, user_id
        )

    async def _reload(self, failure: str, fetch: Callable[..., List[Order]], *args) -> List[Order]:
        previous = self._reload_task
        if previous is not None and not previous.done():
            logger.debug("Cancelling superseded order reload")
            previous.cancel()

        task = asyncio.ensure_future(call_blocking(fetch, *args, deadline=self.deadline))
        self._reload_task = task
        self._busy += 1
        self.error = None
        try:
            orders = await task
        except asyncio.CancelledError:
            if self._reload_task is not task:
                # a newer reload owns the list now
                return list(self.orders)
            raise
        except _READ_ERRORS as e:
            if self._reload_task is not task:
                return list(self.orders)
            logger.error(f"{failure}: {e}")
            self.error = failure
            self.orders = []
            return []
        finally:
            self._busy -= 1
            if self._reload_task is task and task.done():
                self._reload_task = None

        if self._reload_task is not None and self._reload_task is not task:
            return list(self.orders)
        self.orders = list(orders)
        logger.info(f"Loaded {len(self.orders)} order(s)")
        return list(self.orders)

    # writes
    async def create_order(self, payload: OrderPayload) -> Order:
        """
        Submit the order. Errors propagate and leave the local list as it was.
        Announcing the order to other instances can fail without consequence.
        """
        self._busy += 1
        try:
            order = await call_blocking(self.service.create, payload, deadline=self.deadline)
        except ApiError as e:
            logger.error(f"Error creating order: {e}")
            raise
        finally:
            self._busy -= 1

        self.orders.append(order)
        logger.info(f"Order {order.id} created for user {order.user_id}")
        await self._announce(order)
        return order

    async def update_status(self, order_id: int, status: OrderStatus | str) -> Order:
        status = OrderStatus(status)
        current = self.find(order_id)
        if current is not None and not current.status.can_transition_to(status):
            raise InvalidStatusTransition(
                f"Order {order_id} cannot go from '{current.status.value}' "
                f"back to '{status.value}'"
            )

        self._busy += 1
        try:
            updated = await call_blocking(
                self.service.update_status, order_id, status, deadline=self.deadline
            )
        except ApiError as e:
            logger.error(f"Error updating status of order {order_id}: {e}")
            raise
        finally:
            self._busy -= 1

        self.orders = [updated if o.id == order_id else o for o in self.orders]
        logger.info(f"Order {order_id} is now '{updated.status.value}'")
        return updated

    # cross-instance sync
    async def _announce(self, order: Order) -> None:
        if self.broadcast is None:
            return
        event = {
            "type": ORDER_CREATED,
            "order": {"id": order.id, "clienteId": order.user_id},
            "origin": self.instance_id,
        }
        try:
            await self.broadcast.publish(event)
        except Exception as e:
            # the order exists on the server, a lost announcement is not an error
            logger.warning(f"Could not announce order {order.id}: {e}")

    async def watch(
        self,
        user_id: Optional[int],
        on_change: Optional[Callable[[], Any]] = None,
    ) -> bool:
        """
        Reload when another instance creates an order for ``user_id``
        (any user when None). Returns False when there is nothing to listen
        to; the list then only changes on explicit reloads.
        """
        await self.unwatch()
        if self.broadcast is None:
            logger.info("No broadcast available, orders refresh manually")
            return False

        async def handle(event: Dict[str, Any]) -> None:
            if event.get("type") != ORDER_CREATED:
                return
            if event.get("origin") == self.instance_id:
                return
            owner = (event.get("order") or {}).get("clienteId")
            if user_id is not None and owner != user_id:
                return

            logger.info(f"Order created elsewhere for user {owner}, reloading")
            if user_id is None:
                await self.load_all()
            else:
                await self.load_by_user(user_id)
            if on_change is not None:
                on_change()

        try:
            self._subscription = await self.broadcast.subscribe(handle)
        except Exception as e:
            logger.warning(f"Could not subscribe to order events: {e}")
            self._subscription = None
            return False
        return True

    @property
    def watching(self) -> bool:
        return self._subscription is not None

    async def unwatch(self) -> None:
        if self._subscription is not None:
            await self._subscription.close()
            self._subscription = None

    async def close(self) -> None:
        await self.unwatch()
        if self._reload_task is not None and not self._reload_task.done():
            self._reload_task.cancel()
