import asyncio
import threading
import unittest
from unittest import mock

from fakes import FakeOrderService, make_order

from api.client import ApiError
from shop.broadcast import ORDER_CREATED, LocalBroadcast
from shop.models import OrderLine, OrderPayload, OrderStatus
from shop.orders import InvalidStatusTransition, OrderController


def payload_for(user_id: int) -> OrderPayload:
    return OrderPayload(
        user_id=user_id,
        lines=(OrderLine(code="AC010", name="Teclado", quantity=2, unit_price=1000),),
        address="Av. Siempre Viva 742",
    )


class OrderControllerTestCase(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self.service = FakeOrderService(
            [
                make_order(1, 7, ("AC010", 1, 1000)),
                make_order(2, 8, ("AC011", 2, 2000)),
                make_order(3, 7, ("JM001", 1, 29990), status=OrderStatus.DELIVERED),
            ]
        )
        self.controller = OrderController(self.service, deadline=2)

    async def asyncTearDown(self):
        await self.controller.close()

    # ---------- reads ----------

    async def test_load_replaces_list_wholesale(self):
        self.controller.orders = [make_order(99, 7, ("OLD", 1, 1))]
        orders = await self.controller.load_by_user(7)
        self.assertEqual([o.id for o in orders], [1, 3])
        self.assertEqual(self.controller.orders, orders)
        self.assertIsNone(self.controller.error)
        self.assertFalse(self.controller.loading)

        await self.controller.load_all()
        self.assertEqual([o.id for o in self.controller.orders], [1, 2, 3])

    async def test_failed_read_fails_closed(self):
        await self.controller.load_all()
        self.service.fail = ApiError("Could not reach the server")

        orders = await self.controller.load_by_user(7)
        self.assertEqual(orders, [])
        self.assertEqual(self.controller.orders, [])
        self.assertEqual(self.controller.error, "Error loading the user's orders")
        self.assertFalse(self.controller.loading)

    async def test_slow_read_times_out_and_fails_closed(self):
        gate = threading.Event()
        self.service.gate = gate
        controller = OrderController(self.service, deadline=0.05)
        try:
            orders = await controller.load_all()
        finally:
            gate.set()
        self.assertEqual(orders, [])
        self.assertEqual(controller.error, "Error loading orders")

    async def test_superseded_reload_is_discarded(self):
        gate = threading.Event()
        self.service.gate = gate
        slow = asyncio.create_task(self.controller.load_all())
        await asyncio.sleep(0.05)

        # the newer reload answers first
        self.service.gate = None
        newer = await self.controller.load_by_user(8)
        gate.set()
        await slow

        self.assertEqual([o.id for o in newer], [2])
        self.assertEqual([o.id for o in self.controller.orders], [2])
        self.assertIsNone(self.controller.error)
        self.assertFalse(self.controller.loading)

    # ---------- writes ----------

    async def test_create_appends_server_order(self):
        await self.controller.load_by_user(7)
        order = await self.controller.create_order(payload_for(7))
        self.assertEqual(order.id, 4)
        self.assertEqual(order.total, 2000)
        self.assertEqual(self.controller.orders[-1], order)

    async def test_optimistic_order_dropped_on_reconcile(self):
        await self.controller.load_all()
        order = await self.controller.create_order(payload_for(7))
        self.assertIn(order, self.controller.orders)

        # the listing lags behind and does not have the new order yet
        self.service.orders = [o for o in self.service.orders if o.id != order.id]
        await self.controller.load_all()
        self.assertEqual(self.controller.orders, self.service.orders)
        self.assertNotIn(order.id, [o.id for o in self.controller.orders])

    async def test_failed_create_leaves_list_unchanged(self):
        await self.controller.load_by_user(7)
        before = list(self.controller.orders)
        self.service.fail = ApiError("Stock insuficiente", status_code=400)

        with self.assertRaises(ApiError):
            await self.controller.create_order(payload_for(7))
        self.assertEqual(self.controller.orders, before)

    async def test_failed_publish_is_swallowed(self):
        broadcast = mock.AsyncMock()
        broadcast.publish.side_effect = RuntimeError("redis down")
        controller = OrderController(self.service, broadcast=broadcast, deadline=2)

        order = await controller.create_order(payload_for(7))
        self.assertIn(order, controller.orders)
        event = broadcast.publish.await_args.args[0]
        self.assertEqual(event["type"], ORDER_CREATED)
        self.assertEqual(event["order"], {"id": order.id, "clienteId": 7})
        self.assertEqual(event["origin"], controller.instance_id)

    async def test_update_status_replaces_entry(self):
        await self.controller.load_by_user(7)
        updated = await self.controller.update_status(1, "entregado")
        self.assertEqual(updated.status, OrderStatus.DELIVERED)
        self.assertEqual(self.controller.find(1).status, OrderStatus.DELIVERED)

    async def test_status_only_moves_forward(self):
        await self.controller.load_by_user(7)
        with self.assertRaises(InvalidStatusTransition):
            await self.controller.update_status(3, OrderStatus.IN_PREPARATION)
        self.assertNotIn("update_status", [c[0] for c in self.service.calls])

    async def test_unknown_status_is_rejected(self):
        with self.assertRaises(ValueError):
            await self.controller.update_status(1, "perdido")

    async def test_failed_status_update_propagates(self):
        await self.controller.load_by_user(7)
        self.service.fail = ApiError("Request failed with status 500", status_code=500)
        with self.assertRaises(ApiError):
            await self.controller.update_status(1, OrderStatus.DELIVERED)
        self.assertEqual(self.controller.find(1).status, OrderStatus.IN_PREPARATION)


class CrossInstanceSyncTestCase(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.service = FakeOrderService([make_order(1, 7, ("AC010", 1, 1000))])
        self.broadcast = LocalBroadcast()
        self.history = OrderController(self.service, self.broadcast, deadline=2)
        self.checkout = OrderController(self.service, self.broadcast, deadline=2)
        self.changes = 0

        def on_change():
            self.changes += 1

        self.assertTrue(await self.history.watch(7, on_change))
        await self.history.load_by_user(7)

    async def asyncTearDown(self):
        await self.history.close()
        await self.checkout.close()

    async def test_order_elsewhere_triggers_reload(self):
        order = await self.checkout.create_order(payload_for(7))
        self.assertIn(order.id, [o.id for o in self.history.orders])
        self.assertEqual(self.changes, 1)

    async def test_order_for_other_user_is_ignored(self):
        await self.checkout.create_order(payload_for(8))
        self.assertEqual([o.id for o in self.history.orders], [1])
        self.assertEqual(self.changes, 0)

    async def test_own_events_are_skipped(self):
        calls_before = len(self.service.calls)
        await self.history.create_order(payload_for(7))
        # only the create, no reload of its own announcement
        self.assertEqual(len(self.service.calls), calls_before + 1)
        self.assertEqual(self.changes, 0)

    async def test_event_payload_is_not_trusted(self):
        await self.broadcast.publish(
            {"type": ORDER_CREATED, "order": {"id": 500, "clienteId": 7}, "origin": "other"}
        )
        # reloaded from the server, which knows nothing about order 500
        self.assertEqual([o.id for o in self.history.orders], [1])
        self.assertEqual(self.changes, 1)

    async def test_unwatch_stops_reloads(self):
        await self.history.unwatch()
        await self.checkout.create_order(payload_for(7))
        self.assertEqual(self.changes, 0)

    async def test_watch_again_after_unwatch(self):
        self.assertTrue(self.history.watching)
        await self.history.unwatch()
        self.assertFalse(self.history.watching)

        # same user logs back in
        self.assertTrue(await self.history.watch(7, lambda: None))
        self.assertTrue(self.history.watching)
        order = await self.checkout.create_order(payload_for(7))
        self.assertIn(order.id, [o.id for o in self.history.orders])

    async def test_watch_without_broadcast(self):
        controller = OrderController(self.service, deadline=2)
        self.assertFalse(await controller.watch(7))


if __name__ == "__main__":
    unittest.main()
