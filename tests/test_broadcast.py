import unittest
from unittest import mock

import fakes  # noqa: F401  puts src/ on sys.path
from redis.exceptions import ConnectionError as RedisConnectionError

from shop import broadcast as broadcast_module
from shop.broadcast import ORDER_CREATED, LocalBroadcast, create_broadcast


class LocalBroadcastTestCase(unittest.IsolatedAsyncioTestCase):
    async def test_every_subscriber_gets_a_copy(self):
        channel = LocalBroadcast()
        received = []

        async def first(event):
            event["touched"] = True
            received.append(("first", event))

        async def second(event):
            received.append(("second", event))

        await channel.subscribe(first)
        await channel.subscribe(second)
        sent = {"type": ORDER_CREATED, "order": {"id": 1, "clienteId": 7}}
        await channel.publish(sent)

        self.assertEqual([name for name, _ in received], ["first", "second"])
        self.assertNotIn("touched", sent)

    async def test_failing_handler_does_not_stop_others(self):
        channel = LocalBroadcast()
        received = []

        async def broken(event):
            raise RuntimeError("boom")

        async def working(event):
            received.append(event)

        await channel.subscribe(broken)
        await channel.subscribe(working)
        await channel.publish({"type": ORDER_CREATED})
        self.assertEqual(len(received), 1)

    async def test_closed_subscription_stops_delivery(self):
        channel = LocalBroadcast()
        received = []

        async def handler(event):
            received.append(event)

        sub = await channel.subscribe(handler)
        await sub.close()
        await sub.close()
        await channel.publish({"type": ORDER_CREATED})
        self.assertEqual(received, [])


class CreateBroadcastTestCase(unittest.IsolatedAsyncioTestCase):
    async def test_no_url_disables_sync(self):
        self.assertIsNone(await create_broadcast(""))

    async def test_unreachable_server_disables_sync(self):
        client = mock.AsyncMock()
        client.ping.side_effect = RedisConnectionError("refused")
        with mock.patch.object(broadcast_module.aioredis.Redis, "from_url", return_value=client):
            self.assertIsNone(await create_broadcast("redis://localhost:1"))
        client.aclose.assert_awaited_once()

    async def test_reachable_server(self):
        client = mock.AsyncMock()
        with mock.patch.object(broadcast_module.aioredis.Redis, "from_url", return_value=client):
            channel = await create_broadcast("redis://localhost:6379/0")
        self.assertIsInstance(channel, broadcast_module.RedisBroadcast)

        await channel.publish({"type": ORDER_CREATED, "order": {"id": 1, "clienteId": 7}})
        name, payload = client.publish.await_args.args
        self.assertEqual(name, channel.channel)
        self.assertIn('"order_created"', payload)


if __name__ == "__main__":
    unittest.main()
