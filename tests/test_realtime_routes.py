import asyncio
import unittest
from unittest import mock

from fastapi import WebSocketDisconnect, status

from snapgram.realtime import RealtimeHub, build_event, documents_channel
from snapgram.routes import realtime_routes

CHANNEL = documents_channel("posts")


class FakeWebSocket:
    def __init__(self, fail_send: bool = False):
        self.fail_send = fail_send
        self.sent = []
        self.closed_code = None
        self.left = asyncio.Event()

    async def accept(self):
        pass

    async def send_json(self, data):
        if self.fail_send:
            raise RuntimeError("connection reset by peer")
        self.sent.append(data)

    async def receive_text(self):
        await self.left.wait()
        raise WebSocketDisconnect(code=1000)

    async def close(self, code: int = 1000):
        self.closed_code = code


async def settle():
    for _ in range(5):
        await asyncio.sleep(0)


class RealtimeRouteTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.hub = RealtimeHub()
        patcher = mock.patch.object(realtime_routes, "get_realtime_hub", return_value=self.hub)
        patcher.start()
        self.addCleanup(patcher.stop)

    async def open(self, websocket):
        handler = asyncio.create_task(realtime_routes.realtime(websocket, [CHANNEL]))
        await settle()
        self.assertEqual(self.hub.subscriber_count, 1)
        self.assertEqual(self.hub.listener_count, 1)
        return handler

    def assert_cleaned_up(self):
        self.assertEqual(self.hub.subscriber_count, 0)
        self.assertEqual(self.hub.listener_count, 0)

    async def test_forwards_events_until_client_leaves(self):
        websocket = FakeWebSocket()
        handler = await self.open(websocket)

        self.hub.publish(build_event("posts", {"id": "p1"}, "create"))
        self.hub.publish(build_event("comments", {"id": "c1"}, "create"))
        await settle()
        self.assertEqual([e["payload"]["id"] for e in websocket.sent], ["p1"])

        websocket.left.set()
        await asyncio.wait_for(handler, 1)
        self.assertIsNone(websocket.closed_code)
        self.assert_cleaned_up()

    async def test_send_failure_is_logged_and_ends_stream(self):
        websocket = FakeWebSocket(fail_send=True)
        handler = await self.open(websocket)

        with self.assertLogs(realtime_routes.logger, level="WARNING") as logs:
            self.hub.publish(build_event("posts", {"id": "p1"}, "create"))
            await asyncio.wait_for(handler, 1)

        self.assertIn("connection reset by peer", logs.output[0])
        self.assert_cleaned_up()

    async def test_hub_disconnect_closes_socket_for_reconnect(self):
        websocket = FakeWebSocket()
        handler = await self.open(websocket)

        self.hub.disconnect()
        await asyncio.wait_for(handler, 1)

        self.assertEqual(websocket.closed_code, status.WS_1012_SERVICE_RESTART)
        self.assert_cleaned_up()


if __name__ == "__main__":
    unittest.main()
