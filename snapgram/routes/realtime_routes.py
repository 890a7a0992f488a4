import asyncio
import logging
from typing import List

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect, status

from snapgram.realtime import get_realtime_hub

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Realtime"])


@router.websocket("/")
async def realtime(websocket: WebSocket, channels: List[str] = Query(...)):
    """Stream document events for ``channels`` as JSON messages.

    When the hub drops its subscriptions the socket is closed with 1012 so
    the client reconnects instead of waiting on a dead stream.
    """
    await websocket.accept()
    hub = get_realtime_hub()
    loop = asyncio.get_running_loop()
    queue: asyncio.Queue = asyncio.Queue()
    dropped = asyncio.Event()

    # Writes and hub drops may come from another thread's loop
    unsubscribe = hub.subscribe(channels, lambda event: loop.call_soon_threadsafe(queue.put_nowait, event))

    def on_hub_disconnect():
        loop.call_soon_threadsafe(dropped.set)

    hub.add_disconnect_listener(on_hub_disconnect)
    logger.info(f"🔔 Realtime client subscribed to {channels}")

    async def forward():
        while True:
            await websocket.send_json(await queue.get())

    async def receive():
        # Client messages are ignored; receiving only detects the disconnect
        try:
            while True:
                await websocket.receive_text()
        except WebSocketDisconnect:
            logger.info("Realtime client disconnected")

    tasks = [
        asyncio.create_task(forward()),
        asyncio.create_task(receive()),
        asyncio.create_task(dropped.wait()),
    ]
    try:
        done, _ = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
        for task in done:
            if task.exception() is not None:
                logger.warning(f"⚠️ Realtime stream for {channels} failed: {task.exception()}")
        if dropped.is_set():
            logger.info("🔌 Realtime hub dropped subscriptions; closing client socket")
            await websocket.close(code=status.WS_1012_SERVICE_RESTART)
    finally:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        hub.remove_disconnect_listener(on_hub_disconnect)
        unsubscribe()
