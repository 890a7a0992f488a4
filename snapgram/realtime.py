"""
In-process realtime channel.

Document writes are published here and fanned out to subscribers. The
WebSocket route in ``snapgram.routes.realtime_routes`` bridges remote
clients onto the hub; in-process consumers (and the client sync layer)
subscribe to it directly.
"""

import logging
from datetime import datetime, timezone
from typing import Callable, Iterable, Union

from snapgram.config import DATABASE_ID

logger = logging.getLogger(__name__)

Callback = Callable[[dict], None]


def documents_channel(collection_id: str, document_id: str | None = None) -> str:
    channel = f"databases.{DATABASE_ID}.collections.{collection_id}.documents"
    if document_id:
        channel = f"{channel}.{document_id}"
    return channel


def build_event(collection_id: str, document: dict, action: str) -> dict:
    """Shape of a document event as delivered to subscribers."""
    document_id = document.get("id")
    channels = [documents_channel(collection_id), documents_channel(collection_id, document_id)]
    return {
        "events": [f"{documents_channel(collection_id, document_id)}.{action}"],
        "channels": channels,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "payload": document,
    }


class RealtimeHub:
    def __init__(self):
        self._subscribers: dict[int, tuple[frozenset, Callback]] = {}
        self._disconnect_listeners: list[Callable[[], None]] = []
        self._next_id = 0

    def subscribe(self, channels: Union[str, Iterable[str]], callback: Callback) -> Callable[[], None]:
        """Register ``callback`` for ``channels`` and return an unsubscribe function."""
        if isinstance(channels, str):
            channels = [channels]
        subscription_id = self._next_id
        self._next_id += 1
        self._subscribers[subscription_id] = (frozenset(channels), callback)

        def unsubscribe():
            self._subscribers.pop(subscription_id, None)

        return unsubscribe

    def publish(self, event: dict):
        targets = set(event.get("channels", []))
        for channels, callback in list(self._subscribers.values()):
            if channels & targets:
                try:
                    callback(event)
                except Exception as e:
                    logger.warning(f"⚠️ Realtime subscriber failed: {e}")

    def add_disconnect_listener(self, listener: Callable[[], None]):
        self._disconnect_listeners.append(listener)

    def remove_disconnect_listener(self, listener: Callable[[], None]):
        if listener in self._disconnect_listeners:
            self._disconnect_listeners.remove(listener)

    def disconnect(self):
        """Drop every subscription and notify disconnect listeners.

        Subscribers that must keep receiving events resubscribe from their
        listener (``ResilientSubscription``); the WebSocket bridge closes its
        socket so the remote client reconnects.
        """
        logger.info("🔌 Realtime transport disconnected")
        self._subscribers.clear()
        for listener in list(self._disconnect_listeners):
            listener()

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    @property
    def listener_count(self) -> int:
        return len(self._disconnect_listeners)


_hub: RealtimeHub | None = None


def get_realtime_hub() -> RealtimeHub:
    global _hub
    if _hub is None:
        _hub = RealtimeHub()
    return _hub
