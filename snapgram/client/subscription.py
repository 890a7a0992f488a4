"""
Realtime subscription that survives transport disconnects.

Backoff is ``min(base_delay * attempts, max_delay)`` plus optional jitter,
up to ``max_attempts`` reconnects. Any delivered message resets the counter.
Once the attempts are used up the subscription stops, sets ``gave_up`` and
calls ``on_give_up`` so the caller can offer a manual ``retry()``.
"""

import asyncio
import logging
import random
from typing import Callable, Optional, Protocol

from snapgram import config

logger = logging.getLogger(__name__)


class RealtimeTransport(Protocol):
    def subscribe(self, channels, callback: Callable[[dict], None]) -> Callable[[], None]:
        ...

    def add_disconnect_listener(self, listener: Callable[[], None]) -> None:
        ...

    def remove_disconnect_listener(self, listener: Callable[[], None]) -> None:
        ...


class ResilientSubscription:
    def __init__(
        self,
        transport: RealtimeTransport,
        channel: str,
        callback: Callable[[dict], None],
        *,
        max_attempts: int = config.REALTIME_MAX_RECONNECT_ATTEMPTS,
        base_delay: float = config.REALTIME_RECONNECT_BASE_DELAY,
        max_delay: float = config.REALTIME_RECONNECT_MAX_DELAY,
        jitter: float = config.REALTIME_RECONNECT_JITTER,
        on_give_up: Optional[Callable[[], None]] = None,
    ):
        self.transport = transport
        self.channel = channel
        self.callback = callback
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.jitter = jitter
        self.on_give_up = on_give_up

        self.attempts = 0
        self.gave_up = False
        self._unsubscribe: Optional[Callable[[], None]] = None
        self._reconnect: Optional[asyncio.TimerHandle] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._active = False

    @property
    def active(self) -> bool:
        return self._active

    @property
    def reconnect_pending(self) -> bool:
        return self._reconnect is not None

    def start(self):
        if self._active:
            return
        self._loop = asyncio.get_running_loop()
        self._active = True
        self._subscribe()
        self.transport.add_disconnect_listener(self._handle_disconnect)

    def close(self):
        if not self._active:
            return
        self._active = False
        self._cancel_reconnect()
        self._release()
        self.transport.remove_disconnect_listener(self._handle_disconnect)

    async def __aenter__(self):
        self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        self.close()

    def retry(self):
        """Manual retry after giving up."""
        if not self._active:
            return
        self._cancel_reconnect()
        self.attempts = 0
        self.gave_up = False
        self._subscribe()

    def next_delay(self) -> float:
        delay = min(self.base_delay * self.attempts, self.max_delay)
        if self.jitter:
            delay += random.uniform(0, self.jitter)
        return delay

    def _subscribe(self):
        self._release()
        self._unsubscribe = self.transport.subscribe(self.channel, self._deliver)

    def _release(self):
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def _deliver(self, payload: dict):
        self.attempts = 0
        self.callback(payload)

    def _handle_disconnect(self):
        if not self._active or self._reconnect is not None:
            return

        if self.attempts >= self.max_attempts:
            self.gave_up = True
            logger.warning(f"❌ Gave up on realtime channel {self.channel} after {self.attempts} attempts")
            if self.on_give_up is not None:
                self.on_give_up()
            return

        delay = self.next_delay()
        logger.info(f"🔌 Reconnecting to {self.channel} in {delay:.2f}s (attempt {self.attempts + 1})")
        self._reconnect = self._loop.call_later(delay, self._resubscribe)

    def _resubscribe(self):
        self._reconnect = None
        if not self._active:
            return
        self.attempts += 1
        self._subscribe()

    def _cancel_reconnect(self):
        if self._reconnect is not None:
            self._reconnect.cancel()
            self._reconnect = None
