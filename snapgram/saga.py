"""
Compensated multi-step writes.

The store has no transactions, so a write that depends on an earlier one
(an edge and its notification, a like and its notification) runs as a saga:
when a later step fails, the earlier steps are undone in reverse order and
the failure propagates to the caller.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

logger = logging.getLogger(__name__)


@dataclass
class SagaStep:
    name: str
    action: Callable[[], Awaitable[Any]]
    compensate: Optional[Callable[[Any], Awaitable[Any]]] = None


async def run_saga(steps: list[SagaStep]) -> list:
    """Run ``steps`` in order and return their results."""
    completed: list[tuple[SagaStep, Any]] = []
    for step in steps:
        try:
            result = await step.action()
        except Exception as e:
            logger.error(f"❌ Saga step '{step.name}' failed: {e}")
            for done, done_result in reversed(completed):
                if done.compensate is None:
                    continue
                try:
                    await done.compensate(done_result)
                    logger.info(f"↩️ Compensated saga step '{done.name}'")
                except Exception as comp_error:
                    logger.warning(f"⚠️ Compensation for '{done.name}' failed: {comp_error}")
            raise
        completed.append((step, result))
    return [result for _, result in completed]


async def retrying(fn: Callable[[], Awaitable[Any]], attempts: int = 3, delay: float = 0.0):
    """Call an idempotent coroutine function until it succeeds or ``attempts`` run out."""
    attempts = max(1, attempts)
    for attempt in range(1, attempts + 1):
        try:
            return await fn()
        except Exception as e:
            if attempt == attempts:
                raise
            logger.warning(f"⚠️ Attempt {attempt}/{attempts} failed: {e}")
            if delay:
                await asyncio.sleep(delay * attempt)


class KeyedLock:
    """One ``asyncio.Lock`` per key, forgotten once nobody holds or waits for it.

    Serializes read-modify-write sequences on the same record within this
    process, e.g. one user's likes on one post.
    """

    def __init__(self):
        self._locks: dict[Any, asyncio.Lock] = {}
        self._waiters: dict[Any, int] = {}

    @asynccontextmanager
    async def hold(self, key):
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._waiters[key] = self._waiters.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._waiters[key] -= 1
            if not self._waiters[key]:
                del self._waiters[key]
                del self._locks[key]

    def __len__(self):
        return len(self._locks)
