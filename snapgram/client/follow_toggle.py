import asyncio
import logging
from typing import Optional

from snapgram.controllers import follow_controller

logger = logging.getLogger(__name__)


class FollowToggle:
    """Follow button state for ``follower_id`` looking at ``following_id``.

    Clicks that arrive while a toggle is in flight join it instead of
    issuing a second mutation, and every toggle ends with a refetch so the
    flag always reflects storage.
    """

    def __init__(self, follower_id: str, following_id: str):
        self.follower_id = follower_id
        self.following_id = following_id
        self.is_following: Optional[bool] = None
        self._pending: Optional[asyncio.Future] = None

    @property
    def busy(self) -> bool:
        return self._pending is not None and not self._pending.done()

    async def refresh(self) -> bool:
        self.is_following = await follow_controller.is_following(self.follower_id, self.following_id)
        return self.is_following

    async def toggle(self) -> bool:
        if self.busy:
            return await asyncio.shield(self._pending)
        self._pending = asyncio.ensure_future(self._toggle())
        return await asyncio.shield(self._pending)

    async def _toggle(self) -> bool:
        if self.is_following is None:
            await self.refresh()

        previous = self.is_following
        self.is_following = not previous
        try:
            if previous:
                await follow_controller.unfollow_user(self.follower_id, self.following_id)
            else:
                await follow_controller.follow_user(self.follower_id, self.following_id)
        except Exception as e:
            logger.error(f"Follow toggle error: {e}")
            self.is_following = previous
            raise
        finally:
            try:
                await self.refresh()
            except Exception as e:
                logger.warning(f"⚠️ Could not refresh follow status: {e}")

        return self.is_following
