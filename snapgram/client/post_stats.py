import logging
from typing import Optional

from snapgram.controllers import post_controller

logger = logging.getLogger(__name__)


class PostStats:
    """Like/save state of one post as shown to one user.

    Toggles change the local state first and then write it. A failed write
    puts back exactly the state captured before the toggle.
    """

    def __init__(self, post: dict, user_id: str, saved_record_id: Optional[str] = None):
        self.post_id = post["id"]
        self.user_id = user_id
        self.likes: list[str] = list(post.get("likes") or [])
        self.saved_record_id = saved_record_id

    @property
    def is_liked(self) -> bool:
        return self.user_id in self.likes

    @property
    def like_count(self) -> int:
        return len(self.likes)

    @property
    def is_saved(self) -> bool:
        return self.saved_record_id is not None

    async def toggle_like(self) -> bool:
        previous = list(self.likes)
        liked = self.user_id not in previous
        self.likes = previous + [self.user_id] if liked else [u for u in previous if u != self.user_id]

        try:
            result = await post_controller.set_post_like(self.post_id, self.user_id, liked)
        except Exception as e:
            logger.error(f"Error handling like: {e}")
            self.likes = previous
            raise

        self.likes = list(result["post"].get("likes") or [])
        return result["liked"]

    async def toggle_save(self) -> bool:
        previous = self.saved_record_id

        try:
            if previous is not None:
                self.saved_record_id = None
                await post_controller.delete_saved_post(previous, self.user_id)
            else:
                self.saved_record_id = post_controller.save_key(self.user_id, self.post_id)
                record = await post_controller.save_post(self.user_id, self.post_id)
                self.saved_record_id = record["id"]
        except Exception as e:
            logger.error(f"Error handling save: {e}")
            self.saved_record_id = previous
            raise

        return self.is_saved
