import logging

from fastapi import HTTPException

from snapgram.config import SHARES_COLLECTION_ID
from snapgram.controllers.post_controller import get_post_by_id
from snapgram.db import Query, get_db

logger = logging.getLogger(__name__)


async def share_post(post_id: str, user_id: str, platform: str = "link"):
    """Record that a user shared a post"""
    await get_post_by_id(post_id)
    try:
        return await get_db().create_document(
            SHARES_COLLECTION_ID, {"post_id": post_id, "user_id": user_id, "platform": platform}
        )
    except Exception as e:
        logger.error(f"⚠️ Error in share_post: {e}")
        raise HTTPException(status_code=500, detail="Failed to share post") from e


async def get_post_shares_count(post_id: str) -> int:
    result = await get_db().list_documents(
        SHARES_COLLECTION_ID, [Query.equal("post_id", post_id), Query.limit(0)]
    )
    return result["total"]
