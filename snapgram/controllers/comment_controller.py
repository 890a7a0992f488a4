import logging

from fastapi import HTTPException

from snapgram.config import COMMENTS_COLLECTION_ID, NOTIFICATION_FANOUT_ATTEMPTS, USERS_COLLECTION_ID
from snapgram.controllers import notification_controller
from snapgram.controllers.post_controller import get_post_by_id
from snapgram.db import DocumentNotFoundError, Query, get_db
from snapgram.saga import SagaStep, retrying, run_saga

logger = logging.getLogger(__name__)


def _author(user: dict | None, user_id: str) -> dict:
    user = user or {}
    return {
        "id": user_id,
        "name": user.get("name"),
        "username": user.get("username"),
        "image_url": user.get("image_url"),
    }


async def _get_comment_or_404(comment_id: str) -> dict:
    try:
        return await get_db().get_document(COMMENTS_COLLECTION_ID, comment_id)
    except DocumentNotFoundError:
        raise HTTPException(status_code=404, detail="Comment not found")


# Create top-level comment
async def create_comment(post_id: str, user_id: str, content: str):
    db = get_db()

    # Get post author for notification
    post = await get_post_by_id(post_id)

    async def add_comment():
        return await db.create_document(
            COMMENTS_COLLECTION_ID, {"post_id": post_id, "user_id": user_id, "content": content}
        )

    async def remove_comment(comment):
        await db.delete_document(COMMENTS_COLLECTION_ID, comment["id"])

    async def notify():
        return await retrying(
            lambda: notification_controller.create_notification(
                post["creator"], user_id, "comment", post_id=post_id
            ),
            attempts=NOTIFICATION_FANOUT_ATTEMPTS,
        )

    try:
        comment, _ = await run_saga([
            SagaStep("create comment", add_comment, remove_comment),
            SagaStep("notify post creator", notify),
        ])
    except Exception as e:
        logger.error(f"⚠️ Error in create_comment: {e}")
        raise HTTPException(status_code=500, detail="Failed to create comment") from e

    try:
        author = await db.get_document(USERS_COLLECTION_ID, user_id)
    except DocumentNotFoundError:
        author = None
    comment["user"] = _author(author, user_id)
    return comment


# Get comments, oldest first, with their authors
async def get_post_comments(post_id: str):
    db = get_db()
    try:
        result = await db.list_documents(
            COMMENTS_COLLECTION_ID, [Query.equal("post_id", post_id), Query.order_asc("created_at")]
        )
        comments = result["documents"]
        author_ids = list(dict.fromkeys(c["user_id"] for c in comments))
        authors = {}
        if author_ids:
            users = await db.list_documents(USERS_COLLECTION_ID, [Query.equal("id", author_ids)])
            authors = {u["id"]: u for u in users["documents"]}
    except Exception as e:
        logger.error(f"⚠️ Error in get_post_comments: {e}")
        raise HTTPException(status_code=500, detail="Failed to load comments") from e

    for comment in comments:
        comment["user"] = _author(authors.get(comment["user_id"]), comment["user_id"])
    return {"total": result["total"], "comments": comments}


async def update_comment(comment_id: str, user_id: str, content: str):
    comment = await _get_comment_or_404(comment_id)
    if comment["user_id"] != user_id:
        raise HTTPException(status_code=403, detail="Not authorized to edit this comment")

    try:
        return await get_db().update_document(COMMENTS_COLLECTION_ID, comment_id, {"content": content})
    except Exception as e:
        logger.error(f"⚠️ Error in update_comment: {e}")
        raise HTTPException(status_code=500, detail="Failed to update comment") from e


# ✅ Delete a comment
async def delete_comment(comment_id: str, user_id: str):
    comment = await _get_comment_or_404(comment_id)
    if comment["user_id"] != user_id:
        raise HTTPException(status_code=403, detail="Not authorized to delete this comment")

    try:
        await get_db().delete_document(COMMENTS_COLLECTION_ID, comment_id)
    except DocumentNotFoundError:
        pass
    except Exception as e:
        logger.error(f"⚠️ Error in delete_comment: {e}")
        raise HTTPException(status_code=500, detail="Failed to delete comment") from e

    return {"message": "Comment deleted successfully", "comment_id": comment_id}
