import logging
from typing import Optional

from fastapi import HTTPException, UploadFile, status

from snapgram.cloudinary_util import delete_image, upload_image
from snapgram.config import (
    NOTIFICATION_FANOUT_ATTEMPTS,
    POSTS_COLLECTION_ID,
    SAVES_COLLECTION_ID,
)
from snapgram.controllers import notification_controller
from snapgram.db import DocumentConflictError, DocumentNotFoundError, Query, get_db
from snapgram.saga import KeyedLock, SagaStep, retrying, run_saga

logger = logging.getLogger(__name__)

RECENT_POSTS_LIMIT = 20
INFINITE_POSTS_PAGE_SIZE = 9
MAX_PAGE_SIZE = 100
SAVE_ATTEMPTS = 3

_like_locks = KeyedLock()


def parse_tags(tags: Optional[str]) -> list[str]:
    """``"a, b,c"`` -> ``["a", "b", "c"]``"""
    if not tags:
        return []
    return [tag.strip() for tag in tags.split(",") if tag.strip()]


async def _get_post_or_404(post_id: str) -> dict:
    try:
        return await get_db().get_document(POSTS_COLLECTION_ID, post_id)
    except DocumentNotFoundError:
        raise HTTPException(status_code=404, detail="Post not found")


async def _get_owned_post(post_id: str, user_id: str, action: str) -> dict:
    post = await _get_post_or_404(post_id)
    if post["creator"] != user_id:
        raise HTTPException(status_code=403, detail=f"You are not allowed to {action} this post")
    return post


# ========================================
# ✅ CREATE POST
# ========================================
async def create_post(
    user_id: str,
    caption: str,
    image: Optional[UploadFile],
    location: Optional[str] = None,
    tags: Optional[str] = None,
):
    db = get_db()

    uploaded = None
    if image:
        uploaded = await upload_image(image, folder="snapgram/posts")

    data = {
        "creator": user_id,
        "caption": caption,
        "image_url": uploaded["url"] if uploaded else None,
        "image_id": uploaded["file_id"] if uploaded else None,
        "location": location,
        "tags": parse_tags(tags),
        "likes": [],
    }
    try:
        return await db.create_document(POSTS_COLLECTION_ID, data)
    except Exception as e:
        logger.error(f"⚠️ Error in create_post: {e}")
        # Don't leave an orphaned upload behind
        if uploaded:
            delete_image(uploaded["file_id"])
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create post",
        ) from e


# ========================================
# ✅ READ POSTS
# ========================================
async def get_post_by_id(post_id: str):
    return await _get_post_or_404(post_id)


async def _list_posts(queries, action: str):
    try:
        return await get_db().list_documents(POSTS_COLLECTION_ID, queries)
    except DocumentNotFoundError:
        raise HTTPException(status_code=404, detail="Cursor post not found")
    except Exception as e:
        logger.error(f"⚠️ Error in {action}: {e}")
        raise HTTPException(status_code=500, detail="Failed to load posts") from e


async def get_recent_posts(limit: int = RECENT_POSTS_LIMIT):
    return await _list_posts([Query.order_desc("created_at"), Query.limit(limit)], "get_recent_posts")


async def get_infinite_posts(cursor: Optional[str] = None, limit: int = INFINITE_POSTS_PAGE_SIZE):
    """One page of the feed, newest first. ``next_cursor`` is ``None`` on the last page."""
    if not 1 <= limit <= MAX_PAGE_SIZE:
        raise HTTPException(status_code=400, detail=f"limit must be between 1 and {MAX_PAGE_SIZE}")
    queries = [Query.order_desc("created_at"), Query.limit(limit)]
    if cursor:
        queries.append(Query.cursor_after(cursor))
    page = await _list_posts(queries, "get_infinite_posts")
    documents = page["documents"]
    next_cursor = documents[-1]["id"] if documents and len(documents) == limit else None
    return {"total": page["total"], "documents": documents, "next_cursor": next_cursor}


async def search_posts(term: str):
    return await _list_posts([Query.search("caption", term), Query.order_desc("created_at")], "search_posts")


async def get_user_posts(user_id: str):
    return await _list_posts(
        [Query.equal("creator", user_id), Query.order_desc("created_at")], "get_user_posts"
    )


# ========================================
# ✅ UPDATE POST (Ownership Check)
# ========================================
async def update_post(
    post_id: str,
    user_id: str,
    caption: Optional[str] = None,
    image: Optional[UploadFile] = None,
    location: Optional[str] = None,
    tags: Optional[str] = None,
):
    db = get_db()
    post = await _get_owned_post(post_id, user_id, "update")

    # Upload new image if provided
    uploaded = None
    if image:
        uploaded = await upload_image(image, folder="snapgram/posts")

    updates = {}
    if caption is not None:
        updates["caption"] = caption
    if location is not None:
        updates["location"] = location
    if tags is not None:
        updates["tags"] = parse_tags(tags)
    if uploaded:
        updates["image_url"] = uploaded["url"]
        updates["image_id"] = uploaded["file_id"]

    if not updates:
        raise HTTPException(status_code=400, detail="No fields to update")

    try:
        updated = await db.update_document(POSTS_COLLECTION_ID, post_id, updates)
    except Exception as e:
        logger.error(f"⚠️ Error in update_post: {e}")
        if uploaded:
            delete_image(uploaded["file_id"])
        if isinstance(e, DocumentNotFoundError):
            raise HTTPException(status_code=404, detail="Post not found")
        raise HTTPException(status_code=500, detail="Failed to update post") from e

    # The old image is only dropped once the post points at the new one
    if uploaded and post.get("image_id"):
        if not delete_image(post["image_id"]):
            logger.warning(f"⚠️ Could not delete old image {post['image_id']}")

    return updated


# ========================================
# ✅ DELETE POST (Ownership Check)
# ========================================
async def delete_post(post_id: str, user_id: str):
    db = get_db()
    post = await _get_owned_post(post_id, user_id, "delete")

    try:
        await db.delete_document(POSTS_COLLECTION_ID, post_id)
    except DocumentNotFoundError:
        raise HTTPException(status_code=404, detail="Post not found")
    except Exception as e:
        logger.error(f"⚠️ Error in delete_post: {e}")
        raise HTTPException(status_code=500, detail="Failed to delete post") from e

    if post.get("image_id") and not delete_image(post["image_id"]):
        logger.warning(f"⚠️ Could not delete image {post['image_id']}")

    return {"message": "Post deleted successfully", "post_id": post_id}


# ========================================
# ✅ LIKES
# ========================================
async def set_post_like(post_id: str, user_id: str, liked: bool):
    """Make ``user_id``'s like on the post match ``liked``.

    A newly added like on someone else's post notifies the creator; if that
    notification cannot be written the like is removed again. Removing a
    like withdraws its notification. Calls for the same user and post run
    one at a time, so the state each returns is the stored one.
    """
    async with _like_locks.hold((post_id, user_id)):
        return await _apply_like(post_id, user_id, liked)


async def _apply_like(post_id: str, user_id: str, liked: bool):
    db = get_db()
    post = await _get_post_or_404(post_id)
    already_liked = user_id in (post.get("likes") or [])

    try:
        if liked == already_liked:
            return {"liked": liked, "post": post}

        if not liked:
            updated = await db.remove_from_list(POSTS_COLLECTION_ID, post_id, "likes", user_id)
            try:
                await notification_controller.delete_notification(post["creator"], user_id, "like", post_id=post_id)
            except Exception as e:
                logger.warning(f"⚠️ Could not withdraw like notification: {e}")
            return {"liked": False, "post": updated}

        async def add_like():
            return await db.add_to_list(POSTS_COLLECTION_ID, post_id, "likes", user_id)

        async def remove_like(_):
            await db.remove_from_list(POSTS_COLLECTION_ID, post_id, "likes", user_id)

        async def notify():
            return await retrying(
                lambda: notification_controller.create_notification(
                    post["creator"], user_id, "like", post_id=post_id
                ),
                attempts=NOTIFICATION_FANOUT_ATTEMPTS,
            )

        updated, _ = await run_saga([
            SagaStep("add like", add_like, remove_like),
            SagaStep("notify post creator", notify),
        ])
        return {"liked": True, "post": updated}

    except DocumentNotFoundError:
        raise HTTPException(status_code=404, detail="Post not found")
    except Exception as e:
        logger.error(f"⚠️ Error in set_post_like: {e}")
        raise HTTPException(status_code=500, detail="Failed to like post") from e


async def like_post(post_id: str, user_id: str):
    """Toggle ``user_id``'s like on the post."""
    post = await _get_post_or_404(post_id)
    return await set_post_like(post_id, user_id, user_id not in (post.get("likes") or []))


# ========================================
# ✅ SAVES
# ========================================
def save_key(user_id: str, post_id: str) -> str:
    return f"{user_id}_{post_id}"


async def save_post(user_id: str, post_id: str):
    db = get_db()
    await _get_post_or_404(post_id)
    save_id = save_key(user_id, post_id)
    for _ in range(SAVE_ATTEMPTS):
        try:
            return await db.create_document(
                SAVES_COLLECTION_ID, {"user_id": user_id, "post_id": post_id}, document_id=save_id
            )
        except DocumentConflictError:
            pass
        except Exception as e:
            logger.error(f"⚠️ Error in save_post: {e}")
            raise HTTPException(status_code=500, detail="Failed to save post") from e

        try:
            return await db.get_document(SAVES_COLLECTION_ID, save_id)
        except DocumentNotFoundError:
            # Unsaved in between; save again
            continue
        except Exception as e:
            logger.error(f"⚠️ Error in save_post: {e}")
            raise HTTPException(status_code=500, detail="Failed to save post") from e

    raise HTTPException(status_code=409, detail="Post is being saved and unsaved concurrently")



async def delete_saved_post(save_id: str, user_id: str):
    db = get_db()
    try:
        record = await db.get_document(SAVES_COLLECTION_ID, save_id)
    except DocumentNotFoundError:
        raise HTTPException(status_code=404, detail="Saved post not found")
    if record["user_id"] != user_id:
        raise HTTPException(status_code=403, detail="You are not allowed to remove this save")

    try:
        await db.delete_document(SAVES_COLLECTION_ID, save_id)
    except DocumentNotFoundError:
        pass
    except Exception as e:
        logger.error(f"⚠️ Error in delete_saved_post: {e}")
        raise HTTPException(status_code=500, detail="Failed to remove saved post") from e
    return {"message": "Saved post removed", "save_id": save_id}


async def get_saved_records(user_id: str):
    result = await get_db().list_documents(
        SAVES_COLLECTION_ID, [Query.equal("user_id", user_id), Query.order_desc("created_at")]
    )
    return result["documents"]


async def get_saved_posts(user_id: str):
    records = await get_saved_records(user_id)
    post_ids = [r["post_id"] for r in records]
    if not post_ids:
        return []
    posts = await get_db().list_documents(POSTS_COLLECTION_ID, [Query.equal("id", post_ids)])
    by_id = {p["id"]: p for p in posts["documents"]}
    # Saves of deleted posts are skipped
    return [by_id[i] for i in post_ids if i in by_id]
