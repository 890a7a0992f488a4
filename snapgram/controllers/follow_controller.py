import asyncio
import logging

from fastapi import HTTPException

from snapgram.config import FOLLOWS_COLLECTION_ID, NOTIFICATION_FANOUT_ATTEMPTS, USERS_COLLECTION_ID
from snapgram.controllers import notification_controller
from snapgram.db import DocumentConflictError, DocumentNotFoundError, Query, get_db
from snapgram.saga import SagaStep, retrying, run_saga

logger = logging.getLogger(__name__)

PENDING = "pending"
ACTIVE = "active"

FOLLOW_ATTEMPTS = 3
FOLLOW_SETTLE_ATTEMPTS = 40
FOLLOW_SETTLE_DELAY = 0.05


def follow_key(follower_id: str, following_id: str) -> str:
    """One follow edge per (follower, following) pair."""
    return f"{follower_id}_{following_id}"


async def _ensure_user(user_id: str):
    try:
        return await get_db().get_document(USERS_COLLECTION_ID, user_id)
    except DocumentNotFoundError:
        raise HTTPException(status_code=404, detail="User not found")


async def _settled_edge(edge_id: str):
    """The stored edge once the follow that wrote it has finished, ``None`` if it was rolled back."""
    db = get_db()
    for _ in range(FOLLOW_SETTLE_ATTEMPTS):
        try:
            edge = await db.get_document(FOLLOWS_COLLECTION_ID, edge_id)
        except DocumentNotFoundError:
            return None
        # Edges written before the pending state existed have no status
        if edge.get("status") != PENDING:
            return edge
        await asyncio.sleep(FOLLOW_SETTLE_DELAY)
    raise HTTPException(status_code=409, detail="A follow for this user is already in progress")


async def follow_user(follower_id: str, following_id: str):
    """Create the follow edge and notify the followed user.

    The edge is written as pending and only becomes active once the
    notification exists; if the notification cannot be written the edge is
    removed again and the error propagates. A caller that finds an edge
    already in place waits for it to settle: an active edge is returned with
    ``created=False``, a rolled back one makes the caller follow afresh.
    """
    if follower_id == following_id:
        raise HTTPException(status_code=400, detail="You cannot follow yourself")

    await _ensure_user(follower_id)
    await _ensure_user(following_id)

    db = get_db()
    edge_id = follow_key(follower_id, following_id)
    data = {"follower_id": follower_id, "following_id": following_id, "status": PENDING}

    async def create_edge():
        return await db.create_document(FOLLOWS_COLLECTION_ID, data, document_id=edge_id)

    async def delete_edge(edge):
        await db.delete_document(FOLLOWS_COLLECTION_ID, edge["id"])

    async def notify():
        return await retrying(
            lambda: notification_controller.create_notification(following_id, follower_id, "follow"),
            attempts=NOTIFICATION_FANOUT_ATTEMPTS,
        )

    async def withdraw_notification(_):
        await notification_controller.delete_notification(following_id, follower_id, "follow")

    async def activate_edge():
        return await db.update_document(FOLLOWS_COLLECTION_ID, edge_id, {"status": ACTIVE})

    for _ in range(FOLLOW_ATTEMPTS):
        try:
            _, _, edge = await run_saga([
                SagaStep("create follow edge", create_edge, delete_edge),
                SagaStep("notify followed user", notify, withdraw_notification),
                SagaStep("activate follow edge", activate_edge),
            ])
            logger.info(f"✅ {follower_id} now follows {following_id}")
            return {"edge": edge, "created": True}
        except DocumentConflictError:
            pass
        except HTTPException:
            raise
        except Exception as e:
            logger.error(f"⚠️ Error in follow_user: {e}")
            raise HTTPException(status_code=500, detail="Failed to follow user") from e

        try:
            edge = await _settled_edge(edge_id)
        except HTTPException:
            raise
        except Exception as e:
            logger.error(f"⚠️ Error reading follow edge {edge_id}: {e}")
            raise HTTPException(status_code=500, detail="Failed to follow user") from e
        if edge is not None:
            return {"edge": edge, "created": False}
        logger.info(f"Competing follow {edge_id} was rolled back, following again")

    raise HTTPException(status_code=409, detail="A follow for this user is already in progress")


async def _matching_edges(follower_id: str, following_id: str):
    result = await get_db().list_documents(
        FOLLOWS_COLLECTION_ID,
        [Query.equal("follower_id", follower_id), Query.equal("following_id", following_id)],
    )
    return result["documents"]


async def unfollow_user(follower_id: str, following_id: str) -> int:
    """Delete every edge from follower to following, duplicates included, and
    withdraw the follow notification."""
    db = get_db()
    try:
        edges = await _matching_edges(follower_id, following_id)
        results = await asyncio.gather(
            *(db.delete_document(FOLLOWS_COLLECTION_ID, e["id"]) for e in edges),
            return_exceptions=True,
        )
        # A concurrent unfollow may have removed the edge already.
        failures = [r for r in results if isinstance(r, Exception) and not isinstance(r, DocumentNotFoundError)]
        if failures:
            raise failures[0]
        deleted = sum(1 for r in results if not isinstance(r, Exception))

    except Exception as e:
        logger.error(f"⚠️ Error in unfollow_user: {e}")
        raise HTTPException(status_code=500, detail="Failed to unfollow user") from e

    # A later follow notifies again
    try:
        await notification_controller.delete_notification(following_id, follower_id, "follow")
    except Exception as e:
        logger.warning(f"⚠️ Could not withdraw follow notification: {e}")
    return deleted


async def is_following(follower_id: str, following_id: str) -> bool:
    try:
        return bool(await _matching_edges(follower_id, following_id))
    except Exception as e:
        logger.error(f"⚠️ Error in is_following: {e}")
        raise HTTPException(status_code=500, detail="Failed to get follow status") from e


async def _count(field: str, user_id: str) -> int:
    result = await get_db().list_documents(
        FOLLOWS_COLLECTION_ID, [Query.equal(field, user_id), Query.limit(0)]
    )
    return result["total"]


async def get_followers_count(user_id: str) -> int:
    return await _count("following_id", user_id)


async def get_following_count(user_id: str) -> int:
    return await _count("follower_id", user_id)


async def _edge_users(field: str, user_id: str, other_field: str):
    db = get_db()
    try:
        edges = await db.list_documents(
            FOLLOWS_COLLECTION_ID, [Query.equal(field, user_id), Query.order_desc("created_at")]
        )
        user_ids = list(dict.fromkeys(e[other_field] for e in edges["documents"]))
        if not user_ids:
            return []
        users = await db.list_documents(USERS_COLLECTION_ID, [Query.equal("id", user_ids)])
        by_id = {u["id"]: u for u in users["documents"]}
        return [by_id[i] for i in user_ids if i in by_id]
    except Exception as e:
        logger.error(f"⚠️ Error listing follow edges: {e}")
        raise HTTPException(status_code=500, detail="Failed to list users") from e


async def get_followers_list(user_id: str):
    """Users following ``user_id``, most recent first"""
    return await _edge_users("following_id", user_id, "follower_id")


async def get_following_list(user_id: str):
    """Users ``user_id`` follows, most recent first"""
    return await _edge_users("follower_id", user_id, "following_id")
