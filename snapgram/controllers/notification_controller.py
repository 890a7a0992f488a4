import asyncio
import logging
from typing import Optional

from fastapi import HTTPException

from snapgram.config import NOTIFICATIONS_COLLECTION_ID, USERS_COLLECTION_ID
from snapgram.db import DocumentConflictError, DocumentNotFoundError, Query, get_db
from snapgram.models.notification import NotificationResponse

logger = logging.getLogger(__name__)

NOTIFICATION_TYPES = ("follow", "like", "comment")

DEFAULT_LIMIT = 20
MAX_LIMIT = 100

MESSAGES = {
    "follow": "{name} started following you",
    "like": "{name} liked your post",
    "comment": "{name} commented on your post",
}


def notification_key(user_id: str, sender_id: str, notification_type: str, post_id: Optional[str] = None) -> str:
    """Deterministic id: one notification per sender, recipient, type and post."""
    return f"{sender_id}_{user_id}_{notification_type}_{post_id or 'none'}"


def render_message(notification_type: str, sender_name: Optional[str]) -> str:
    template = MESSAGES.get(notification_type, "{name} interacted with your content")
    return template.format(name=sender_name or "Someone")


async def create_notification(user_id: str, sender_id: str, notification_type: str, post_id: Optional[str] = None):
    """Create a notification for a user.

    Creating the same notification twice returns the stored one, so callers
    may retry freely. Returns ``None`` when the sender is the recipient.
    """
    if notification_type not in NOTIFICATION_TYPES:
        raise ValueError(f"Unknown notification type: {notification_type}")

    # Don't notify users about their own actions
    if user_id == sender_id:
        return None

    db = get_db()
    notification_id = notification_key(user_id, sender_id, notification_type, post_id)
    data = {
        "user_id": user_id,
        "sender_id": sender_id,
        "type": notification_type,
        "post_id": post_id,
        "is_read": False,
    }
    try:
        return await db.create_document(NOTIFICATIONS_COLLECTION_ID, data, document_id=notification_id)
    except DocumentConflictError:
        logger.info(f"Notification {notification_id} already exists")
    try:
        return await db.get_document(NOTIFICATIONS_COLLECTION_ID, notification_id)
    except DocumentNotFoundError:
        # Withdrawn in between
        return await db.create_document(NOTIFICATIONS_COLLECTION_ID, data, document_id=notification_id)


async def delete_notification(user_id: str, sender_id: str, notification_type: str, post_id: Optional[str] = None) -> bool:
    """Withdraw the notification an action produced, e.g. on unfollow or unlike.

    Returns ``False`` when there was nothing to withdraw.
    """
    notification_id = notification_key(user_id, sender_id, notification_type, post_id)
    try:
        await get_db().delete_document(NOTIFICATIONS_COLLECTION_ID, notification_id)
    except DocumentNotFoundError:
        return False
    return True


async def _load_senders(sender_ids) -> dict:
    db = get_db()

    async def load(sender_id):
        try:
            return await db.get_document(USERS_COLLECTION_ID, sender_id)
        except DocumentNotFoundError:
            return None

    ids = list(dict.fromkeys(sender_ids))
    users = await asyncio.gather(*(load(i) for i in ids))
    return {i: u for i, u in zip(ids, users) if u is not None}


async def get_notifications(user_id: str, limit: int = DEFAULT_LIMIT):
    """Get notifications for a user, newest first"""
    if not 1 <= limit <= MAX_LIMIT:
        raise HTTPException(status_code=400, detail=f"limit must be between 1 and {MAX_LIMIT}")
    db = get_db()
    try:
        result = await db.list_documents(
            NOTIFICATIONS_COLLECTION_ID,
            [Query.equal("user_id", user_id), Query.order_desc("created_at"), Query.limit(limit)],
        )
        unread = await db.list_documents(
            NOTIFICATIONS_COLLECTION_ID,
            [Query.equal("user_id", user_id), Query.equal("is_read", False), Query.limit(0)],
        )
        senders = await _load_senders(n["sender_id"] for n in result["documents"])

        notifications = []
        for n in result["documents"]:
            sender = senders.get(n["sender_id"], {})
            notifications.append(NotificationResponse(
                id=n["id"],
                user_id=n["user_id"],
                sender_id=n["sender_id"],
                sender_name=sender.get("name"),
                sender_username=sender.get("username"),
                sender_image_url=sender.get("image_url"),
                type=n["type"],
                post_id=n.get("post_id"),
                message=render_message(n["type"], sender.get("name")),
                is_read=n.get("is_read", False),
                created_at=n["created_at"],
            ))

        return {"notifications": notifications, "unread_count": unread["total"]}

    except Exception as e:
        logger.error(f"⚠️ Error getting notifications: {e}")
        raise HTTPException(status_code=500, detail="Failed to get notifications") from e


async def mark_as_read(notification_id: str, user_id: str):
    """Mark a notification as read. Already-read notifications are left untouched."""
    db = get_db()
    try:
        notification = await db.get_document(NOTIFICATIONS_COLLECTION_ID, notification_id)
    except DocumentNotFoundError:
        raise HTTPException(status_code=404, detail="Notification not found")

    if notification["user_id"] != user_id:
        raise HTTPException(status_code=404, detail="Notification not found")

    if notification.get("is_read"):
        return notification

    try:
        return await db.update_document(NOTIFICATIONS_COLLECTION_ID, notification_id, {"is_read": True})
    except Exception as e:
        logger.error(f"⚠️ Error marking notification as read: {e}")
        raise HTTPException(status_code=500, detail="Failed to mark notification as read") from e


async def _apply_to_each(documents, operation, verb: str):
    results = await asyncio.gather(*(operation(d) for d in documents), return_exceptions=True)
    failures = [r for r in results if isinstance(r, Exception)]
    count = len(results) - len(failures)
    if failures:
        # No batching primitive: the successful writes stay applied.
        logger.error(f"⚠️ {verb} {count} of {len(results)} notifications; first error: {failures[0]}")
        raise HTTPException(
            status_code=500,
            detail=f"{verb} {count} of {len(results)} notifications",
        )
    return count


async def mark_all_as_read(user_id: str):
    """Mark all unread notifications as read for a user"""
    db = get_db()
    try:
        unread = await db.list_documents(
            NOTIFICATIONS_COLLECTION_ID,
            [Query.equal("user_id", user_id), Query.equal("is_read", False)],
        )
    except Exception as e:
        logger.error(f"⚠️ Error listing unread notifications: {e}")
        raise HTTPException(status_code=500, detail="Failed to mark notifications as read") from e

    count = await _apply_to_each(
        unread["documents"],
        lambda n: db.update_document(NOTIFICATIONS_COLLECTION_ID, n["id"], {"is_read": True}),
        "Marked",
    )
    return {"message": f"Marked {count} notifications as read", "count": count}


async def clear_all(user_id: str):
    """Delete every notification of a user"""
    db = get_db()
    try:
        result = await db.list_documents(NOTIFICATIONS_COLLECTION_ID, [Query.equal("user_id", user_id)])
    except Exception as e:
        logger.error(f"⚠️ Error listing notifications: {e}")
        raise HTTPException(status_code=500, detail="Failed to clear notifications") from e

    count = await _apply_to_each(
        result["documents"],
        lambda n: db.delete_document(NOTIFICATIONS_COLLECTION_ID, n["id"]),
        "Cleared",
    )
    return {"message": f"Cleared {count} notifications", "count": count}
