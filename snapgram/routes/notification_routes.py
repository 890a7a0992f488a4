from fastapi import APIRouter, Depends, Query, status
from snapgram.auth import get_current_user
from snapgram.controllers import notification_controller
from snapgram.models.notification import NotificationList

router = APIRouter(tags=["Notifications"])


@router.get("/", status_code=status.HTTP_200_OK, response_model=NotificationList)
async def get_notifications(
    limit: int = Query(notification_controller.DEFAULT_LIMIT, ge=1, le=notification_controller.MAX_LIMIT),
    current_user: dict = Depends(get_current_user)
):
    """Get notifications for current user"""
    return await notification_controller.get_notifications(current_user["user_id"], limit)


@router.put("/read-all", status_code=status.HTTP_200_OK)
async def mark_all_read(current_user: dict = Depends(get_current_user)):
    """Mark all notifications as read"""
    return await notification_controller.mark_all_as_read(current_user["user_id"])


@router.put("/{notification_id}/read", status_code=status.HTTP_200_OK)
async def mark_notification_read(
    notification_id: str,
    current_user: dict = Depends(get_current_user)
):
    """Mark a notification as read"""
    return await notification_controller.mark_as_read(notification_id, current_user["user_id"])


@router.delete("/", status_code=status.HTTP_200_OK)
async def clear_all(current_user: dict = Depends(get_current_user)):
    """Delete all notifications of the current user"""
    return await notification_controller.clear_all(current_user["user_id"])
