from pydantic import BaseModel
from typing import Literal, Optional, List

NotificationType = Literal["follow", "like", "comment"]


class NotificationResponse(BaseModel):
    id: str
    user_id: str
    sender_id: str
    sender_name: Optional[str] = None
    sender_username: Optional[str] = None
    sender_image_url: Optional[str] = None
    type: NotificationType
    post_id: Optional[str] = None
    message: str
    is_read: bool
    created_at: str


class NotificationList(BaseModel):
    notifications: List[NotificationResponse]
    unread_count: int
