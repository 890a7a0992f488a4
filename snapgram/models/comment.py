from pydantic import BaseModel, Field
from typing import Optional


class CommentCreate(BaseModel):
    post_id: str = Field(..., description="ID of the post being commented on")
    content: str = Field(..., min_length=1, description="Text content of the comment")


class CommentUpdate(BaseModel):
    content: str = Field(..., min_length=1, description="Updated text content")


class CommentAuthor(BaseModel):
    id: str
    name: Optional[str] = None
    username: Optional[str] = None
    image_url: Optional[str] = None


class CommentResponse(BaseModel):
    id: str
    post_id: str
    user_id: str
    content: str
    created_at: str
    updated_at: str
    user: Optional[CommentAuthor] = None
