from pydantic import BaseModel, Field
from typing import Optional, List


# Model for responding to a post request (what client sees)
class PostResponse(BaseModel):
    id: str
    creator: str
    caption: str
    image_url: Optional[str] = None
    image_id: Optional[str] = None
    location: Optional[str] = None
    tags: List[str] = []
    likes: List[str] = Field(default_factory=list, description="User ids that liked the post")
    created_at: str
    updated_at: str


class PostPage(BaseModel):
    total: int
    documents: List[PostResponse]
    next_cursor: Optional[str] = None


class LikeResponse(BaseModel):
    liked: bool
    post: PostResponse


class SaveRequest(BaseModel):
    post_id: str
