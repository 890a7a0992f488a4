from fastapi import (
    APIRouter,
    Depends,
    status,
    Form,
    UploadFile,
    File,
    Query
)
from typing import List, Optional

from snapgram.models.post import LikeResponse, PostPage, PostResponse, SaveRequest
from snapgram.controllers import post_controller
from snapgram.auth import get_current_user

router = APIRouter(tags=["Posts"])


# ============================================
# ✅ CREATE POST (Authenticated)
# ============================================
@router.post("/", status_code=status.HTTP_201_CREATED, response_model=PostResponse)
async def create_post(
    caption: str = Form(..., min_length=5, max_length=2200),
    location: Optional[str] = Form(None, max_length=100),
    tags: Optional[str] = Form(None, max_length=100),
    image: Optional[UploadFile] = File(None),
    current_user: dict = Depends(get_current_user)
):
    """
    ✅ Create a post. ``tags`` is a comma separated list.
    Supports optional image upload.
    """
    return await post_controller.create_post(current_user["user_id"], caption, image, location, tags)


# ============================================
# ✅ FEEDS
# ============================================
@router.get("/recent", response_model=PostPage)
async def get_recent_posts():
    return await post_controller.get_recent_posts()


@router.get("/feed", response_model=PostPage)
async def get_infinite_posts(
    cursor: Optional[str] = None,
    limit: int = Query(post_controller.INFINITE_POSTS_PAGE_SIZE, ge=1, le=post_controller.MAX_PAGE_SIZE),
):
    """Cursor-paginated feed; pass the previous page's ``next_cursor``."""
    return await post_controller.get_infinite_posts(cursor, limit)


@router.get("/search", response_model=PostPage)
async def search_posts(q: str):
    return await post_controller.search_posts(q)


@router.get("/saved", response_model=List[PostResponse])
async def get_saved_posts(current_user: dict = Depends(get_current_user)):
    return await post_controller.get_saved_posts(current_user["user_id"])


@router.get("/user/{user_id}", response_model=PostPage)
async def get_user_posts(user_id: str):
    return await post_controller.get_user_posts(user_id)


# ============================================
# ✅ SAVES
# ============================================
@router.post("/saves", status_code=status.HTTP_201_CREATED)
async def save_post(request: SaveRequest, current_user: dict = Depends(get_current_user)):
    return await post_controller.save_post(current_user["user_id"], request.post_id)


@router.delete("/saves/{save_id}")
async def delete_saved_post(save_id: str, current_user: dict = Depends(get_current_user)):
    return await post_controller.delete_saved_post(save_id, current_user["user_id"])


# ============================================
# ✅ SINGLE POST
# ============================================
@router.get("/{post_id}", response_model=PostResponse)
async def get_post_by_id(post_id: str):
    return await post_controller.get_post_by_id(post_id)


@router.put("/{post_id}", response_model=PostResponse)
async def update_post(
    post_id: str,
    caption: Optional[str] = Form(None, min_length=5, max_length=2200),
    location: Optional[str] = Form(None, max_length=100),
    tags: Optional[str] = Form(None, max_length=100),
    image: Optional[UploadFile] = File(None),
    current_user: dict = Depends(get_current_user)
):
    """
    ✅ Update post (must own the post).
    A new image replaces the old one, which is deleted afterwards.
    """
    return await post_controller.update_post(post_id, current_user["user_id"], caption, image, location, tags)


@router.delete("/{post_id}")
async def delete_post(post_id: str, current_user: dict = Depends(get_current_user)):
    """✅ Delete a post by ID (must own the post)."""
    return await post_controller.delete_post(post_id, current_user["user_id"])


# ============================================
# ✅ LIKES
# ============================================
@router.post("/{post_id}/like", response_model=LikeResponse)
async def like_post(post_id: str, current_user: dict = Depends(get_current_user)):
    """Toggle the current user's like."""
    return await post_controller.like_post(post_id, current_user["user_id"])


@router.put("/{post_id}/like", response_model=LikeResponse)
async def set_post_like(post_id: str, liked: bool, current_user: dict = Depends(get_current_user)):
    """Set the current user's like to ``liked``; repeating the call changes nothing."""
    return await post_controller.set_post_like(post_id, current_user["user_id"], liked)
