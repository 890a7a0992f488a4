from fastapi import APIRouter, Depends, status
from snapgram.auth import get_current_user
from snapgram.models.comment import CommentCreate, CommentResponse, CommentUpdate
from snapgram.controllers import comment_controller

router = APIRouter(tags=["Comments"])


# ✅ Create comment
@router.post("/", status_code=status.HTTP_201_CREATED, response_model=CommentResponse)
async def create_comment(comment: CommentCreate, current_user: dict = Depends(get_current_user)):
    return await comment_controller.create_comment(comment.post_id, current_user["user_id"], comment.content)


# ✅ Get comments of a post
@router.get("/{post_id}", status_code=status.HTTP_200_OK)
async def get_comments(post_id: str):
    return await comment_controller.get_post_comments(post_id)


# ✅ Update comment
@router.put("/{comment_id}", status_code=status.HTTP_200_OK, response_model=CommentResponse)
async def update_comment(
    comment_id: str,
    data: CommentUpdate,
    current_user: dict = Depends(get_current_user)
):
    return await comment_controller.update_comment(comment_id, current_user["user_id"], data.content)


# ✅ Delete comment
@router.delete("/{comment_id}", status_code=status.HTTP_200_OK)
async def delete_comment(comment_id: str, current_user: dict = Depends(get_current_user)):
    return await comment_controller.delete_comment(comment_id, current_user["user_id"])
