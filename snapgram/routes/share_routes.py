from fastapi import APIRouter, Depends, status
from snapgram.auth import get_current_user
from snapgram.controllers import share_controller
from snapgram.models.share import ShareCreate

router = APIRouter(tags=["Shares"])


@router.post("/", status_code=status.HTTP_201_CREATED)
async def share_post(share: ShareCreate, current_user: dict = Depends(get_current_user)):
    return await share_controller.share_post(share.post_id, current_user["user_id"], share.platform)


@router.get("/{post_id}/count")
async def share_count(post_id: str):
    return {"post_id": post_id, "count": await share_controller.get_post_shares_count(post_id)}
