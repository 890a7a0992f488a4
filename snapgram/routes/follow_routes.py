from fastapi import APIRouter, Depends, status
from snapgram.auth import get_current_user
from snapgram.controllers import follow_controller
from snapgram.models.follow import FollowRequest, FollowResponse

router = APIRouter(tags=["Follows"])


@router.post("/", response_model=FollowResponse)
async def follow_user(request: FollowRequest, current_user: dict = Depends(get_current_user)):
    """Follow a user. Following someone twice keeps a single edge."""
    return await follow_controller.follow_user(current_user["user_id"], request.following_id)


@router.delete("/{following_id}", status_code=status.HTTP_200_OK)
async def unfollow_user(following_id: str, current_user: dict = Depends(get_current_user)):
    deleted = await follow_controller.unfollow_user(current_user["user_id"], following_id)
    return {"message": "Unfollowed", "deleted": deleted}


@router.get("/{following_id}/status")
async def follow_status(following_id: str, current_user: dict = Depends(get_current_user)):
    is_following = await follow_controller.is_following(current_user["user_id"], following_id)
    return {"is_following": is_following}


@router.get("/{user_id}/counts")
async def follow_counts(user_id: str):
    return {
        "followers": await follow_controller.get_followers_count(user_id),
        "following": await follow_controller.get_following_count(user_id),
    }


@router.get("/{user_id}/followers")
async def followers_list(user_id: str):
    return {"users": await follow_controller.get_followers_list(user_id)}


@router.get("/{user_id}/following")
async def following_list(user_id: str):
    return {"users": await follow_controller.get_following_list(user_id)}
