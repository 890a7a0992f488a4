from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, status
from typing import Optional
from snapgram.controllers import user_controller
from snapgram.auth import get_current_user
from snapgram.models.user_model import CurrentUserResponse, LoginRequest, NewUser, UserResponse

router = APIRouter(tags=["Users"])


@router.post("/register", status_code=status.HTTP_201_CREATED, response_model=UserResponse)
async def register(user: NewUser):
    """Register a new user"""
    return await user_controller.register_user(user)


@router.post("/login")
async def login(login_request: LoginRequest):
    """Login and get JWT token"""
    return await user_controller.authenticate_user(login_request)


@router.post("/logout")
async def logout(current_user: dict = Depends(get_current_user)):
    """End the session the token belongs to"""
    return await user_controller.sign_out(current_user)


@router.get("/me", response_model=CurrentUserResponse)
async def get_current_user_info(current_user: dict = Depends(get_current_user)):
    """
    Return full info about the currently logged-in user, with saved post ids.
    """
    return await user_controller.get_current_user_profile(current_user)


@router.get("/")
async def list_users(limit: Optional[int] = Query(None, ge=1, le=100)):
    return await user_controller.get_users(limit)


@router.get("/search")
async def search_users(q: str):
    return {"users": await user_controller.search_users(q)}


@router.get("/{user_id}", response_model=UserResponse)
async def get_user(user_id: str):
    return await user_controller.get_user_by_id(user_id)


@router.put("/{user_id}", response_model=UserResponse)
async def update_user(
    user_id: str,
    name: Optional[str] = Form(None, min_length=2),
    bio: Optional[str] = Form(None),
    image: Optional[UploadFile] = File(None),
    current_user: dict = Depends(get_current_user)
):
    """Update name, bio and profile picture of the current user"""
    return await user_controller.update_user(user_id, current_user, name=name, bio=bio, image=image)
