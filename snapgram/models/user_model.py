from pydantic import BaseModel, EmailStr, Field
from typing import Optional, List


class NewUser(BaseModel):
    name: str = Field(..., min_length=2)
    username: str = Field(..., min_length=2)
    email: EmailStr
    password: str = Field(..., min_length=8)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=8)


class UserResponse(BaseModel):
    id: str
    account_id: str
    name: str
    username: str
    email: EmailStr
    image_url: Optional[str] = None
    image_id: Optional[str] = None
    bio: str = ""
    created_at: str
    updated_at: str


class CurrentUserResponse(UserResponse):
    saved_post_ids: List[str] = []
