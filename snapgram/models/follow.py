from pydantic import BaseModel


class FollowRequest(BaseModel):
    following_id: str


class FollowEdge(BaseModel):
    id: str
    follower_id: str
    following_id: str
    created_at: str


class FollowResponse(BaseModel):
    edge: FollowEdge
    created: bool
