from pydantic import BaseModel, Field


class ShareCreate(BaseModel):
    post_id: str
    platform: str = Field(default="link", description="Where the post was shared to")
