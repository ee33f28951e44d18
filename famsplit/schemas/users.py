from datetime import datetime

from pydantic import BaseModel, Field


class MembershipResponse(BaseModel):
    family_id: int
    family_name: str
    member_id: int
    role: str
    status: str


class UserResponse(BaseModel):
    id: int
    email: str
    name: str
    avatar_url: str | None = None
    created_at: datetime
    memberships: list[MembershipResponse]


class UserUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    avatar_url: str | None = Field(default=None, max_length=2048)
