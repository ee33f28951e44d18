from datetime import datetime

from pydantic import BaseModel, EmailStr, Field


class FamilyCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)


class FamilyUpdate(BaseModel):
    name: str = Field(min_length=1, max_length=255)


class FamilyResponse(BaseModel):
    id: int
    name: str
    created_by_user_id: int
    created_at: datetime


class FamilySummaryResponse(BaseModel):
    id: int
    name: str
    member_id: int
    role: str
    status: str


class FamilyListResponse(BaseModel):
    items: list[FamilySummaryResponse]


class FamilyMemberInvite(BaseModel):
    email: EmailStr
    role: str = Field(default="member", pattern="^(admin|member)$")


class FamilyMemberUpdate(BaseModel):
    role: str | None = Field(default=None, pattern="^(admin|member)$")
    status: str | None = Field(default=None, pattern="^(active|inactive)$")


class FamilyMemberResponse(BaseModel):
    id: int
    family_id: int
    user_id: int
    name: str
    email: EmailStr
    avatar_url: str | None = None
    role: str
    status: str
    joined_at: datetime | None = None


class FamilyMemberListResponse(BaseModel):
    items: list[FamilyMemberResponse]


class FamilyCreateResponse(BaseModel):
    family: FamilyResponse
    member: FamilyMemberResponse
