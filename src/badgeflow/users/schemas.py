"""Pydantic models for user administration endpoints."""

from __future__ import annotations

from pydantic import BaseModel, Field


class RoleUpdateRequest(BaseModel):
    role: str = Field(..., min_length=1, max_length=16)


class PasswordResetRequest(BaseModel):
    new_password: str = Field(..., min_length=1, max_length=128)


class AdminUserResponse(BaseModel):
    id: int
    email: str
    name: str
    role: str
    require_password_change: bool

    model_config = {"from_attributes": True}


class UserSummary(BaseModel):
    id: int
    name: str
    email: str
    image_url: str | None = None

    model_config = {"from_attributes": True}


class UserListResponse(BaseModel):
    users: list[UserSummary]


class AdminUserListResponse(BaseModel):
    users: list[AdminUserResponse]
