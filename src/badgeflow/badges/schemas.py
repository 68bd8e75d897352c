"""Pydantic models for badge endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from badgeflow.reactions.schemas import ReactionEntry


class BadgeCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=128)
    description: str = Field(..., min_length=1)
    criteria: str = Field(..., min_length=1)
    difficulty: int
    category: str = Field(..., min_length=1, max_length=64)
    image_url: str | None = None
    is_public: bool = False


class BadgeUpdateRequest(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=128)
    description: str | None = Field(None, min_length=1)
    criteria: str | None = Field(None, min_length=1)
    difficulty: int | None = None
    category: str | None = Field(None, min_length=1, max_length=64)
    image_url: str | None = None
    is_public: bool | None = None


class BadgeResponse(BaseModel):
    id: int
    name: str
    description: str
    criteria: str
    difficulty: int
    category: str
    image_url: str | None
    is_public: bool
    creator_id: int
    reactions: list[ReactionEntry] = []
    created_at: datetime | None = None

    model_config = {"from_attributes": True}


class BadgeListResponse(BaseModel):
    badges: list[BadgeResponse]
