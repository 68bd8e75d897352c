"""Pydantic models for the community feed and earned-badge checks."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel

from badgeflow.reactions.schemas import ReactionEntry


class EarnedBadgeResponse(BaseModel):
    id: int
    badge_id: int
    student_id: int
    is_visible: bool
    reactions: list[ReactionEntry] = []
    created_at: datetime

    model_config = {"from_attributes": True}


class CommunityResponse(BaseModel):
    earned_badges: list[EarnedBadgeResponse]
    limit: int
    offset: int


class EarnedBadgeCheckResponse(BaseModel):
    student_id: int
    badge_id: int
    count: int
    earned: bool
