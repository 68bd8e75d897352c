"""Reaction request/response models shared by badges and the community feed."""

from __future__ import annotations

from pydantic import BaseModel, Field


class ReactionRequest(BaseModel):
    type: str = Field(..., min_length=1, max_length=16)


class ReactionEntry(BaseModel):
    type: str
    users: list[str]


class ReactionsResponse(BaseModel):
    reactions: list[ReactionEntry]
    counts: dict[str, int]
