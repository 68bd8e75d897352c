"""Pydantic models for category endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class CategoryCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=64)
    description: str = ""
    color: str | None = Field(None, max_length=32)


class CategoryUpdateRequest(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=64)
    description: str | None = None
    color: str | None = Field(None, max_length=32)
    update_badges: bool = False


class CategoryResponse(BaseModel):
    id: int
    name: str
    description: str
    color: str
    created_at: datetime | None = None
    updated_at: datetime | None = None

    model_config = {"from_attributes": True}


class CategoryUpdateResponse(BaseModel):
    category: CategoryResponse
    badges_updated: int


class CategoryListResponse(BaseModel):
    categories: list[CategoryResponse]
