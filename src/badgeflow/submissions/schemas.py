"""Pydantic models for submission endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class SubmissionCreateRequest(BaseModel):
    badge_id: int
    evidence: str = Field(..., max_length=2048)
    show_evidence: bool = False


class ReviewRequest(BaseModel):
    # validated by the state machine so errors carry the pipeline taxonomy
    status: str | None = None
    comment: str | None = Field(None, max_length=4000)


class BulkReviewRequest(BaseModel):
    submission_ids: list[int] = Field(default_factory=list)
    status: str | None = None
    comment: str | None = Field(None, max_length=4000)


class VisibilityRequest(BaseModel):
    submission_id: int
    is_visible: bool | None = None
    show_evidence: bool | None = None


class CommentResponse(BaseModel):
    id: int
    author_id: int
    content: str
    created_at: datetime

    model_config = {"from_attributes": True}


class SubmissionResponse(BaseModel):
    id: int
    badge_id: int
    student_id: int
    teacher_id: int
    status: str
    evidence: str
    is_visible: bool
    show_evidence: bool
    comments: list[CommentResponse] = []
    created_at: datetime | None = None
    updated_at: datetime | None = None

    model_config = {"from_attributes": True}


class SubmissionListResponse(BaseModel):
    submissions: list[SubmissionResponse]


class ReviewResponse(BaseModel):
    status: str = "success"
    message: str
    submission: SubmissionResponse


class BulkFailureResponse(BaseModel):
    id: int
    reason: str


class BulkReviewResponse(BaseModel):
    updated_count: int
    failures: list[BulkFailureResponse]
