"""Authentication router: /api/v1/auth/* endpoints."""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from badgeflow.auth import service
from badgeflow.auth.dependencies import get_current_user
from badgeflow.auth.jwt import create_access_token
from badgeflow.auth.schemas import ChangePasswordRequest, LoginRequest, TokenResponse, UserResponse
from badgeflow.config import get_settings
from badgeflow.database import get_session
from badgeflow.db.models import User

logger = structlog.get_logger()

router = APIRouter(prefix="/api/v1/auth", tags=["Authentication"])


@router.post("/login", response_model=TokenResponse)
async def login(body: LoginRequest, db: AsyncSession = Depends(get_session)) -> TokenResponse:
    """Email + password login. Heals legacy mixed-case emails before verifying."""
    user = await service.authenticate(db, body.email, body.password)
    await db.commit()

    settings = get_settings()
    return TokenResponse(
        access_token=create_access_token(user.id, user.email, user.role),
        expires_in=settings.jwt_access_token_expire_minutes * 60,
        require_password_change=user.require_password_change,
        user=UserResponse.model_validate(user),
    )


@router.post("/change-password")
async def change_password(
    body: ChangePasswordRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> dict[str, str]:
    await service.change_password(db, user, body.current_password, body.new_password)
    await db.commit()
    return {"status": "password_changed"}
