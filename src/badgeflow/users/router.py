"""User administration router: /api/v1/users/* endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from badgeflow.auth.dependencies import get_current_actor
from badgeflow.database import get_session
from badgeflow.db.models import UserRole
from badgeflow.identity.resolver import Actor, IdentityResolver, get_identity_resolver
from badgeflow.users.schemas import (
    AdminUserListResponse,
    AdminUserResponse,
    PasswordResetRequest,
    RoleUpdateRequest,
    UserListResponse,
    UserSummary,
)
from badgeflow.users.service import assign_role, list_user_directory, list_users_by_role, reset_credential

router = APIRouter(prefix="/api/v1/users", tags=["Users"])


async def _list_role(db: AsyncSession, actor: Actor, role: UserRole) -> UserListResponse:
    users = await list_users_by_role(db, actor, role.value)
    return UserListResponse(users=[UserSummary.model_validate(u) for u in users])


@router.get("", response_model=AdminUserListResponse)
async def list_all(
    role: str | None = Query(None),
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_session),
) -> AdminUserListResponse:
    """Admin user directory, optionally filtered by role."""
    users = await list_user_directory(db, actor, role)
    return AdminUserListResponse(users=[AdminUserResponse.model_validate(u) for u in users])


@router.get("/students", response_model=UserListResponse)
async def list_students(
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_session),
) -> UserListResponse:
    return await _list_role(db, actor, UserRole.STUDENT)


@router.get("/teachers", response_model=UserListResponse)
async def list_teachers(
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_session),
) -> UserListResponse:
    return await _list_role(db, actor, UserRole.TEACHER)


@router.put("/{user_id}/role", response_model=AdminUserResponse)
async def update_role(
    user_id: int,
    body: RoleUpdateRequest,
    actor: Actor = Depends(get_current_actor),
    resolver: IdentityResolver = Depends(get_identity_resolver),
    db: AsyncSession = Depends(get_session),
) -> AdminUserResponse:
    user = await assign_role(db, resolver, actor, user_id, body.role)
    await db.commit()
    return AdminUserResponse.model_validate(user)


@router.post("/{user_id}/reset-password", response_model=AdminUserResponse)
async def reset_password(
    user_id: int,
    body: PasswordResetRequest,
    actor: Actor = Depends(get_current_actor),
    resolver: IdentityResolver = Depends(get_identity_resolver),
    db: AsyncSession = Depends(get_session),
) -> AdminUserResponse:
    """Set a temporary password; the user must change it at next login."""
    user = await reset_credential(db, resolver, actor, user_id, body.new_password)
    await db.commit()
    return AdminUserResponse.model_validate(user)
