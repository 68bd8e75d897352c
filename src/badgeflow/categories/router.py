"""Badge category router: /api/v1/categories/* endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from badgeflow.auth.dependencies import get_current_actor
from badgeflow.categories.schemas import (
    CategoryCreateRequest,
    CategoryListResponse,
    CategoryResponse,
    CategoryUpdateRequest,
    CategoryUpdateResponse,
)
from badgeflow.categories.service import create_category, delete_category, list_categories, update_category
from badgeflow.database import get_session
from badgeflow.identity.resolver import Actor

router = APIRouter(prefix="/api/v1/categories", tags=["Categories"])


@router.get("", response_model=CategoryListResponse)
async def list_all(
    _actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_session),
) -> CategoryListResponse:
    categories = await list_categories(db)
    return CategoryListResponse(categories=[CategoryResponse.model_validate(c) for c in categories])


@router.post("", response_model=CategoryResponse, status_code=201)
async def create(
    body: CategoryCreateRequest,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_session),
) -> CategoryResponse:
    category = await create_category(db, actor, body.name, body.description, body.color)
    await db.commit()
    return CategoryResponse.model_validate(category)


@router.put("/{category_id}", response_model=CategoryUpdateResponse)
async def update(
    category_id: int,
    body: CategoryUpdateRequest,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_session),
) -> CategoryUpdateResponse:
    """Edit a category; ``update_badges`` carries a rename onto existing badges."""
    category, renamed = await update_category(
        db,
        actor,
        category_id,
        name=body.name,
        description=body.description,
        color=body.color,
        update_badges=body.update_badges,
    )
    await db.commit()
    return CategoryUpdateResponse(category=CategoryResponse.model_validate(category), badges_updated=renamed)


@router.delete("/{category_id}")
async def delete(
    category_id: int,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_session),
) -> dict[str, str]:
    await delete_category(db, actor, category_id)
    await db.commit()
    return {"status": "deleted"}
