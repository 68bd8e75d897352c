"""Badge category management.

Admins create and edit categories, only the super-admin deletes them. Badges
carry the category name, so a rename can optionally be pushed onto them.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING

import structlog
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError

from badgeflow.db.models import Badge, Category
from badgeflow.errors import ForbiddenError, NotFoundError, PayloadValidationError
from badgeflow.identity.policy import can_delete_category, can_manage_categories
from badgeflow.identity.resolver import Actor

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = structlog.get_logger()

DEFAULT_COLOR = "purple"


async def list_categories(db: AsyncSession) -> list[Category]:
    result = await db.execute(select(Category).order_by(Category.name))
    return list(result.scalars())


async def _name_taken(db: AsyncSession, name: str, exclude_id: int | None = None) -> bool:
    query = select(Category.id).where(Category.name == name)
    if exclude_id is not None:
        query = query.where(Category.id != exclude_id)
    return (await db.execute(query)).first() is not None


async def create_category(
    db: AsyncSession,
    actor: Actor,
    name: str,
    description: str = "",
    color: str | None = None,
) -> Category:
    """
    Create a category.

    Raises:
        ForbiddenError: Actor is not an admin.
        PayloadValidationError: Blank or duplicate name.
    """
    if not can_manage_categories(actor):
        raise ForbiddenError("Only administrators can manage categories")
    name = (name or "").strip()
    if not name:
        raise PayloadValidationError("Name is required")
    if await _name_taken(db, name):
        raise PayloadValidationError("Category already exists")

    now = datetime.now(timezone.utc)
    category = Category(
        name=name,
        description=description or "",
        color=color or DEFAULT_COLOR,
        created_at=now,
        updated_at=now,
    )
    try:
        async with db.begin_nested():
            db.add(category)
            await db.flush()
    except IntegrityError as e:
        raise PayloadValidationError("Category already exists") from e
    logger.info("category_created", category_id=category.id, name=name, by=actor.user_id)
    return category


async def update_category(
    db: AsyncSession,
    actor: Actor,
    category_id: int,
    name: str | None = None,
    description: str | None = None,
    color: str | None = None,
    update_badges: bool = False,
) -> tuple[Category, int]:
    """
    Edit a category; returns the category and the number of badges renamed.

    With ``update_badges`` a rename is applied to every badge that carried the
    old name.

    Raises:
        ForbiddenError: Actor is not an admin.
        NotFoundError: No such category.
        PayloadValidationError: Blank or duplicate name.
    """
    if not can_manage_categories(actor):
        raise ForbiddenError("Only administrators can manage categories")
    category = await db.get(Category, category_id)
    if category is None:
        raise NotFoundError("Category not found")

    previous_name = category.name
    if name is not None:
        name = name.strip()
        if not name:
            raise PayloadValidationError("Name is required")
        if await _name_taken(db, name, exclude_id=category_id):
            raise PayloadValidationError("Category name already exists")
        category.name = name
    if description is not None:
        category.description = description
    if color:
        category.color = color
    category.updated_at = datetime.now(timezone.utc)
    await db.flush()

    renamed = 0
    if update_badges and category.name != previous_name:
        result = await db.execute(
            update(Badge)
            .where(Badge.category == previous_name)
            .values(category=category.name, updated_at=category.updated_at)
            .execution_options(synchronize_session="fetch")
        )
        renamed = result.rowcount
        logger.info("category_badges_renamed", old=previous_name, new=category.name, count=renamed)
    return category, renamed


async def delete_category(db: AsyncSession, actor: Actor, category_id: int) -> None:
    """
    Remove a category. Badges keep the name they were tagged with.

    Raises:
        ForbiddenError: Actor is not the super-admin.
        NotFoundError: No such category.
    """
    if not can_delete_category(actor):
        raise ForbiddenError("Only the super administrator can delete categories")
    category = await db.get(Category, category_id)
    if category is None:
        raise NotFoundError("Category not found")
    name = category.name
    await db.delete(category)
    await db.flush()
    logger.info("category_deleted", category_id=category_id, name=name, by=actor.user_id)
