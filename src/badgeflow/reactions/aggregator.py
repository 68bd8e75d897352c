"""Toggle-set reaction aggregation shared by badges and earned badges."""

from __future__ import annotations

from typing import Any

from badgeflow.errors import InvalidReactionTypeError
from badgeflow.identity.resolver import normalize_email

# Fixed reaction vocabulary, in display order.
REACTION_TYPES: tuple[str, ...] = ("\U0001f44f", "\U0001f389", "\U0001f31f", "\U0001f3c6", "\U0001f4aa")


def validate_reaction_type(reaction_type: str) -> str:
    if reaction_type not in REACTION_TYPES:
        raise InvalidReactionTypeError(f"Invalid reaction type: {reaction_type!r}")
    return reaction_type


def _unique(users: list[str]) -> list[str]:
    seen: set[str] = set()
    ordered = []
    for user in users:
        if user not in seen:
            seen.add(user)
            ordered.append(user)
    return ordered


def toggle_reaction(
    reactions: list[dict[str, Any]] | None,
    reaction_type: str,
    actor_email: str,
) -> list[dict[str, Any]]:
    """Toggle ``actor_email`` within the ``reaction_type`` entry.

    Returns a new collection; the input is never mutated. Entries left with no
    users are pruned, and a user never appears twice under one type.

    Raises:
        InvalidReactionTypeError: If the type is not in REACTION_TYPES.
    """
    validate_reaction_type(reaction_type)
    email = normalize_email(actor_email)

    updated: list[dict[str, Any]] = []
    found = False
    for entry in reactions or []:
        users = _unique([normalize_email(u) for u in entry.get("users", [])])
        if entry.get("type") == reaction_type:
            found = True
            if email in users:
                users.remove(email)
            else:
                users.append(email)
        updated.append({"type": entry.get("type"), "users": users})

    if not found:
        updated.append({"type": reaction_type, "users": [email]})

    return [entry for entry in updated if entry["users"]]


def reaction_counts(reactions: list[dict[str, Any]] | None) -> dict[str, int]:
    """Map of reaction type to number of users, for summary views."""
    return {entry["type"]: len(entry["users"]) for entry in reactions or [] if entry.get("users")}
