"""Pipeline error taxonomy.

Every failure surfaced by the review pipeline carries a stable ``kind`` and a
human-readable ``detail``. The global exception handler renders them as
``{"status": "error", "kind": ..., "detail": ...}`` with ``status_code``.
"""

from __future__ import annotations


class PipelineError(Exception):
    """Base class for all expected pipeline failures."""

    kind: str = "error"
    status_code: int = 500
    default_detail: str = "Pipeline error"

    def __init__(self, detail: str | None = None) -> None:
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class UnauthorizedError(PipelineError):
    """No verified identity at all."""

    kind = "unauthorized"
    status_code = 401
    default_detail = "Unauthorized"


class IdentityNotFoundError(UnauthorizedError):
    """Login email did not resolve to exactly one stored user."""

    kind = "identity_not_found"
    default_detail = "No user found with this email"


class ForbiddenError(PipelineError):
    """Verified identity lacks permission for this target."""

    kind = "forbidden"
    status_code = 403
    default_detail = "Forbidden"


class NotFoundError(PipelineError):
    """Target id does not resolve, or a bulk scope intersects to empty."""

    kind = "not_found"
    status_code = 404
    default_detail = "Not found"


class PayloadValidationError(PipelineError):
    """Malformed payload: missing field, invalid enum value, empty rejection comment."""

    kind = "validation_error"
    status_code = 400
    default_detail = "Invalid payload"


class InvalidReactionTypeError(PayloadValidationError):
    default_detail = "Invalid reaction type"


class EarnFailedError(PipelineError):
    """The approval side effect could not complete; the transition is blocked."""

    kind = "earn_failed"
    status_code = 500
    default_detail = "Failed to create earned badge"


class ConflictError(PipelineError):
    """A duplicate earned badge was detected at write time and the retry did not resolve it."""

    kind = "conflict"
    status_code = 409
    default_detail = "Conflicting earned badge write"
