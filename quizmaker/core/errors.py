"""Typed failures raised by the attempt engine.

The HTTP layer maps each family onto one status code; nothing below the
server module knows about HTTP.
"""

from __future__ import annotations


class AttemptEngineError(Exception):
    """Base class for every failure the engine reports to callers."""


class NotFoundError(AttemptEngineError):
    """Attempt, quiz or question is missing, or a question is outside the quiz."""


class ForbiddenError(AttemptEngineError):
    """The caller does not own the attempt."""


class ShareLinkError(ForbiddenError):
    """A share-link token could not be redeemed."""

    INVALID = "invalid"
    EXPIRED = "expired"
    ALREADY_USED = "already_used"

    def __init__(self, reason: str, message: str | None = None) -> None:
        super().__init__(message or f"Share link is {reason.replace('_', ' ')}.")
        self.reason = reason


class ConflictError(AttemptEngineError):
    """The operation is illegal in the attempt's current state."""


class AttemptCompletedError(ConflictError):
    """The attempt is already completed; the failure is terminal."""


class AttemptTimedOutError(ConflictError):
    """The attempt's deadline has passed."""


class ConcurrentModificationError(ConflictError):
    """Another writer updated the attempt first."""


class SubmissionValidationError(AttemptEngineError):
    """A submitted payload is malformed or incomplete."""


class RateLimitExceededError(AttemptEngineError):
    """Too many requests in the current window."""

    def __init__(self, retry_after_seconds: int, message: str | None = None) -> None:
        super().__init__(message or f"Rate limit exceeded. Retry after {retry_after_seconds} seconds.")
        self.retry_after_seconds = retry_after_seconds


class GradingError(AttemptEngineError):
    """Stored question content could not be graded. Internal, never user-facing."""
