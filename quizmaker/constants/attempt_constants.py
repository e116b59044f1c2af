"""Attempt engine constants shared by the core and the API layer."""

DEFAULT_PASS_THRESHOLD: float = 0.5

SESSION_COOKIE_NAME: str = "quizmaker_session"
SESSION_COOKIE_MAX_AGE_SECONDS: int = 60 * 60 * 24

USER_ID_HEADER: str = "X-User-Id"

# Requests per minute per client for each share-link route bucket.
SHARE_LINK_RATE_LIMITS: dict[str, int] = {
    "share-link-attempt-start": 60,
    "share-link-answer": 60,
    "share-link-complete": 60,
    "share-link-read": 60,
}
