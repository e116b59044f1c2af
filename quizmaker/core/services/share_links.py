"""Redemption of share-link tokens into anonymous access grants.

Issuing and signing tokens happens elsewhere; this registry only records
tokens it is told about and answers whether one may still be used.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from threading import Lock
from typing import Protocol

from quizmaker.core.clock import Clock, SystemClock
from quizmaker.core.errors import ShareLinkError


@dataclass(slots=True, frozen=True)
class ShareLinkGrant:
    """A validated share link: which link was used and which quiz it opens."""

    share_link_id: str
    quiz_id: str


class ShareLinkValidator(Protocol):
    def validate(self, token: str) -> ShareLinkGrant: ...

    def release(self, token: str) -> None: ...

@dataclass(slots=True)
class _ShareLinkEntry:
    share_link_id: str
    quiz_id: str
    expires_at: datetime | None
    single_use: bool
    revoked: bool = False
    used: bool = False


class InMemoryShareLinkRegistry:
    """Token table keyed by the opaque token string."""

    def __init__(self, clock: Clock | None = None) -> None:
        self._clock = clock or SystemClock()
        self._lock = Lock()
        self._links: dict[str, _ShareLinkEntry] = {}

    def register(
        self,
        token: str,
        share_link_id: str,
        quiz_id: str,
        expires_at: datetime | None = None,
        single_use: bool = False,
    ) -> None:
        with self._lock:
            self._links[token] = _ShareLinkEntry(
                share_link_id=share_link_id,
                quiz_id=quiz_id,
                expires_at=expires_at,
                single_use=single_use,
            )

    def revoke(self, token: str) -> None:
        with self._lock:
            entry = self._links.get(token)
            if entry is not None:
                entry.revoked = True

    def validate(self, token: str) -> ShareLinkGrant:
        """Redeem ``token``.

        Single-use tokens are reserved by the first success; ``release`` hands
        the reservation back when the caller could not use the grant.
        """
        with self._lock:
            entry = self._links.get(token)
            if entry is None or entry.revoked:
                raise ShareLinkError(ShareLinkError.INVALID)
            if entry.expires_at is not None and self._clock.now() >= entry.expires_at:
                raise ShareLinkError(ShareLinkError.EXPIRED)
            if entry.single_use and entry.used:
                raise ShareLinkError(ShareLinkError.ALREADY_USED)
            entry.used = True
            return ShareLinkGrant(share_link_id=entry.share_link_id, quiz_id=entry.quiz_id)

    def release(self, token: str) -> None:
        with self._lock:
            entry = self._links.get(token)
            if entry is not None:
                entry.used = False
