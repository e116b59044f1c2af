"""Share-link takers on the same attempt machinery as registered users."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
import logging
from typing import Any
from uuid import uuid4

from quizmaker.core.attempt_engine import AttemptEngine
from quizmaker.core.errors import AttemptEngineError, ForbiddenError
from quizmaker.core.models import (
    AnswerItem,
    AnswerSubmissionResult,
    AttemptDetails,
    AttemptMode,
    AttemptResult,
    AttemptStarted,
    AttemptStats,
    BatchItemOutcome,
    TakerIdentity,
    VisibilityFlags,
)
from quizmaker.core.services.share_links import ShareLinkValidator

logger = logging.getLogger(__name__)


class AnonymousAttemptAdapter:
    """Runs attempts for anonymous sessions.

    The session id takes the place of a user id in the attempt's taker
    identity, so ownership checks in the engine reject another session's
    attempt exactly as they reject another user's.
    """

    def __init__(self, engine: AttemptEngine, share_links: ShareLinkValidator) -> None:
        self._engine = engine
        self._share_links = share_links

    @staticmethod
    def new_session_id() -> str:
        return uuid4().hex

    def start(
        self,
        token: str,
        mode: AttemptMode,
        session_id: str | None = None,
    ) -> tuple[str, AttemptStarted]:
        """Redeem ``token`` and start an attempt on the quiz it opens.

        Returns the session id (newly minted when none was given) with the
        started attempt.
        """
        grant = self._share_links.validate(token)
        session_id = session_id or self.new_session_id()
        try:
            started = self._engine.start_attempt(
                grant.quiz_id,
                TakerIdentity.for_session(session_id),
                mode,
                share_link_id=grant.share_link_id,
            )
        except AttemptEngineError:
            self._share_links.release(token)
            raise
        logger.info("Share link %s opened attempt %s", grant.share_link_id, started.attempt_id)
        return session_id, started

    def submit_answer(
        self,
        session_id: str | None,
        attempt_id: str,
        question_id: str,
        response: Mapping[str, Any],
        flags: VisibilityFlags | None = None,
    ) -> AnswerSubmissionResult:
        return self._engine.submit_answer(
            attempt_id, self._identity(session_id), question_id, response, flags
        )

    def submit_batch(
        self,
        session_id: str | None,
        attempt_id: str,
        items: Sequence[AnswerItem],
        flags: VisibilityFlags | None = None,
    ) -> list[BatchItemOutcome]:
        return self._engine.submit_batch(attempt_id, self._identity(session_id), items, flags)

    def complete(self, session_id: str | None, attempt_id: str) -> AttemptResult:
        return self._engine.complete_attempt(attempt_id, self._identity(session_id))

    def get_detail(self, session_id: str | None, attempt_id: str) -> AttemptDetails:
        return self._engine.get_attempt_detail(attempt_id, self._identity(session_id))

    def get_stats(self, session_id: str | None, attempt_id: str) -> AttemptStats:
        return self._engine.get_attempt_stats(attempt_id, self._identity(session_id))

    @staticmethod
    def _identity(session_id: str | None) -> TakerIdentity:
        if not session_id:
            raise ForbiddenError("No anonymous session; start an attempt from a share link first")
        return TakerIdentity.for_session(session_id)
