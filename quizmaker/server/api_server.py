"""FastAPI server that exposes the attempt endpoints."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import Depends, FastAPI, Header, HTTPException, Request, Response
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
import uvicorn

from quizmaker.constants.attempt_constants import (
    SESSION_COOKIE_MAX_AGE_SECONDS,
    SESSION_COOKIE_NAME,
    SHARE_LINK_RATE_LIMITS,
    USER_ID_HEADER,
)
from quizmaker.constants.network_constants import DEFAULT_HOST, DEFAULT_PORT
from quizmaker.core.anonymous import AnonymousAttemptAdapter
from quizmaker.core.attempt_engine import AttemptEngine
from quizmaker.core.errors import (
    AttemptEngineError,
    ConflictError,
    ForbiddenError,
    NotFoundError,
    RateLimitExceededError,
    SubmissionValidationError,
)
from quizmaker.core.models import AnswerItem, AttemptMode, TakerIdentity, VisibilityFlags
from quizmaker.core.services.rate_limiter import RateLimiter
from quizmaker.core.services.share_links import ShareLinkValidator

logger = logging.getLogger(__name__)

_GENERIC_ERROR_MESSAGE = "Internal server error"


class StartAttemptPayload(BaseModel):
    """Payload schema for starting an attempt."""

    mode: AttemptMode


class _VisibilityPayload(BaseModel):
    include_correctness: bool = False
    include_correct_answer: bool = False
    include_explanation: bool = False

    def to_flags(self) -> VisibilityFlags:
        return VisibilityFlags(
            include_correctness=self.include_correctness,
            include_correct_answer=self.include_correct_answer,
            include_explanation=self.include_explanation,
        )


class AnswerPayload(_VisibilityPayload):
    """Payload schema for a single submitted answer."""

    question_id: str
    response: dict[str, Any]


class BatchAnswerItemPayload(BaseModel):
    question_id: str
    response: dict[str, Any]


class BatchAnswerPayload(_VisibilityPayload):
    """Payload schema for ALL_AT_ONCE batch submissions."""

    answers: list[BatchAnswerItemPayload] = Field(default_factory=list)

    def to_items(self) -> list[AnswerItem]:
        return [AnswerItem(question_id=item.question_id, response=item.response) for item in self.answers]


def _status_for(exc: AttemptEngineError) -> int:
    if isinstance(exc, NotFoundError):
        return 404
    if isinstance(exc, ForbiddenError):
        return 403
    if isinstance(exc, ConflictError):
        return 409
    if isinstance(exc, SubmissionValidationError):
        return 422
    if isinstance(exc, RateLimitExceededError):
        return 429
    return 500


def _error_response(request: Request, exc: AttemptEngineError) -> JSONResponse:
    status_code = _status_for(exc)
    if status_code == 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc, exc_info=exc)
        return JSONResponse(status_code=500, content={"detail": _GENERIC_ERROR_MESSAGE})

    logger.warning("%s %s rejected with %d: %s", request.method, request.url.path, status_code, exc)
    content: dict[str, object] = {"detail": str(exc)}
    headers = None
    if isinstance(exc, RateLimitExceededError):
        content["retry_after_seconds"] = exc.retry_after_seconds
        headers = {"Retry-After": str(exc.retry_after_seconds)}
    return JSONResponse(status_code=status_code, content=content, headers=headers)


def _current_user(x_user_id: str | None = Header(default=None, alias=USER_ID_HEADER)) -> TakerIdentity:
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(status_code=401, detail="Authentication required")
    return TakerIdentity.for_user(x_user_id.strip())


def _session_id(request: Request) -> str | None:
    return request.cookies.get(SESSION_COOKIE_NAME) or None


def _client_key(request: Request) -> str:
    host = request.client.host if request.client else "unknown"
    return f"ip:{host}"


def create_api_app(
    engine: AttemptEngine,
    share_links: ShareLinkValidator,
    rate_limiter: RateLimiter | None = None,
) -> FastAPI:
    """Create a FastAPI application wired to the provided attempt engine."""
    app = FastAPI(title="QuizMaker Attempt API", version="0.1.0")
    anonymous = AnonymousAttemptAdapter(engine, share_links)
    limiter = rate_limiter or RateLimiter()

    @app.exception_handler(AttemptEngineError)
    async def handle_engine_error(request: Request, exc: AttemptEngineError) -> JSONResponse:
        return _error_response(request, exc)

    def rate_limited(bucket: str):
        limit = SHARE_LINK_RATE_LIMITS[bucket]

        def dependency(request: Request) -> None:
            limiter.check(bucket, _client_key(request), limit)

        return Depends(dependency)

    # --- Authenticated takers ---

    @app.post("/attempts/quizzes/{quiz_id}", status_code=201)
    def start_attempt(
        quiz_id: str,
        payload: StartAttemptPayload,
        user: TakerIdentity = Depends(_current_user),
    ) -> dict[str, object]:
        return engine.start_attempt(quiz_id, user, payload.mode).to_payload()

    @app.get("/attempts")
    def list_attempts(
        quiz_id: str | None = None,
        user: TakerIdentity = Depends(_current_user),
    ) -> list[dict[str, object]]:
        return [details.to_payload() for details in engine.list_attempts(user, quiz_id=quiz_id)]

    @app.get("/attempts/{attempt_id}")
    def get_attempt(attempt_id: str, user: TakerIdentity = Depends(_current_user)) -> dict[str, object]:
        return engine.get_attempt_detail(attempt_id, user).to_payload()

    @app.get("/attempts/{attempt_id}/current-question")
    def get_current_question(
        attempt_id: str,
        user: TakerIdentity = Depends(_current_user),
    ) -> dict[str, object]:
        return engine.get_current_question(attempt_id, user).to_payload()

    @app.post("/attempts/{attempt_id}/answers")
    def submit_answer(
        attempt_id: str,
        payload: AnswerPayload,
        user: TakerIdentity = Depends(_current_user),
    ) -> dict[str, object]:
        result = engine.submit_answer(
            attempt_id, user, payload.question_id, payload.response, payload.to_flags()
        )
        return result.to_payload()

    @app.post("/attempts/{attempt_id}/answers/batch")
    def submit_batch(
        attempt_id: str,
        payload: BatchAnswerPayload,
        user: TakerIdentity = Depends(_current_user),
    ) -> dict[str, object]:
        outcomes = engine.submit_batch(attempt_id, user, payload.to_items(), payload.to_flags())
        return {"results": [outcome.to_payload() for outcome in outcomes]}

    @app.post("/attempts/{attempt_id}/complete")
    def complete_attempt(attempt_id: str, user: TakerIdentity = Depends(_current_user)) -> dict[str, object]:
        return engine.complete_attempt(attempt_id, user).to_payload()

    @app.get("/attempts/{attempt_id}/stats")
    def get_attempt_stats(attempt_id: str, user: TakerIdentity = Depends(_current_user)) -> dict[str, object]:
        return engine.get_attempt_stats(attempt_id, user).to_payload()

    @app.get("/attempts/{attempt_id}/review")
    def get_attempt_review(
        attempt_id: str,
        include_user_answers: bool = True,
        include_correct_answers: bool = True,
        include_question_context: bool = False,
        user: TakerIdentity = Depends(_current_user),
    ) -> dict[str, object]:
        review = engine.get_attempt_review(
            attempt_id,
            user,
            include_user_answers=include_user_answers,
            include_correct_answers=include_correct_answers,
            include_question_context=include_question_context,
        )
        return review.to_payload()

    @app.get("/quizzes/{quiz_id}/results")
    def get_quiz_results(quiz_id: str, user: TakerIdentity = Depends(_current_user)) -> dict[str, object]:
        return engine.get_quiz_results_summary(quiz_id).to_payload()

    # --- Share-link takers ---

    @app.post(
        "/shared/{token}/attempts",
        status_code=201,
        dependencies=[rate_limited("share-link-attempt-start")],
    )
    def start_shared_attempt(
        token: str,
        payload: StartAttemptPayload,
        request: Request,
        response: Response,
    ) -> dict[str, object]:
        existing = _session_id(request)
        session_id, started = anonymous.start(token, payload.mode, session_id=existing)
        if session_id != existing:
            response.set_cookie(
                key=SESSION_COOKIE_NAME,
                value=session_id,
                max_age=SESSION_COOKIE_MAX_AGE_SECONDS,
                samesite="lax",
                httponly=True,
            )
        return started.to_payload()

    @app.post(
        "/shared/attempts/{attempt_id}/answers",
        dependencies=[rate_limited("share-link-answer")],
    )
    def submit_shared_answer(attempt_id: str, payload: AnswerPayload, request: Request) -> dict[str, object]:
        result = anonymous.submit_answer(
            _session_id(request),
            attempt_id,
            payload.question_id,
            payload.response,
            payload.to_flags(),
        )
        return result.to_payload()

    @app.post(
        "/shared/attempts/{attempt_id}/answers/batch",
        dependencies=[rate_limited("share-link-answer")],
    )
    def submit_shared_batch(attempt_id: str, payload: BatchAnswerPayload, request: Request) -> dict[str, object]:
        outcomes = anonymous.submit_batch(
            _session_id(request), attempt_id, payload.to_items(), payload.to_flags()
        )
        return {"results": [outcome.to_payload() for outcome in outcomes]}

    @app.post(
        "/shared/attempts/{attempt_id}/complete",
        dependencies=[rate_limited("share-link-complete")],
    )
    def complete_shared_attempt(attempt_id: str, request: Request) -> dict[str, object]:
        return anonymous.complete(_session_id(request), attempt_id).to_payload()

    @app.get(
        "/shared/attempts/{attempt_id}",
        dependencies=[rate_limited("share-link-read")],
    )
    def get_shared_attempt(attempt_id: str, request: Request) -> dict[str, object]:
        return anonymous.get_detail(_session_id(request), attempt_id).to_payload()

    @app.get(
        "/shared/attempts/{attempt_id}/stats",
        dependencies=[rate_limited("share-link-read")],
    )
    def get_shared_attempt_stats(attempt_id: str, request: Request) -> dict[str, object]:
        return anonymous.get_stats(_session_id(request), attempt_id).to_payload()

    return app


def run_api_server(
    engine: AttemptEngine,
    share_links: ShareLinkValidator,
    host: str = DEFAULT_HOST,
    port: int = DEFAULT_PORT,
) -> None:
    """Serve the API in the calling thread until interrupted."""
    app = create_api_app(engine, share_links)
    config = uvicorn.Config(app=app, host=host, port=port, log_level="info")
    uvicorn.Server(config).run()

