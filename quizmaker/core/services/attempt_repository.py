"""In-memory storage for attempts and their answers."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import replace
from threading import Lock

from quizmaker.core.errors import ConcurrentModificationError, ConflictError, NotFoundError
from quizmaker.core.models import Answer, Attempt, AttemptStatus, TakerIdentity


class AttemptRepository:
    """Stores attempts and answers.

    Writes to one attempt are serialised by ``attempt_lock``; callers hold it
    across the whole read-check-write sequence. ``update_attempt`` also
    compares version counters, so a writer that skipped the lock or read a
    stale copy is refused instead of overwriting newer state. Answers are
    unique per (attempt, question) and are never replaced.
    """

    def __init__(self) -> None:
        self._lock = Lock()
        self._attempt_locks: dict[str, Lock] = {}
        self._attempts: dict[str, Attempt] = {}
        self._answers: dict[str, list[Answer]] = {}

    @contextmanager
    def attempt_lock(self, attempt_id: str) -> Iterator[None]:
        with self._lock:
            lock = self._attempt_locks.get(attempt_id)
            if lock is None:
                raise NotFoundError(f"Attempt {attempt_id} not found")
        with lock:
            yield

    def add_attempt(self, attempt: Attempt) -> Attempt:
        with self._lock:
            if attempt.id in self._attempts:
                raise ConflictError(f"Attempt {attempt.id} already exists")
            stored = replace(attempt, version=1)
            self._attempts[attempt.id] = stored
            self._answers[attempt.id] = []
            self._attempt_locks[attempt.id] = Lock()
            return replace(stored)

    def get_attempt(self, attempt_id: str) -> Attempt:
        """Return a detached copy; mutate it and pass it to ``update_attempt``."""
        with self._lock:
            attempt = self._attempts.get(attempt_id)
            if attempt is None:
                raise NotFoundError(f"Attempt {attempt_id} not found")
            return replace(attempt)

    def update_attempt(self, attempt: Attempt) -> Attempt:
        with self._lock:
            current = self._attempts.get(attempt.id)
            if current is None:
                raise NotFoundError(f"Attempt {attempt.id} not found")
            if current.version != attempt.version:
                raise ConcurrentModificationError(
                    f"Attempt {attempt.id} was modified concurrently; reload and retry"
                )
            stored = replace(attempt, version=attempt.version + 1)
            self._attempts[attempt.id] = stored
            return replace(stored)

    def add_answer(self, answer: Answer) -> Answer:
        with self._lock:
            answers = self._answers.get(answer.attempt_id)
            if answers is None:
                raise NotFoundError(f"Attempt {answer.attempt_id} not found")
            if any(existing.question_id == answer.question_id for existing in answers):
                raise ConflictError(
                    f"Already answered question {answer.question_id} in this attempt"
                )
            answers.append(answer)
            return answer

    def get_answers(self, attempt_id: str) -> list[Answer]:
        """Answers of one attempt in the order they were recorded."""
        with self._lock:
            return list(self._answers.get(attempt_id, []))

    def get_answered_question_ids(self, attempt_id: str) -> set[str]:
        with self._lock:
            return {answer.question_id for answer in self._answers.get(attempt_id, [])}

    def find_attempts(
        self,
        quiz_id: str | None = None,
        taker: TakerIdentity | None = None,
        status: AttemptStatus | None = None,
    ) -> list[Attempt]:
        with self._lock:
            matches = [
                replace(attempt)
                for attempt in self._attempts.values()
                if (quiz_id is None or attempt.quiz_id == quiz_id)
                and (taker is None or attempt.taker == taker)
                and (status is None or attempt.status is status)
            ]
        return sorted(matches, key=lambda attempt: attempt.started_at)
