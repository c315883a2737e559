"""In-memory quiz repository backing the HTTP API.

Seeded from a YAML bank of the form::

    quizzes:
      - id: quiz-1
        title: Algebra
        created_at: "2025-01-01T00:00:00.000Z"
        questions:
          - {id: q1, score: 20, time_required: 10, difficulty: easy}
"""
from __future__ import annotations

import threading
import uuid
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import yaml

from pipeline.ingest.questions import question_from_record
from processes.optimizer.types import ErrorCodes, OptimizerError, Question


def _utc_now_iso() -> str:
    return datetime.now(UTC).strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z"


@dataclass(frozen=True)
class QuizRecord:
    id: str
    title: str
    description: str | None
    created_at: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "created_at": self.created_at,
        }


@dataclass(frozen=True)
class Attempt:
    id: str
    user_id: str
    quiz_id: str
    total_time_limit: int
    created_at: str


@dataclass(frozen=True)
class Answer:
    attempt_id: str
    question_id: str
    answer_text: str | None
    created_at: str


class QuizStore:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._quizzes: dict[str, QuizRecord] = {}
        self._questions: dict[str, list[Question]] = {}
        self._attempts: dict[str, Attempt] = {}
        self._answers: dict[tuple[str, str], Answer] = {}

    @classmethod
    def from_yaml(cls, path: Path) -> QuizStore:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
        store = cls()
        for quiz in data.get("quizzes", []):
            store.add_quiz(
                quiz_id=str(quiz["id"]),
                title=str(quiz.get("title", "")),
                description=quiz.get("description"),
                created_at=str(quiz.get("created_at") or _utc_now_iso()),
                questions=list(quiz.get("questions") or []),
            )
        return store

    def add_quiz(
        self,
        *,
        quiz_id: str,
        title: str,
        description: str | None = None,
        created_at: str | None = None,
        questions: list[dict[str, Any]] | None = None,
    ) -> QuizRecord:
        quiz = QuizRecord(
            id=quiz_id,
            title=title,
            description=description,
            created_at=created_at or _utc_now_iso(),
        )
        rows = [question_from_record({**q, "quiz_id": quiz_id}) for q in questions or []]
        with self._lock:
            self._quizzes[quiz_id] = quiz
            self._questions[quiz_id] = rows
        return quiz

    def list_quizzes(self) -> list[QuizRecord]:
        with self._lock:
            quizzes = list(self._quizzes.values())
        return sorted(quizzes, key=lambda q: q.created_at, reverse=True)

    def get_quiz(self, quiz_id: str) -> QuizRecord:
        with self._lock:
            quiz = self._quizzes.get(quiz_id)
        if quiz is None:
            raise OptimizerError(ErrorCodes.QUIZ_NOT_FOUND, f"quiz {quiz_id!r} not found", user_message="Quiz not found")
        return quiz

    def list_questions(
        self,
        quiz_id: str,
        *,
        difficulty: str | None = None,
        category: str | None = None,
    ) -> list[Question]:
        """Questions of a quiz, oldest first, optionally narrowed.

        Ties on created_at keep insertion order.
        """
        self.get_quiz(quiz_id)
        with self._lock:
            rows = list(self._questions.get(quiz_id, []))
        rows.sort(key=lambda q: q.created_at or "")
        if difficulty is not None:
            rows = [q for q in rows if q.difficulty == difficulty]
        if category is not None:
            rows = [q for q in rows if q.category == category]
        return rows

    def create_attempt(self, *, user_id: str, quiz_id: str, total_time_limit: int) -> Attempt:
        self.get_quiz(quiz_id)
        attempt = Attempt(
            id=str(uuid.uuid4()),
            user_id=user_id,
            quiz_id=quiz_id,
            total_time_limit=total_time_limit,
            created_at=_utc_now_iso(),
        )
        with self._lock:
            self._attempts[attempt.id] = attempt
        return attempt

    def get_attempt(self, attempt_id: str) -> Attempt | None:
        with self._lock:
            return self._attempts.get(attempt_id)

    def upsert_answers(self, attempt_id: str, answers: list[tuple[str, str | None]]) -> list[Answer]:
        """Insert or replace answers keyed on (attempt_id, question_id)."""
        now = _utc_now_iso()
        rows = [Answer(attempt_id, qid, text, now) for qid, text in answers]
        with self._lock:
            for row in rows:
                self._answers[(attempt_id, row.question_id)] = row
        return rows

    def list_answers(self, attempt_id: str) -> list[Answer]:
        with self._lock:
            return [a for (aid, _), a in self._answers.items() if aid == attempt_id]
