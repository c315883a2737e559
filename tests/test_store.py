from __future__ import annotations

from pathlib import Path

import pytest

from processes.api.store import QuizStore
from processes.optimizer.types import ErrorCodes, OptimizerError


def test_from_yaml_seeds_quizzes_and_questions(fixtures_dir: Path) -> None:
    store = QuizStore.from_yaml(fixtures_dir / "quiz_bank.yaml")

    assert [q.id for q in store.list_quizzes()] == ["quiz-a", "quiz-b"]
    rows = store.list_questions("quiz-a")
    assert len(rows) == 3
    assert all(q.quiz_id == "quiz-a" for q in rows)


def test_questions_sorted_by_created_at_with_stable_ties() -> None:
    store = QuizStore()
    store.add_quiz(
        quiz_id="q",
        title="t",
        questions=[
            {"id": "late", "score": 1, "time_required": 1, "created_at": "2025-01-03T00:00:00.000Z"},
            {"id": "tie1", "score": 1, "time_required": 1, "created_at": "2025-01-01T00:00:00.000Z"},
            {"id": "tie2", "score": 1, "time_required": 1, "created_at": "2025-01-01T00:00:00.000Z"},
        ],
    )

    assert [q.id for q in store.list_questions("q")] == ["tie1", "tie2", "late"]


def test_question_filters(fixtures_dir: Path) -> None:
    store = QuizStore.from_yaml(fixtures_dir / "quiz_bank.yaml")

    assert [q.difficulty for q in store.list_questions("quiz-a", difficulty="hard")] == ["hard"]
    assert len(store.list_questions("quiz-a", category="number")) == 2
    assert store.list_questions("quiz-a", difficulty="easy", category="algebra") == []


def test_unknown_quiz() -> None:
    store = QuizStore()

    with pytest.raises(OptimizerError) as exc:
        store.list_questions("missing")
    assert exc.value.code == ErrorCodes.QUIZ_NOT_FOUND
    assert exc.value.user_message == "Quiz not found"


def test_answers_upsert_per_question() -> None:
    store = QuizStore()
    store.add_quiz(quiz_id="q", title="t")
    attempt = store.create_attempt(user_id="u", quiz_id="q", total_time_limit=5)

    store.upsert_answers(attempt.id, [("a", "first"), ("b", None)])
    store.upsert_answers(attempt.id, [("a", "second")])

    answers = {a.question_id: a.answer_text for a in store.list_answers(attempt.id)}
    assert answers == {"a": "second", "b": None}
    assert store.get_attempt("nope") is None
