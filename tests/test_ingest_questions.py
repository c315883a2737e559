from __future__ import annotations

from pathlib import Path

import pandas as pd
import pytest

from pipeline.ingest.questions import (
    filter_questions,
    load_question_frame,
    normalize_questions,
    questions_from_frame,
)
from processes.optimizer.types import ErrorCodes, OptimizerError


def test_csv_bank_normalizes_and_keeps_extra_columns(fixtures_dir: Path) -> None:
    df = normalize_questions(load_question_frame(fixtures_dir / "questions_sample.csv"))

    assert list(df["id"]) == ["q1", "q2", "q3", "q4", "q5"]
    questions = questions_from_frame(df)
    q1 = questions[0]
    assert q1.time_required == 10
    assert q1.score == 20
    assert q1.difficulty == "easy"
    assert q1.quiz_id == "quiz-a"
    assert q1.extra == {"source": "textbook"}


def test_json_bank_maps_camel_case_headers(fixtures_dir: Path) -> None:
    df = normalize_questions(load_question_frame(fixtures_dir / "questions_camel.json"))

    questions = questions_from_frame(df)

    assert [q.id for q in questions] == ["c1", "c2", "c3"]
    assert [q.time_required for q in questions] == [2, 6, 12]
    assert questions[0].difficulty == "easy"
    assert questions[0].category is None
    assert questions[2].created_at == "2025-02-01T00:00:00.000Z"


def test_yaml_bank(tmp_path: Path) -> None:
    path = tmp_path / "bank.yaml"
    path.write_text(
        "questions:\n"
        "  - {id: y1, score: 4, time_required: 3}\n"
        "  - {id: y2, score: 6, timeRequired: 5}\n",
        encoding="utf-8",
    )

    df = normalize_questions(load_question_frame(path))

    assert list(df["id"]) == ["y1", "y2"]
    assert list(df["time_required"]) == [3, 5]


def test_parquet_bank(tmp_path: Path) -> None:
    path = tmp_path / "bank.parquet"
    pd.DataFrame({"id": ["p1"], "time_required": [7], "score": [2.5]}).to_parquet(path)

    questions = questions_from_frame(normalize_questions(load_question_frame(path)))

    assert questions[0].time_required == 7
    assert questions[0].score == 2.5


def test_unsupported_format(tmp_path: Path) -> None:
    path = tmp_path / "bank.txt"
    path.write_text("nope", encoding="utf-8")

    with pytest.raises(ValueError):
        load_question_frame(path)


def test_missing_required_columns() -> None:
    df = pd.DataFrame({"id": ["a"], "score": [1]})

    with pytest.raises(OptimizerError) as exc:
        normalize_questions(df)
    assert exc.value.code == ErrorCodes.MISSING_COLUMNS
    assert exc.value.details["missing"] == ["time_required"]


def test_string_numbers_are_coerced() -> None:
    df = pd.DataFrame({"id": ["a", "b"], "time_required": ["5", " 7 "], "score": ["3", "2.5"]})

    out = normalize_questions(df)

    assert list(out["time_required"]) == [5, 7]
    assert list(out["score"]) == [3, 2.5]


def test_unparseable_time_is_left_for_schema_validation() -> None:
    df = pd.DataFrame({"id": ["a"], "time_required": ["soon"], "score": [1]})

    out = normalize_questions(df)

    assert out.loc[0, "time_required"] == "soon"


class TestFilterQuestions:
    def _bank(self, fixtures_dir: Path) -> pd.DataFrame:
        return normalize_questions(load_question_frame(fixtures_dir / "questions_sample.csv"))

    def test_quiz_scope_preserves_order(self, fixtures_dir: Path) -> None:
        out = filter_questions(self._bank(fixtures_dir), quiz_id="quiz-a")

        assert list(out["id"]) == ["q1", "q2", "q3", "q5"]

    def test_difficulty_and_category(self, fixtures_dir: Path) -> None:
        bank = self._bank(fixtures_dir)

        assert list(filter_questions(bank, quiz_id="quiz-a", difficulty="easy")["id"]) == ["q1", "q5"]
        assert list(filter_questions(bank, category="number")["id"]) == ["q1", "q3"]

    def test_filter_on_absent_column_matches_nothing(self) -> None:
        df = pd.DataFrame({"id": ["a"], "time_required": [1], "score": [1]})

        assert filter_questions(df, category="x").empty

    def test_unknown_difficulty_is_a_config_error(self, fixtures_dir: Path) -> None:
        with pytest.raises(OptimizerError) as exc:
            filter_questions(self._bank(fixtures_dir), difficulty="extreme")
        assert exc.value.code == ErrorCodes.CONFIG_ERROR
