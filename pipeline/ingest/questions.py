"""Load, normalize and filter question banks.

Banks arrive as CSV, JSON, YAML or Parquet. Headers are mapped onto the
canonical snake_case columns before any row becomes a ``Question``.
"""
from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pandas as pd
import yaml

from processes.optimizer.types import (
    DIFFICULTIES,
    ErrorCodes,
    OptimizerError,
    Question,
)

REQUIRED_COLUMNS = ["id", "time_required", "score"]

KNOWN_COLUMNS = [
    "id",
    "quiz_id",
    "question_text",
    "score",
    "time_required",
    "difficulty",
    "category",
    "created_at",
]

# source header -> canonical column
HEADER_MAP: dict[str, str] = {
    "questionId": "id",
    "question_id": "id",
    "quizId": "quiz_id",
    "questionText": "question_text",
    "text": "question_text",
    "timeRequired": "time_required",
    "time": "time_required",
    "minutes": "time_required",
    "points": "score",
    "createdAt": "created_at",
}


def _records_from_document(data: Any) -> list[dict[str, Any]]:
    if isinstance(data, dict):
        data = data.get("questions", [])
    if not isinstance(data, list):
        raise OptimizerError(
            ErrorCodes.MISSING_COLUMNS,
            "question document must be a list or a mapping with a 'questions' list",
        )
    return [dict(r) for r in data]


def load_question_frame(path: Path) -> pd.DataFrame:
    suffix = path.suffix.lower()
    if suffix == ".csv":
        return pd.read_csv(path, dtype={"id": str, "quiz_id": str})
    if suffix == ".parquet":
        return pd.read_parquet(path)
    text = path.read_text(encoding="utf-8")
    if suffix in (".yaml", ".yml"):
        return pd.DataFrame(_records_from_document(yaml.safe_load(text) or []))
    if suffix == ".json":
        return pd.DataFrame(_records_from_document(json.loads(text)))
    raise ValueError(f"Unsupported question bank format: {path.suffix}")


def _coerce_int(val: Any) -> Any:
    # Leave unparseable values in place so schema validation reports them
    if val is None or (isinstance(val, float) and pd.isna(val)):
        return None
    if isinstance(val, bool):
        return val
    if isinstance(val, int):
        return val
    if isinstance(val, float) and val.is_integer():
        return int(val)
    if isinstance(val, str):
        s = val.strip()
        try:
            return int(s)
        except ValueError:
            return val
    return val


def _coerce_number(val: Any) -> Any:
    if val is None or (isinstance(val, float) and pd.isna(val)):
        return None
    if isinstance(val, (int, float)) and not isinstance(val, bool):
        return int(val) if isinstance(val, float) and val.is_integer() else val
    if isinstance(val, str):
        s = val.strip()
        try:
            f = float(s)
        except ValueError:
            return val
        return int(f) if f.is_integer() else f
    return val


def normalize_questions(df: pd.DataFrame) -> pd.DataFrame:
    out = df.copy()
    for alias, canonical in HEADER_MAP.items():
        if alias not in out.columns:
            continue
        # Mixed documents may carry both spellings; the canonical one wins
        if canonical in out.columns:
            out[canonical] = out[canonical].combine_first(out[alias])
            out = out.drop(columns=[alias])
        else:
            out = out.rename(columns={alias: canonical})
    missing = [c for c in REQUIRED_COLUMNS if c not in out.columns]
    if missing:
        raise OptimizerError(
            ErrorCodes.MISSING_COLUMNS,
            f"Missing required columns in question bank: {missing}",
            details={"missing": missing},
        )
    out = out.astype({"time_required": object, "score": object})
    out["id"] = out["id"].astype(str)
    out["time_required"] = out["time_required"].map(_coerce_int)
    out["score"] = out["score"].map(_coerce_number)
    if "difficulty" in out.columns:
        out["difficulty"] = out["difficulty"].map(
            lambda d: str(d).strip().lower() if isinstance(d, str) else None
        )
    return out.reset_index(drop=True)


def filter_questions(
    df: pd.DataFrame,
    *,
    quiz_id: str | None = None,
    difficulty: str | None = None,
    category: str | None = None,
) -> pd.DataFrame:
    """Narrow the pool to one quiz and optional difficulty/category.

    Row order is preserved; it is the order the optimizer sees.
    """
    if difficulty is not None and difficulty not in DIFFICULTIES:
        raise OptimizerError(
            ErrorCodes.CONFIG_ERROR,
            f"difficulty must be one of {list(DIFFICULTIES)}, got {difficulty!r}",
        )
    mask = pd.Series(True, index=df.index)
    for col, val in (("quiz_id", quiz_id), ("difficulty", difficulty), ("category", category)):
        if val is None:
            continue
        if col not in df.columns:
            mask &= False
            continue
        mask &= df[col].astype(str) == str(val)
    return df[mask].reset_index(drop=True)


def _clean(val: Any) -> Any:
    if isinstance(val, float) and pd.isna(val):
        return None
    return val


def frame_to_records(df: pd.DataFrame) -> list[dict[str, Any]]:
    return [
        {str(k): _clean(v) for k, v in row.items()}
        for row in df.to_dict(orient="records")
    ]


def question_from_record(rec: dict[str, Any]) -> Question:
    extra = {k: v for k, v in rec.items() if k not in KNOWN_COLUMNS}
    return Question(
        id=str(rec["id"]),
        time_required=rec["time_required"],
        score=rec["score"],
        quiz_id=None if rec.get("quiz_id") is None else str(rec["quiz_id"]),
        question_text=rec.get("question_text") or "",
        difficulty=rec.get("difficulty"),
        category=rec.get("category"),
        created_at=None if rec.get("created_at") is None else str(rec["created_at"]),
        extra=extra,
    )


def questions_from_frame(df: pd.DataFrame) -> list[Question]:
    return [question_from_record(r) for r in frame_to_records(df)]
