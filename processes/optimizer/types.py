from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Literal

Difficulty = Literal["easy", "medium", "hard"]

DIFFICULTIES: tuple[str, ...] = ("easy", "medium", "hard")

# Upper bound on n * T (DP cells) accepted at the request boundary
DEFAULT_MAX_CELLS = 5_000_000


class ErrorCodes(str, Enum):
    INVALID_QUESTION = "INVALID_QUESTION"
    INVALID_TIME_LIMIT = "INVALID_TIME_LIMIT"
    PROBLEM_TOO_LARGE = "PROBLEM_TOO_LARGE"
    CONFIG_ERROR = "CONFIG_ERROR"
    MISSING_COLUMNS = "MISSING_COLUMNS"
    QUIZ_NOT_FOUND = "QUIZ_NOT_FOUND"


class OptimizerError(Exception):
    def __init__(
        self,
        code: ErrorCodes,
        message: str,
        user_message: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.user_message = user_message or message
        self.details = details or {}


@dataclass(frozen=True)
class Question:
    """A candidate question. Only id, time_required and score drive selection."""

    id: str
    time_required: int
    score: float
    quiz_id: str | None = None
    question_text: str = ""
    difficulty: Difficulty | None = None
    category: str | None = None
    created_at: str | None = None
    # opaque payload carried through unchanged
    extra: dict[str, Any] = field(default_factory=dict, compare=False, hash=False)

    def to_dict(self) -> dict[str, Any]:
        d = asdict(self)
        extra = d.pop("extra")
        d.update(extra)
        return d


@dataclass(frozen=True)
class OptimizeResult:
    selected_question_ids: list[str]
    selected_questions: list[Question]
    total_score: float
    total_time_used: int

    @classmethod
    def empty(cls) -> OptimizeResult:
        return cls(
            selected_question_ids=[],
            selected_questions=[],
            total_score=0,
            total_time_used=0,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "selectedQuestionIds": list(self.selected_question_ids),
            "selectedQuestions": [q.to_dict() for q in self.selected_questions],
            "totalScore": self.total_score,
            "totalTimeUsed": self.total_time_used,
        }


@dataclass
class Constraints:
    total_time_limit: int
    quiz_id: str | None = None
    difficulty: Difficulty | None = None
    category: str | None = None
    max_cells: int = DEFAULT_MAX_CELLS

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)
