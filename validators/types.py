"""Types and models for selection validation."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class InvalidReason(Enum):
    """Enumerated error codes for selection validation failures."""

    TIME_LIMIT_EXCEEDED = "time_limit_exceeded"
    UNKNOWN_QUESTION = "unknown_question"
    ORDER_VIOLATION = "order_violation"
    ID_MISMATCH = "id_mismatch"
    SCORE_MISMATCH = "score_mismatch"
    TIME_MISMATCH = "time_mismatch"


@dataclass
class Rules:
    """Configuration for selection validation rules."""

    total_time_limit: int

    # Require the selection to follow the candidate pool's order
    check_order: bool = True

    # Require reported totals to equal the recomputed sums
    check_totals: bool = True


@dataclass
class ValidationResult:
    """Result of selection validation with recomputed totals."""

    valid: bool
    reasons: list[InvalidReason] = field(default_factory=list)
    total_score: float | None = None
    total_time_used: int | None = None
