"""Core question selection validation rules."""

from __future__ import annotations

import math
from collections.abc import Sequence

from processes.optimizer.types import OptimizeResult, Question

from .types import InvalidReason, Rules, ValidationResult


def validate_selection(
    result: OptimizeResult,
    pool: Sequence[Question],
    rules: Rules,
) -> ValidationResult:
    """Validate an optimizer result against its candidate pool.

    Pure function with no I/O dependencies.

    Args:
        result: Selection produced by the optimizer
        pool: Candidate questions in the order they were given to the optimizer
        rules: Rules configuration object

    Returns:
        ValidationResult with validation status and recomputed totals
    """
    reasons: list[InvalidReason] = []
    selected = list(result.selected_questions)

    total_score = sum(q.score for q in selected)
    total_time_used = sum(q.time_required for q in selected)

    if [q.id for q in selected] != list(result.selected_question_ids):
        reasons.append(InvalidReason.ID_MISMATCH)

    # Every selected record must come from the pool
    if any(q not in pool for q in selected):
        reasons.append(InvalidReason.UNKNOWN_QUESTION)
    elif rules.check_order and not _is_subsequence(selected, pool):
        reasons.append(InvalidReason.ORDER_VIOLATION)

    if total_time_used > max(rules.total_time_limit, 0):
        reasons.append(InvalidReason.TIME_LIMIT_EXCEEDED)

    if rules.check_totals:
        if not math.isclose(total_score, result.total_score):
            reasons.append(InvalidReason.SCORE_MISMATCH)
        if total_time_used != result.total_time_used:
            reasons.append(InvalidReason.TIME_MISMATCH)

    return ValidationResult(
        valid=not reasons,
        reasons=reasons,
        total_score=total_score,
        total_time_used=total_time_used,
    )


def _is_subsequence(selected: Sequence[Question], pool: Sequence[Question]) -> bool:
    """True if ``selected`` appears in ``pool`` in the same relative order."""
    it = iter(pool)
    return all(any(q == p for p in it) for q in selected)


def validate_selection_simple(
    result: OptimizeResult,
    pool: Sequence[Question],
    total_time_limit: int,
) -> bool:
    """Simple boolean validation."""
    return validate_selection(result, pool, Rules(total_time_limit=total_time_limit)).valid
