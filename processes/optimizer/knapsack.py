"""Exact question selection under a time budget (0/1 knapsack).

Items are questions, weight is ``time_required``, value is ``score`` and the
capacity is the total time limit. The score table is rolled over two rows
while the full ``keep`` table is retained for reconstruction.

Complexity: O(n * T) time, O(n * T) bits of decision state.
"""
from __future__ import annotations

import math
import numbers
from collections.abc import Sequence

from .types import ErrorCodes, OptimizeResult, OptimizerError, Question


def _check_time_limit(total_time_limit: int) -> None:
    if isinstance(total_time_limit, bool) or not isinstance(total_time_limit, int):
        raise OptimizerError(
            ErrorCodes.INVALID_TIME_LIMIT,
            f"total_time_limit must be an integer, got {total_time_limit!r}",
            user_message="totalTimeLimit must be an integer",
        )


def _check_question(idx: int, q: Question) -> None:
    w = q.time_required
    if isinstance(w, bool) or not isinstance(w, int) or w < 0:
        raise OptimizerError(
            ErrorCodes.INVALID_QUESTION,
            f"question {q.id!r} at index {idx}: time_required must be a non-negative integer, got {w!r}",
            details={"index": idx, "question_id": q.id, "field": "time_required"},
        )
    v = q.score
    if isinstance(v, bool) or not isinstance(v, numbers.Real) or not math.isfinite(v):
        raise OptimizerError(
            ErrorCodes.INVALID_QUESTION,
            f"question {q.id!r} at index {idx}: score must be a finite number, got {v!r}",
            details={"index": idx, "question_id": q.id, "field": "score"},
        )


def ensure_within_budget(n: int, total_time_limit: int, max_cells: int) -> None:
    """Reject problems whose DP table would exceed ``max_cells`` entries."""
    cells = n * max(total_time_limit, 0)
    if cells > max_cells:
        raise OptimizerError(
            ErrorCodes.PROBLEM_TOO_LARGE,
            f"problem size {n} x {total_time_limit} = {cells} cells exceeds limit {max_cells}",
            user_message="Too many questions for this time limit",
            details={"n": n, "total_time_limit": total_time_limit, "max_cells": max_cells},
        )


def optimize_questions(
    questions: Sequence[Question], total_time_limit: int
) -> OptimizeResult:
    """Pick the max-score subset of ``questions`` fitting ``total_time_limit``.

    Ties keep the item excluded (strict ``>``), so among equal-score subsets
    the later-indexed item loses at the point it is considered. Selected
    questions are returned in input order. A non-positive limit or an empty
    pool yields an empty result.
    """
    _check_time_limit(total_time_limit)
    for idx, q in enumerate(questions):
        _check_question(idx, q)

    n = len(questions)
    T = total_time_limit
    if n == 0 or T <= 0:
        return OptimizeResult.empty()

    prev: list[float] = [0] * (T + 1)
    keep: list[bytearray] = [bytearray(T + 1)]  # row 0: no items considered
    for i in range(1, n + 1):
        w = questions[i - 1].time_required
        v = questions[i - 1].score
        cur = prev[:]
        row = bytearray(T + 1)
        for t in range(w, T + 1):
            take = prev[t - w] + v
            if take > cur[t]:
                cur[t] = take
                row[t] = 1
        keep.append(row)
        prev = cur

    selected: list[Question] = []
    remaining = T
    for i in range(n, 0, -1):
        if keep[i][remaining]:
            q = questions[i - 1]
            selected.append(q)
            remaining -= q.time_required
    selected.reverse()

    return OptimizeResult(
        selected_question_ids=[q.id for q in selected],
        selected_questions=selected,
        total_score=sum(q.score for q in selected),
        total_time_used=sum(q.time_required for q in selected),
    )
