"""Question selection optimizer.

``knapsack.optimize_questions`` is the pure solver. ``adapter`` wraps it as a
headless run: load a question bank, solve, validate and write artifacts.
"""
from __future__ import annotations

from .knapsack import ensure_within_budget, optimize_questions
from .types import (
    Constraints,
    ErrorCodes,
    OptimizeResult,
    OptimizerError,
    Question,
)

__all__ = [
    "optimize_questions",
    "ensure_within_budget",
    "Constraints",
    "ErrorCodes",
    "OptimizeResult",
    "OptimizerError",
    "Question",
]
