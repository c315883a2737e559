"""Question selection validation module."""

from .selection_rules import validate_selection, validate_selection_simple
from .types import InvalidReason, Rules, ValidationResult

__all__ = [
    "validate_selection",
    "validate_selection_simple",
    "Rules",
    "ValidationResult",
    "InvalidReason",
]
