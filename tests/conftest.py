from __future__ import annotations

import sys
from pathlib import Path

import pytest

# Ensure project root is on sys.path for package imports like `pipeline.*`
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from processes.optimizer.types import Question  # noqa: E402

FIXTURES = Path(__file__).resolve().parent / "fixtures"


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def fixtures_dir() -> Path:
    return FIXTURES


@pytest.fixture
def canonical_questions() -> list[Question]:
    """Three questions whose best fit under 50 minutes is q2 + q3."""
    return [
        Question(id="q1", time_required=10, score=20),
        Question(id="q2", time_required=20, score=30),
        Question(id="q3", time_required=30, score=50),
    ]
