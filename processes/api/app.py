from __future__ import annotations

import json
import logging
import os
import time
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from fastapi import Depends, FastAPI, Header, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from processes.api.models import (
    CreateAttemptRequest,
    CreateAttemptResponse,
    ErrorResponse,
    OptimizeRequest,
    OptimizeResponse,
    QuestionOut,
    Quiz,
    SubmitAnswersRequest,
    SubmitAnswersResponse,
)
from processes.api.store import QuizStore
from processes.optimizer import (
    ErrorCodes,
    OptimizerError,
    ensure_within_budget,
    optimize_questions,
)
from processes.optimizer.types import DEFAULT_MAX_CELLS

app = FastAPI()

logger = logging.getLogger("processes.api")

_STORE: QuizStore | None = None

_STATUS_BY_CODE: dict[ErrorCodes, int] = {
    ErrorCodes.QUIZ_NOT_FOUND: 404,
    ErrorCodes.PROBLEM_TOO_LARGE: 422,
    ErrorCodes.INVALID_QUESTION: 422,
}


def get_store() -> QuizStore:
    """Return the process-wide store, seeding it from QUIZ_BANK_PATH once."""
    global _STORE
    if _STORE is None:
        bank = os.environ.get("QUIZ_BANK_PATH")
        _STORE = QuizStore.from_yaml(Path(bank)) if bank else QuizStore()
    return _STORE


def set_store(store: QuizStore | None) -> None:
    global _STORE
    _STORE = store


def _max_cells() -> int:
    raw = os.environ.get("QUIZOPT_MAX_CELLS")
    if not raw:
        return DEFAULT_MAX_CELLS
    try:
        val = int(raw)
    except ValueError:
        val = 0
    if val <= 0:
        logger.warning(
            json.dumps(
                {
                    "event": "config_warning",
                    "key": "QUIZOPT_MAX_CELLS",
                    "value": raw,
                    "fallback": DEFAULT_MAX_CELLS,
                }
            )
        )
        return DEFAULT_MAX_CELLS
    return val


def _error(status: int, error: str, detail: str | None = None, details: Any = None) -> JSONResponse:
    body = ErrorResponse(error=error, detail=detail, details=details)
    return JSONResponse(status_code=status, content=body.model_dump(exclude_none=True))


def _log(event: str, endpoint: str, **fields: Any) -> None:
    logger.info(json.dumps({"event": event, "endpoint": endpoint, **fields}))


class Unauthenticated(Exception):
    pass


def require_user(x_user_id: str | None = Header(default=None)) -> str:
    """Resolve the caller from ``X-User-Id``; runs before body validation."""
    if not x_user_id:
        raise Unauthenticated()
    return x_user_id


@app.exception_handler(Unauthenticated)  # type: ignore[misc]
async def _unauthenticated(request: Request, exc: Unauthenticated) -> JSONResponse:
    _log("api_error", request.url.path, status=401, error="Unauthenticated")
    return _error(401, "Unauthenticated")


@app.exception_handler(RequestValidationError)  # type: ignore[misc]
async def _invalid_input(request: Request, exc: RequestValidationError) -> JSONResponse:
    details = [
        {"loc": list(e.get("loc", ())), "msg": e.get("msg"), "type": e.get("type")}
        for e in exc.errors()
    ]
    return _error(400, "Invalid input", details=details)


@app.exception_handler(OptimizerError)  # type: ignore[misc]
async def _optimizer_error(request: Request, exc: OptimizerError) -> JSONResponse:
    status = _STATUS_BY_CODE.get(exc.code, 400)
    logger.info(
        json.dumps(
            {
                "event": "api_error",
                "endpoint": request.url.path,
                "code": exc.code.value,
                "error": exc.message,
            }
        )
    )
    return _error(status, exc.user_message, detail=exc.code.value, details=exc.details or None)


@app.exception_handler(Exception)  # type: ignore[misc]
async def _internal_error(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        json.dumps({"event": "api_error", "endpoint": request.url.path, "error": repr(exc)}),
        exc_info=exc,
    )
    return _error(500, "Internal server error")


@app.get("/health")  # type: ignore[misc]
def health() -> dict[str, Any]:
    t0 = time.time()
    _log("api_enter", "/health")
    out = {
        "ok": True,
        "version": "0.1.0",
        "time": datetime.now(UTC).isoformat(),
    }
    _log("api_exit", "/health", dt_s=round(time.time() - t0, 6))
    return out


@app.get("/quizzes", response_model=list[Quiz])  # type: ignore[misc]
def list_quizzes() -> list[Quiz]:
    t0 = time.time()
    _log("api_enter", "/quizzes")
    out = [Quiz.model_validate(q.to_dict()) for q in get_store().list_quizzes()]
    _log("api_exit", "/quizzes", dt_s=round(time.time() - t0, 6), count=len(out))
    return out


@app.get(
    "/quizzes/{quiz_id}/questions",
    response_model=list[QuestionOut],
    responses={404: {"model": ErrorResponse}},
)  # type: ignore[misc]
def list_questions(quiz_id: str) -> list[QuestionOut]:
    t0 = time.time()
    _log("api_enter", "/quizzes/{quiz_id}/questions", quiz_id=quiz_id)
    out = [QuestionOut.model_validate(q.to_dict()) for q in get_store().list_questions(quiz_id)]
    _log(
        "api_exit",
        "/quizzes/{quiz_id}/questions",
        dt_s=round(time.time() - t0, 6),
        count=len(out),
    )
    return out


@app.post(
    "/quizzes/{quiz_id}/optimize",
    response_model=OptimizeResponse,
    responses={400: {"model": ErrorResponse}, 401: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)  # type: ignore[misc]
def optimize(
    quiz_id: str,
    req: OptimizeRequest,
    user_id: str = Depends(require_user),
) -> OptimizeResponse:
    """Return the max-score question subset that fits ``totalTimeLimit``."""
    t0 = time.time()
    _log("api_enter", "/quizzes/{quiz_id}/optimize", quiz_id=quiz_id, user_id=user_id)
    filters = req.filters
    questions = get_store().list_questions(
        quiz_id,
        difficulty=filters.difficulty if filters else None,
        category=filters.category if filters else None,
    )
    ensure_within_budget(len(questions), req.total_time_limit, _max_cells())
    result = optimize_questions(questions, req.total_time_limit)

    out = OptimizeResponse.model_validate(
        {
            "selected_question_ids": result.selected_question_ids,
            "selected_questions": [q.to_dict() for q in result.selected_questions],
            "total_score": result.total_score,
            "total_time_used": result.total_time_used,
        }
    )
    _log(
        "api_exit",
        "/quizzes/{quiz_id}/optimize",
        dt_s=round(time.time() - t0, 6),
        candidates=len(questions),
        selected=len(result.selected_question_ids),
    )
    return out


@app.post(
    "/quizzes/{quiz_id}/attempts",
    response_model=CreateAttemptResponse,
    status_code=201,
    responses={400: {"model": ErrorResponse}, 401: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)  # type: ignore[misc]
def create_attempt(
    quiz_id: str,
    req: CreateAttemptRequest,
    user_id: str = Depends(require_user),
) -> CreateAttemptResponse:
    t0 = time.time()
    _log("api_enter", "/quizzes/{quiz_id}/attempts", quiz_id=quiz_id, user_id=user_id)
    attempt = get_store().create_attempt(
        user_id=user_id, quiz_id=quiz_id, total_time_limit=req.total_time_limit
    )
    _log(
        "api_exit",
        "/quizzes/{quiz_id}/attempts",
        dt_s=round(time.time() - t0, 6),
        attempt_id=attempt.id,
    )
    return CreateAttemptResponse(attempt_id=attempt.id)


@app.post(
    "/attempts/{attempt_id}/answers",
    response_model=SubmitAnswersResponse,
    status_code=201,
    responses={400: {"model": ErrorResponse}, 401: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)  # type: ignore[misc]
def submit_answers(
    attempt_id: str,
    req: SubmitAnswersRequest,
    user_id: str = Depends(require_user),
) -> SubmitAnswersResponse | JSONResponse:
    t0 = time.time()
    _log("api_enter", "/attempts/{attempt_id}/answers", attempt_id=attempt_id)
    store = get_store()
    attempt = store.get_attempt(attempt_id)
    if attempt is None:
        _log(
            "api_error",
            "/attempts/{attempt_id}/answers",
            status=404,
            error="Attempt not found",
            dt_s=round(time.time() - t0, 6),
        )
        return _error(404, "Attempt not found")
    if attempt.user_id != user_id:
        raise Unauthenticated()

    rows = store.upsert_answers(
        attempt_id, [(str(a.question_id), a.answer_text) for a in req.answers]
    )
    _log(
        "api_exit",
        "/attempts/{attempt_id}/answers",
        dt_s=round(time.time() - t0, 6),
        count=len(rows),
    )
    return SubmitAnswersResponse()
