from __future__ import annotations

from typing import Any, Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ErrorResponse(BaseModel):
    error: str
    detail: str | None = None
    details: Any | None = None


class Quiz(BaseModel):
    id: str
    title: str
    description: str | None = None
    created_at: str


class QuestionOut(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str
    quiz_id: str | None = None
    question_text: str = ""
    score: int | float
    time_required: int
    difficulty: Literal["easy", "medium", "hard"] | None = None
    category: str | None = None
    created_at: str | None = None


class OptimizeFilters(CamelModel):
    difficulty: Literal["easy", "medium", "hard"] | None = None
    category: str | None = None


class OptimizeRequest(CamelModel):
    total_time_limit: int = Field(gt=0, strict=True)
    filters: OptimizeFilters | None = None


class OptimizeResponse(CamelModel):
    selected_question_ids: list[str]
    selected_questions: list[QuestionOut]
    total_score: int | float
    total_time_used: int


class CreateAttemptRequest(CamelModel):
    total_time_limit: int = Field(gt=0, strict=True)


class CreateAttemptResponse(CamelModel):
    attempt_id: str


class AnswerIn(CamelModel):
    question_id: UUID
    answer_text: str | None


class SubmitAnswersRequest(CamelModel):
    answers: list[AnswerIn] = Field(min_length=1)


class SubmitAnswersResponse(BaseModel):
    success: bool = True
