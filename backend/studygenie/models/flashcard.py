from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(microsecond=0)


class CamelModel(BaseModel):
    """Serializes with camelCase keys; accepts either case on input."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Difficulty(str, Enum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


class CardStats(CamelModel):
    times_reviewed: int = Field(default=0, ge=0)
    correct_answers: int = Field(default=0, ge=0)
    incorrect_answers: int = Field(default=0, ge=0)
    last_reviewed: datetime | None = None
    average_response_time: float = 0.0  # seconds


class ReviewData(CamelModel):
    interval: int = Field(default=1, ge=1)  # days
    ease_factor: float = Field(default=2.5, ge=1.3)
    next_review: datetime = Field(default_factory=utcnow)
    review_count: int = Field(default=0, ge=0)  # consecutive successes


class Flashcard(CamelModel):
    id: str
    subject_id: str
    user_id: str
    question: str
    answer: str
    topic: str
    difficulty: Difficulty = Difficulty.MEDIUM
    tags: list[str] = Field(default_factory=list)
    ai_generated: bool = False
    is_active: bool = True
    stats: CardStats = Field(default_factory=CardStats)
    review_data: ReviewData = Field(default_factory=ReviewData)
    version: int = 0
    created_at: datetime
    updated_at: datetime


class FlashcardView(Flashcard):
    """Flashcard plus the derived fields the dashboard displays."""

    success_rate: int
    is_due: bool


class FlashcardList(CamelModel):
    items: list[FlashcardView]
    total: int


class FlashcardCreate(CamelModel):
    subject_id: str
    question: str = Field(min_length=5)
    answer: str = Field(min_length=1)
    topic: str = Field(min_length=1)
    difficulty: Difficulty = Difficulty.MEDIUM
    tags: list[str] = Field(default_factory=list)


class FlashcardUpdate(CamelModel):
    """Content edit. Never carries review state."""

    model_config = ConfigDict(extra="forbid")

    question: str | None = Field(default=None, min_length=5)
    answer: str | None = Field(default=None, min_length=1)
    topic: str | None = Field(default=None, min_length=1)
    difficulty: Difficulty | None = None
    tags: list[str] | None = None


class GenerateRequest(CamelModel):
    subject_id: str


class ReviewRequest(CamelModel):
    # 0 = total failure .. 5 = perfect recall. Left untyped so booleans and
    # numeric strings reach the scheduler's check instead of being coerced.
    quality: Any
    response_time_seconds: float | None = Field(default=None, ge=0)


class ReviewResult(CamelModel):
    id: str
    stats: CardStats
    review_data: ReviewData
    success_rate: int
    is_due: bool
    next_review: datetime


class FlashcardSummary(CamelModel):
    total: int
    reviewed: int
    due: int
    average_success_rate: int
