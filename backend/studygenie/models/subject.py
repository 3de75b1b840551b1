from datetime import date, datetime

from pydantic import Field

from studygenie.models.flashcard import CamelModel


class SubjectCreate(CamelModel):
    name: str = Field(min_length=2, max_length=100)
    description: str = Field(default="", max_length=500)
    syllabus: str = Field(min_length=10)
    exam_date: date


class Subject(CamelModel):
    id: str
    user_id: str
    name: str
    description: str
    syllabus: str
    exam_date: date
    has_flashcards: bool = False
    is_active: bool = True
    created_at: datetime
    updated_at: datetime


class SubjectList(CamelModel):
    items: list[Subject]
    total: int
