from studygenie.models.flashcard import (
    CardStats,
    Difficulty,
    Flashcard,
    FlashcardCreate,
    FlashcardList,
    FlashcardSummary,
    FlashcardUpdate,
    FlashcardView,
    GenerateRequest,
    ReviewData,
    ReviewRequest,
    ReviewResult,
)
from studygenie.models.subject import Subject, SubjectCreate, SubjectList

__all__ = [
    "CardStats",
    "Difficulty",
    "Flashcard",
    "FlashcardCreate",
    "FlashcardList",
    "FlashcardSummary",
    "FlashcardUpdate",
    "FlashcardView",
    "GenerateRequest",
    "ReviewData",
    "ReviewRequest",
    "ReviewResult",
    "Subject",
    "SubjectCreate",
    "SubjectList",
]
