"""
Flashcard generation service.

For one subject:
  1. Calls the LLM via llm_service.chat_json() with the subject's syllabus
  2. Parses {"flashcards": [{"question", "answer", "topic", "difficulty", "tags"}]}
  3. Inserts the usable cards with fresh review state

LLMUnavailableError and JSON decode errors propagate to the caller. Malformed
items inside an otherwise valid response are skipped; a response that is not
an object, or that yields no usable card, raises GeneratedCardsError.
"""
from __future__ import annotations

import logging

import aiosqlite

from studygenie.config import settings
from studygenie.db.sqlite import insert_flashcards, mark_subject_has_flashcards
from studygenie.models.flashcard import Difficulty, Flashcard
from studygenie.models.subject import Subject
from studygenie.services.llm_service import chat_json

logger = logging.getLogger(__name__)

MIN_QUESTION_CHARS = 5
MAX_SYLLABUS_CHARS = 6000


class GeneratedCardsError(Exception):
    """Raised when the LLM output holds no usable flashcards."""


SYSTEM_PROMPT = (
    "You are a flashcard generator for exam preparation. "
    "Given a subject and its syllabus, generate 10-15 question-answer pairs "
    "that cover the syllabus topics. "
    "Respond ONLY with valid JSON in exactly this structure:\n"
    '{"flashcards": [{"question": "string", "answer": "string", "topic": "string", '
    '"difficulty": "medium", "tags": ["string"]}]}\n'
    "Rules:\n"
    "- difficulty is one of easy, medium, hard.\n"
    "- topic names the syllabus topic the card belongs to.\n"
    "- Questions must be clear and concise; answers accurate and complete.\n"
    "- Use at most 3 short tags per card."
)


def _user_prompt(subject: Subject) -> str:
    return (
        f"Subject: {subject.name}\n\n"
        f"Syllabus:\n{subject.syllabus[:MAX_SYLLABUS_CHARS]}"
    )


def _normalize_difficulty(value: object) -> Difficulty:
    try:
        return Difficulty(str(value).strip().lower())
    except ValueError:
        return Difficulty.MEDIUM


def _normalize_tags(value: object) -> list[str]:
    if isinstance(value, str):
        value = value.split(",")
    if not isinstance(value, list):
        return []
    return [str(t).strip() for t in value if str(t).strip()]


def parse_generated_cards(result: object, default_topic: str, limit: int) -> list[dict]:
    """Turn a raw LLM response into insertable card dicts, dropping unusable items."""
    if not isinstance(result, dict):
        raise GeneratedCardsError(
            f"expected a JSON object, got {type(result).__name__}"
        )
    cards: list[dict] = []
    for item in result.get("flashcards") or []:
        if not isinstance(item, dict):
            continue
        question = str(item.get("question") or "").strip()
        answer = str(item.get("answer") or "").strip()
        if len(question) < MIN_QUESTION_CHARS or not answer:
            continue
        cards.append(
            {
                "question": question,
                "answer": answer,
                "topic": str(item.get("topic") or "").strip() or default_topic,
                "difficulty": _normalize_difficulty(item.get("difficulty")),
                "tags": _normalize_tags(item.get("tags")),
            }
        )
        if len(cards) >= limit:
            break
    return cards


async def generate_flashcards_for_subject(
    db: aiosqlite.Connection,
    subject: Subject,
) -> list[Flashcard]:
    """Generate, insert and return flashcards for a subject."""
    result = await chat_json(SYSTEM_PROMPT, _user_prompt(subject), max_tokens=2048)
    cards = parse_generated_cards(result, subject.name, settings.max_generated_cards)
    if not cards:
        raise GeneratedCardsError(f"no usable flashcards for subject {subject.id}")

    inserted = await insert_flashcards(
        db, subject.user_id, subject.id, cards, ai_generated=True
    )
    await mark_subject_has_flashcards(db, subject.id)
    logger.info("Generated %d flashcards for subject %s", len(inserted), subject.id)
    return inserted
