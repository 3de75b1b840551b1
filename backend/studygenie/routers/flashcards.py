"""
Flashcards & spaced repetition router.

Endpoints:
  POST   /flashcards/generate             — LLM-generate cards for a subject
  POST   /flashcards/custom               — add a hand-written card
  GET    /flashcards/due                  — cards due for review, soonest first
  GET    /flashcards/stats                — totals, due count, average success rate
  GET    /flashcards/subject/{subject_id} — all cards of a subject
  GET    /flashcards/{id}                 — single card
  POST   /flashcards/{id}/review          — submit quality 0–5, run SM-2
  PATCH  /flashcards/{id}                 — edit content
  DELETE /flashcards/{id}                 — soft delete
"""
from __future__ import annotations

import json
import logging
from datetime import datetime

import aiosqlite
from fastapi import APIRouter, Depends, HTTPException, Query

from studygenie.config import settings
from studygenie.db.sqlite import (
    StaleFlashcardError,
    count_active_flashcards_for_subject,
    deactivate_flashcard,
    get_db,
    get_due_flashcards,
    get_flashcard,
    get_subject,
    insert_flashcards,
    list_active_flashcards,
    list_flashcards_for_subject,
    save_flashcard_review,
    update_flashcard_content,
)
from studygenie.dependencies import get_user_id
from studygenie.models.flashcard import (
    Flashcard,
    FlashcardCreate,
    FlashcardList,
    FlashcardSummary,
    FlashcardUpdate,
    FlashcardView,
    GenerateRequest,
    ReviewRequest,
    ReviewResult,
    utcnow,
)
from studygenie.services import scheduler
from studygenie.services.flashcard_generator import (
    GeneratedCardsError,
    generate_flashcards_for_subject,
)
from studygenie.services.llm_service import LLMUnavailableError

logger = logging.getLogger(__name__)
router = APIRouter()


def _view(card: Flashcard, now: datetime) -> FlashcardView:
    return FlashcardView(
        **card.model_dump(),
        success_rate=scheduler.success_rate(card),
        is_due=scheduler.is_due(card, now),
    )


def _list(cards: list[Flashcard]) -> FlashcardList:
    now = utcnow()
    return FlashcardList(items=[_view(c, now) for c in cards], total=len(cards))


# --- Creation ---


@router.post("/generate", response_model=FlashcardList, status_code=201)
async def generate_cards(
    body: GenerateRequest,
    user_id: str = Depends(get_user_id),
    db: aiosqlite.Connection = Depends(get_db),
) -> FlashcardList:
    """Generate flashcards for a subject from its syllabus."""
    subject = await get_subject(db, user_id, body.subject_id)
    if not subject:
        raise HTTPException(status_code=404, detail="Subject not found")

    if await count_active_flashcards_for_subject(db, user_id, subject.id) > 0:
        raise HTTPException(
            status_code=400, detail="Flashcards already exist for this subject"
        )

    try:
        cards = await generate_flashcards_for_subject(db, subject)
    except LLMUnavailableError as e:
        raise HTTPException(status_code=503, detail=str(e)) from e
    except json.JSONDecodeError as e:
        logger.warning("Unparseable flashcard output for subject %s: %s", subject.id, e)
        raise HTTPException(
            status_code=502, detail="Content generator returned invalid JSON"
        ) from e
    except GeneratedCardsError as e:
        logger.warning("Unusable flashcard output for subject %s: %s", subject.id, e)
        raise HTTPException(
            status_code=502, detail="Content generator returned no usable flashcards"
        ) from e

    return _list(cards)


@router.post("/custom", response_model=FlashcardView, status_code=201)
async def create_custom_card(
    body: FlashcardCreate,
    user_id: str = Depends(get_user_id),
    db: aiosqlite.Connection = Depends(get_db),
) -> FlashcardView:
    subject = await get_subject(db, user_id, body.subject_id)
    if not subject:
        raise HTTPException(status_code=404, detail="Subject not found")

    [card] = await insert_flashcards(
        db,
        user_id,
        subject.id,
        [body.model_dump(include={"question", "answer", "topic", "difficulty", "tags"})],
    )
    return _view(card, utcnow())


# --- Review queue & analytics ---


@router.get("/due", response_model=FlashcardList)
async def get_due(
    subject_id: str | None = Query(default=None, alias="subjectId"),
    limit: int = Query(default=settings.due_limit_default, ge=1, le=100),
    user_id: str = Depends(get_user_id),
    db: aiosqlite.Connection = Depends(get_db),
) -> FlashcardList:
    """Return cards due for review, soonest-due first."""
    items = await get_due_flashcards(
        db, user_id, utcnow(), subject_id=subject_id, limit=limit
    )
    return _list(items)


@router.get("/stats", response_model=FlashcardSummary)
async def flashcard_stats(
    subject_id: str | None = Query(default=None, alias="subjectId"),
    user_id: str = Depends(get_user_id),
    db: aiosqlite.Connection = Depends(get_db),
) -> FlashcardSummary:
    """Return total, reviewed and due counts plus the average success rate."""
    cards = await list_active_flashcards(db, user_id, subject_id=subject_id)
    return scheduler.summarize(cards)


@router.get("/subject/{subject_id}", response_model=FlashcardList)
async def list_subject_cards(
    subject_id: str,
    user_id: str = Depends(get_user_id),
    db: aiosqlite.Connection = Depends(get_db),
) -> FlashcardList:
    subject = await get_subject(db, user_id, subject_id)
    if not subject:
        raise HTTPException(status_code=404, detail="Subject not found")
    return _list(await list_flashcards_for_subject(db, user_id, subject_id))


# --- Single card ---


@router.get("/{card_id}", response_model=FlashcardView)
async def get_card(
    card_id: str,
    user_id: str = Depends(get_user_id),
    db: aiosqlite.Connection = Depends(get_db),
) -> FlashcardView:
    card = await get_flashcard(db, user_id, card_id)
    if not card:
        raise HTTPException(status_code=404, detail="Flashcard not found")
    return _view(card, utcnow())


@router.post("/{card_id}/review", response_model=ReviewResult)
async def review_card(
    card_id: str,
    body: ReviewRequest,
    user_id: str = Depends(get_user_id),
    db: aiosqlite.Connection = Depends(get_db),
) -> ReviewResult:
    """Submit a review quality for a flashcard and reschedule it with SM-2."""
    try:
        scheduler.validate_quality(body.quality)
    except scheduler.InvalidQualityError as e:
        raise HTTPException(
            status_code=400, detail="Quality must be between 0 and 5"
        ) from e

    card = await get_flashcard(db, user_id, card_id)
    if not card:
        raise HTTPException(status_code=404, detail="Flashcard not found")

    now = utcnow()
    reviewed = scheduler.review(card, body.quality, body.response_time_seconds, now)
    try:
        saved = await save_flashcard_review(db, reviewed)
    except StaleFlashcardError as e:
        logger.warning("Lost review update for card %s: %s", card_id, e)
        raise HTTPException(
            status_code=409, detail="Flashcard was modified concurrently; reload and retry"
        ) from e

    logger.info(
        "Reviewed card %s quality=%d interval=%d ease=%.2f",
        card_id,
        body.quality,
        saved.review_data.interval,
        saved.review_data.ease_factor,
    )
    return ReviewResult(
        id=saved.id,
        stats=saved.stats,
        review_data=saved.review_data,
        success_rate=scheduler.success_rate(saved),
        is_due=scheduler.is_due(saved, now),
        next_review=saved.review_data.next_review,
    )


@router.patch("/{card_id}", response_model=FlashcardView)
async def edit_card(
    card_id: str,
    body: FlashcardUpdate,
    user_id: str = Depends(get_user_id),
    db: aiosqlite.Connection = Depends(get_db),
) -> FlashcardView:
    updated = await update_flashcard_content(db, user_id, card_id, body)
    if not updated:
        raise HTTPException(status_code=404, detail="Flashcard not found")
    return _view(updated, utcnow())


@router.delete("/{card_id}", status_code=204)
async def remove_card(
    card_id: str,
    user_id: str = Depends(get_user_id),
    db: aiosqlite.Connection = Depends(get_db),
) -> None:
    deleted = await deactivate_flashcard(db, user_id, card_id)
    if not deleted:
        raise HTTPException(status_code=404, detail="Flashcard not found")
