"""
SM-2 spaced-repetition scheduler.

review() is a pure transition (card, quality, response time, now) -> card.
The caller loads the card, runs review(), and persists the result; nothing
here touches storage.

Quality scale:
  0 = total failure ... 2 = wrong but familiar   (reset streak)
  3 = correct, hard ... 5 = perfect recall       (grow interval)
"""
from __future__ import annotations

import math
from collections.abc import Iterable
from datetime import datetime, timedelta

from studygenie.models.flashcard import Flashcard, FlashcardSummary, utcnow

MIN_QUALITY = 0
MAX_QUALITY = 5
PASSING_QUALITY = 3
MIN_EASE_FACTOR = 1.3
FIRST_INTERVAL = 1
SECOND_INTERVAL = 6


class InvalidQualityError(ValueError):
    """Raised when a review quality falls outside 0..5."""


def round_half_up(value: float) -> int:
    # round() in Python is banker's rounding; 16.5 must give 17 here
    return int(math.floor(value + 0.5))


def ease_delta(quality: int) -> float:
    miss = MAX_QUALITY - quality
    return 0.1 - miss * (0.08 + miss * 0.02)


def validate_quality(quality: object) -> int:
    if isinstance(quality, bool) or not isinstance(quality, int):
        raise InvalidQualityError(f"quality must be an integer, got {quality!r}")
    if not MIN_QUALITY <= quality <= MAX_QUALITY:
        raise InvalidQualityError(
            f"quality must be between {MIN_QUALITY} and {MAX_QUALITY}, got {quality}"
        )
    return quality


def review(
    card: Flashcard,
    quality: int,
    response_time_seconds: float | None = None,
    now: datetime | None = None,
) -> Flashcard:
    """
    Apply one review to a card and return the updated copy.

    The input card is left untouched. Raises InvalidQualityError before
    computing anything when quality is out of range.
    """
    quality = validate_quality(quality)
    now = now or utcnow()

    stats = card.stats.model_copy()
    data = card.review_data.model_copy()

    if response_time_seconds is not None:
        total = stats.average_response_time * stats.times_reviewed
        stats.average_response_time = (total + response_time_seconds) / (
            stats.times_reviewed + 1
        )

    stats.times_reviewed += 1
    stats.last_reviewed = now
    data.review_count += 1

    if quality >= PASSING_QUALITY:
        stats.correct_answers += 1
        if data.review_count == 1:
            data.interval = FIRST_INTERVAL
        elif data.review_count == 2:
            data.interval = SECOND_INTERVAL
        else:
            data.interval = round_half_up(data.interval * data.ease_factor)
        data.ease_factor += ease_delta(quality)
    else:
        stats.incorrect_answers += 1
        data.review_count = 0
        data.interval = FIRST_INTERVAL

    if data.ease_factor < MIN_EASE_FACTOR:
        data.ease_factor = MIN_EASE_FACTOR

    data.next_review = now + timedelta(days=data.interval)

    return card.model_copy(update={"stats": stats, "review_data": data})


# --- Queries ---


def success_rate(card: Flashcard) -> int:
    reviewed = card.stats.times_reviewed
    if reviewed == 0:
        return 0
    return round_half_up(card.stats.correct_answers / reviewed * 100)


def is_due(card: Flashcard, now: datetime | None = None) -> bool:
    return (now or utcnow()) >= card.review_data.next_review


def average_success_rate(cards: Iterable[Flashcard]) -> int:
    """Mean success rate over reviewed cards; 0 when none has been reviewed."""
    rates = [success_rate(c) for c in cards if c.stats.times_reviewed > 0]
    if not rates:
        return 0
    return round_half_up(sum(rates) / len(rates))


def count_due(
    cards: Iterable[Flashcard],
    now: datetime | None = None,
    subject_id: str | None = None,
) -> int:
    now = now or utcnow()
    return sum(
        1
        for c in cards
        if (subject_id is None or c.subject_id == subject_id) and is_due(c, now)
    )


def summarize(cards: Iterable[Flashcard], now: datetime | None = None) -> FlashcardSummary:
    cards = list(cards)
    return FlashcardSummary(
        total=len(cards),
        reviewed=sum(1 for c in cards if c.stats.times_reviewed > 0),
        due=count_due(cards, now),
        average_success_rate=average_success_rate(cards),
    )
