import json
import uuid
from datetime import date, datetime, timezone
from pathlib import Path
from typing import AsyncIterator

import aiosqlite

from studygenie.config import settings
from studygenie.models.flashcard import (
    CardStats,
    Difficulty,
    Flashcard,
    FlashcardUpdate,
    ReviewData,
)
from studygenie.models.subject import Subject, SubjectCreate

_db_path: Path | None = None

TS_FORMAT = "%Y-%m-%d %H:%M:%S"

SCHEMA_SQL = """
PRAGMA journal_mode=WAL;
PRAGMA foreign_keys=ON;

CREATE TABLE IF NOT EXISTS subjects (
    id             TEXT PRIMARY KEY,
    user_id        TEXT NOT NULL,
    name           TEXT NOT NULL,
    description    TEXT DEFAULT '',
    syllabus       TEXT NOT NULL,
    exam_date      TEXT NOT NULL,
    has_flashcards INTEGER DEFAULT 0,
    is_active      INTEGER DEFAULT 1,
    created_at     TEXT NOT NULL DEFAULT (datetime('now')),
    updated_at     TEXT NOT NULL DEFAULT (datetime('now'))
);
CREATE INDEX IF NOT EXISTS idx_subjects_user ON subjects(user_id, is_active);

CREATE TABLE IF NOT EXISTS flashcards (
    id            TEXT PRIMARY KEY,
    subject_id    TEXT NOT NULL REFERENCES subjects(id),
    user_id       TEXT NOT NULL,
    question      TEXT NOT NULL,
    answer        TEXT NOT NULL,
    topic         TEXT NOT NULL,
    difficulty    TEXT DEFAULT 'medium',
    tags          TEXT DEFAULT '[]',
    ai_generated  INTEGER DEFAULT 0,
    is_active     INTEGER DEFAULT 1,
    times_reviewed        INTEGER DEFAULT 0,
    correct_answers       INTEGER DEFAULT 0,
    incorrect_answers     INTEGER DEFAULT 0,
    last_reviewed         TEXT,
    average_response_time REAL DEFAULT 0.0,
    interval      INTEGER DEFAULT 1,
    ease_factor   REAL DEFAULT 2.5,
    next_review   TEXT NOT NULL,
    review_count  INTEGER DEFAULT 0,
    version       INTEGER DEFAULT 0,
    created_at    TEXT NOT NULL DEFAULT (datetime('now')),
    updated_at    TEXT NOT NULL DEFAULT (datetime('now'))
);
CREATE INDEX IF NOT EXISTS idx_flashcards_subject ON flashcards(subject_id);
CREATE INDEX IF NOT EXISTS idx_flashcards_review ON flashcards(user_id, next_review);

CREATE TABLE IF NOT EXISTS schema_version (
    version    INTEGER PRIMARY KEY,
    applied_at TEXT NOT NULL DEFAULT (datetime('now'))
);
INSERT OR IGNORE INTO schema_version(version) VALUES (1);
"""


class StaleFlashcardError(Exception):
    """Raised when a review is saved over a card another writer already changed."""


async def init_sqlite(data_dir: Path) -> None:
    global _db_path
    _db_path = data_dir / settings.sqlite_filename
    async with aiosqlite.connect(_db_path) as db:
        await db.executescript(SCHEMA_SQL)
        await db.commit()


async def get_db() -> AsyncIterator[aiosqlite.Connection]:
    assert _db_path is not None, "SQLite not initialized"
    async with aiosqlite.connect(_db_path) as db:
        db.row_factory = aiosqlite.Row
        await db.execute("PRAGMA foreign_keys=ON")
        yield db


def _fmt(ts: datetime) -> str:
    if ts.tzinfo is not None:
        ts = ts.astimezone(timezone.utc)
    return ts.strftime(TS_FORMAT)


def _parse(value: str | None) -> datetime | None:
    if value is None:
        return None
    return datetime.strptime(value, TS_FORMAT).replace(tzinfo=timezone.utc)


def _now() -> str:
    return _fmt(datetime.now(timezone.utc))


# --- Subjects ---


def _row_to_subject(row: aiosqlite.Row) -> Subject:
    d = dict(row)
    d["exam_date"] = date.fromisoformat(d["exam_date"])
    d["has_flashcards"] = bool(d["has_flashcards"])
    d["is_active"] = bool(d["is_active"])
    d["created_at"] = _parse(d["created_at"])
    d["updated_at"] = _parse(d["updated_at"])
    return Subject(**d)


async def create_subject(
    db: aiosqlite.Connection, user_id: str, subject: SubjectCreate
) -> Subject:
    subject_id = str(uuid.uuid4())
    now = _now()
    await db.execute(
        """INSERT INTO subjects
           (id, user_id, name, description, syllabus, exam_date, created_at, updated_at)
           VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
        (
            subject_id,
            user_id,
            subject.name,
            subject.description,
            subject.syllabus,
            subject.exam_date.isoformat(),
            now,
            now,
        ),
    )
    await db.commit()
    return await get_subject(db, user_id, subject_id)  # type: ignore[return-value]


async def get_subject(
    db: aiosqlite.Connection, user_id: str, subject_id: str
) -> Subject | None:
    cursor = await db.execute(
        "SELECT * FROM subjects WHERE id = ? AND user_id = ? AND is_active = 1",
        (subject_id, user_id),
    )
    row = await cursor.fetchone()
    return _row_to_subject(row) if row else None


async def list_subjects(db: aiosqlite.Connection, user_id: str) -> list[Subject]:
    cursor = await db.execute(
        "SELECT * FROM subjects WHERE user_id = ? AND is_active = 1 ORDER BY exam_date ASC",
        (user_id,),
    )
    rows = await cursor.fetchall()
    return [_row_to_subject(r) for r in rows]


async def mark_subject_has_flashcards(
    db: aiosqlite.Connection, subject_id: str
) -> None:
    await db.execute(
        "UPDATE subjects SET has_flashcards = 1, updated_at = ? WHERE id = ?",
        (_now(), subject_id),
    )
    await db.commit()


async def deactivate_subject(
    db: aiosqlite.Connection, user_id: str, subject_id: str
) -> bool:
    cursor = await db.execute(
        "UPDATE subjects SET is_active = 0, updated_at = ? "
        "WHERE id = ? AND user_id = ? AND is_active = 1",
        (_now(), subject_id, user_id),
    )
    await db.commit()
    return (cursor.rowcount or 0) > 0


# --- Flashcards ---


def _row_to_flashcard(row: aiosqlite.Row) -> Flashcard:
    d = dict(row)
    return Flashcard(
        id=d["id"],
        subject_id=d["subject_id"],
        user_id=d["user_id"],
        question=d["question"],
        answer=d["answer"],
        topic=d["topic"],
        difficulty=d["difficulty"],
        tags=json.loads(d["tags"] or "[]"),
        ai_generated=bool(d["ai_generated"]),
        is_active=bool(d["is_active"]),
        stats=CardStats(
            times_reviewed=d["times_reviewed"],
            correct_answers=d["correct_answers"],
            incorrect_answers=d["incorrect_answers"],
            last_reviewed=_parse(d["last_reviewed"]),
            average_response_time=d["average_response_time"],
        ),
        review_data=ReviewData(
            interval=d["interval"],
            ease_factor=d["ease_factor"],
            next_review=_parse(d["next_review"]),
            review_count=d["review_count"],
        ),
        version=d["version"] or 0,
        created_at=_parse(d["created_at"]),
        updated_at=_parse(d["updated_at"]),
    )


async def insert_flashcards(
    db: aiosqlite.Connection,
    user_id: str,
    subject_id: str,
    cards: list[dict],
    ai_generated: bool = False,
) -> list[Flashcard]:
    """
    Insert fresh cards with default review state (due immediately).

    Each dict needs question, answer and topic; difficulty and tags are optional.
    """
    now = _now()
    ids: list[str] = []
    for c in cards:
        card_id = str(uuid.uuid4())
        ids.append(card_id)
        difficulty = c.get("difficulty") or Difficulty.MEDIUM
        await db.execute(
            """INSERT INTO flashcards
               (id, subject_id, user_id, question, answer, topic, difficulty, tags,
                ai_generated, next_review, created_at, updated_at)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                card_id,
                subject_id,
                user_id,
                c["question"],
                c["answer"],
                c["topic"],
                Difficulty(difficulty).value,
                json.dumps(list(c.get("tags") or [])),
                int(ai_generated),
                now,
                now,
                now,
            ),
        )
    await db.commit()
    return [await get_flashcard(db, user_id, i) for i in ids]  # type: ignore[misc]


async def get_flashcard(
    db: aiosqlite.Connection, user_id: str, card_id: str
) -> Flashcard | None:
    cursor = await db.execute(
        "SELECT * FROM flashcards WHERE id = ? AND user_id = ? AND is_active = 1",
        (card_id, user_id),
    )
    row = await cursor.fetchone()
    return _row_to_flashcard(row) if row else None


async def list_flashcards_for_subject(
    db: aiosqlite.Connection, user_id: str, subject_id: str
) -> list[Flashcard]:
    cursor = await db.execute(
        """SELECT * FROM flashcards
           WHERE subject_id = ? AND user_id = ? AND is_active = 1
           ORDER BY created_at DESC, rowid DESC""",
        (subject_id, user_id),
    )
    rows = await cursor.fetchall()
    return [_row_to_flashcard(r) for r in rows]


async def list_active_flashcards(
    db: aiosqlite.Connection, user_id: str, subject_id: str | None = None
) -> list[Flashcard]:
    if subject_id:
        cursor = await db.execute(
            "SELECT * FROM flashcards WHERE user_id = ? AND is_active = 1 AND subject_id = ?",
            (user_id, subject_id),
        )
    else:
        cursor = await db.execute(
            "SELECT * FROM flashcards WHERE user_id = ? AND is_active = 1",
            (user_id,),
        )
    rows = await cursor.fetchall()
    return [_row_to_flashcard(r) for r in rows]


async def count_active_flashcards_for_subject(
    db: aiosqlite.Connection, user_id: str, subject_id: str
) -> int:
    cursor = await db.execute(
        "SELECT COUNT(*) FROM flashcards WHERE subject_id = ? AND user_id = ? AND is_active = 1",
        (subject_id, user_id),
    )
    row = await cursor.fetchone()
    return row[0] if row else 0


async def get_due_flashcards(
    db: aiosqlite.Connection,
    user_id: str,
    now: datetime,
    subject_id: str | None = None,
    limit: int = 20,
) -> list[Flashcard]:
    """Return cards with next_review <= now, soonest-due first."""
    if subject_id:
        cursor = await db.execute(
            """SELECT * FROM flashcards
               WHERE user_id = ? AND is_active = 1 AND next_review <= ?
               AND subject_id = ?
               ORDER BY next_review ASC
               LIMIT ?""",
            (user_id, _fmt(now), subject_id, limit),
        )
    else:
        cursor = await db.execute(
            """SELECT * FROM flashcards
               WHERE user_id = ? AND is_active = 1 AND next_review <= ?
               ORDER BY next_review ASC
               LIMIT ?""",
            (user_id, _fmt(now), limit),
        )
    rows = await cursor.fetchall()
    return [_row_to_flashcard(r) for r in rows]


async def update_flashcard_content(
    db: aiosqlite.Connection,
    user_id: str,
    card_id: str,
    update: FlashcardUpdate,
) -> Flashcard | None:
    fields = update.model_dump(exclude_none=True)
    if not fields:
        return await get_flashcard(db, user_id, card_id)

    if "difficulty" in fields:
        fields["difficulty"] = Difficulty(fields["difficulty"]).value
    if "tags" in fields:
        fields["tags"] = json.dumps(fields["tags"])

    fields["updated_at"] = _now()
    set_clause = ", ".join(f"{k} = ?" for k in fields)
    values = list(fields.values()) + [card_id, user_id]

    cursor = await db.execute(
        f"UPDATE flashcards SET {set_clause} WHERE id = ? AND user_id = ? AND is_active = 1",  # noqa: S608
        values,
    )
    await db.commit()
    if not cursor.rowcount:
        return None
    return await get_flashcard(db, user_id, card_id)


async def save_flashcard_review(db: aiosqlite.Connection, card: Flashcard) -> Flashcard:
    """
    Persist the stats and review state of a reviewed card.

    The write only lands if the stored version still equals card.version,
    i.e. nobody saved a review between our load and this save.
    """
    stats, data = card.stats, card.review_data
    cursor = await db.execute(
        """UPDATE flashcards
           SET times_reviewed = ?, correct_answers = ?, incorrect_answers = ?,
               last_reviewed = ?, average_response_time = ?,
               interval = ?, ease_factor = ?, next_review = ?, review_count = ?,
               version = version + 1, updated_at = ?
           WHERE id = ? AND user_id = ? AND version = ?""",
        (
            stats.times_reviewed,
            stats.correct_answers,
            stats.incorrect_answers,
            _fmt(stats.last_reviewed) if stats.last_reviewed else None,
            stats.average_response_time,
            data.interval,
            data.ease_factor,
            _fmt(data.next_review),
            data.review_count,
            _now(),
            card.id,
            card.user_id,
            card.version,
        ),
    )
    await db.commit()
    if not cursor.rowcount:
        raise StaleFlashcardError(f"Flashcard {card.id} changed since it was loaded")
    saved = await get_flashcard(db, card.user_id, card.id)
    if saved is None:
        raise StaleFlashcardError(f"Flashcard {card.id} was deleted during review")
    return saved


async def deactivate_flashcard(
    db: aiosqlite.Connection, user_id: str, card_id: str
) -> bool:
    cursor = await db.execute(
        "UPDATE flashcards SET is_active = 0, updated_at = ? "
        "WHERE id = ? AND user_id = ? AND is_active = 1",
        (_now(), card_id, user_id),
    )
    await db.commit()
    return (cursor.rowcount or 0) > 0
