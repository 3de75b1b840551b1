import uuid
from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient

from studygenie.config import settings
from studygenie.models.flashcard import CardStats, Flashcard, ReviewData

NOW = datetime(2026, 10, 17, 9, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def make_card():
    """Factory for in-memory flashcards with fresh review state unless overridden."""

    def _make(subject_id='subj-1', stats=None, review_data=None, **overrides):
        fields = {
            'id': str(uuid.uuid4()),
            'subject_id': subject_id,
            'user_id': 'u1',
            'question': 'What is photosynthesis?',
            'answer': 'Light energy converted to chemical energy',
            'topic': 'Biology',
            'stats': CardStats(**(stats or {})),
            'review_data': ReviewData(**{'next_review': NOW, **(review_data or {})}),
            'created_at': NOW,
            'updated_at': NOW,
        }
        fields.update(overrides)
        return Flashcard(**fields)

    return _make


@pytest.fixture
def data_dir(tmp_path, monkeypatch):
    monkeypatch.setattr(settings, 'data_dir', tmp_path)
    monkeypatch.setattr(settings, 'ollama_model', '')
    return tmp_path


@pytest.fixture
def client(data_dir):
    from studygenie import app

    with TestClient(app) as c:
        yield c


@pytest.fixture
def subject_payload():
    return {
        'name': 'Biology',
        'description': 'Cell biology and plants',
        'syllabus': 'Cells, photosynthesis, respiration, genetics basics',
        'examDate': '2027-01-15',
    }


@pytest.fixture
def subject(client, subject_payload):
    r = client.post('/subjects/', json=subject_payload)
    assert r.status_code == 201
    return r.json()


@pytest.fixture
def add_card(client, subject):
    def _add(question='What is a cell membrane?', headers=None, **extra):
        body = {
            'subjectId': subject['id'],
            'question': question,
            'answer': 'A lipid bilayer around the cell',
            'topic': 'Cells',
            **extra,
        }
        r = client.post('/flashcards/custom', json=body, headers=headers or {})
        assert r.status_code == 201, r.text
        return r.json()

    return _add
