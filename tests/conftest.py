import os
import sys
from datetime import datetime, timedelta, timezone

# Override env vars for testing; main builds its module-level app on import
os.environ["STORAGE_BACKEND"] = "memory"
os.environ["LOG_LEVEL"] = "WARNING"
os.environ.pop("ADMIN_EMAIL", None)
os.environ.pop("ADMIN_PASSWORD", None)

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

import pytest
from fastapi.testclient import TestClient

from config import Settings
from database import MemoryStore
from main import create_app
from repositories import build_repositories
from seed import initialize_storage

NOW = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)


class FrozenClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock():
    return FrozenClock()


@pytest.fixture
def settings():
    return Settings(_env_file=None, STORAGE_BACKEND="memory")


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def seeded_store(store, settings):
    initialize_storage(store, settings)
    return store


@pytest.fixture
def repos(store, settings, clock):
    """Repositories over an empty store."""
    return build_repositories(store, settings, clock=clock)


@pytest.fixture
def seeded_repos(seeded_store, settings, clock):
    return build_repositories(seeded_store, settings, clock=clock)


@pytest.fixture
def app(settings, store, clock):
    return create_app(settings, store=store, clock=clock)


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def admin_client(client):
    resp = client.post("/auth/login", json={"email": "admin@school.com", "password": "admin123"})
    assert resp.status_code == 200
    return client


def put_raw(store, key, raw):
    """Write a document to a MemoryStore as-is, bypassing serialization."""
    store._data[key] = raw


def announcement_data(**overrides):
    data = {
        "title": "Exam Schedule",
        "content": "Final exams start next Monday.",
        "category": "academic",
        "priority": "important",
        "status": "draft",
    }
    data.update(overrides)
    return data


def event_data(**overrides):
    data = {
        "title": "Science Fair",
        "description": "Student projects on display.",
        "startTime": (NOW + timedelta(days=2)).isoformat(),
        "endTime": (NOW + timedelta(days=2, hours=3)).isoformat(),
        "category": "academic",
        "location": "Main Hall",
    }
    data.update(overrides)
    return data


def teacher_data(**overrides):
    data = {
        "basicInfo": {"firstName": "Ada", "lastName": "Lovelace"},
        "contactInfo": {"email": "ada@school.com"},
        "professionalInfo": {
            "employeeId": "T-100",
            "department": "Mathematics",
            "subjects": ["Algebra"],
            "gradeLevels": ["9th"],
        },
    }
    data.update(overrides)
    return data


def department_data(**overrides):
    data = {"name": "Arts Department", "description": "Music, painting and drama."}
    data.update(overrides)
    return data


def gallery_data(**overrides):
    data = {"imageUrl": "https://example.com/photo.jpg", "caption": "Graduation 2025"}
    data.update(overrides)
    return data


def message_data(**overrides):
    data = {
        "name": "Jane Doe",
        "email": "jane@example.com",
        "subject": "Bus schedule",
        "message": "When does the school bus leave?",
    }
    data.update(overrides)
    return data


SAMPLE_PAYLOADS = {
    "announcements": announcement_data,
    "events": event_data,
    "teachers": teacher_data,
    "departments": department_data,
    "gallery": gallery_data,
    "messages": message_data,
}
