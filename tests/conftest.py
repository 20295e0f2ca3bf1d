"""Pytest fixtures for PhishGuard tests."""

from __future__ import annotations

import json

import pytest

from phishguard import create_app, db
from phishguard.services import records


@pytest.fixture
def app():
    app = create_app({
        "TESTING": True,
        "SQLALCHEMY_DATABASE_URI": "sqlite://",
        "GEMINI_API_KEY": "AIzaTESTKEY1234567890abcdef",
        "DEFAULT_TRAINEE_ID": 1,
    })
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def department(app):
    return records.create_department("Finance", 85)


@pytest.fixture
def trainee(department):
    return records.create_trainee("Bob Smith", "bob@corp.com", department.id)


class FakeResponse:
    def __init__(self, status_code=200, payload=None, text=None):
        self.status_code = status_code
        self.text = text if text is not None else json.dumps(payload or {})


def gemini_text(text):
    """Wrap ``text`` the way generateContent returns it."""
    return FakeResponse(payload={"candidates": [{"content": {"parts": [{"text": text}]}}]})


def gemini_json(obj):
    return gemini_text(json.dumps(obj))


def gemini_audio(data="UklGRg=="):
    return FakeResponse(payload={
        "candidates": [{"content": {"parts": [{"inlineData": {"mimeType": "audio/L16", "data": data}}]}}]
    })


@pytest.fixture
def fake_gemini(monkeypatch):
    """
    Queue canned Gemini responses. Each call to requests.post pops the next
    one; an Exception instance in the queue is raised instead.
    """
    calls = []
    queue = []

    def fake_post(url, headers=None, json=None, timeout=None):
        calls.append({"url": url, "headers": headers, "json": json, "timeout": timeout})
        if not queue:
            raise AssertionError("unexpected Gemini call")
        item = queue.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    monkeypatch.setattr("phishguard.services.content_generator.requests.post", fake_post)
    fake_post.calls = calls
    fake_post.queue = queue
    return fake_post
