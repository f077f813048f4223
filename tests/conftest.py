# Shared fixtures: a fake google-genai client and a test app.

import json
from types import SimpleNamespace

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from app.config import Settings, get_settings
from app.routers import chat_stream
from app.services import gemini


async def iterate(chunks, error: Exception | None = None):
    """Async chunk iterator, optionally failing after the last chunk."""
    for chunk in chunks:
        yield chunk
    if error is not None:
        raise error


def chunk(text):
    return SimpleNamespace(text=text)


class FakeModels:
    """Stands in for ``client.aio.models``.

    Each call consumes the next outcome: an Exception is raised, anything
    else is treated as a list of chunk texts to stream back. Like the real
    SDK, nothing is sent until the returned stream is first iterated, so
    exceptions surface on the first chunk rather than at the await.
    """

    def __init__(self, *outcomes):
        self.outcomes = list(outcomes)
        self.calls: list[dict] = []

    async def generate_content_stream(self, *, model, contents, config=None):
        self.calls.append({"model": model, "contents": contents, "config": config})
        outcome = self.outcomes.pop(0) if self.outcomes else []
        if isinstance(outcome, Exception):
            return iterate([], outcome)
        if isinstance(outcome, tuple):
            texts, error = outcome
            return iterate([chunk(t) for t in texts], error)
        return iterate([chunk(t) for t in outcome])


class FakeClient:
    def __init__(self, *outcomes):
        self.models = FakeModels(*outcomes)
        self.aio = SimpleNamespace(models=self.models)


def parse_events(text: str) -> list[dict]:
    events = []
    for frame in text.split("\n\n"):
        if frame.startswith("data: "):
            events.append(json.loads(frame[len("data: "):]))
    return events


@pytest.fixture(autouse=True)
def _reset_state(monkeypatch):
    monkeypatch.setenv("GEMINI_API_KEY", "test-key")
    get_settings.cache_clear()
    gemini._client = None
    yield
    get_settings.cache_clear()
    gemini._client = None


@pytest.fixture
def settings():
    return Settings(gemini_api_key="test-key")


@pytest.fixture
def fake_client(monkeypatch):
    client = FakeClient()
    monkeypatch.setattr(chat_stream, "get_client", lambda _settings=None: client)
    return client


@pytest.fixture
def test_app(settings):
    app = FastAPI()
    app.include_router(chat_stream.router)
    app.dependency_overrides[get_settings] = lambda: settings
    return app


@pytest.fixture
def client(test_app):
    return TestClient(test_app)
