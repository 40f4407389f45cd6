"""
Shared fixtures. Environment is pinned before any riskguard import so the
cached Settings point at an in-memory SQLite DB, score in-process and never
reach a real judgment provider.
"""
import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SCORING_DISPATCH"] = "background"
os.environ["OPENAI_API_KEY"] = ""
os.environ["SEED_ON_STARTUP"] = "false"

from types import SimpleNamespace  # noqa: E402

import pytest  # noqa: E402


@pytest.fixture
def db():
    """Fresh tables for one test."""
    from riskguard.db.database import Base, engine, init_db
    init_db()
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def seeded_db(db):
    from riskguard.db.seed import seed_questions
    seed_questions()
    yield


@pytest.fixture
def client(seeded_db):
    from fastapi.testclient import TestClient
    from riskguard.main import app
    return TestClient(app)


class FakeCompletions:
    """Stands in for client.chat.completions."""

    def __init__(self, content=None, exc=None):
        self.content = content
        self.exc = exc
        self.calls = []

    def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.exc is not None:
            raise self.exc
        message = SimpleNamespace(content=self.content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


@pytest.fixture
def fake_llm(monkeypatch):
    """
    Install a fake OpenAI client: fake_llm(content=...) or fake_llm(exc=...).
    Returns the FakeCompletions so tests can inspect the request.
    """
    from riskguard.judgment import adapter

    def install(content=None, exc=None):
        completions = FakeCompletions(content=content, exc=exc)
        fake_client = SimpleNamespace(chat=SimpleNamespace(completions=completions))
        monkeypatch.setattr(adapter, "get_client", lambda: fake_client)
        return completions

    return install
