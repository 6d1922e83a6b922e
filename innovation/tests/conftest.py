from __future__ import annotations

import os
import tempfile
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Keep the app's startup init_db() away from the package data directory.
os.environ.setdefault("INNOVATION_DB_PATH", str(Path(tempfile.mkdtemp()) / "test.db"))

from innovation.llm import LLMClient  # noqa: E402
from innovation.models import Base  # noqa: E402


@pytest.fixture()
def test_db():
    """In-memory SQLite shared across connections via StaticPool."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    TestSession = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
    return engine, TestSession


@pytest.fixture()
def session(test_db):
    _, TestSession = test_db
    sess = TestSession()
    try:
        yield sess
    finally:
        sess.close()


@pytest.fixture()
def fake_llm():
    """LLMClient stand-in whose ``call`` returns whatever the test sets."""
    client = MagicMock(spec=LLMClient)
    client.model = "test-model"
    client.provider = "gemini"
    client.source_tag = "gemini_ai"
    client.call = AsyncMock(return_value={})
    return client
