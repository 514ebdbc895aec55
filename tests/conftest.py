"""
Shared test fixtures.

Provides:
- session_factory: in-memory SQLite (aiosqlite) with all tables, one per test
- fake_llm: stand-in for the OpenAI client that records calls
- app / client: the FastAPI app wired to the fixtures above, driven through httpx
"""
import os
from typing import Dict, List, Optional

import httpx
import pytest
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

os.environ.setdefault("OPENAI_API_KEY", "sk-test-key")

from jargon_api.clients.llm_client import Completion  # noqa: E402
from jargon_api.config import Settings  # noqa: E402
from jargon_api.database.models import Base  # noqa: E402
from jargon_api.database.session import build_session_factory  # noqa: E402
from jargon_api.exceptions import UpstreamError  # noqa: E402
from jargon_api.main import create_app  # noqa: E402
from jargon_api.utils import EventTracker  # noqa: E402

TEST_DATABASE_URL = "sqlite+aiosqlite://"


class FakeLLMClient:
    """LLM client double: returns a canned completion or raises a queued error."""

    def __init__(self):
        self.calls: List[Dict] = []
        self.text = "  Think of EBITDA as a bakery's profit before the loan and the oven wear out.  "
        self.prompt_tokens = 100
        self.completion_tokens = 50
        self.error: Optional[Exception] = None

    @property
    def configured(self) -> bool:
        return True

    async def complete(self, model, messages, temperature, max_tokens) -> Completion:
        self.calls.append({
            "model": model,
            "messages": messages,
            "temperature": temperature,
            "max_tokens": max_tokens,
        })
        if self.error is not None:
            raise self.error
        return Completion(
            text=self.text.strip(),
            prompt_tokens=self.prompt_tokens,
            completion_tokens=self.completion_tokens,
            total_tokens=self.prompt_tokens + self.completion_tokens,
        )

    def fail_with(self, status_code: Optional[int], message: str = "Rate limit reached") -> None:
        self.error = UpstreamError(message, status_code=status_code)

    async def aclose(self) -> None:
        pass


class RecordingSink:
    def __init__(self):
        self.events = []

    def __call__(self, event_name, properties):
        self.events.append((event_name, properties))


@pytest.fixture
def settings() -> Settings:
    return Settings(database_url=TEST_DATABASE_URL, db_create_tables=False)


@pytest.fixture
async def engine():
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
def fake_llm() -> FakeLLMClient:
    return FakeLLMClient()


@pytest.fixture
def event_sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def tracker(event_sink) -> EventTracker:
    return EventTracker(sinks=[event_sink])


@pytest.fixture
def app(settings, session_factory, fake_llm, tracker):
    return create_app(
        settings=settings,
        session_factory=session_factory,
        llm_client=fake_llm,
        tracker=tracker,
    )


@pytest.fixture
async def client(app):
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
