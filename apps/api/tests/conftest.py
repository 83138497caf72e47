"""Shared fixtures: an in-memory database and stand-ins for external services."""
from __future__ import annotations

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import app.models  # noqa: F401 - register tables on the metadata
from app.core.config import Settings
from app.models.base import Base
from app.services.webhook import WebhookProcessor
from support import FakeClock, FakeSummarizer

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest_asyncio.fixture
async def session_factory():
    engine = create_async_engine(
        TEST_DATABASE_URL,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)
    await engine.dispose()


@pytest_asyncio.fixture
async def session(session_factory):
    async with session_factory() as db_session:
        yield db_session


@pytest.fixture
def settings() -> Settings:
    return Settings(_env_file=None, vapi_webhook_secret="", gemini_api_key="", call_update_max_attempts=3)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def summarizer() -> FakeSummarizer:
    return FakeSummarizer()


@pytest.fixture
def processor(settings, summarizer, clock) -> WebhookProcessor:
    return WebhookProcessor(settings, summarizer, clock=clock)
