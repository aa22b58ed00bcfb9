"""
Shared test fixtures.

Provides: isolated settings, an in-memory SQLite Storage, fake providers and
sample spreadsheets.
"""

import os
import tempfile

# Settings are read at import time by several modules, so the environment
# must point at test resources before anything under app/ is imported.
_STORAGE_DIR = tempfile.mkdtemp(prefix="profile-batch-tests-")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_STORAGE_DIR}/app.db"
os.environ["STORAGE_PATH"] = _STORAGE_DIR
os.environ["APP_ENV"] = "development"
os.environ["PROVIDER_MODE"] = "simulated"
os.environ["SIMULATED_SUCCESS_RATE"] = "1.0"
os.environ["SIMULATED_MIN_DELAY"] = "0"
os.environ["SIMULATED_MAX_DELAY"] = "0"
os.environ["RATE_LIMIT_DELAY"] = "0"
os.environ["BATCH_DELAY"] = "0"
os.environ["MIN_BATCH_SIZE"] = "1"
os.environ["RETRY_INITIAL_DELAY"] = "0.001"
os.environ["RATE_LIMIT_PER_MINUTE"] = "10000"

from collections.abc import Callable
from pathlib import Path
from typing import Any

import pandas as pd
import pytest
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

from app.config import Settings
from app.database import Base, build_session_maker
from app.models import User
from app.services.provider import ProviderError, SimulatedProfileProvider
from app.services.storage import Storage


def profile_urls(count: int) -> list[str]:
    return [f"https://www.linkedin.com/in/test-person-{i}" for i in range(count)]


class ScriptedProvider:
    """
    Provider whose failures are chosen per URL.

    ``failures`` maps a URL to the message raised on every attempt for it.
    ``on_fetch`` is awaited before each call, letting tests act mid-run.
    """

    def __init__(
        self,
        failures: dict[str, str] | None = None,
        on_fetch: Callable[[str], Any] | None = None,
    ) -> None:
        self.failures = failures or {}
        self.on_fetch = on_fetch
        self.calls: list[str] = []
        self._profiles = SimulatedProfileProvider()

    async def fetch_profile(self, credential: str | None, profile_url: str) -> dict[str, Any]:
        self.calls.append(profile_url)
        if self.on_fetch is not None:
            await self.on_fetch(profile_url)
        if profile_url in self.failures:
            raise ProviderError(self.failures[profile_url])
        return self._profiles.build_profile(profile_url)


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Settings with no pacing delays and millisecond backoff."""
    return Settings(
        storage_path=tmp_path / "storage",
        rate_limit_delay=0,
        batch_delay=0,
        max_retries=3,
        retry_initial_delay=0.001,
        provider_mode="simulated",
        min_batch_size=1,
    )


async def _seeded_storage(engine) -> Storage:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_maker = build_session_maker(engine)
    async with session_maker() as session:
        session.add(User(id=1, username="tester", email="tester@example.com"))
        await session.commit()
    return Storage(session_maker)


@pytest.fixture
async def storage():
    """Storage backed by a fresh in-memory SQLite database."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    yield await _seeded_storage(engine)
    await engine.dispose()


@pytest.fixture
async def file_storage(tmp_path: Path):
    """
    Storage backed by a SQLite file.

    Each session gets its own connection, so concurrent callers do not share
    a transaction.
    """
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'jobs.db'}")
    yield await _seeded_storage(engine)
    await engine.dispose()


@pytest.fixture
def write_sheet(tmp_path: Path) -> Callable[..., Path]:
    """Write rows to a spreadsheet file and return its path."""

    def _write(rows: list[list[Any]], name: str = "profiles.xlsx") -> Path:
        path = tmp_path / name
        frame = pd.DataFrame(rows)
        if path.suffix == ".csv":
            frame.to_csv(path, header=False, index=False)
        else:
            frame.to_excel(path, header=False, index=False)
        return path

    return _write


@pytest.fixture
def sheet_of(write_sheet) -> Callable[[list[str]], Path]:
    """Spreadsheet with one profile URL per row."""

    def _sheet(urls: list[str]) -> Path:
        return write_sheet([[f"Person {i}", url] for i, url in enumerate(urls)])

    return _sheet
