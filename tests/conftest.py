# tests/conftest.py
import shutil
from pathlib import Path

import httpx
import pytest
import pytest_asyncio

from api.shared.entities.registry import BaseEntity
from core.settings import (
    AppSettings,
    DatabaseSettings,
    LifecycleSettings,
    LLMSettings,
    Settings,
)
from infra.resources import DatabaseResource, HttpClientResource
from infra.scheduler import PurgeScheduler

UPSTREAM_URL = "http://upstream.test/complete"


@pytest.fixture(autouse=True)
def isolate_fs(tmp_path: Path, monkeypatch):
    """Prevent tests from accidentally touching real project files."""
    monkeypatch.chdir(tmp_path)
    yield
    # cleanup
    shutil.rmtree(tmp_path, ignore_errors=True)


@pytest.fixture
def database_url(tmp_path: Path) -> str:
    return f"sqlite+aiosqlite:///{tmp_path / 'test.db'}"


@pytest_asyncio.fixture
async def database(database_url):
    """Initialized SQLite store with the schema in place."""
    resource = DatabaseResource(database_url)
    await resource.init()
    await resource.create_schema(BaseEntity.metadata)
    yield resource
    await resource.shutdown()


@pytest_asyncio.fixture
async def db_session(database):
    session = database.get_session()
    yield session
    await session.close()


@pytest_asyncio.fixture
async def scheduler():
    purge_scheduler = PurgeScheduler()
    yield purge_scheduler
    await purge_scheduler.shutdown()


def http_resource(handler) -> HttpClientResource:
    """HTTP client resource answering every request with `handler`."""
    return HttpClientResource(timeout_seconds=1.0, transport=httpx.MockTransport(handler))


def completion_handler(completion: str = "hi there", status_code: int = 200):
    """Upstream stub: POSTs get `completion`, GETs (probes) get 200."""
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        if request.method == "GET":
            return httpx.Response(200, json={"status": "ok"})
        calls.append(request)
        if status_code >= 400:
            return httpx.Response(status_code, json={"error": "boom"})
        return httpx.Response(200, json={"completion": completion})

    handler.calls = calls
    return handler


def make_settings(database_url: str, **lifecycle) -> Settings:
    return Settings(
        APP=AppSettings(ENVIRONMENT="test"),
        DATABASE=DatabaseSettings(DATABASE_URL=database_url, DATABASE_AUTO_CREATE=True),
        LLM=LLMSettings(
            LLM_PROVIDER="mock",
            LLM_URL=UPSTREAM_URL,
            LLM_TIMEOUT_SECONDS=1.0,
            LLM_BACKOFF_BASE_SECONDS=0.0,
        ),
        LIFECYCLE=LifecycleSettings(**{"PURGE_DELAY_SECONDS": 0.2, **lifecycle}),
    )
