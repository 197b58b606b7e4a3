"""Pytest fixtures for async FastAPI testing.

Loads `.env.test` before any app module reads settings, initializes a clean
SQLite database once per session and provides an `AsyncClient` bound to the
app. Redis (cache and job registry) and the Celery email task are replaced by
in-memory fakes so tests need neither a broker nor an SMTP server.
"""
import fnmatch
import pathlib
import uuid

import pytest
from dotenv import load_dotenv

ROOT = pathlib.Path(__file__).resolve().parent.parent
load_dotenv(dotenv_path=str(ROOT / ".env.test"), override=True)


class MockRedis:
    """The subset of redis.asyncio used by RedisCache."""

    def __init__(self):
        self.store = {}

    async def get(self, key):
        return self.store.get(key)

    async def set(self, key, value, ex=None):
        self.store[key] = value

    async def scan_iter(self, match="*"):
        for key in list(self.store):
            if fnmatch.fnmatch(key, match):
                yield key

    async def delete(self, *keys):
        for key in keys:
            self.store.pop(key, None)

    async def close(self):
        pass


class MockPipeline:
    def __init__(self, client):
        self.client = client
        self.ops = []

    def lpush(self, key, value):
        self.ops.append(("lpush", key, value))

    def ltrim(self, key, start, end):
        self.ops.append(("ltrim", key, start, end))

    def execute(self):
        for op in self.ops:
            if op[0] == "lpush":
                self.client.lists.setdefault(op[1], []).insert(0, op[2])
            else:
                items = self.client.lists.get(op[1], [])
                self.client.lists[op[1]] = items[op[2]:op[3] + 1]
        self.ops = []


class MockSyncRedis:
    """The subset of the sync redis client used by the job registry."""

    def __init__(self):
        self.lists = {}

    def pipeline(self):
        return MockPipeline(self)

    def lrange(self, key, start, end):
        return self.lists.get(key, [])[start:end + 1]


class FakeAsyncResult:
    def __init__(self, job_id):
        self.id = job_id


@pytest.fixture(scope="session")
def prepare_database():
    """Create clean schema for the test session."""
    from app.core.database import engine, Base

    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)

    yield

    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db_session(prepare_database):
    """Yield a SQLAlchemy session for direct DB access in tests."""
    from app.core.database import SessionLocal

    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def sent_emails():
    return []


@pytest.fixture(autouse=True)
def mock_infrastructure(monkeypatch, sent_emails):
    """Swap Redis and the email queue for in-memory fakes."""
    from app.cache import job_registry
    from app.cache.cache_service import redis_cache
    from app.dependencies.rate_limit import reset_buckets
    from app.tasks import email_tasks

    monkeypatch.setattr(redis_cache, "redis", MockRedis())
    sync_client = MockSyncRedis()
    monkeypatch.setattr(job_registry, "get_client", lambda: sync_client)

    def fake_delay(to, subject, html):
        sent_emails.append({"to": to, "subject": subject, "html": html})
        return FakeAsyncResult(str(uuid.uuid4()))

    monkeypatch.setattr(email_tasks.send_email_task, "delay", fake_delay)
    reset_buckets()
    yield


@pytest.fixture
async def async_client(prepare_database):
    """Provide an httpx AsyncClient configured with the FastAPI app."""
    from httpx import ASGITransport, AsyncClient
    from app.main import create_app

    app = create_app()

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://testserver") as client:
        yield client
