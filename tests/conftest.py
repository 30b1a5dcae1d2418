import fnmatch
import os

# Select the test settings profile before anything reads the settings
os.environ.setdefault("SETTINGS_MODE", "test")

import pytest
from fastapi.testclient import TestClient
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import TimeoutError as RedisTimeoutError
from sqlmodel import Session, create_engine, SQLModel
from sqlmodel.pool import StaticPool

import api.files.models  # noqa: F401  registers the files table
from api.files.repository import FileRecordRepository
from api.files.services import FileStorageService
from core.cache import CacheConfig, InMemoryCache, get_cache
from core.config import InMemoryDbSettings
from core.deps import get_db
from main import app


class FakeClock:
    """Manually advanced replacement for time.monotonic"""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


class MockRedisClient:
    """Mock redis.Redis client for testing"""

    def __init__(self):
        self.store = {}  # key -> bytes
        self.ttls = {}  # key -> seconds
        self.error_mode = None  # For simulating errors
        self.closed = False
        self.eval_calls = []

    def _check(self):
        if self.error_mode == "ConnectionError":
            raise RedisConnectionError("Connection refused")
        if self.error_mode == "TimeoutError":
            raise RedisTimeoutError("Timeout reading from socket")

    def get(self, key):
        self._check()
        return self.store.get(key)

    def setex(self, key, seconds, value):
        self._check()
        self.store[key] = value.encode("utf-8") if isinstance(value, str) else value
        self.ttls[key] = seconds
        return True

    def eval(self, script, numkeys, *keys_and_args):
        """Run RedisCache.PUT_IF_NEWER_SCRIPT, the only script this client knows"""
        self._check()
        self.eval_calls.append(script)
        key, version, value, seconds = keys_and_args
        current = self.store.get(key)
        if current is not None:
            if current == b"!":
                return 0
            if current.startswith(b"v"):
                cached = int(current[1:current.index(b"|")])
                if cached >= int(version):
                    return 0
        self.setex(key, int(seconds), value)
        return 1

    def delete(self, *keys):
        self._check()
        deleted = 0
        for key in keys:
            if key in self.store:
                del self.store[key]
                self.ttls.pop(key, None)
                deleted += 1
        return deleted

    def scan_iter(self, match=None):
        self._check()
        for key in list(self.store):
            if match is None or fnmatch.fnmatchcase(key, match):
                yield key

    def close(self):
        self.closed = True

    def simulate_error(self, error_type: str):
        """
        Configure client to raise specific errors

        Args:
            error_type: One of "ConnectionError", "TimeoutError"
        """
        self.error_mode = error_type


@pytest.fixture(name="test_settings")
def test_settings_fixture():
    """Settings profile used by the tests"""
    return InMemoryDbSettings(CACHE_DEFAULT_TTL=60)


@pytest.fixture(name="session")
def session_fixture():
    engine = create_engine(
        "sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool
    )
    SQLModel.metadata.create_all(engine)
    with Session(engine) as session:
        yield session
    SQLModel.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture(name="clock")
def clock_fixture():
    return FakeClock()


@pytest.fixture(name="cache")
def cache_fixture(clock: FakeClock):
    """In-memory cache with a 10 minute default TTL and a controllable clock"""
    return InMemoryCache(CacheConfig(), clock=clock)


@pytest.fixture(name="mock_redis_client")
def mock_redis_client_fixture():
    """Provide a mock Redis client for testing"""
    return MockRedisClient()


@pytest.fixture(name="repository")
def repository_fixture(session: Session):
    return FileRecordRepository(session)


@pytest.fixture(name="service")
def service_fixture(repository: FileRecordRepository, cache: InMemoryCache):
    return FileStorageService(repository, cache)


@pytest.fixture(name="client")
def client_fixture(session: Session, cache: InMemoryCache):
    def get_db_override():
        return session

    def get_cache_override():
        return cache

    app.dependency_overrides[get_db] = get_db_override
    app.dependency_overrides[get_cache] = get_cache_override

    client = TestClient(app)
    yield client
    app.dependency_overrides.clear()
