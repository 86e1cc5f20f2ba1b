import os
os.environ["TEST_MODE"] = "true"

import pytest

from db import DatabaseManager, get_db_manager
from snapshots.cache import InMemoryCache
from snapshots.resolver import CacheBackedResolver
from snapshots.spotify import SpotifyCatalog
from tests.mocks.spotify import FakeSpotify


@pytest.fixture
def fake_spotify() -> FakeSpotify:
    return FakeSpotify()

@pytest.fixture
def catalog(fake_spotify) -> SpotifyCatalog:
    return SpotifyCatalog(fake_spotify)

@pytest.fixture
def cache() -> InMemoryCache:
    return InMemoryCache()

@pytest.fixture
def resolver(catalog, cache) -> CacheBackedResolver:
    return CacheBackedResolver(catalog, cache, batch_limit=2)


@pytest.fixture
async def test_db(tmp_path, monkeypatch):
    """Fresh sqlite database per test, wired into the global DatabaseManager."""
    monkeypatch.setenv("DATABASE_URL", f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    await DatabaseManager.cleanup_all_instances()

    db_manager = get_db_manager()
    await db_manager.create_tables()

    yield db_manager

    await DatabaseManager.cleanup_all_instances()
