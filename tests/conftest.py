import importlib
import sys
from pathlib import Path

import pytest

# Ensure the package under test is importable without installation
PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_PATH = PROJECT_ROOT / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

from odyscape_rec.tmdb import MovieSummary, TMDBError  # noqa: E402


@pytest.fixture
def fresh_config(monkeypatch, tmp_path):
    """
    Reload config with a temporary database path to keep tests isolated.
    """
    db_path = tmp_path / "test.db"
    monkeypatch.setenv("ODYSCAPE_DB", str(db_path))
    import odyscape_rec.config as config

    importlib.reload(config)
    return config


@pytest.fixture
def fresh_db(monkeypatch, tmp_path):
    """
    Reload config/database modules with a temp DB and cleanly close the pool after use.
    """
    db_path = tmp_path / "test.db"
    monkeypatch.setenv("ODYSCAPE_DB", str(db_path))

    import odyscape_rec.config as config
    import odyscape_rec.database as database

    importlib.reload(config)
    importlib.reload(database)
    # Rebind cli's names so it catches the reloaded database's exception classes
    if "odyscape_rec.cli" in sys.modules:
        importlib.reload(sys.modules["odyscape_rec.cli"])
    database.init_db()

    yield database
    database.close_pool()


def movie(movie_id: int, genre_ids=None, language: str = "en") -> MovieSummary:
    return MovieSummary(
        id=movie_id,
        title=f"Movie {movie_id}",
        vote_average=7.0,
        vote_count=500,
        popularity=10.0,
        release_date="2020-01-01",
        original_language=language,
        genre_ids=list(genre_ids or []),
    )


class FakeProvider:
    """
    In-memory stand-in for TMDBClient.

    discover() answers from a callable so tests can route on filters;
    every call is recorded for assertions.
    """

    def __init__(self, discover=None, trending=None, similar=None, popular=None):
        self._discover = discover or (lambda filters: [])
        self._trending = trending if trending is not None else []
        self._similar = similar or {}
        self._popular = popular if popular is not None else []
        self.discover_calls = []
        self.similar_calls = []
        self.trending_calls = 0
        self.popular_calls = 0

    async def discover(self, filters):
        self.discover_calls.append(filters)
        result = self._discover(filters)
        if isinstance(result, Exception):
            raise result
        return result

    async def trending(self, period="week"):
        self.trending_calls += 1
        if isinstance(self._trending, Exception):
            raise self._trending
        return self._trending

    async def similar(self, movie_id, page=1):
        self.similar_calls.append(movie_id)
        result = self._similar.get(movie_id, [])
        if isinstance(result, Exception):
            raise result
        return result

    async def popular(self, page=1):
        self.popular_calls += 1
        if isinstance(self._popular, Exception):
            raise self._popular
        return self._popular


@pytest.fixture
def provider_error():
    return TMDBError("upstream unavailable")
