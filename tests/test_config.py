import importlib

from odyscape_rec import config


def test_env_overrides_and_validation(monkeypatch):
    monkeypatch.setenv("ODYSCAPE_HTTP_TIMEOUT", "12.5")
    monkeypatch.setenv("ODYSCAPE_REQUEST_DELAY", "-1")  # should clamp to min
    monkeypatch.setenv("ODYSCAPE_MAX_CONCURRENT", "0")  # min clamp

    cfg = importlib.reload(config)

    assert cfg.HTTP_TIMEOUT == 12.5
    assert cfg.DEFAULT_REQUEST_DELAY == 0.0
    assert cfg.DEFAULT_MAX_CONCURRENT == 1


def test_db_path_and_tmdb_settings_respect_env(monkeypatch, tmp_path):
    db_path = tmp_path / "custom.db"
    monkeypatch.setenv("ODYSCAPE_DB", str(db_path))
    monkeypatch.setenv("TMDB_API_KEY", "secret")
    monkeypatch.setenv("TMDB_BASE_URL", "https://tmdb.test/3")

    cfg = importlib.reload(config)

    assert cfg.DB_PATH == db_path
    assert cfg.TMDB_API_KEY == "secret"
    assert cfg.TMDB_BASE_URL == "https://tmdb.test/3"


def test_invalid_env_values_fall_back_to_defaults(monkeypatch):
    monkeypatch.setenv("ODYSCAPE_HTTP_TIMEOUT", "not-a-float")
    monkeypatch.setenv("ODYSCAPE_REQUEST_DELAY", "oops")
    monkeypatch.setenv("ODYSCAPE_MAX_CONCURRENT", "bad-int")

    cfg = importlib.reload(config)

    assert cfg.HTTP_TIMEOUT == 30.0
    assert cfg.DEFAULT_REQUEST_DELAY == 0.0
    assert cfg.DEFAULT_MAX_CONCURRENT == 5


def test_every_level_profile_maps_to_discover_filters():
    from odyscape_rec.tmdb import DiscoverFilters

    for level, profile in config.LEVEL_PROFILES.items():
        filters = DiscoverFilters(**profile)
        assert filters.sort_by, level
