import json
import logging
import sys
from types import SimpleNamespace

import pytest

from conftest import FakeProvider, movie
from odyscape_rec import cli


def test_validate_username():
    assert cli._validate_username("alice") == "alice"
    # Username should be sanitized to lowercase alphanumeric/underscore/hyphen
    assert cli._validate_username("Bad Name!") == "badname"
    with pytest.raises(ValueError):
        cli._validate_username("!!!")


def test_main_dispatches_to_subcommand(monkeypatch):
    called = {}

    def fake_stats(args):
        called["command"] = args.command

    monkeypatch.setattr(cli, "cmd_stats", fake_stats)
    monkeypatch.setattr(sys, "argv", ["prog", "stats"])

    cli.main()

    assert called["command"] == "stats"


def test_cli_parses_preference_args(monkeypatch):
    captured = {}

    def fake_onboard(args):
        captured["prefs"] = cli._preferences_from_args(args)
        captured["format"] = args.format

    monkeypatch.setattr(cli, "cmd_onboard", fake_onboard)
    monkeypatch.setattr(
        sys,
        "argv",
        ["prog", "onboard", "alice", "--genres", "28", "12", "--languages", "ko", "--country", "kr", "--format", "json"],
    )

    cli.main()

    prefs = captured["prefs"]
    assert prefs.genres == [28, 12]
    assert prefs.languages == ["ko"]
    assert prefs.country == "KR"
    assert prefs.favorite_movies == []
    assert captured["format"] == "json"


def test_interaction_commands_update_store(fresh_db):
    db = fresh_db
    cli.cmd_add_user(SimpleNamespace(username="alice"))

    cli.cmd_rate(SimpleNamespace(username="alice", movie_id=10, rating=8))
    cli.cmd_like(SimpleNamespace(username="alice", movie_id=10, remove=False))
    cli.cmd_watch(SimpleNamespace(username="alice", movie_id=11, remove=False))
    cli.cmd_watchlist(SimpleNamespace(username="alice", movie_id=12, remove=False))

    user = db.get_user_by_username("alice")
    assert db.get_user_ratings(user.id) == [{"movie_id": 10, "rating": 8}]
    assert db.get_user_likes(user.id) == [10]
    assert db.get_watched_movies(user.id) == [11]
    assert db.get_user_watchlist(user.id) == [12]
    assert user.experience_points == 7 + 3 + 5


def test_unknown_user_exits(fresh_db):
    with pytest.raises(SystemExit):
        cli.cmd_profile(SimpleNamespace(username="ghost"))


def test_add_user_twice_exits(fresh_db):
    cli.cmd_add_user(SimpleNamespace(username="alice"))
    with pytest.raises(SystemExit):
        cli.cmd_add_user(SimpleNamespace(username="alice"))


def _patch_provider(monkeypatch, provider):
    class _Ctx:
        async def __aenter__(self):
            return provider

        async def __aexit__(self, *exc):
            return False

    monkeypatch.setattr(cli, "_make_client", lambda: _Ctx())


def test_recommend_generates_when_empty_and_prints_json(fresh_db, monkeypatch, caplog):
    db = fresh_db
    cli.cmd_add_user(SimpleNamespace(username="alice"))
    _patch_provider(monkeypatch, FakeProvider(discover=lambda f: [movie(3), movie(1)]))

    with caplog.at_level(logging.INFO, logger=cli.logger.name):
        cli.cmd_recommend(SimpleNamespace(username="alice", limit=5, format="json"))

    payload = json.loads(caplog.records[-1].getMessage())
    assert [row["movie_id"] for row in payload] == [1, 3]
    assert len(db.get_user_recommendations(db.get_user_by_username("alice").id)) == 2


def test_onboard_saves_preferences_and_reports_ids(fresh_db, monkeypatch, caplog):
    db = fresh_db
    cli.cmd_add_user(SimpleNamespace(username="alice"))
    _patch_provider(monkeypatch, FakeProvider(discover=lambda f: [movie(42)]))

    args = SimpleNamespace(
        username="alice", genres=[28], languages=None, favorites=[603], country=None, format="json",
    )
    with caplog.at_level(logging.INFO, logger=cli.logger.name):
        cli.cmd_onboard(args)

    assert json.loads(caplog.records[-1].getMessage()) == {"movieIds": [42]}
    prefs = db.get_user_by_username("alice").preferences
    assert prefs.genres == [28]
    assert prefs.favorite_movies == [603]


def test_generate_all_covers_every_user(fresh_db, monkeypatch):
    db = fresh_db
    for name in ("alice", "bob"):
        cli.cmd_add_user(SimpleNamespace(username=name))
    _patch_provider(monkeypatch, FakeProvider(discover=lambda f: [movie(1)]))

    cli.cmd_generate_all(SimpleNamespace())

    for name in ("alice", "bob"):
        user = db.get_user_by_username(name)
        assert [r["movie_id"] for r in db.get_user_recommendations(user.id)] == [1]


def test_challenge_start_and_listing(fresh_db, caplog):
    db = fresh_db
    cli.cmd_add_user(SimpleNamespace(username="alice"))
    beginner = db.get_challenges("Beginner")[0]

    cli.cmd_challenge_start(SimpleNamespace(username="alice", challenge_id=beginner.id))

    user = db.get_user_by_username("alice")
    assert [uc.challenge.id for uc in db.get_user_challenges(user.id)] == [beginner.id]

    with caplog.at_level(logging.INFO, logger=cli.logger.name):
        cli.cmd_challenges(SimpleNamespace(username="alice"))

    listed = [r.getMessage() for r in caplog.records if f"[{beginner.id}]" in r.getMessage()]
    assert len(listed) == 1
    assert f"0/{beginner.required_count}" in listed[0]


def test_challenge_start_unknown_id_exits(fresh_db):
    cli.cmd_add_user(SimpleNamespace(username="alice"))
    with pytest.raises(SystemExit):
        cli.cmd_challenge_start(SimpleNamespace(username="alice", challenge_id=9999))
