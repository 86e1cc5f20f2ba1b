import logging

import main
from snapshots.errors import CacheError


async def test_stats_read_failure_is_logged(monkeypatch, caplog, capsys):
    async def broken(spotify_id, resolver, session=None):
        raise CacheError("Cache read failed: connection refused", hash="tracks")

    monkeypatch.setattr(main.SpotifyCatalog, "for_app", classmethod(lambda cls: None))
    monkeypatch.setattr(main, "get_current_stats", broken)

    with caplog.at_level(logging.ERROR, logger="main"):
        await main.print_stats("holger")

    assert "Could not load stats for 'holger' (CacheError)" in caplog.text
    assert capsys.readouterr().out == ""


async def test_stats_for_unknown_user(monkeypatch, caplog, capsys):
    async def nothing(spotify_id, resolver, session=None):
        return None

    monkeypatch.setattr(main.SpotifyCatalog, "for_app", classmethod(lambda cls: None))
    monkeypatch.setattr(main, "get_current_stats", nothing)

    with caplog.at_level(logging.WARNING, logger="main"):
        await main.print_stats("nobody")

    assert "No stats for user 'nobody'" in caplog.text
    assert capsys.readouterr().out == ""
