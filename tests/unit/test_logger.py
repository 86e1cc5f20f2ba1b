import logging

import pytest

from logger import NoisyFilter, parse_level


def _record(name: str, level: int) -> logging.LogRecord:
    return logging.LogRecord(name, level, __file__, 1, "msg", None, None)


@pytest.mark.parametrize("value, level", [("d", logging.DEBUG), ("INFO", logging.INFO),
                                          ("w", logging.WARNING), ("error", logging.ERROR)])
def test_parse_level(value, level):
    assert parse_level(value) == level

def test_parse_level_rejects_garbage():
    with pytest.raises(ValueError):
        parse_level("loud")


def test_noisy_filter():
    f = NoisyFilter(logging.WARNING)

    assert not f.filter(_record("sqlalchemy.engine.Engine", logging.INFO))
    assert f.filter(_record("spotipy.client", logging.ERROR))
    assert f.filter(_record("snapshots.resolver", logging.DEBUG))
