import math

from hypothesis import given, settings

from snapshots.cache import InMemoryCache
from snapshots.entities import Track
from snapshots.resolver import CacheBackedResolver
from snapshots.spotify import SpotifyCatalog
from snapshots.timeframes import EntityType

from tests.mocks.spotify import FakeSpotify, track_item
from tests.strategies.apis import resolve_case_strat


def _setup(cached: set[str], batch_limit: int):
    sp = FakeSpotify()
    cache = InMemoryCache()
    cache.set_many(EntityType.tracks, {i: Track.from_spotify(track_item(i)) for i in cached})

    return sp, cache, CacheBackedResolver(SpotifyCatalog(sp), cache, batch_limit=batch_limit)


@given(case=resolve_case_strat())
@settings(max_examples=150, deadline=None)
def test_resolve_is_positionally_aligned(case):
    """resolve(ids)[i] is always the entity for ids[i], duplicates and partial hits included."""
    ids, cached, batch_limit = case
    _, _, resolver = _setup(cached, batch_limit)

    out = resolver.resolve(EntityType.tracks, ids)

    assert len(out) == len(ids)
    assert [t.id for t in out] == ids
    assert out == [Track.from_spotify(track_item(i)) for i in ids]


@given(case=resolve_case_strat())
@settings(max_examples=100, deadline=None)
def test_fully_cached_input_never_hits_spotify(case):
    ids, _, batch_limit = case
    sp, _, resolver = _setup(set(ids), batch_limit)

    resolver.resolve(EntityType.tracks, ids)

    assert sp.batch_calls == []


@given(case=resolve_case_strat())
@settings(max_examples=100, deadline=None)
def test_cold_cache_batches_every_id_and_fills_cache(case):
    ids, _, batch_limit = case
    sp, cache, resolver = _setup(set(), batch_limit)

    resolver.resolve(EntityType.tracks, ids)

    assert len(sp.batch_calls) == math.ceil(len(ids) / batch_limit)
    assert all(len(batch) <= batch_limit for _, batch in sp.batch_calls)
    assert sorted(i for _, batch in sp.batch_calls for i in batch) == sorted(ids)
    assert None not in cache.get_many(EntityType.tracks, ids)


@given(case=resolve_case_strat())
@settings(max_examples=100, deadline=None)
def test_only_misses_are_requested(case):
    ids, cached, batch_limit = case
    sp, _, resolver = _setup(cached, batch_limit)

    resolver.resolve(EntityType.tracks, ids)

    requested = [i for _, batch in sp.batch_calls for i in batch]
    assert sorted(requested) == sorted(i for i in ids if i not in cached)
