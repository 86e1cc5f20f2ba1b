import pytest
from hypothesis import given, settings

from snapshots.acquirer import acquire_snapshot
from snapshots.errors import UpstreamError
from snapshots.spotify import SpotifyCatalog
from snapshots.timeframes import grid, time_range

from tests.mocks.spotify import FakeSpotify, server_error
from tests.strategies.apis import cell_strat, top_lists_strat


@given(top=top_lists_strat())
@settings(max_examples=50, deadline=None)
def test_every_bucket_present_and_in_upstream_order(top):
    snapshot = acquire_snapshot("token", catalog=SpotifyCatalog(FakeSpotify(top=top)))

    for entity_type, timeframe in grid():
        bucket = snapshot.buckets(entity_type)[timeframe]
        assert [e.id for e in bucket] == top[(entity_type.value, time_range(timeframe))]


@given(top=top_lists_strat(), cell=cell_strat)
@settings(max_examples=50, deadline=None)
def test_one_failing_cell_fails_the_whole_snapshot(top, cell):
    entity_type, timeframe = cell
    sp = FakeSpotify(top=top, fail={("top", entity_type.value, time_range(timeframe)): server_error()})

    with pytest.raises(UpstreamError) as e:
        acquire_snapshot("token", catalog=SpotifyCatalog(sp))

    assert e.value.context["entity_type"] == entity_type.value
    assert e.value.context["timeframe"] == timeframe.name
