import pytest
from hypothesis import given, strategies as st

from snapshots.errors import InvalidTimeframe
from snapshots.timeframes import Timeframe, timeframe_id, timeframe_name


@given(tid=st.sampled_from([tf.value for tf in Timeframe]))
def test_id_name_round_trip(tid):
    assert timeframe_id(timeframe_name(tid)) == tid


@given(name=st.text().filter(lambda s: s not in Timeframe.__members__))
def test_unknown_names_are_rejected(name):
    with pytest.raises(InvalidTimeframe):
        timeframe_id(name)


@given(tid=st.integers().filter(lambda i: i not in (0, 1, 2)))
def test_unknown_ids_are_rejected(tid):
    with pytest.raises(InvalidTimeframe):
        timeframe_name(tid)
