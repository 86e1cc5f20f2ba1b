from enum import Enum

from snapshots.errors import InvalidTimeframe


class EntityType(Enum):
    tracks = "tracks"
    artists = "artists"

class Timeframe(Enum):  # Value is the id stored in the history tables.
    short = 0
    medium = 1
    long = 2


ENTITY_TYPES = tuple(EntityType)
TIMEFRAMES = tuple(Timeframe)


def timeframe_id(name: str) -> int:
    try:
        return Timeframe[name].value
    except KeyError:
        raise InvalidTimeframe(f"Tried to convert invalid timeframe to id: '{name}'",
                               timeframe=name) from None

def timeframe_name(tid: int) -> str:
    try:
        return Timeframe(tid).name
    except ValueError:
        raise InvalidTimeframe(f"Tried to convert invalid timeframe id to name: {tid}",
                               timeframe_id=tid) from None

def time_range(timeframe: Timeframe) -> str:
    """The upstream's name for the window, e.g. 'short_term'."""
    return f"{timeframe.name}_term"

def grid() -> list[tuple[EntityType, Timeframe]]:
    return [(entity_type, timeframe)
            for entity_type in ENTITY_TYPES
            for timeframe in TIMEFRAMES]
