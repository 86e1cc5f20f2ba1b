from dataclasses import dataclass, field, asdict
from datetime import datetime
from typing import Generic, Iterator, TypeVar

from snapshots.errors import InvalidTimeframe, UpstreamError
from snapshots.timeframes import EntityType, Timeframe, TIMEFRAMES, timeframe_name


Json = dict | list
T = TypeVar("T")


def _first_image(images: list[dict] | None) -> str | None:
    return images[0]["url"] if images else None


@dataclass(frozen=True)
class Track:
    id: str
    title: str
    artists: str
    preview_url: str | None
    album: str
    image_url: str | None

    @classmethod
    def from_spotify(cls, item: dict) -> "Track":
        try:
            return cls(id=item["id"],
                       title=item["name"],
                       artists=", ".join(a["name"] for a in item["artists"]),
                       preview_url=item.get("preview_url"),
                       album=item["album"]["name"],
                       image_url=_first_image(item["album"].get("images")))
        except (KeyError, TypeError) as e:
            raise UpstreamError(f"Malformed track payload: {e!r}",
                                spotify_id=_safe_id(item)) from e

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "Track":
        return cls(**data)


@dataclass(frozen=True)
class Artist:
    id: str
    name: str
    genres: tuple[str, ...]
    image_url: str | None
    uri: str

    @classmethod
    def from_spotify(cls, item: dict) -> "Artist":
        try:
            return cls(id=item["id"],
                       name=item["name"],
                       genres=tuple(item.get("genres") or ()),
                       image_url=_first_image(item.get("images")),
                       uri=item["uri"])
        except (KeyError, TypeError) as e:
            raise UpstreamError(f"Malformed artist payload: {e!r}",
                                spotify_id=_safe_id(item)) from e

    def to_dict(self) -> dict:
        return {**asdict(self), "genres": list(self.genres)}

    @classmethod
    def from_dict(cls, data: dict) -> "Artist":
        return cls(**{**data, "genres": tuple(data.get("genres", ()))})


def _safe_id(item) -> str | None:
    return item.get("id") if isinstance(item, dict) else None


Entity = Track | Artist
ENTITY_CLASSES: dict[EntityType, type[Track] | type[Artist]] = {
    EntityType.tracks: Track,
    EntityType.artists: Artist,
}


@dataclass(frozen=True)
class RankedEntity:
    spotify_id: str
    rank: int  # 0-based position in the upstream's response.


class TimeBuckets(Generic[T]):
    """
    One ordered list per timeframe. Lists may be empty but are never missing.

    Reads hand out tuples. Once frozen (a Snapshot freezes its buckets) nothing can be added.
    """

    def __init__(self):
        self._buckets: dict[Timeframe, list[T]] = {tf: [] for tf in TIMEFRAMES}
        self._frozen = False

    def freeze(self) -> "TimeBuckets[T]":
        self._frozen = True
        return self

    def _bucket(self, timeframe: Timeframe) -> list[T]:
        if self._frozen:
            raise TypeError("Frozen TimeBuckets can't be modified")
        return self._buckets[timeframe]

    def add(self, timeframe: Timeframe | str, item: T):
        if isinstance(timeframe, str):
            if timeframe not in Timeframe.__members__:
                raise InvalidTimeframe(f"Unknown timeframe '{timeframe}'", timeframe=timeframe)
            timeframe = Timeframe[timeframe]

        self._bucket(timeframe).append(item)

    def add_by_id(self, tid: int, item: T):
        self._bucket(Timeframe[timeframe_name(tid)]).append(item)

    def extend(self, timeframe: Timeframe, items: list[T]):
        self._bucket(timeframe).extend(items)

    def __getitem__(self, timeframe: Timeframe) -> tuple[T, ...]:
        return tuple(self._buckets[timeframe])

    def items(self) -> Iterator[tuple[Timeframe, tuple[T, ...]]]:
        return ((tf, tuple(b)) for tf, b in self._buckets.items())

    def __len__(self) -> int:
        return sum(len(b) for b in self._buckets.values())

    def __eq__(self, other) -> bool:
        return isinstance(other, TimeBuckets) and self._buckets == other._buckets

    def __repr__(self) -> str:
        sizes = ", ".join(f"{tf.name}={len(b)}" for tf, b in self._buckets.items())
        return f"TimeBuckets({sizes})"

    def to_dict(self) -> dict[str, list]:
        return {tf.name: [x.to_dict() if hasattr(x, "to_dict") else asdict(x) for x in bucket]
                for tf, bucket in self._buckets.items()}


@dataclass(frozen=True)
class Snapshot:
    captured_at: datetime
    tracks: TimeBuckets[Track] = field(default_factory=TimeBuckets)
    artists: TimeBuckets[Artist] = field(default_factory=TimeBuckets)

    def __post_init__(self):
        self.tracks.freeze()
        self.artists.freeze()

    def buckets(self, entity_type: EntityType) -> TimeBuckets:
        match entity_type:
            case EntityType.tracks: return self.tracks
            case EntityType.artists: return self.artists

    def rankings(self, entity_type: EntityType) -> TimeBuckets[RankedEntity]:
        ranked = TimeBuckets()
        for timeframe, entities in self.buckets(entity_type).items():
            ranked.extend(timeframe, [RankedEntity(e.id, rank) for rank, e in enumerate(entities)])

        return ranked

    def to_dict(self) -> Json:
        return {"last_update_time": self.captured_at.isoformat(),
                "tracks": self.tracks.to_dict(),
                "artists": self.artists.to_dict()}
