import logging
LOGGER = logging.getLogger(__name__)

from datetime import datetime

from snapshots.entities import Entity, RankedEntity, Snapshot, TimeBuckets
from snapshots.errors import MissingResolution
from snapshots.timeframes import EntityType


def assemble(captured_at: datetime,
             rankings: dict[EntityType, TimeBuckets[RankedEntity]],
             resolved: dict[EntityType, dict[str, Entity]]) -> Snapshot:
    """Put resolved entities back in their timeframe buckets, in rank order."""
    out = {entity_type: TimeBuckets() for entity_type in EntityType}

    for entity_type, buckets in rankings.items():
        lookup = resolved.get(entity_type, {})

        for timeframe, ranked in buckets.items():
            for entry in sorted(ranked, key=lambda r: r.rank):
                if (entity := lookup.get(entry.spotify_id)) is None:
                    raise MissingResolution(f"No resolved {entity_type.value} for '{entry.spotify_id}'",
                                            entity_type=entity_type.value,
                                            timeframe=timeframe.name,
                                            rank=entry.rank)
                out[entity_type].add(timeframe, entity)

    return Snapshot(captured_at=captured_at,
                    tracks=out[EntityType.tracks],
                    artists=out[EntityType.artists])


def resolve_and_assemble(resolver, captured_at: datetime,
                         rankings: dict[EntityType, TimeBuckets[RankedEntity]]) -> Snapshot:
    """Read path for stored history: ranked ids -> resolver -> snapshot."""
    ids = {entity_type: [r.spotify_id for _, bucket in buckets.items() for r in bucket]
           for entity_type, buckets in rankings.items()}
    entities = resolver.resolve_many(ids)

    resolved = {entity_type: dict(zip(ids[entity_type], entities[entity_type]))
                for entity_type in ids}
    LOGGER.debug(f"Resolved {sum(len(r) for r in resolved.values())} distinct entities for assembly.")

    return assemble(captured_at, rankings, resolved)
