import logging
LOGGER = logging.getLogger(__name__)

from datetime import datetime, timezone

from snapshots.cache import EntityCache
from snapshots.entities import Snapshot, TimeBuckets
from snapshots.errors import FetchError
from snapshots.fanout import fan_out
from snapshots.spotify import SpotifyCatalog
from snapshots.timeframes import EntityType, grid


def acquire_snapshot(access_token: str, *, catalog: SpotifyCatalog | None = None) -> Snapshot:
    """
    Fetch the user's current top tracks and artists for every timeframe.

    One request per (entity type, timeframe) cell, all six in flight at once. Any failing cell
    fails the whole acquisition: a snapshot with a missing timeframe would corrupt the rankings
    stored downstream. Retrying is up to the caller.
    """
    catalog = catalog or SpotifyCatalog.for_user(access_token)
    cells = grid()

    LOGGER.debug(f"Kicking off {len(cells)} top item requests.")
    tasks = {(entity_type, timeframe): (lambda e=entity_type, t=timeframe: catalog.top_items(e, t))
             for entity_type, timeframe in cells}

    try:
        results = fan_out(tasks, max_workers=len(cells))
    except FetchError as e:
        LOGGER.error(f"Snapshot acquisition failed: {e}")
        raise

    buckets = {entity_type: TimeBuckets() for entity_type in EntityType}
    for entity_type, timeframe in cells:  # Grid order, not completion order.
        buckets[entity_type].extend(timeframe, results[(entity_type, timeframe)])

    snapshot = Snapshot(captured_at=datetime.now(timezone.utc),
                        tracks=buckets[EntityType.tracks],
                        artists=buckets[EntityType.artists])

    LOGGER.info(f"Acquired snapshot with {len(snapshot.tracks)} tracks " \
                f"and {len(snapshot.artists)} artists.")
    return snapshot


def warm_cache(snapshot: Snapshot, cache: EntityCache) -> int:
    """Top item responses carry full records, store them so the next read path starts warm."""
    n = 0
    for entity_type in EntityType:
        records = {e.id: e for _, bucket in snapshot.buckets(entity_type).items() for e in bucket}
        cache.set_many(entity_type, records)
        n += len(records)

    LOGGER.debug(f"Cached {n} acquired records.")
    return n
