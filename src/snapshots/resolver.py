import logging
LOGGER = logging.getLogger(__name__)

from snapshots.cache import EntityCache
from snapshots.entities import Entity
from snapshots.errors import CacheError, FetchError, UpstreamError
from snapshots.fanout import fan_out
from snapshots.spotify import BATCH_LIMIT, SpotifyCatalog
from snapshots.timeframes import EntityType


class CacheBackedResolver:
    """
    Turns bare Spotify ids into full entities, going to Spotify only for what the cache lacks.

    Output is positionally aligned with the input: resolve(t, ids)[i] is the entity for ids[i],
    duplicates included. Misses are fetched in chunks of at most `batch_limit` ids, chunks run
    concurrently and each one writes its records to the cache as soon as it has them. One failed
    chunk fails the whole call, but cache writes of chunks that already succeeded are kept.
    """

    def __init__(self, catalog: SpotifyCatalog, cache: EntityCache,
                 batch_limit: int = BATCH_LIMIT, max_workers: int = 4):
        assert 0 < batch_limit <= BATCH_LIMIT, f"batch_limit must be in 1..{BATCH_LIMIT}, got {batch_limit}"
        self.catalog = catalog
        self.cache = cache
        self.batch_limit = batch_limit
        self.max_workers = max_workers

    def _fetch_chunk(self, entity_type: EntityType, n: int,
                     chunk: list[tuple[int, str]]) -> list[tuple[int, Entity]]:
        ids = [spotify_id for _, spotify_id in chunk]
        try:
            records = self.catalog.lookup(entity_type, ids)

            if len(records) != len(ids):
                raise UpstreamError("Batch lookup returned a different number of records than requested",
                                    n_ids=len(ids), n_records=len(records))

            self.cache.set_many(entity_type, dict(zip(ids, records)))
        except FetchError as e:
            raise e.with_context(chunk=n)

        return [(i, record) for (i, _), record in zip(chunk, records)]

    def resolve(self, entity_type: EntityType, spotify_ids: list[str]) -> list[Entity]:
        if not spotify_ids:
            return []

        cached = self.cache.get_many(entity_type, spotify_ids)
        if len(cached) != len(spotify_ids):
            raise CacheError("Cache lookup did not line up with the requested ids",
                             entity_type=entity_type.value,
                             n_ids=len(spotify_ids), n_values=len(cached))

        misses = [(i, spotify_id) for i, (spotify_id, hit) in enumerate(zip(spotify_ids, cached))
                  if hit is None]
        LOGGER.debug(f"Resolving {len(spotify_ids)} {entity_type.value}: " \
                     f"{len(spotify_ids) - len(misses)} cached, {len(misses)} to fetch.")
        if not misses:
            return list(cached)

        chunks = [misses[i:i + self.batch_limit] for i in range(0, len(misses), self.batch_limit)]
        tasks = {n: (lambda n=n, c=chunk: self._fetch_chunk(entity_type, n, c))
                 for n, chunk in enumerate(chunks)}

        try:
            results = fan_out(tasks, self.max_workers)
        except FetchError as e:
            e.with_context(entity_type=entity_type.value, n_chunks=len(chunks))
            LOGGER.error(f"Resolving {entity_type.value} failed: {e}")
            raise

        fetched = {i: record for pairs in results.values() for i, record in pairs}
        return [hit if hit is not None else fetched[i] for i, hit in enumerate(cached)]

    def resolve_many(self, requests: dict[EntityType, list[str]]) -> dict[EntityType, list[Entity]]:
        return {entity_type: self.resolve(entity_type, ids) for entity_type, ids in requests.items()}
