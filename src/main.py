import sys
import os

if "-t" in sys.argv or "--test" in sys.argv:
    os.environ["TEST_MODE"] = "true"

from dotenv import load_dotenv
load_dotenv()

import logging
from logger import setup_logging, parse_level

log_level = logging.INFO
if "-ll" in sys.argv:
    idx = sys.argv.index("-ll") + 1
    if idx >= len(sys.argv): raise ValueError("Expected log level value after -ll, one of ([d]ebug, [i]nfo, [w]arning, [e]rror).")
    log_level = parse_level(sys.argv[idx])
setup_logging(console_level=log_level)

LOGGER = logging.getLogger(__name__)
import traceback
import asyncio
import json

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from db import get_db_manager
from snapshots.cache import get_cache
from snapshots.errors import FetchError
from snapshots.resolver import CacheBackedResolver
from snapshots.spotify import SpotifyCatalog
from snapshots.store import get_current_stats
from snapshots.update import update_user


async def run_update():
    try:
        LOGGER.info(await update_user())
    except FetchError as e:
        # The next scheduled cycle is the retry.
        LOGGER.error(f"Update cycle failed ({e.kind}): {e}")
    except Exception:
        LOGGER.error(f"Update cycle crashed: {traceback.format_exc()}")


async def print_stats(spotify_id: str):
    resolver = CacheBackedResolver(SpotifyCatalog.for_app(), get_cache())
    try:
        snapshot = await get_current_stats(spotify_id, resolver)
    except FetchError as e:
        LOGGER.error(f"Could not load stats for '{spotify_id}' ({e.kind}): {e}")
        return

    if snapshot is None:
        LOGGER.warning(f"No stats for user '{spotify_id}'.")
        return

    print(json.dumps(snapshot.to_dict(), indent=2))


async def main():
    LOGGER.info("=== Top stats service starting ===")
    await get_db_manager().initialize()

    try:
        if "--stats" in sys.argv:
            idx = sys.argv.index("--stats") + 1
            if idx >= len(sys.argv): raise ValueError("Expected a Spotify user id after --stats.")
            await print_stats(sys.argv[idx])
            return

        if "--once" in sys.argv:
            await run_update()
            return

        interval = int(os.getenv("UPDATE_INTERVAL_MINUTES", "10"))
        scheduler = AsyncIOScheduler()
        scheduler.add_job(run_update, 'interval', minutes=interval, max_instances=1)
        scheduler.start()
        LOGGER.info(f"Updating one user every {interval} minutes.")

        try:
            await asyncio.Event().wait()
        finally:
            scheduler.shutdown()
    finally:
        await get_db_manager().cleanup()


if __name__ == "__main__":
    asyncio.run(main())
