import logging
LOGGER = logging.getLogger(__name__)

import asyncio
import os
from datetime import datetime, timedelta, timezone

from snapshots.acquirer import acquire_snapshot, warm_cache
from snapshots.cache import EntityCache, get_cache
from snapshots.spotify import SpotifyCatalog, refresh_user_token
from snapshots.store import (
    as_utc, least_recently_updated_user, set_user_token, store_snapshot, upsert_user
)
from models import User


def min_update_interval() -> timedelta:
    return timedelta(seconds=int(os.getenv("MIN_UPDATE_INTERVAL_SECONDS", "3600")))


async def update_user(interval: timedelta | None = None, *, refresh=refresh_user_token,
                      acquire=acquire_snapshot, cache: EntityCache | None = None) -> str:
    """
    Refresh the least recently updated user and, if their last capture is old enough,
    store a new snapshot for them. Meant to be called periodically.
    """
    interval = interval if interval is not None else min_update_interval()

    user = await least_recently_updated_user()
    if user is None:
        LOGGER.info("No users to update.")
        return "No users to update."

    token = await asyncio.to_thread(refresh, user.refresh_token)
    await set_user_token(user, token)

    since = datetime.now(timezone.utc) - as_utc(user.last_update_time)
    if since < interval:
        msg = f"{since} since last update; not updating anything right now."
        LOGGER.info(msg)
        return msg
    LOGGER.info(f"{since} since last update of {user.username}; proceeding with update.")

    snapshot = await asyncio.to_thread(acquire, token)
    await store_snapshot(user, snapshot)
    await asyncio.to_thread(warm_cache, snapshot, cache if cache is not None else get_cache())

    return f"Successfully updated user {user.username}"


async def register_user(access_token: str, refresh_token: str, *,
                        catalog: SpotifyCatalog | None = None, acquire=acquire_snapshot,
                        cache: EntityCache | None = None) -> User:
    """Add (or re-authorize) a user from freshly exchanged tokens and store their first snapshot."""
    catalog = catalog or SpotifyCatalog.for_user(access_token)

    profile = await asyncio.to_thread(catalog.current_user)
    username = profile.get("display_name") or profile["id"]
    user = await upsert_user(profile["id"], username, access_token, refresh_token)
    LOGGER.info(f"User record ready: {user.username} (ID: {user.user_id})")

    snapshot = await asyncio.to_thread(acquire, access_token)
    await store_snapshot(user, snapshot)
    await asyncio.to_thread(warm_cache, snapshot, cache if cache is not None else get_cache())

    return user
