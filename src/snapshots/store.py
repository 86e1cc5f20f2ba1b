import logging
LOGGER = logging.getLogger(__name__)

import asyncio
import functools
from datetime import datetime, timezone

from sqlalchemy import select, update

from db import get_session
from models import User, TrackHistory, ArtistHistory
from snapshots.assembler import resolve_and_assemble
from snapshots.entities import RankedEntity, Snapshot, TimeBuckets
from snapshots.timeframes import EntityType


HISTORY_TABLES = {EntityType.tracks: TrackHistory,
                  EntityType.artists: ArtistHistory}


def pass_session_capable(func):
    @functools.wraps(func)
    async def inner(*args, **kwargs):
        if kwargs.get("session") is not None:
            return await func(*args, **kwargs)

        async with get_session() as s:
            kwargs["session"] = s
            return await func(*args, **kwargs)

    return inner


def as_utc(dt: datetime) -> datetime:
    """SQLite hands back naive datetimes, everything we store is UTC."""
    return dt.replace(tzinfo=timezone.utc) if dt.tzinfo is None else dt


@pass_session_capable
async def get_user(spotify_id: str, session=None) -> User | None:
    result = await session.execute(select(User).where(User.spotify_id == spotify_id).limit(1))
    return result.scalar_one_or_none()


@pass_session_capable
async def upsert_user(spotify_id: str, username: str, token: str, refresh_token: str,
                      session=None) -> User:
    if user := await get_user(spotify_id, session=session):
        LOGGER.debug(f"User {spotify_id} already exists, updating tokens.")
        user.username = username
        user.token = token
        user.refresh_token = refresh_token
    else:
        LOGGER.info(f"Adding new user {username} ({spotify_id}).")
        now = datetime.now(timezone.utc)
        user = User(spotify_id=spotify_id, username=username, token=token,
                    refresh_token=refresh_token, creation_time=now, last_update_time=now)
        session.add(user)

    await session.flush()
    return user


@pass_session_capable
async def least_recently_updated_user(session=None) -> User | None:
    result = await session.execute(select(User).order_by(User.last_update_time).limit(1))
    return result.scalar_one_or_none()


@pass_session_capable
async def set_user_token(user: User, token: str, session=None):
    await session.execute(update(User).where(User.user_id == user.user_id).values(token=token))
    user.token = token


@pass_session_capable
async def store_snapshot(user: User, snapshot: Snapshot, session=None) -> int:
    """One history row per (entity type, timeframe, rank), then bump the user's last update time."""
    rows = []
    for entity_type, table in HISTORY_TABLES.items():
        for timeframe, ranked in snapshot.rankings(entity_type).items():
            rows.extend(table(user_id=user.user_id,
                              spotify_id=r.spotify_id,
                              update_time=snapshot.captured_at,
                              timeframe=timeframe.value,
                              ranking=r.rank)
                        for r in ranked)

    session.add_all(rows)
    result = await session.execute(update(User)
                                   .where(User.user_id == user.user_id)
                                   .values(last_update_time=snapshot.captured_at))
    if result.rowcount != 1:
        LOGGER.error(f"Updated {result.rowcount} rows when setting last update time, " \
                     f"but should have updated 1.")

    await session.flush()
    user.last_update_time = snapshot.captured_at

    LOGGER.info(f"Stored {len(rows)} history rows for {user.username}.")
    return len(rows)


@pass_session_capable
async def load_rankings(user: User, session=None) -> dict[EntityType, TimeBuckets[RankedEntity]] | None:
    """Rankings of the user's latest capture, or None if nothing was ever stored."""
    rankings = {}
    for entity_type, table in HISTORY_TABLES.items():
        result = await session.execute(select(table)
                                       .where(table.user_id == user.user_id,
                                              table.update_time == user.last_update_time)
                                       .order_by(table.timeframe, table.ranking))
        rows = result.scalars().all()

        buckets = TimeBuckets()
        for row in rows:
            buckets.add_by_id(row.timeframe, RankedEntity(row.spotify_id, row.ranking))
        rankings[entity_type] = buckets

    if not any(len(b) for b in rankings.values()):
        LOGGER.debug(f"No history stored for {user.spotify_id}.")
        return None

    return rankings


@pass_session_capable
async def _latest_rankings(spotify_id: str, session=None) -> tuple[datetime, dict] | None:
    user = await get_user(spotify_id, session=session)
    if user is None:
        LOGGER.debug(f"Unknown user {spotify_id}.")
        return None

    rankings = await load_rankings(user, session=session)
    if rankings is None:
        return None

    return as_utc(user.last_update_time), rankings


async def get_current_stats(spotify_id: str, resolver, session=None) -> Snapshot | None:
    """The user's latest snapshot with every id resolved, None for unknown users or no history."""
    latest = await _latest_rankings(spotify_id, session=session)
    if latest is None:
        return None

    # Resolution talks to the cache and Spotify, keep it off the event loop and outside the session.
    captured_at, rankings = latest
    return await asyncio.to_thread(resolve_and_assemble, resolver, captured_at, rankings)
