import logging
LOGGER = logging.getLogger(__name__)

import os

import requests
import spotipy
from spotipy.exceptions import SpotifyException
from spotipy.oauth2 import SpotifyClientCredentials, SpotifyOAuth, SpotifyOauthError

from snapshots.entities import ENTITY_CLASSES, Entity
from snapshots.errors import FetchError, NetworkError, UpstreamError
from snapshots.timeframes import EntityType, Timeframe, time_range


TOP_ITEMS_LIMIT = 50  # One page only, deeper rankings are not fetched.
BATCH_LIMIT = 50      # Max ids the batch endpoints accept per call.

SCOPES = ["user-read-recently-played",
          "user-top-read",
          "user-follow-read"]


def _timeout() -> float:
    return float(os.getenv("SPOTIFY_REQUEST_TIMEOUT", "10"))

def _call(fn, *args, **context):
    """Run a spotipy call, translating its failures into our FetchError taxonomy."""
    try:
        return fn(*args)
    except requests.exceptions.RequestException as e:
        raise NetworkError(f"Request to Spotify failed: {e}", **context) from e
    except SpotifyException as e:
        raise UpstreamError(f"Spotify returned {e.http_status}: {e.msg}",
                            status=e.http_status, **context) from e
    except SpotifyOauthError as e:
        raise UpstreamError(f"Spotify token request failed: {e}", **context) from e


class SpotifyCatalog:
    """Thin wrapper over a spotipy client for the two endpoints the snapshot pipeline uses."""

    def __init__(self, sp: spotipy.Spotify):
        self.sp = sp

    @classmethod
    def for_user(cls, access_token: str) -> "SpotifyCatalog":
        # No shared session: concurrent top-item requests each get their own connection.
        return cls(spotipy.Spotify(auth=access_token,
                                   requests_session=False,
                                   requests_timeout=_timeout(),
                                   retries=0,
                                   status_retries=0))

    @classmethod
    def for_app(cls) -> "SpotifyCatalog":
        manager = SpotifyClientCredentials(client_id=os.environ["SPOTIFY_CLIENT_ID"],
                                           client_secret=os.environ["SPOTIFY_CLIENT_SECRET"],
                                           requests_timeout=_timeout())
        return cls(spotipy.Spotify(auth_manager=manager,
                                   requests_timeout=_timeout(),
                                   retries=0,
                                   status_retries=0))

    def top_items(self, entity_type: EntityType, timeframe: Timeframe) -> list[Entity]:
        context = {"entity_type": entity_type.value, "timeframe": timeframe.name}
        LOGGER.debug(f"Requesting top {entity_type.value} ({timeframe.name} term).")

        match entity_type:
            case EntityType.tracks: fn = self.sp.current_user_top_tracks
            case EntityType.artists: fn = self.sp.current_user_top_artists

        res = _call(lambda: fn(limit=TOP_ITEMS_LIMIT, time_range=time_range(timeframe)), **context)
        if not isinstance(res, dict) or not isinstance(res.get("items"), list):
            raise UpstreamError("Malformed top items response", **context)

        cls = ENTITY_CLASSES[entity_type]
        try:
            return [cls.from_spotify(item) for item in res["items"]]
        except FetchError as e:
            raise e.with_context(**context)

    def lookup(self, entity_type: EntityType, spotify_ids: list[str]) -> list[Entity]:
        """Batch-fetch full records. Output order matches `spotify_ids`."""
        if len(spotify_ids) > BATCH_LIMIT:
            raise ValueError(f"At most {BATCH_LIMIT} ids per batch lookup, got {len(spotify_ids)}.")

        context = {"entity_type": entity_type.value, "n_ids": len(spotify_ids)}
        match entity_type:
            case EntityType.tracks: fn = self.sp.tracks
            case EntityType.artists: fn = self.sp.artists

        res = _call(fn, spotify_ids, **context)

        items = res.get(entity_type.value) if isinstance(res, dict) else None
        if not isinstance(items, list) or len(items) != len(spotify_ids):
            raise UpstreamError("Batch response does not line up with the request", **context)

        for requested, item in zip(spotify_ids, items):
            if item is None:
                raise UpstreamError(f"Spotify has no {entity_type.value[:-1]} '{requested}'",
                                    spotify_id=requested, **context)

        cls = ENTITY_CLASSES[entity_type]
        try:
            return [cls.from_spotify(item) for item in items]
        except FetchError as e:
            raise e.with_context(**context)

    def current_user(self) -> dict:
        res = _call(self.sp.current_user, endpoint="me")
        if not isinstance(res, dict) or "id" not in res:
            raise UpstreamError("Malformed user profile response", endpoint="me")

        return res


def get_oauth() -> SpotifyOAuth:
    return SpotifyOAuth(client_id=os.environ["SPOTIFY_CLIENT_ID"],
                        client_secret=os.environ["SPOTIFY_CLIENT_SECRET"],
                        redirect_uri=os.getenv("SPOTIFY_REDIRECT_URI", "http://127.0.0.1:8888/callback"),
                        scope=SCOPES,
                        open_browser=False,
                        requests_timeout=_timeout())

def refresh_user_token(refresh_token: str, oauth: SpotifyOAuth | None = None) -> str:
    oauth = oauth or get_oauth()

    LOGGER.info("Refreshing user access token.")
    token_info = _call(oauth.refresh_access_token, refresh_token, endpoint="token")
    LOGGER.debug("Refreshed user access token.")

    return token_info["access_token"]
