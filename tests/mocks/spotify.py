import threading

from spotipy.exceptions import SpotifyException


def track_item(spotify_id: str, rank: int = 0) -> dict:
    return {"id": spotify_id,
            "name": f"Track {spotify_id}",
            "artists": [{"id": f"ar-{spotify_id}", "name": f"Artist of {spotify_id}"},
                        {"id": "feat", "name": "Featured"}],
            "preview_url": f"https://p.scdn.co/mp3-preview/{spotify_id}",
            "album": {"name": f"Album {spotify_id}",
                      "images": [{"url": f"https://i.scdn.co/image/{spotify_id}", "height": 640}]},
            "popularity": 100 - rank}

def artist_item(spotify_id: str, rank: int = 0) -> dict:
    return {"id": spotify_id,
            "name": f"Artist {spotify_id}",
            "genres": ["krautrock", "art rock"],
            "images": [{"url": f"https://i.scdn.co/image/{spotify_id}"}],
            "uri": f"spotify:artist:{spotify_id}",
            "popularity": 100 - rank}


class FakeSpotify:
    """
    Stand-in for spotipy.Spotify, serving canned payloads.

    `top` maps (entity type value, time_range) -> list of ids, `fail` maps a call key to the
    exception that call should raise. Call keys: ("top", "tracks", "short_term"), ("batch", "artists").
    """

    def __init__(self, top: dict[tuple[str, str], list[str]] | None = None,
                 fail: dict[tuple, Exception] | None = None,
                 unknown: set[str] | None = None):
        self.top = top or {}
        self.fail = fail or {}
        self.unknown = unknown or set()

        self.top_calls: list[tuple[str, int, str]] = []
        self.batch_calls: list[tuple[str, list[str]]] = []
        self._lock = threading.Lock()

    def _maybe_fail(self, key: tuple):
        if key in self.fail:
            raise self.fail[key]

    def _top(self, entity: str, limit: int, time_range: str, build) -> dict:
        with self._lock:
            self.top_calls.append((entity, limit, time_range))
        self._maybe_fail(("top", entity, time_range))

        ids = self.top.get((entity, time_range), [])[:limit]
        return {"items": [build(i, rank) for rank, i in enumerate(ids)], "total": len(ids), "limit": limit}

    def current_user_top_tracks(self, limit=20, offset=0, time_range="medium_term"):
        return self._top("tracks", limit, time_range, track_item)

    def current_user_top_artists(self, limit=20, offset=0, time_range="medium_term"):
        return self._top("artists", limit, time_range, artist_item)

    def _batch(self, entity: str, ids: list[str], build) -> dict:
        with self._lock:
            self.batch_calls.append((entity, list(ids)))
        self._maybe_fail(("batch", entity))

        return {entity: [None if i in self.unknown else build(i) for i in ids]}

    def tracks(self, tracks, market=None):
        return self._batch("tracks", tracks, track_item)

    def artists(self, artists):
        return self._batch("artists", artists, artist_item)

    def current_user(self):
        self._maybe_fail(("me",))
        return {"id": "holger", "display_name": "Holger Czukay"}


def server_error(url: str = "https://api.spotify.com/v1/me/top/artists") -> SpotifyException:
    return SpotifyException(500, -1, f"{url}:\n Internal server error")


class FakeOAuth:
    def __init__(self, token: str = "fresh-token"):
        self.token = token
        self.refreshed: list[str] = []

    def refresh_access_token(self, refresh_token: str) -> dict:
        self.refreshed.append(refresh_token)
        return {"access_token": self.token, "refresh_token": refresh_token}
