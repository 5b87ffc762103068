"""Remote playback control (transfer, play, devices) for a user's Spotify account."""
import logging
import re
from typing import Callable, List, TypeVar

import requests
from spotipy import Spotify, SpotifyException

from tunecircle.core import spotify_client
from tunecircle.core.errors import InvalidRequest, SessionExpired
from tunecircle.core.session_store import SessionStore
from tunecircle.core.spotify_client import CredentialRejected
from tunecircle.core.token_manager import TokenManager

logger = logging.getLogger(__name__)

T = TypeVar("T")

TRACK_URI_RE = re.compile(r"^spotify:track:[0-9A-Za-z]{22}$")
DEVICE_ID_RE = re.compile(r"^[0-9A-Za-z_-]{1,128}$")

MAX_AUTH_RETRIES = 1


def validate_device_id(device_id: str | None) -> str:
    device_id = (device_id or "").strip()
    if not device_id:
        raise InvalidRequest("Device ID is required")
    if not DEVICE_ID_RE.match(device_id):
        raise InvalidRequest("Invalid device ID")
    return device_id


def validate_track_uri(track_uri: str | None) -> str:
    track_uri = (track_uri or "").strip()
    if not TRACK_URI_RE.match(track_uri):
        raise InvalidRequest("Invalid track URI format. Expected format: spotify:track:<id>")
    return track_uri


def call_with_auth_retry(
    get_token: Callable[[], str],
    force_refresh: Callable[[], str],
    request: Callable[[str], T],
    max_retries: int = MAX_AUTH_RETRIES,
) -> T:
    """Run request(token); on a rejected token refresh and retry, at most max_retries times."""
    token = get_token()
    attempt = 0
    while True:
        try:
            return request(token)
        except CredentialRejected as e:
            if attempt >= max_retries:
                raise SessionExpired(f"Spotify rejected the token after refresh: {e.message}") from e
            attempt += 1
            logger.info("Access token rejected, refreshing (retry %d/%d)", attempt, max_retries)
            token = force_refresh()


class PlaybackClient:
    """Issues playback commands for a user with a valid token and classified errors."""

    def __init__(
        self,
        tokens: TokenManager,
        store: SessionStore,
        client_factory: Callable[[str], Spotify] = spotify_client.client_for_token,
    ) -> None:
        self._tokens = tokens
        self._store = store
        self._client_factory = client_factory

    def _call(self, user_id: str, op: Callable[[Spotify], T]) -> T:
        def request(token: str) -> T:
            try:
                return op(self._client_factory(token))
            except (SpotifyException, requests.exceptions.RequestException) as e:
                raise spotify_client.classify_spotify_error(e) from e

        return call_with_auth_retry(
            lambda: self._tokens.get_valid_access_token(user_id),
            lambda: self._tokens.refresh_user_token(user_id),
            request,
        )

    def transfer(self, user_id: str, device_id: str, play: bool = False) -> str:
        """Transfer playback to device_id and remember it as the user's active device."""
        device_id = validate_device_id(device_id)
        try:
            self._call(user_id, lambda sp: sp.transfer_playback(device_id, force_play=play))
        except Exception as e:
            logger.warning("Transfer to device=%s failed for user=%s: %s", device_id, user_id, e)
            raise
        self._store.update(user_id, active_device_id=device_id)
        logger.info("Playback transferred to device=%s for user=%s", device_id, user_id)
        return device_id

    def play(self, user_id: str, device_id: str, track_uri: str) -> None:
        """Start playing track_uri on device_id."""
        track_uri = validate_track_uri(track_uri)
        device_id = validate_device_id(device_id)
        self._call(user_id, lambda sp: sp.start_playback(device_id=device_id, uris=[track_uri]))
        self._store.update(user_id, active_device_id=device_id)
        logger.info("Playing %s on device=%s for user=%s", track_uri, device_id, user_id)

    def devices(self, user_id: str) -> List[dict]:
        """Return the user's available Spotify Connect devices."""
        result = self._call(user_id, lambda sp: sp.devices())
        return (result or {}).get("devices") or []
