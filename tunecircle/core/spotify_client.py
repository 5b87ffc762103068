"""Spotify API access via Spotipy: OAuth exchanges, bearer clients, error classification."""
import logging
import time
from typing import Optional

import requests
from spotipy import Spotify, SpotifyException
from spotipy.cache_handler import MemoryCacheHandler
from spotipy.oauth2 import SpotifyOAuth, SpotifyOauthError

from tunecircle.config import (
    PROVIDER_TIMEOUT_SEC,
    SPOTIFY_CLIENT_ID,
    SPOTIFY_CLIENT_SECRET,
    SPOTIFY_REDIRECT_URI,
    SPOTIFY_SCOPES,
    TOKEN_EXPIRY_SKEW_SEC,
)
from tunecircle.core.errors import (
    DeviceUnavailable,
    InsufficientEntitlement,
    InvalidRequest,
    PlaybackError,
    SessionExpired,
    UpstreamUnavailable,
)

logger = logging.getLogger(__name__)

# OAuth error codes meaning the grant itself was refused (RFC 6749 5.2)
_OAUTH_REJECTIONS = {
    "invalid_grant",
    "invalid_client",
    "invalid_request",
    "invalid_scope",
    "unauthorized_client",
    "unsupported_grant_type",
}


class CredentialRejected(SessionExpired):
    """Spotify rejected the access token (HTTP 401)."""


def _oauth(cache: Optional[MemoryCacheHandler] = None) -> SpotifyOAuth:
    return SpotifyOAuth(
        client_id=SPOTIFY_CLIENT_ID,
        client_secret=SPOTIFY_CLIENT_SECRET,
        redirect_uri=SPOTIFY_REDIRECT_URI,
        scope=SPOTIFY_SCOPES,
        cache_handler=cache or MemoryCacheHandler(),
        open_browser=False,
        requests_timeout=PROVIDER_TIMEOUT_SEC,
    )


def is_configured() -> bool:
    return bool(SPOTIFY_CLIENT_ID and SPOTIFY_CLIENT_SECRET)


def get_authorize_url(state: str) -> str:
    """Return the Spotify authorization URL carrying our opaque state."""
    return _oauth().get_authorize_url(state=state)


def expires_at_from(token_info: dict, now: Optional[float] = None) -> float:
    """Epoch expiry for a token response, minus skew so we never use a token at the edge."""
    now_ts = time.time() if now is None else now
    return now_ts + int(token_info.get("expires_in") or 3600) - TOKEN_EXPIRY_SKEW_SEC


def classify_oauth_error(exc: Exception) -> PlaybackError:
    """Map a token-endpoint failure to SessionExpired or UpstreamUnavailable."""
    if isinstance(exc, SpotifyOauthError):
        if (exc.error or "") in _OAUTH_REJECTIONS:
            return SessionExpired(f"Spotify refused the token grant: {exc.error_description or exc.error}")
        return UpstreamUnavailable(f"Spotify token endpoint failed: {exc.error or exc}")
    return UpstreamUnavailable(f"Spotify token endpoint unreachable: {exc}")


def classify_spotify_error(exc: Exception) -> PlaybackError:
    """Map a Web API failure into the error taxonomy."""
    if not isinstance(exc, SpotifyException):
        return UpstreamUnavailable(f"Spotify unreachable: {exc}")
    status = exc.http_status
    reason = exc.reason or ""
    message = exc.msg or str(exc)
    if status == 401:
        return CredentialRejected(f"Invalid or expired Spotify token: {message}")
    if status == 404 or reason == "NO_ACTIVE_DEVICE":
        return DeviceUnavailable()
    if status == 403:
        return InsufficientEntitlement(message)
    if status == 400:
        return InvalidRequest(message)
    return UpstreamUnavailable(f"Spotify error {status}: {message}")


def exchange_code(code: str) -> dict:
    """Exchange an OAuth code for token info (access_token, refresh_token, expires_in, ...)."""
    cache = MemoryCacheHandler()
    try:
        _oauth(cache).get_access_token(code=code, as_dict=False, check_cache=False)
    except (SpotifyOauthError, requests.exceptions.RequestException) as e:
        raise classify_oauth_error(e) from e
    token_info = cache.get_cached_token()
    if not token_info or not token_info.get("access_token"):
        raise UpstreamUnavailable("Invalid token response from Spotify")
    return token_info


def refresh_access_token(refresh_token: str) -> dict:
    """Exchange a refresh token for a new access token. Spotify may rotate the refresh token."""
    try:
        token_info = _oauth().refresh_access_token(refresh_token)
    except (SpotifyOauthError, requests.exceptions.RequestException) as e:
        raise classify_oauth_error(e) from e
    if not token_info or not token_info.get("access_token"):
        raise UpstreamUnavailable("Invalid token response from Spotify")
    return token_info


def client_for_token(access_token: str) -> Spotify:
    """Bearer client with a bounded timeout and no internal retries (callers own retry policy)."""
    return Spotify(
        auth=access_token,
        requests_timeout=PROVIDER_TIMEOUT_SEC,
        retries=0,
        status_retries=0,
    )


def fetch_profile(access_token: str) -> dict:
    """Return the /me profile for a freshly issued token."""
    try:
        return client_for_token(access_token).me() or {}
    except (SpotifyException, requests.exceptions.RequestException) as e:
        raise classify_spotify_error(e) from e
