"""Hand out valid Spotify access tokens per user, refreshing when near expiry."""
import logging
import threading
import time
from concurrent.futures import Future, TimeoutError as FutureTimeout
from typing import Callable, Dict

from tunecircle.config import PROVIDER_TIMEOUT_SEC, TOKEN_REFRESH_BUFFER_SEC
from tunecircle.core import spotify_client
from tunecircle.core.errors import SessionExpired, UpstreamUnavailable
from tunecircle.core.session_store import SessionStore
from tunecircle.models.session import UserSession

logger = logging.getLogger(__name__)


class TokenManager:
    """Returns a currently valid access token for a user.

    Tokens still valid beyond ``buffer_sec`` are returned from the store with no
    I/O. Otherwise the refresh token is exchanged, the result persisted, and the
    new access token returned. Refreshes are single-flight per user: concurrent
    callers share the in-flight exchange and get its result or its error.
    """

    def __init__(
        self,
        store: SessionStore,
        refresher: Callable[[str], dict] = spotify_client.refresh_access_token,
        buffer_sec: float = TOKEN_REFRESH_BUFFER_SEC,
        clock: Callable[[], float] = time.time,
        follower_timeout: float = PROVIDER_TIMEOUT_SEC * 2,
    ) -> None:
        self._store = store
        self._refresher = refresher
        self._buffer_sec = buffer_sec
        self._clock = clock
        self._follower_timeout = follower_timeout
        self._inflight: Dict[str, Future] = {}
        self._inflight_lock = threading.Lock()

    def _require_session(self, user_id: str) -> UserSession:
        session = self._store.get(user_id)
        if session is None:
            raise SessionExpired("No Spotify session for this user. Please log in.")
        return session

    def _is_fresh(self, session: UserSession) -> bool:
        return self._clock() < session.token_expires_at - self._buffer_sec

    def get_valid_access_token(self, user_id: str) -> str:
        session = self._require_session(user_id)
        if self._is_fresh(session):
            return session.access_token
        logger.info("Token for user=%s expires within %ss, refreshing", user_id, self._buffer_sec)
        return self.refresh_user_token(user_id)

    def is_token_valid(self, user_id: str) -> bool:
        """True if the stored token is outside the refresh buffer. Never raises, no I/O."""
        session = self._store.get(user_id)
        return session is not None and self._is_fresh(session)

    def refresh_user_token(self, user_id: str) -> str:
        """Force a refresh (joins one already in flight for this user)."""
        with self._inflight_lock:
            future = self._inflight.get(user_id)
            leader = future is None
            if leader:
                future = Future()
                self._inflight[user_id] = future
        if not leader:
            logger.debug("Joining in-flight token refresh for user=%s", user_id)
            try:
                return future.result(timeout=self._follower_timeout)
            except FutureTimeout as e:
                logger.warning("Timed out waiting for token refresh of user=%s", user_id)
                raise UpstreamUnavailable("Token refresh still in progress. Try again.") from e

        try:
            token = self._refresh(user_id)
        except BaseException as e:
            future.set_exception(e)
            raise
        else:
            future.set_result(token)
            return token
        finally:
            with self._inflight_lock:
                self._inflight.pop(user_id, None)

    def _refresh(self, user_id: str) -> str:
        session = self._require_session(user_id)
        try:
            token_info = self._refresher(session.refresh_token)
        except SessionExpired:
            logger.warning("Token refresh rejected for user=%s; re-authentication required", user_id)
            raise
        except Exception as e:
            logger.warning("Token refresh failed for user=%s: %s", user_id, e)
            raise
        changes = {
            "access_token": token_info["access_token"],
            "token_expires_at": spotify_client.expires_at_from(token_info, now=self._clock()),
        }
        # Spotify does not always rotate the refresh token
        if token_info.get("refresh_token"):
            changes["refresh_token"] = token_info["refresh_token"]
        updated = self._store.update(user_id, **changes)
        if updated is None:
            raise SessionExpired("Spotify session was removed during refresh. Please log in.")
        logger.info("Token refreshed for user=%s", user_id)
        return updated.access_token
