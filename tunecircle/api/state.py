"""Shared application state (injected into routes)."""
from tunecircle.core.playback_client import PlaybackClient
from tunecircle.core.session_store import SessionStore
from tunecircle.core.token_manager import TokenManager


class AppState:
    def __init__(self, store: SessionStore | None = None) -> None:
        self.store = store or SessionStore()
        self.tokens = TokenManager(self.store)
        self.playback = PlaybackClient(self.tokens, self.store)


_state = AppState()


def get_state() -> AppState:
    return _state
