"""Core services: session store, token lifecycle, Spotify playback control."""
from tunecircle.core.playback_client import PlaybackClient
from tunecircle.core.session_store import SessionStore
from tunecircle.core.token_manager import TokenManager

__all__ = ["PlaybackClient", "SessionStore", "TokenManager"]
