"""Data models for sessions, playback snapshots, and shares."""
from tunecircle.models.playback import CompletionEvent, CompletionRecord, PlaybackSnapshot
from tunecircle.models.session import UserSession
from tunecircle.models.share import ListenEvent, SharedTrack

__all__ = [
    "CompletionEvent",
    "CompletionRecord",
    "ListenEvent",
    "PlaybackSnapshot",
    "SharedTrack",
    "UserSession",
]
