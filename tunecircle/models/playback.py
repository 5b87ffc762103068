"""Playback snapshots and completion state (web player side)."""
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class PlaybackSnapshot:
    """Point-in-time readout of the web player. Replaced wholesale on every push."""
    track_id: str
    track_uri: str
    track_name: str
    position_ms: int
    duration_ms: int
    is_playing: bool
    taken_at: float


@dataclass
class CompletionRecord:
    """Completion state for the track currently playing."""
    track_id: str
    has_fired: bool = False


@dataclass(frozen=True)
class CompletionEvent:
    """Emitted once per finished play-through of a track."""
    track_id: str
    track_uri: Optional[str] = None
