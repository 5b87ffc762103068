"""Shares as seen by the web client, and the listen records they receive."""
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class SharedTrack:
    """A track shared into a group feed."""
    share_id: str
    track_id: str
    track_name: str = ""
    group_id: Optional[str] = None

    @property
    def track_uri(self) -> str:
        return f"spotify:track:{self.track_id}"


@dataclass(frozen=True)
class ListenEvent:
    """Written by the share service; at most one per (share_id, user_id)."""
    share_id: str
    user_id: str
    listened_at: str
