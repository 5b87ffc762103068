"""Web Playback SDK boundary: the player interface we drive and typed mapping of its state."""
from typing import Any, Awaitable, Callable, Optional, Protocol

from pydantic import BaseModel, Field, field_validator

from tunecircle.models.playback import PlaybackSnapshot

# SDK event names
READY = "ready"
NOT_READY = "not_ready"
PLAYER_STATE_CHANGED = "player_state_changed"
INITIALIZATION_ERROR = "initialization_error"
AUTHENTICATION_ERROR = "authentication_error"
ACCOUNT_ERROR = "account_error"
PLAYBACK_ERROR = "playback_error"

TokenCallback = Callable[[str], None]


class SDKPlayer(Protocol):
    """The subset of Spotify.Player we use. Async methods mirror the SDK's promises."""

    def add_listener(self, event: str, callback: Callable[[Any], None]) -> bool: ...

    def remove_listener(self, event: str, callback: Optional[Callable[[Any], None]] = None) -> bool: ...

    async def connect(self) -> bool: ...

    def disconnect(self) -> None: ...

    async def get_current_state(self) -> Optional[dict]: ...

    async def toggle_play(self) -> None: ...

    async def next_track(self) -> None: ...

    async def previous_track(self) -> None: ...

    async def set_volume(self, volume: float) -> None: ...


class PlaybackSDK(Protocol):
    """Loaded SDK namespace (window.Spotify): creates players."""

    def create_player(
        self,
        name: str,
        get_oauth_token: Callable[[TokenCallback], None],
        volume: float,
    ) -> SDKPlayer: ...


SDKLoader = Callable[[], Awaitable[PlaybackSDK]]


class SDKTrack(BaseModel):
    uri: str
    id: Optional[str] = None
    name: str = ""

    @property
    def track_id(self) -> str:
        if self.id:
            return self.id
        # spotify:track:<id>
        return self.uri.rsplit(":", 1)[-1]


class SDKTrackWindow(BaseModel):
    current_track: Optional[SDKTrack] = None


class SDKPlayerState(BaseModel):
    """player_state_changed / getCurrentState payload (fields we rely on)."""
    paused: bool = True
    position: int = 0
    duration: int = 0
    track_window: SDKTrackWindow = Field(default_factory=SDKTrackWindow)

    @field_validator("position", "duration")
    @classmethod
    def _non_negative(cls, v: int) -> int:
        return max(0, v)


def snapshot_from_sdk_state(raw: Optional[dict], now: float) -> Optional[PlaybackSnapshot]:
    """Validate a raw SDK state and map it to a PlaybackSnapshot.

    Returns None when the SDK reports no state or no current track. Raises
    pydantic.ValidationError on a malformed payload.
    """
    if raw is None:
        return None
    state = SDKPlayerState.model_validate(raw)
    track = state.track_window.current_track
    if track is None:
        return None
    return PlaybackSnapshot(
        track_id=track.track_id,
        track_uri=track.uri,
        track_name=track.name,
        position_ms=state.position,
        duration_ms=state.duration,
        is_playing=not state.paused,
        taken_at=now,
    )
