"""Shared fakes for tests."""
import asyncio
import threading
from typing import List, Optional

from tunecircle.models.session import UserSession

NOW = 1_700_000_000.0
TRACK_A = "spotify:track:4uLU6hMCjMI75M1A2tKUQC"
TRACK_B = "spotify:track:6rqhFgbbKwnb9MLmUQDhG6"


class FakeClock:
    def __init__(self, now: float = NOW) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


class FakeRefresher:
    """Stands in for spotify_client.refresh_access_token."""

    def __init__(self, expires_in: int = 3600, rotate: bool = False, error: Optional[Exception] = None) -> None:
        self.expires_in = expires_in
        self.rotate = rotate
        self.error = error
        self.calls: List[str] = []
        self.block: Optional[threading.Event] = None
        self.entered = threading.Event()

    def __call__(self, refresh_token: str) -> dict:
        self.calls.append(refresh_token)
        self.entered.set()
        if self.block is not None:
            self.block.wait(timeout=5)
        if self.error is not None:
            raise self.error
        n = len(self.calls)
        info = {"access_token": f"access-{n}", "token_type": "Bearer", "expires_in": self.expires_in}
        if self.rotate:
            info["refresh_token"] = f"refresh-{n}"
        return info


def make_session(user_id: str = "user-1", expires_at: float = NOW + 3600, **kwargs) -> UserSession:
    fields = {
        "access_token": "access-0",
        "refresh_token": "refresh-0",
        "token_expires_at": expires_at,
    }
    fields.update(kwargs)
    return UserSession(user_id=user_id, **fields)


class FakeSpotify:
    """Spotipy stand-in; each call consumes the next scripted outcome (exception or value)."""

    def __init__(self, token: str, script: list, calls: list) -> None:
        self.token = token
        self._script = script
        self._calls = calls

    def _next(self, name, *args, **kwargs):
        self._calls.append((self.token, name, args, kwargs))
        outcome = self._script.pop(0) if self._script else None
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    def transfer_playback(self, device_id, force_play=True):
        return self._next("transfer_playback", device_id, force_play=force_play)

    def start_playback(self, device_id=None, context_uri=None, uris=None, offset=None, position_ms=None):
        return self._next("start_playback", device_id=device_id, uris=uris)

    def devices(self):
        return self._next("devices")


class SpotifyFactory:
    def __init__(self, *script) -> None:
        self.script = list(script)
        self.calls: list = []
        self.tokens: List[str] = []

    def __call__(self, token: str) -> FakeSpotify:
        self.tokens.append(token)
        return FakeSpotify(token, self.script, self.calls)


def sdk_state(uri: str = TRACK_A, position: int = 0, duration: int = 200_000, paused: bool = False, name: str = "Song") -> dict:
    """Raw player_state_changed payload as the Web Playback SDK sends it."""
    return {
        "paused": paused,
        "position": position,
        "duration": duration,
        "track_window": {"current_track": {"uri": uri, "id": uri.rsplit(":", 1)[-1], "name": name}},
    }


class FakePlayer:
    def __init__(self, connect_result: bool = True) -> None:
        self.connect_result = connect_result
        self.listeners: dict = {}
        self.state: Optional[dict] = None
        self.commands: list = []
        self.disconnected = False

    def add_listener(self, event, callback):
        self.listeners[event] = callback
        return True

    def remove_listener(self, event, callback=None):
        return self.listeners.pop(event, None) is not None

    async def connect(self):
        return self.connect_result

    def disconnect(self):
        self.disconnected = True

    def emit(self, event, data=None):
        if event == "player_state_changed":
            self.state = data
        callback = self.listeners.get(event)
        if callback is not None:
            callback(data)

    async def get_current_state(self):
        return self.state

    async def toggle_play(self):
        self.commands.append(("toggle_play",))

    async def next_track(self):
        self.commands.append(("next_track",))

    async def previous_track(self):
        self.commands.append(("previous_track",))

    async def set_volume(self, volume):
        self.commands.append(("set_volume", volume))


class FakeSDK:
    def __init__(self, player: Optional[FakePlayer] = None) -> None:
        self.player = player or FakePlayer()
        self.created: list = []
        self.get_oauth_token = None

    def create_player(self, name, get_oauth_token, volume):
        self.created.append((name, volume))
        self.get_oauth_token = get_oauth_token
        return self.player

    def loader(self, error: Optional[Exception] = None):
        async def load():
            if error is not None:
                raise error
            return self

        return load


class FakeBackend:
    def __init__(self, token_error: Optional[Exception] = None, transfer_error: Optional[Exception] = None) -> None:
        self.token_error = token_error
        self.transfer_error = transfer_error
        self.token_calls = 0
        self.transfers: List[str] = []
        self.plays: list = []

    async def get_access_token(self) -> str:
        self.token_calls += 1
        if self.token_error is not None:
            raise self.token_error
        return f"sdk-token-{self.token_calls}"

    async def transfer(self, device_id: str) -> None:
        self.transfers.append(device_id)
        if self.transfer_error is not None:
            raise self.transfer_error

    async def play(self, device_id: str, track_uri: str) -> None:
        self.plays.append((device_id, track_uri))


async def settle(rounds: int = 5) -> None:
    """Let spawned tasks run."""
    for _ in range(rounds):
        await asyncio.sleep(0)
