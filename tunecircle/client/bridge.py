"""Single web-player instance: loads the SDK, tracks device and playback state, feeds observers."""
import asyncio
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Coroutine, List, Optional, Protocol, Set, Tuple

from pydantic import ValidationError

from tunecircle.client.completion import CompletionDetector
from tunecircle.client.sdk import (
    ACCOUNT_ERROR,
    AUTHENTICATION_ERROR,
    INITIALIZATION_ERROR,
    NOT_READY,
    PLAYBACK_ERROR,
    PLAYER_STATE_CHANGED,
    READY,
    SDKLoader,
    SDKPlayer,
    TokenCallback,
    snapshot_from_sdk_state,
)
from tunecircle.config import (
    COMPLETION_POLL_INTERVAL_SEC,
    DEVICE_ACTIVATION_DELAY_SEC,
    PLAYER_INITIAL_VOLUME,
    PLAYER_NAME,
)
from tunecircle.core.errors import DeviceUnavailable, InvalidRequest, PlaybackError
from tunecircle.core.playback_client import validate_track_uri
from tunecircle.models.playback import CompletionEvent, PlaybackSnapshot

logger = logging.getLogger(__name__)


class BridgeStatus(str, Enum):
    UNINITIALIZED = "uninitialized"
    LOADING = "loading"
    INITIALIZING = "initializing"
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    ERROR = "error"


@dataclass(frozen=True)
class BridgeView:
    """What every observer sees after a change. One instance is shared by all observers."""
    status: BridgeStatus
    device_id: Optional[str]
    snapshot: Optional[PlaybackSnapshot]
    banner: Optional[str]
    error: Optional[str]


Observer = Callable[[BridgeView], None]
CompletionCallback = Callable[[CompletionEvent], None]


class PlaybackBackend(Protocol):
    """API calls the bridge makes (see BackendClient)."""

    async def get_access_token(self) -> str: ...

    async def transfer(self, device_id: str) -> None: ...

    async def play(self, device_id: str, track_uri: str) -> None: ...


class RemotePlayerBridge:
    """Owns the one SDK player for this browser session.

    Status moves UNINITIALIZED -> LOADING -> INITIALIZING -> CONNECTED, and
    CONNECTED <-> DISCONNECTED as the SDK reports ready/not_ready. Load or
    initialisation failures end in ERROR. Each entry into CONNECTED transfers
    playback to the new device once. SDK events update the snapshot and notify
    observers synchronously, inside the SDK callback. Auth and account errors
    only set ``banner``; transport controls keep working.
    """

    def __init__(
        self,
        sdk_loader: SDKLoader,
        backend: PlaybackBackend,
        detector: Optional[CompletionDetector] = None,
        player_name: str = PLAYER_NAME,
        poll_interval: float = COMPLETION_POLL_INTERVAL_SEC,
        activation_delay: float = DEVICE_ACTIVATION_DELAY_SEC,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._sdk_loader = sdk_loader
        self._backend = backend
        self._detector = detector or CompletionDetector()
        self._player_name = player_name
        self._poll_interval = poll_interval
        self._activation_delay = activation_delay
        self._clock = clock

        self._status = BridgeStatus.UNINITIALIZED
        self._player: Optional[SDKPlayer] = None
        self._device_id: Optional[str] = None
        self._snapshot: Optional[PlaybackSnapshot] = None
        self._banner: Optional[str] = None
        self._error: Optional[str] = None

        self._observers: List[Observer] = []
        self._on_track_complete: Optional[CompletionCallback] = None
        self._listeners: List[Tuple[str, Callable[[Any], None]]] = []
        self._tasks: Set[asyncio.Task] = set()
        self._transfer_task: Optional[asyncio.Task] = None
        self._torn_down = False

    # -- state -------------------------------------------------------------

    @property
    def status(self) -> BridgeStatus:
        return self._status

    @property
    def device_id(self) -> Optional[str]:
        return self._device_id

    @property
    def snapshot(self) -> Optional[PlaybackSnapshot]:
        return self._snapshot

    @property
    def banner(self) -> Optional[str]:
        return self._banner

    @property
    def error(self) -> Optional[str]:
        return self._error

    @property
    def is_connected(self) -> bool:
        return self._status is BridgeStatus.CONNECTED

    def view(self) -> BridgeView:
        return BridgeView(
            status=self._status,
            device_id=self._device_id,
            snapshot=self._snapshot,
            banner=self._banner,
            error=self._error,
        )

    # -- observers -----------------------------------------------------------

    def subscribe(self, observer: Observer) -> Callable[[], None]:
        """Register observer, push the current view to it, and return its unsubscribe."""
        if observer not in self._observers:
            self._observers.append(observer)
        observer(self.view())
        return lambda: self.unsubscribe(observer)

    def unsubscribe(self, observer: Observer) -> None:
        if observer in self._observers:
            self._observers.remove(observer)

    def set_on_track_complete(self, callback: Optional[CompletionCallback]) -> None:
        self._on_track_complete = callback

    def dismiss_banner(self) -> None:
        self._banner = None
        self._notify()

    def _notify(self) -> None:
        if self._torn_down:
            return
        view = self.view()
        for observer in list(self._observers):
            try:
                observer(view)
            except Exception:
                logger.exception("Player observer failed")

    # -- lifecycle -----------------------------------------------------------

    async def start(self) -> None:
        """Load the SDK, create and connect the player. Later calls are no-ops."""
        if self._status is not BridgeStatus.UNINITIALIZED or self._torn_down:
            return
        self._status = BridgeStatus.LOADING
        self._notify()
        try:
            namespace = await self._sdk_loader()
        except Exception as e:
            self._fail(f"Failed to load Spotify Web Playback SDK: {e}")
            return
        if self._torn_down:
            return

        self._status = BridgeStatus.INITIALIZING
        self._notify()
        # Validate the token early so auth problems surface before the SDK asks
        try:
            await self._backend.get_access_token()
        except PlaybackError as e:
            self._fail(f"Failed to get Spotify access token: {e.message}")
            return
        if self._torn_down:
            return

        player = namespace.create_player(self._player_name, self._provide_token, PLAYER_INITIAL_VOLUME)
        self._player = player
        for event, callback in (
            (READY, self._on_ready),
            (NOT_READY, self._on_not_ready),
            (PLAYER_STATE_CHANGED, self._on_state_changed),
            (INITIALIZATION_ERROR, self._on_initialization_error),
            (AUTHENTICATION_ERROR, self._on_authentication_error),
            (ACCOUNT_ERROR, self._on_account_error),
            (PLAYBACK_ERROR, self._on_playback_error),
        ):
            player.add_listener(event, callback)
            self._listeners.append((event, callback))

        try:
            connected = await player.connect()
        except Exception as e:
            logger.warning("Player connect raised: %s", e)
            connected = False
        if self._torn_down or self._status is BridgeStatus.ERROR:
            return
        if not connected:
            self._fail("Failed to connect Spotify player")
            return
        self._spawn(self._poll_loop())

    def teardown(self) -> None:
        """Drop observers, stop tasks, disconnect. No callback fires after this returns."""
        self._torn_down = True
        self._observers.clear()
        self._on_track_complete = None
        self._release_player()
        self._status = BridgeStatus.DISCONNECTED
        self._device_id = None
        self._snapshot = None
        self._detector.reset()

    def _release_player(self) -> None:
        for task in list(self._tasks):
            task.cancel()
        self._tasks.clear()
        self._transfer_task = None
        if self._player is not None:
            for event, callback in self._listeners:
                self._player.remove_listener(event, callback)
            self._listeners.clear()
            self._player.disconnect()
            self._player = None

    def _fail(self, message: str) -> None:
        """Enter ERROR. Terminal: the player is dropped and later SDK events are ignored."""
        logger.error("Web player error: %s", message)
        self._release_player()
        self._status = BridgeStatus.ERROR
        self._error = message
        self._device_id = None
        self._snapshot = None
        self._detector.reset()
        self._notify()

    def _spawn(self, coro: Coroutine) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    # -- SDK callbacks ---------------------------------------------------------

    def _provide_token(self, callback: TokenCallback) -> None:
        if self._torn_down:
            return
        self._spawn(self._fetch_token_for_sdk(callback))

    async def _fetch_token_for_sdk(self, callback: TokenCallback) -> None:
        try:
            token = await self._backend.get_access_token()
        except PlaybackError as e:
            logger.warning("Failed to refresh Spotify token for player: %s", e)
            self._banner = "Failed to refresh Spotify token"
            self._notify()
            return
        if not self._torn_down:
            callback(token)

    def _on_ready(self, data: Any) -> None:
        if self._torn_down or self._status is BridgeStatus.ERROR:
            return
        device_id = (data or {}).get("device_id")
        if not device_id:
            logger.warning("SDK ready without device_id: %r", data)
            return
        entering = self._status is not BridgeStatus.CONNECTED or device_id != self._device_id
        self._status = BridgeStatus.CONNECTED
        self._device_id = device_id
        logger.info("Web player ready, device=%s", device_id)
        self._notify()
        if entering:
            if self._transfer_task is not None:
                self._transfer_task.cancel()
            self._transfer_task = self._spawn(self._transfer_to(device_id))

    def _on_not_ready(self, data: Any) -> None:
        if self._torn_down or self._status is BridgeStatus.ERROR:
            return
        logger.info("Web player went offline, device=%s", (data or {}).get("device_id"))
        if self._transfer_task is not None:
            self._transfer_task.cancel()
            self._transfer_task = None
        self._status = BridgeStatus.DISCONNECTED
        self._device_id = None
        self._snapshot = None
        self._detector.reset()
        self._notify()

    def _on_state_changed(self, raw: Optional[dict]) -> None:
        self._apply_state(raw)

    def _on_initialization_error(self, data: Any) -> None:
        if self._torn_down:
            return
        self._fail(f"Spotify player failed to initialize: {_message(data)}")

    def _on_authentication_error(self, data: Any) -> None:
        self._set_banner(f"Spotify authentication error: {_message(data)}")

    def _on_account_error(self, data: Any) -> None:
        self._set_banner(f"Spotify account error (Premium may be required): {_message(data)}")

    def _on_playback_error(self, data: Any) -> None:
        self._set_banner(f"Spotify playback error: {_message(data)}")

    def _set_banner(self, message: str) -> None:
        if self._torn_down:
            return
        logger.warning(message)
        self._banner = message
        self._notify()

    def _apply_state(self, raw: Optional[dict]) -> None:
        if self._torn_down or self._status is BridgeStatus.ERROR:
            return
        try:
            snapshot = snapshot_from_sdk_state(raw, self._clock())
        except ValidationError as e:
            logger.warning("Ignoring malformed player state: %s", e)
            return
        if snapshot is None and self._snapshot is None:
            self._detector.reset()
            return
        self._snapshot = snapshot
        event = self._detector.on_snapshot(snapshot)
        self._notify()
        if event is not None:
            self._fire_completion(event)

    def _fire_completion(self, event: CompletionEvent) -> None:
        callback = self._on_track_complete
        if callback is None:
            return
        try:
            callback(event)
        except Exception:
            logger.exception("Track completion callback failed")

    # -- background work ---------------------------------------------------------

    async def _transfer_to(self, device_id: str) -> None:
        if self._activation_delay > 0:
            await asyncio.sleep(self._activation_delay)
        if self._torn_down or self._device_id != device_id:
            return
        try:
            await self._backend.transfer(device_id)
        except PlaybackError as e:
            # The device still activates on the first play command
            logger.warning("Initial transfer to device=%s failed: %s", device_id, e)
            return
        logger.info("Playback transferred to web player device=%s", device_id)

    async def _poll_loop(self) -> None:
        """Catch track endings when the SDK sends no event near the end."""
        while not self._torn_down:
            await asyncio.sleep(self._poll_interval)
            player = self._player
            if player is None or not self.is_connected:
                continue
            try:
                raw = await player.get_current_state()
            except Exception as e:
                logger.debug("get_current_state failed: %s", e)
                continue
            self._apply_state(raw)

    # -- transport controls (straight to the SDK) -------------------------------

    def _require_player(self) -> SDKPlayer:
        if self._player is None or not self.is_connected:
            raise DeviceUnavailable("No device connected. Please wait for the player to initialize.")
        return self._player

    async def toggle_play(self) -> None:
        await self._require_player().toggle_play()

    async def next_track(self) -> None:
        await self._require_player().next_track()

    async def previous_track(self) -> None:
        await self._require_player().previous_track()

    async def set_volume(self, volume: float) -> None:
        if not 0.0 <= volume <= 1.0:
            raise InvalidRequest("Volume must be between 0 and 1")
        await self._require_player().set_volume(volume)

    async def play_track(self, track_uri: str) -> None:
        """Ask the API to play track_uri on this web player's device."""
        track_uri = validate_track_uri(track_uri)
        self._require_player()
        await self._backend.play(self._device_id, track_uri)


def _message(data: Any) -> str:
    if isinstance(data, dict):
        return str(data.get("message") or "unknown error")
    return str(data or "unknown error")
