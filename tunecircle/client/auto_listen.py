"""Mark shared tracks as listened when the web player finishes them."""
import asyncio
import logging
from typing import Awaitable, Callable, Iterable, List, MutableSet, Optional, Set

from tunecircle.core.errors import AlreadyListened, PlaybackError
from tunecircle.models.playback import CompletionEvent
from tunecircle.models.share import ListenEvent, SharedTrack

logger = logging.getLogger(__name__)

RecordListen = Callable[[str], Awaitable[Optional[ListenEvent]]]


class AutoListenRecorder:
    """Turns CompletionEvents into at most one record-listen call per share.

    The share is the one started from this UI if it matches the finished track,
    otherwise the first displayed share with the same track. Tracks that match
    no share are ignored. ``known_listens`` is the UI's cache of share ids the
    user has listened to; it is updated after each successful write. Write
    failures are logged and not retried (the user can still mark manually).
    """

    def __init__(self, record_listen: RecordListen) -> None:
        self._record_listen = record_listen
        self._now_playing: Optional[SharedTrack] = None
        self._displayed: List[SharedTrack] = []
        self._in_flight: Set[str] = set()
        self._tasks: Set[asyncio.Task] = set()

    def set_now_playing(self, share: Optional[SharedTrack]) -> None:
        """Share the user started playing from this UI (None when playing something else)."""
        self._now_playing = share

    def set_displayed_shares(self, shares: Iterable[SharedTrack]) -> None:
        self._displayed = list(shares)

    def resolve(self, event: CompletionEvent) -> Optional[SharedTrack]:
        if self._now_playing is not None and _matches(self._now_playing, event):
            return self._now_playing
        for share in self._displayed:
            if _matches(share, event):
                return share
        return None

    async def on_completion(self, event: CompletionEvent, known_listens: MutableSet[str]) -> None:
        share = self.resolve(event)
        if share is None:
            logger.debug("Completed track %s is not a tracked share", event.track_id)
            return
        share_id = share.share_id
        if share_id in known_listens or share_id in self._in_flight:
            return

        self._in_flight.add(share_id)
        try:
            await self._record_listen(share_id)
        except AlreadyListened:
            known_listens.add(share_id)
            logger.info("Share %s was already marked as listened", share_id)
        except PlaybackError as e:
            logger.warning("Auto-listen for share %s failed: %s", share_id, e)
        except Exception:
            logger.exception("Auto-listen for share %s failed", share_id)
        else:
            known_listens.add(share_id)
            logger.info("Share %s auto-marked as listened", share_id)
        finally:
            self._in_flight.discard(share_id)

    def listener(self, known_listens: MutableSet[str]) -> Callable[[CompletionEvent], None]:
        """Completion callback for RemotePlayerBridge.set_on_track_complete.

        Recording runs as a task so a slow or failing write never holds up playback.
        """

        def handle(event: CompletionEvent) -> None:
            task = asyncio.get_running_loop().create_task(self.on_completion(event, known_listens))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

        return handle

    async def drain(self) -> None:
        """Wait for scheduled recordings to finish."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)


def _matches(share: SharedTrack, event: CompletionEvent) -> bool:
    if share.track_id == event.track_id:
        return True
    return event.track_uri is not None and share.track_uri == event.track_uri
