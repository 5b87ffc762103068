"""Infer 'track finished' from playback snapshots."""
import logging
from typing import Optional

from tunecircle.config import COMPLETION_TOLERANCE_MS
from tunecircle.models.playback import CompletionEvent, CompletionRecord, PlaybackSnapshot

logger = logging.getLogger(__name__)


class CompletionDetector:
    """Emits one CompletionEvent per finished play-through.

    A track counts as finished when it is paused within ``tolerance_ms`` of its
    end (the SDK rarely reports position == duration exactly). The record
    resets on track change, so replays count again, and on reset().
    """

    def __init__(self, tolerance_ms: int = COMPLETION_TOLERANCE_MS) -> None:
        self._tolerance_ms = tolerance_ms
        self._record: Optional[CompletionRecord] = None

    @property
    def record(self) -> Optional[CompletionRecord]:
        return self._record

    def reset(self) -> None:
        self._record = None

    def on_snapshot(self, snapshot: Optional[PlaybackSnapshot]) -> Optional[CompletionEvent]:
        if snapshot is None:
            self.reset()
            return None
        if self._record is None or self._record.track_id != snapshot.track_id:
            self._record = CompletionRecord(track_id=snapshot.track_id)

        if self._record.has_fired:
            return None
        if snapshot.duration_ms <= 0 or snapshot.is_playing:
            return None
        if snapshot.position_ms < snapshot.duration_ms - self._tolerance_ms:
            return None

        self._record.has_fired = True
        logger.debug("Track %s completed at %d/%d ms", snapshot.track_id, snapshot.position_ms, snapshot.duration_ms)
        return CompletionEvent(track_id=snapshot.track_id, track_uri=snapshot.track_uri)
