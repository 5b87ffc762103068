import asyncio
import logging

from helpers import TRACK_A, TRACK_B, FakeBackend, FakeSDK, sdk_state, settle
from tunecircle.client.auto_listen import AutoListenRecorder
from tunecircle.client.bridge import RemotePlayerBridge
from tunecircle.core.errors import AlreadyListened, UpstreamUnavailable
from tunecircle.models.playback import CompletionEvent
from tunecircle.models.share import SharedTrack

TRACK_A_ID = TRACK_A.rsplit(":", 1)[-1]
TRACK_B_ID = TRACK_B.rsplit(":", 1)[-1]


class Recorder:
    def __init__(self, error=None, gate=None):
        self.error = error
        self.gate = gate
        self.calls = []

    async def __call__(self, share_id):
        self.calls.append(share_id)
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error


def completed(track_id=TRACK_A_ID, uri=TRACK_A):
    return CompletionEvent(track_id=track_id, track_uri=uri)


def test_now_playing_share_wins():
    record = Recorder()
    recorder = AutoListenRecorder(record)
    recorder.set_displayed_shares([SharedTrack("share-feed", TRACK_A_ID)])
    recorder.set_now_playing(SharedTrack("share-started", TRACK_A_ID))
    known = set()

    asyncio.run(recorder.on_completion(completed(), known))
    assert record.calls == ["share-started"]
    assert known == {"share-started"}


def test_falls_back_to_displayed_share():
    record = Recorder()
    recorder = AutoListenRecorder(record)
    recorder.set_now_playing(SharedTrack("share-other", TRACK_B_ID))
    recorder.set_displayed_shares([SharedTrack("share-1", TRACK_B_ID), SharedTrack("share-2", TRACK_A_ID)])
    known = set()

    asyncio.run(recorder.on_completion(completed(), known))
    assert record.calls == ["share-2"]


def test_match_by_uri():
    recorder = AutoListenRecorder(Recorder())
    recorder.set_displayed_shares([SharedTrack("share-1", TRACK_A_ID)])
    assert recorder.resolve(CompletionEvent(track_id="relinked-id", track_uri=TRACK_A)).share_id == "share-1"


def test_unshared_track_is_ignored():
    record = Recorder()
    recorder = AutoListenRecorder(record)
    recorder.set_displayed_shares([SharedTrack("share-1", TRACK_B_ID)])

    asyncio.run(recorder.on_completion(completed(), set()))
    assert record.calls == []


def test_already_known_share_is_not_recorded():
    record = Recorder()
    recorder = AutoListenRecorder(record)
    recorder.set_displayed_shares([SharedTrack("share-1", TRACK_A_ID)])

    asyncio.run(recorder.on_completion(completed(), {"share-1"}))
    assert record.calls == []


def test_concurrent_completions_record_once():
    async def scenario():
        gate = asyncio.Event()
        record = Recorder(gate=gate)
        recorder = AutoListenRecorder(record)
        recorder.set_displayed_shares([SharedTrack("share-1", TRACK_A_ID)])
        known = set()

        first = asyncio.create_task(recorder.on_completion(completed(), known))
        await settle()
        await recorder.on_completion(completed(), known)
        gate.set()
        await first
        return record.calls, known

    calls, known = asyncio.run(scenario())
    assert calls == ["share-1"]
    assert known == {"share-1"}


def test_failure_is_logged_and_not_retried(caplog):
    record = Recorder(error=UpstreamUnavailable("share service down"))
    recorder = AutoListenRecorder(record)
    recorder.set_displayed_shares([SharedTrack("share-1", TRACK_A_ID)])
    known = set()

    with caplog.at_level(logging.WARNING):
        asyncio.run(recorder.on_completion(completed(), known))
    assert record.calls == ["share-1"]
    assert known == set()
    assert "share-1" in caplog.text


def test_already_listened_answer_updates_cache():
    record = Recorder(error=AlreadyListened())
    recorder = AutoListenRecorder(record)
    recorder.set_displayed_shares([SharedTrack("share-1", TRACK_A_ID)])
    known = set()

    asyncio.run(recorder.on_completion(completed(), known))
    assert known == {"share-1"}


def test_bridge_completion_records_listen():
    async def scenario():
        record = Recorder()
        recorder = AutoListenRecorder(record)
        recorder.set_now_playing(SharedTrack("share-1", TRACK_A_ID))
        known = set()

        sdk = FakeSDK()
        bridge = RemotePlayerBridge(sdk.loader(), FakeBackend(), activation_delay=0, poll_interval=60)
        bridge.set_on_track_complete(recorder.listener(known))
        await bridge.start()
        sdk.player.emit("ready", {"device_id": "web-dev"})
        sdk.player.emit("player_state_changed", sdk_state(position=100_000))
        sdk.player.emit("player_state_changed", sdk_state(position=200_000, paused=True))
        sdk.player.emit("player_state_changed", sdk_state(position=200_000, paused=True))
        await settle()
        await recorder.drain()
        bridge.teardown()
        return record.calls, known

    calls, known = asyncio.run(scenario())
    assert calls == ["share-1"]
    assert known == {"share-1"}
