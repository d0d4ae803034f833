from __future__ import annotations

import asyncio

import fakeredis
import pytest

from gridgame.sound import (
    CUE_TONES,
    BroadcastSoundNotifier,
    FanoutSoundNotifier,
    SoundCue,
    StreamSoundNotifier,
    notify_safely,
)
from gridgame.streams import SoundStream, read_stream


class RecordingSoundNotifier:
    def __init__(self) -> None:
        self.cues: list[SoundCue] = []

    def notify(self, cue: SoundCue) -> None:
        self.cues.append(cue)


class ExplodingSoundNotifier:
    def notify(self, cue: SoundCue) -> None:
        raise RuntimeError("no audio device")


def test_cue_tones_match_client_beeps() -> None:
    assert CUE_TONES[SoundCue.move].frequency_hz == 500
    assert CUE_TONES[SoundCue.blocked].frequency_hz == 150
    assert CUE_TONES[SoundCue.win].frequency_hz == 1000
    assert CUE_TONES[SoundCue.win].duration_ms == 300


def test_stream_notifier_appends_cues(r: fakeredis.FakeRedis) -> None:
    n = StreamSoundNotifier(r=r, session_id="s1")
    n.notify(SoundCue.move)
    n.notify(SoundCue.win)

    entries = read_stream(r=r, stream=SoundStream(session_id="s1"))
    assert [f["cue"] for _, f in entries] == ["move", "win"]
    assert entries[0][1]["frequency_hz"] == "500"


def test_notify_safely_swallows_failures() -> None:
    notify_safely(ExplodingSoundNotifier(), SoundCue.blocked)
    notify_safely(None, SoundCue.blocked)


def test_fanout_keeps_going_after_a_failing_notifier() -> None:
    rec = RecordingSoundNotifier()
    fan = FanoutSoundNotifier([ExplodingSoundNotifier(), rec])
    fan.notify(SoundCue.move)
    assert rec.cues == [SoundCue.move]


def test_broadcast_notifier_without_loop_is_dropped_by_notify_safely() -> None:
    class _Hub:
        async def publish_sound(self, session_id: str, cue: SoundCue) -> None:  # pragma: no cover
            raise AssertionError("should not be called")

    notify_safely(BroadcastSoundNotifier(hub=_Hub(), session_id="s1"), SoundCue.move)  # type: ignore[arg-type]


@pytest.mark.asyncio
async def test_broadcast_notifier_schedules_hub_publish() -> None:
    sent: list[tuple[str, SoundCue]] = []

    class _Hub:
        async def publish_sound(self, session_id: str, cue: SoundCue) -> None:
            sent.append((session_id, cue))

    n = BroadcastSoundNotifier(hub=_Hub(), session_id="s1")  # type: ignore[arg-type]
    n.notify(SoundCue.blocked)
    await asyncio.sleep(0)

    assert sent == [("s1", SoundCue.blocked)]
