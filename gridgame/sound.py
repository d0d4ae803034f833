"""Semantic sound cues and best-effort notifiers.

The lifecycle only says *what* happened (move, blocked, win). Clients render
the audio; each cue carries the tone the browser client synthesizes so it
doesn't need its own table.

Contract: `SoundNotifier.notify` should not raise, and callers still go
through `notify_safely` so a misbehaving notifier can never disturb game state.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING, Protocol, Sequence

import redis

from gridgame.streams import SoundStream, publish_to_stream

if TYPE_CHECKING:
    from gridgame.websocket_hub import SessionChannelHub

logger = logging.getLogger(__name__)


class SoundCue(StrEnum):
    move = "move"
    blocked = "blocked"
    win = "win"


@dataclass(frozen=True, slots=True)
class Tone:
    frequency_hz: int
    duration_ms: int


CUE_TONES: dict[SoundCue, Tone] = {
    SoundCue.move: Tone(frequency_hz=500, duration_ms=150),
    SoundCue.blocked: Tone(frequency_hz=150, duration_ms=150),
    SoundCue.win: Tone(frequency_hz=1000, duration_ms=300),
}


def cue_payload(cue: SoundCue) -> dict[str, str]:
    tone = CUE_TONES[cue]
    return {
        "cue": cue.value,
        "frequency_hz": str(tone.frequency_hz),
        "duration_ms": str(tone.duration_ms),
    }


class SoundNotifier(Protocol):
    def notify(self, cue: SoundCue) -> None:  # pragma: no cover
        ...


def notify_safely(notifier: SoundNotifier | None, cue: SoundCue) -> None:
    if notifier is None:
        return
    try:
        notifier.notify(cue)
    except Exception as e:
        # Audio is best-effort: never surfaced, never a game error.
        logger.debug("Sound cue %s dropped: %s", cue.value, e)


class StreamSoundNotifier:
    """Append cues to the session's Redis Stream outbox."""

    def __init__(self, *, r: redis.Redis, session_id: str, maxlen: int | None = 200) -> None:
        self._r = r
        self._stream = SoundStream(session_id=session_id)
        self._maxlen = maxlen

    def notify(self, cue: SoundCue) -> None:
        publish_to_stream(r=self._r, stream=self._stream, fields=cue_payload(cue), maxlen=self._maxlen)


class BroadcastSoundNotifier:
    """Push cues to connected WebSocket clients.

    `notify` is synchronous; the broadcast is scheduled on the running loop
    and not awaited.
    """

    def __init__(self, *, hub: "SessionChannelHub", session_id: str) -> None:
        self._hub = hub
        self._session_id = session_id
        self._pending: set[asyncio.Task[None]] = set()

    def notify(self, cue: SoundCue) -> None:
        loop = asyncio.get_running_loop()
        task = loop.create_task(self._hub.publish_sound(self._session_id, cue))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)


class FanoutSoundNotifier:
    """Deliver each cue to every notifier; one failing doesn't stop the rest."""

    def __init__(self, notifiers: Sequence[SoundNotifier]) -> None:
        self._notifiers = tuple(notifiers)

    def notify(self, cue: SoundCue) -> None:
        for n in self._notifiers:
            notify_safely(n, cue)
