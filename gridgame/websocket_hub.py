"""Per-session WebSocket channel.

Every tab watching a session subscribes here. Outgoing traffic is limited to
two message kinds, both built in this module so all clients see one shape:

  {"type": "session_updated", "session_id", "stage", "session": <SessionSnapshot>}
  {"type": "sound", "session_id", "cue", "frequency_hz", "duration_ms"}

The registry asks `watchers()` before evicting an idle session, so a session
with an open tab is never reaped for inactivity.
"""

from __future__ import annotations

import asyncio
import logging

from fastapi import WebSocket

from gridgame.api.models import SessionSnapshot
from gridgame.sound import SoundCue, cue_payload

logger = logging.getLogger(__name__)


def snapshot_message(snapshot: SessionSnapshot) -> dict[str, object]:
    sid = str(snapshot.session_id)
    return {
        "type": "session_updated",
        "session_id": sid,
        "stage": snapshot.stage.value,
        "session": snapshot.model_dump(mode="json"),
    }


def sound_message(session_id: str, cue: SoundCue) -> dict[str, object]:
    return {"type": "sound", "session_id": session_id, **cue_payload(cue)}


class SessionChannelHub:
    def __init__(self) -> None:
        self._subscribers: dict[str, set[WebSocket]] = {}
        self._lock = asyncio.Lock()

    def watchers(self, session_id: str) -> int:
        return len(self._subscribers.get(session_id, ()))

    async def subscribe(self, session_id: str, websocket: WebSocket, *, snapshot: SessionSnapshot) -> None:
        """Accept the socket, register it, then greet it with the current state."""

        await websocket.accept()
        async with self._lock:
            self._subscribers.setdefault(session_id, set()).add(websocket)
        await websocket.send_json(snapshot_message(snapshot))

    async def unsubscribe(self, session_id: str, websocket: WebSocket) -> int:
        """Drop a socket; returns how many tabs still watch the session."""

        async with self._lock:
            conns = self._subscribers.get(session_id)
            if conns is None:
                return 0
            conns.discard(websocket)
            if not conns:
                del self._subscribers[session_id]
                return 0
            return len(conns)

    async def publish_snapshot(self, snapshot: SessionSnapshot) -> None:
        await self._send(str(snapshot.session_id), snapshot_message(snapshot))

    async def publish_sound(self, session_id: str, cue: SoundCue) -> None:
        await self._send(session_id, sound_message(session_id, cue))

    async def _send(self, session_id: str, message: dict[str, object]) -> None:
        async with self._lock:
            conns = list(self._subscribers.get(session_id, ()))

        dead: list[WebSocket] = []
        for ws in conns:
            try:
                await ws.send_json(message)
            except Exception as e:
                logger.debug("session %s dropping websocket after send failure: %s", session_id, e)
                dead.append(ws)

        for ws in dead:
            await self.unsubscribe(session_id, ws)


hub = SessionChannelHub()
