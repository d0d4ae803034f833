from __future__ import annotations

import logging
import time
from collections import OrderedDict
from collections.abc import Callable
from uuid import UUID, uuid4

import redis

from gridgame.api.models import SessionSnapshot
from gridgame.contact_form import ContactFormLoader, FileContactFormLoader
from gridgame.draft_store import RedisDraftStore
from gridgame.session import ChangeListener, SessionLifecycle
from gridgame.settings import DEFAULT_MAX_SESSIONS, DEFAULT_SESSION_IDLE_S, Settings
from gridgame.sound import BroadcastSoundNotifier, FanoutSoundNotifier, StreamSoundNotifier
from gridgame.streams import SoundStream, delete_stream
from gridgame.websocket_hub import SessionChannelHub

logger = logging.getLogger(__name__)


class SessionRegistry:
    """In-process registry of live sessions keyed by session id.

    Grid progress is never persisted; only feedback drafts outlive a session
    (they live in Redis under the session id).

    Sessions are kept in least-recently-used order. `evict()` tears down
    sessions idle for `idle_s` seconds (unless `in_use` says a client is
    still attached) and then the oldest ones beyond `max_sessions`. It runs on
    every `add()` and from the periodic sweep in the app lifespan.
    """

    def __init__(
        self,
        *,
        idle_s: float = DEFAULT_SESSION_IDLE_S,
        max_sessions: int = DEFAULT_MAX_SESSIONS,
        in_use: Callable[[UUID], bool] | None = None,
        on_discard: Callable[[UUID], None] | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_sessions < 1:
            raise ValueError("max_sessions must be >= 1")
        self._idle_s = idle_s
        self._max_sessions = max_sessions
        self._in_use = in_use or (lambda _sid: False)
        self._on_discard = on_discard
        self._clock = clock
        self._sessions: OrderedDict[UUID, SessionLifecycle] = OrderedDict()
        self._last_seen: dict[UUID, float] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions

    def get(self, session_id: UUID) -> SessionLifecycle | None:
        session = self._sessions.get(session_id)
        if session is not None:
            self.touch(session_id)
        return session

    def touch(self, session_id: UUID) -> None:
        if session_id in self._sessions:
            self._sessions.move_to_end(session_id)
            self._last_seen[session_id] = self._clock()

    def add(self, session: SessionLifecycle) -> None:
        sid = session.session_id
        previous = self._sessions.get(sid)
        if previous is not None and previous is not session:
            previous.close()
        self._sessions[sid] = session
        self.touch(sid)
        self.evict()

    def discard(self, session_id: UUID) -> bool:
        session = self._sessions.pop(session_id, None)
        self._last_seen.pop(session_id, None)
        if session is None:
            return False
        session.close()
        if self._on_discard is not None:
            self._on_discard(session_id)
        return True

    def evict(self) -> list[UUID]:
        now = self._clock()
        doomed: list[UUID] = []

        if self._idle_s > 0:
            for sid in self._sessions:  # least recently used first
                if now - self._last_seen[sid] < self._idle_s:
                    break
                if not self._in_use(sid):
                    doomed.append(sid)

        overflow = len(self._sessions) - len(doomed) - self._max_sessions
        if overflow > 0:
            for sid in self._sessions:
                if overflow == 0:
                    break
                if sid not in doomed:
                    doomed.append(sid)
                    overflow -= 1

        for sid in doomed:
            self.discard(sid)
        if doomed:
            logger.info("evicted %d session(s); %d live", len(doomed), len(self._sessions))
        return doomed

    def close_all(self) -> None:
        for sid in list(self._sessions):
            self.discard(sid)


def create_registry(*, r: redis.Redis, settings: Settings, hub: SessionChannelHub) -> SessionRegistry:
    """Registry that spares sessions with an open tab and drops the sound outbox of every session it discards."""

    def _drop_sound_stream(session_id: UUID) -> None:
        delete_stream(r=r, stream=SoundStream(session_id=str(session_id)))

    return SessionRegistry(
        idle_s=settings.session_idle_s,
        max_sessions=settings.max_sessions,
        in_use=lambda sid: hub.watchers(str(sid)) > 0,
        on_discard=_drop_sound_stream,
    )


_contact_form_loader: ContactFormLoader = FileContactFormLoader()


def create_session(
    *,
    r: redis.Redis,
    settings: Settings,
    sessions: SessionRegistry,
    hub: SessionChannelHub,
    session_id: UUID | None = None,
    contact_forms: ContactFormLoader | None = None,
) -> SessionLifecycle:
    """Start a session, restoring drafts when resuming a known session id.

    A live session with the same id (e.g. the page was reloaded) is torn down
    first so its timer and in-flight loads can't reach the new one.
    """

    sid = session_id or uuid4()
    sid_str = str(sid)

    async def _publish_change(snapshot: SessionSnapshot) -> None:
        await hub.publish_snapshot(snapshot)

    on_change: ChangeListener = _publish_change

    session = SessionLifecycle(
        session_id=sid,
        drafts=RedisDraftStore(r=r, session_id=sid_str, ttl_s=settings.draft_ttl_s),
        contact_forms=contact_forms or _contact_form_loader,
        sound=FanoutSoundNotifier(
            [
                StreamSoundNotifier(r=r, session_id=sid_str, maxlen=settings.sound_stream_maxlen),
                BroadcastSoundNotifier(hub=hub, session_id=sid_str),
            ]
        ),
        reset_delay_ms=settings.reset_delay_ms,
        on_change=on_change,
    )
    sessions.add(session)
    logger.info("session %s started (resumed=%s)", sid_str, session_id is not None)
    return session
