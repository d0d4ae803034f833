from __future__ import annotations

import asyncio
from uuid import UUID, uuid4

import fakeredis
import pytest

from gridgame.core.movement import Direction
from gridgame.draft_store import RedisDraftStore
from gridgame.session import SessionLifecycle
from gridgame.session_store import SessionRegistry, create_registry, create_session
from gridgame.settings import Settings
from gridgame.sound import SoundCue, cue_payload
from gridgame.streams import SoundStream, publish_to_stream
from gridgame.websocket_hub import SessionChannelHub


class ManualClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


def _session(r: fakeredis.FakeRedis, contact_forms, **kwargs) -> SessionLifecycle:  # type: ignore[no-untyped-def]
    sid = uuid4()
    return SessionLifecycle(
        session_id=sid,
        drafts=RedisDraftStore(r=r, session_id=str(sid)),
        contact_forms=contact_forms,
        **kwargs,
    )


def test_idle_sessions_are_evicted_and_closed(r: fakeredis.FakeRedis, contact_forms) -> None:  # type: ignore[no-untyped-def]
    clock = ManualClock()
    sessions = SessionRegistry(idle_s=10, clock=clock)
    stale, active = _session(r, contact_forms), _session(r, contact_forms)
    sessions.add(stale)
    sessions.add(active)

    clock.now = 5
    assert sessions.get(active.session_id) is active
    clock.now = 11

    assert sessions.evict() == [stale.session_id]
    assert stale.closed is True
    assert stale.session_id not in sessions
    assert active.closed is False
    assert len(sessions) == 1


def test_sessions_in_use_survive_idle_eviction(r: fakeredis.FakeRedis, contact_forms) -> None:  # type: ignore[no-untyped-def]
    clock = ManualClock()
    watched = _session(r, contact_forms)
    sessions = SessionRegistry(idle_s=10, clock=clock, in_use=lambda sid: sid == watched.session_id)
    sessions.add(watched)

    clock.now = 100
    assert sessions.evict() == []
    assert watched.closed is False


def test_zero_idle_disables_idle_eviction(r: fakeredis.FakeRedis, contact_forms) -> None:  # type: ignore[no-untyped-def]
    clock = ManualClock()
    sessions = SessionRegistry(idle_s=0, clock=clock)
    sessions.add(_session(r, contact_forms))
    clock.now = 1e9
    assert sessions.evict() == []


def test_cap_evicts_least_recently_used(r: fakeredis.FakeRedis, contact_forms) -> None:  # type: ignore[no-untyped-def]
    clock = ManualClock()
    discarded: list[UUID] = []
    sessions = SessionRegistry(max_sessions=2, clock=clock, on_discard=discarded.append)
    a, b, c = (_session(r, contact_forms) for _ in range(3))
    sessions.add(a)
    clock.now = 1
    sessions.add(b)
    clock.now = 2
    sessions.get(a.session_id)
    clock.now = 3

    sessions.add(c)

    assert discarded == [b.session_id]
    assert b.closed is True
    assert a.session_id in sessions and c.session_id in sessions


def test_cap_holds_under_many_abandoned_sessions(r: fakeredis.FakeRedis, contact_forms) -> None:  # type: ignore[no-untyped-def]
    sessions = SessionRegistry(max_sessions=25)
    created = [_session(r, contact_forms) for _ in range(200)]
    for s in created:
        sessions.add(s)

    assert len(sessions) == 25
    assert all(s.closed for s in created[:175])
    assert not any(s.closed for s in created[175:])


def test_replacing_a_session_closes_the_old_one_without_discard_hook(r: fakeredis.FakeRedis, contact_forms) -> None:  # type: ignore[no-untyped-def]
    discarded: list[UUID] = []
    sessions = SessionRegistry(on_discard=discarded.append)
    old = _session(r, contact_forms)
    new = SessionLifecycle(
        session_id=old.session_id,
        drafts=RedisDraftStore(r=r, session_id=str(old.session_id)),
        contact_forms=contact_forms,
    )
    sessions.add(old)
    sessions.add(new)

    assert old.closed is True
    assert sessions.get(old.session_id) is new
    assert discarded == []


def test_max_sessions_must_be_positive() -> None:
    with pytest.raises(ValueError):
        SessionRegistry(max_sessions=0)


@pytest.mark.asyncio
async def test_eviction_cancels_pending_reset(r: fakeredis.FakeRedis, contact_forms) -> None:  # type: ignore[no-untyped-def]
    clock = ManualClock()
    sessions = SessionRegistry(idle_s=10, clock=clock)
    session = _session(r, contact_forms, reset_delay_ms=20)
    sessions.add(session)
    session.attempt_move(Direction.right)  # (2,1) is an obstacle
    handle = session._reset_handle
    assert handle is not None

    clock.now = 10
    sessions.evict()
    await asyncio.sleep(0.05)

    assert handle.cancelled()
    assert session.reset_pending is False
    assert session.snapshot().status == "Obstacle hit! Resetting..."


@pytest.mark.asyncio
async def test_registry_spares_watched_sessions_and_drops_sound_streams(r: fakeredis.FakeRedis) -> None:
    hub = SessionChannelHub()
    settings = Settings(redis_url="redis://unused", session_idle_s=60)
    sessions = create_registry(r=r, settings=settings, hub=hub)
    watched = create_session(r=r, settings=settings, sessions=sessions, hub=hub)
    abandoned = create_session(r=r, settings=settings, sessions=sessions, hub=hub)
    for s in (watched, abandoned):
        publish_to_stream(r=r, stream=SoundStream(session_id=str(s.session_id)), fields=cue_payload(SoundCue.move))

    class _Socket:
        async def accept(self) -> None:
            pass

        async def send_json(self, data: dict[str, object]) -> None:
            pass

    await hub.subscribe(str(watched.session_id), _Socket(), snapshot=watched.snapshot())  # type: ignore[arg-type]

    # Pretend both were last touched long ago.
    for sid in list(sessions._last_seen):
        sessions._last_seen[sid] -= 120

    assert sessions.evict() == [abandoned.session_id]
    assert watched.session_id in sessions
    assert not r.exists(f"sounds:{abandoned.session_id}")
    assert r.exists(f"sounds:{watched.session_id}")
