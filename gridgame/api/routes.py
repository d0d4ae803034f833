from __future__ import annotations

from uuid import UUID

import redis
from fastapi import APIRouter, Depends, HTTPException, Response, WebSocket, WebSocketDisconnect, status
from pydantic import ValidationError

from gridgame.api.deps import get_redis, get_registry, get_settings
from gridgame.api.models import (
    DraftUpdateRequest,
    MoveRequest,
    MoveResponse,
    SessionCreateRequest,
    SessionSnapshot,
    SessionSocketMessage,
)
from gridgame.session import SessionLifecycle
from gridgame.session_store import SessionRegistry, create_session
from gridgame.settings import Settings
from gridgame.streams import SoundStream, read_stream
from gridgame.websocket_hub import hub

router = APIRouter()


# Close code sent when the session behind a socket is unknown or was torn down.
WS_CLOSE_SESSION_GONE = 4404


def _require_session(sessions: SessionRegistry, session_id: UUID) -> SessionLifecycle:
    session = sessions.get(session_id)
    if session is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Session not found")
    return session


async def _publish_update(session: SessionLifecycle) -> None:
    await hub.publish_snapshot(session.snapshot())


async def _handle_socket_message(session: SessionLifecycle, websocket: WebSocket, raw: str) -> None:
    try:
        msg = SessionSocketMessage.model_validate_json(raw)
    except ValidationError as e:
        await websocket.send_json({"type": "error", "detail": e.errors()[0]["msg"]})
        return

    if msg.type == "ping":
        await websocket.send_json({"type": "pong"})
    elif msg.type == "move":
        if msg.direction is None:
            await websocket.send_json({"type": "error", "detail": "direction is required for move"})
        elif session.attempt_move(msg.direction):
            await _publish_update(session)
    elif msg.type == "restart":
        session.restart()
        await _publish_update(session)


@router.websocket("/ws/session/{session_id}")
async def session_ws(websocket: WebSocket, session_id: UUID, sessions: SessionRegistry = Depends(get_registry)) -> None:
    """Two-way game channel: arrow-key intents in, snapshots and sound cues out."""

    session = sessions.get(session_id)
    if session is None:
        await websocket.close(code=WS_CLOSE_SESSION_GONE)
        return

    sid = str(session_id)
    await hub.subscribe(sid, websocket, snapshot=session.snapshot())
    try:
        while True:
            raw = await websocket.receive_text()
            # Re-resolve each time: the session may have been resumed under the same id, or deleted.
            current = sessions.get(session_id)
            if current is None:
                await websocket.close(code=WS_CLOSE_SESSION_GONE)
                break
            await _handle_socket_message(current, websocket, raw)
    except WebSocketDisconnect:
        pass
    finally:
        if await hub.unsubscribe(sid, websocket) == 0:
            # Idle eviction counts from the moment the last tab went away.
            sessions.touch(session_id)


@router.get("/healthcheck")
async def healthcheck() -> dict[str, str]:
    return {"status": "ok"}


@router.post("/session", response_model=SessionSnapshot, status_code=status.HTTP_201_CREATED)
async def create_session_route(
    payload: SessionCreateRequest | None = None,
    r: redis.Redis = Depends(get_redis),
    settings: Settings = Depends(get_settings),
    sessions: SessionRegistry = Depends(get_registry),
) -> SessionSnapshot:
    session = create_session(
        r=r,
        settings=settings,
        sessions=sessions,
        hub=hub,
        session_id=payload.session_id if payload else None,
    )
    return session.snapshot()


@router.get("/session/{session_id}", response_model=SessionSnapshot)
async def get_session_route(session_id: UUID, sessions: SessionRegistry = Depends(get_registry)) -> SessionSnapshot:
    return _require_session(sessions, session_id).snapshot()


@router.delete("/session/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_session_route(
    session_id: UUID,
    sessions: SessionRegistry = Depends(get_registry),
) -> Response:
    if not sessions.discard(session_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Session not found")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/session/{session_id}/move", response_model=MoveResponse)
async def move_route(
    session_id: UUID,
    payload: MoveRequest,
    sessions: SessionRegistry = Depends(get_registry),
) -> MoveResponse:
    session = _require_session(sessions, session_id)
    events = session.attempt_move(payload.direction)
    if events:
        await _publish_update(session)
    return MoveResponse(session=session.snapshot(), events=[ev.type for ev in events])


@router.post("/session/{session_id}/feedback/open", response_model=SessionSnapshot)
async def open_feedback_route(session_id: UUID, sessions: SessionRegistry = Depends(get_registry)) -> SessionSnapshot:
    session = _require_session(sessions, session_id)
    try:
        session.open_feedback()
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e)) from e

    await _publish_update(session)
    return session.snapshot()


@router.put("/session/{session_id}/feedback/draft", response_model=SessionSnapshot)
async def update_draft_route(
    session_id: UUID,
    payload: DraftUpdateRequest,
    sessions: SessionRegistry = Depends(get_registry),
) -> SessionSnapshot:
    session = _require_session(sessions, session_id)
    try:
        session.update_draft(text=payload.text, rating=payload.rating)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e)) from e
    return session.snapshot()


@router.post("/session/{session_id}/feedback/submit", response_model=SessionSnapshot)
async def submit_feedback_route(session_id: UUID, sessions: SessionRegistry = Depends(get_registry)) -> SessionSnapshot:
    session = _require_session(sessions, session_id)
    try:
        session.submit_feedback()
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e)) from e

    await _publish_update(session)
    return session.snapshot()


@router.post("/session/{session_id}/restart", response_model=SessionSnapshot)
async def restart_route(session_id: UUID, sessions: SessionRegistry = Depends(get_registry)) -> SessionSnapshot:
    session = _require_session(sessions, session_id)
    session.restart()
    await _publish_update(session)
    return session.snapshot()


@router.get("/session/{session_id}/sounds")
async def get_session_sounds_route(
    session_id: UUID,
    count: int = 20,
    r: redis.Redis = Depends(get_redis),
    sessions: SessionRegistry = Depends(get_registry),
) -> dict[str, object]:
    """Debug endpoint: read a session's sound cue stream.

    Intended for local/dev testing when redis-cli isn't available.
    """

    if count < 1 or count > 200:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="count must be between 1 and 200")

    _require_session(sessions, session_id)
    stream = SoundStream(session_id=str(session_id))
    entries = read_stream(r=r, stream=stream, count=count)
    cues = [{"id": mid, "fields": fields} for mid, fields in entries]
    return {"session_id": str(session_id), "stream": stream.key, "cues": cues}
