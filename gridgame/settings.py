from __future__ import annotations

import os
from dataclasses import dataclass

from gridgame.infra.redis_client import get_redis_url

# Delay between an obstacle hit and the automatic restart.
BLOCKED_RESET_DELAY_MS = 1500

# Live sessions nobody has touched for this long are torn down (0 disables).
DEFAULT_SESSION_IDLE_S = 1800
DEFAULT_MAX_SESSIONS = 1000


@dataclass(frozen=True, slots=True)
class Settings:
    redis_url: str
    reset_delay_ms: int = BLOCKED_RESET_DELAY_MS
    sound_stream_maxlen: int = 200
    draft_ttl_s: int = 0
    session_idle_s: int = DEFAULT_SESSION_IDLE_S
    max_sessions: int = DEFAULT_MAX_SESSIONS
    log_level: str = "INFO"


def _int_env(name: str, default: int, *, minimum: int = 0) -> int:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError as e:
        raise ValueError(f"{name} must be an integer (got {raw!r})") from e
    if value < minimum:
        raise ValueError(f"{name} must be >= {minimum} (got {value})")
    return value


def load_settings() -> Settings:
    return Settings(
        redis_url=get_redis_url(),
        reset_delay_ms=_int_env("GRIDGAME_RESET_DELAY_MS", BLOCKED_RESET_DELAY_MS),
        sound_stream_maxlen=_int_env("GRIDGAME_SOUND_STREAM_MAXLEN", 200, minimum=1),
        draft_ttl_s=_int_env("GRIDGAME_DRAFT_TTL_S", 0),
        session_idle_s=_int_env("GRIDGAME_SESSION_IDLE_S", DEFAULT_SESSION_IDLE_S),
        max_sessions=_int_env("GRIDGAME_MAX_SESSIONS", DEFAULT_MAX_SESSIONS, minimum=1),
        log_level=os.environ.get("GRIDGAME_LOG_LEVEL", "INFO").upper(),
    )
