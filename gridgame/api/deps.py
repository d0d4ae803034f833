from __future__ import annotations

from functools import lru_cache

import redis

from gridgame.infra.redis_client import create_redis
from gridgame.session_store import SessionRegistry, create_registry
from gridgame.settings import Settings, load_settings
from gridgame.websocket_hub import hub


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return load_settings()


@lru_cache(maxsize=1)
def _shared_redis() -> redis.Redis:
    return create_redis(get_settings().redis_url)


def get_redis() -> redis.Redis:
    # Sessions keep their draft store and sound outbox across requests (the
    # collision reset fires outside any request), so one process-wide client
    # is shared instead of opening one per request.
    return _shared_redis()


@lru_cache(maxsize=1)
def get_registry() -> SessionRegistry:
    return create_registry(r=get_redis(), settings=get_settings(), hub=hub)
