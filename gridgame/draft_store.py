from __future__ import annotations

import logging
from typing import Protocol

import redis

from gridgame.api.models import FeedbackDraft

logger = logging.getLogger(__name__)

FEEDBACK_DRAFT_KEY = "feedbackDraft"
RATING_DRAFT_KEY = "ratingDraft"

DRAFT_KEY_PREFIX = "gridgame:draft:"  # + {session_id}:{key}


class DraftStore(Protocol):
    """Durable key/value persistence for in-progress feedback.

    Writes are fire-and-forget and last-write-wins.
    """

    def save(self, key: str, value: str) -> None:  # pragma: no cover
        ...

    def load(self, key: str) -> str | None:  # pragma: no cover
        ...

    def clear(self, key: str) -> None:  # pragma: no cover
        ...


class RedisDraftStore:
    """DraftStore backed by plain Redis string keys, namespaced per session."""

    def __init__(self, *, r: redis.Redis, session_id: str, ttl_s: int = 0) -> None:
        self._r = r
        self.session_id = session_id
        self._ttl_s = ttl_s

    def _key(self, key: str) -> str:
        return f"{DRAFT_KEY_PREFIX}{self.session_id}:{key}"

    def save(self, key: str, value: str) -> None:
        if self._ttl_s > 0:
            self._r.set(self._key(key), value, ex=self._ttl_s)
        else:
            self._r.set(self._key(key), value)

    def load(self, key: str) -> str | None:
        raw = self._r.get(self._key(key))
        if raw is None:
            return None
        # Tolerate clients created without decode_responses=True.
        return raw.decode("utf-8") if isinstance(raw, bytes) else str(raw)

    def clear(self, key: str) -> None:
        self._r.delete(self._key(key))


def parse_rating(raw: str | None) -> int:
    """Absent, unparseable, or out-of-range ratings all mean "not rated" (0)."""

    if raw is None:
        return 0
    try:
        rating = int(raw.strip(), 10)
    except ValueError:
        logger.debug("Ignoring unparseable rating draft %r", raw)
        return 0
    if rating < 0 or rating > 5:
        return 0
    return rating


def load_feedback_draft(store: DraftStore) -> FeedbackDraft:
    text = store.load(FEEDBACK_DRAFT_KEY) or ""
    rating = parse_rating(store.load(RATING_DRAFT_KEY))
    return FeedbackDraft(text=text, rating=rating)


def save_feedback_text(store: DraftStore, text: str) -> None:
    store.save(FEEDBACK_DRAFT_KEY, text)


def save_rating(store: DraftStore, rating: int) -> None:
    store.save(RATING_DRAFT_KEY, str(rating))


def clear_feedback_draft(store: DraftStore) -> None:
    store.clear(FEEDBACK_DRAFT_KEY)
    store.clear(RATING_DRAFT_KEY)
