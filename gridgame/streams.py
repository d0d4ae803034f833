from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping, cast

import redis


@dataclass(frozen=True, slots=True)
class SoundStream:
    session_id: str

    @property
    def key(self) -> str:
        return f"sounds:{self.session_id}"


def publish_to_stream(
    *,
    r: redis.Redis,
    stream: SoundStream,
    fields: Mapping[str, str],
    maxlen: int | None = None,
) -> str:
    """Append an entry to a session's sound cue stream.

    With `maxlen`, the stream is trimmed approximately so idle sessions don't grow forever.
    """

    # redis-py stubs expect field/value unions; we only use string fields/values.
    stream_id = r.xadd(
        stream.key,
        {str(k): str(v) for k, v in fields.items()},
        maxlen=maxlen,
        approximate=True,
    )
    return cast(str, stream_id)


def read_stream(*, r: redis.Redis, stream: SoundStream, count: int = 20) -> list[tuple[str, dict[str, str]]]:
    entries = r.xrange(stream.key, min="-", max="+", count=count)
    return [(cast(str, mid), cast(dict[str, str], fields)) for mid, fields in entries]


def delete_stream(*, r: redis.Redis, stream: SoundStream) -> None:
    r.delete(stream.key)
