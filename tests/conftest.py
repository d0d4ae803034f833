from __future__ import annotations

import os
from collections.abc import Generator
from pathlib import Path

import fakeredis
import pytest

from gridgame.api.models import ContactForm, ContactFormField
from gridgame.sound import SoundCue


@pytest.fixture(scope="session", autouse=True)
def _load_dotenv_for_tests() -> None:
    """Load repo .env for local runs.

    In CI, we *don't* auto-load `.env` by default.
    Opt-in locally with: GRIDGAME_LOAD_DOTENV_FOR_TESTS=1
    """

    if os.environ.get("CI") and os.environ.get("GRIDGAME_LOAD_DOTENV_FOR_TESTS") != "1":
        return

    env_path = Path(__file__).resolve().parents[1] / ".env"
    if env_path.exists():
        from dotenv import load_dotenv

        load_dotenv(dotenv_path=env_path, override=False)


API_MAX_SESSIONS = 50


class RecordingSoundNotifier:
    def __init__(self) -> None:
        self.cues: list[SoundCue] = []

    def notify(self, cue: SoundCue) -> None:
        self.cues.append(cue)


class StubContactFormLoader:
    """Returns a fixed form; `calls` counts load requests."""

    def __init__(self) -> None:
        self.calls = 0
        self.form = ContactForm(
            title="Contact Us",
            fields=[ContactFormField(name="email", label="Email", kind="email")],
        )

    async def load(self) -> ContactForm:
        self.calls += 1
        return self.form


@pytest.fixture()
def r() -> fakeredis.FakeRedis:
    return fakeredis.FakeRedis(decode_responses=True)


@pytest.fixture()
def sounds() -> RecordingSoundNotifier:
    return RecordingSoundNotifier()


@pytest.fixture()
def contact_forms() -> StubContactFormLoader:
    return StubContactFormLoader()


@pytest.fixture()
def client_and_redis():
    """FastAPI TestClient wired to fakeredis, a fresh session registry, a short reset delay and a small session cap."""

    from fastapi.testclient import TestClient

    from gridgame.api.deps import get_redis, get_registry, get_settings
    from gridgame.main import app
    from gridgame.session_store import create_registry
    from gridgame.settings import Settings
    from gridgame.websocket_hub import hub

    r = fakeredis.FakeRedis(decode_responses=True)
    settings = Settings(redis_url="redis://unused", reset_delay_ms=50, max_sessions=API_MAX_SESSIONS)
    sessions = create_registry(r=r, settings=settings, hub=hub)

    app.dependency_overrides[get_redis] = lambda: r
    app.dependency_overrides[get_registry] = lambda: sessions
    app.dependency_overrides[get_settings] = lambda: settings
    # The app lifespan closes the overridden registry on exit.
    with TestClient(app) as c:
        yield c, r
    app.dependency_overrides.clear()


@pytest.fixture()
def client(client_and_redis) -> Generator:
    c, _ = client_and_redis
    yield c


@pytest.fixture()
def app_sessions(client_and_redis):  # type: ignore[no-untyped-def]
    """The session registry behind `client_and_redis`."""

    from gridgame.api.deps import get_registry
    from gridgame.main import app

    return app.dependency_overrides[get_registry]()
