from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Protocol

from pydantic import ValidationError

from gridgame.api.models import ContactForm


class ContactFormLoadError(RuntimeError):
    pass


class ContactFormLoader(Protocol):
    """Supplies the contact form on demand.

    Only invoked once a session reaches the contact stage; the lifecycle is
    indifferent to how long this takes or whether it fails.
    """

    async def load(self) -> ContactForm:  # pragma: no cover
        ...


def forms_dir() -> Path:
    # gridgame/contact_form.py -> gridgame/forms/
    return Path(__file__).resolve().parent / "forms"


def read_contact_form(path: Path) -> ContactForm:
    try:
        raw = path.read_text(encoding="utf-8")
    except FileNotFoundError as e:
        raise ContactFormLoadError(f"Contact form not found: {path}") from e
    try:
        return ContactForm.model_validate_json(raw)
    except ValidationError as e:
        raise ContactFormLoadError(f"Invalid contact form definition: {path}") from e


class FileContactFormLoader:
    """Load a JSON form definition off the event loop, then serve it from cache."""

    def __init__(self, *, path: Path | None = None) -> None:
        self.path = path or (forms_dir() / "contact_form.json")
        self._cached: ContactForm | None = None

    async def load(self) -> ContactForm:
        if self._cached is None:
            self._cached = await asyncio.to_thread(read_contact_form, self.path)
        return self._cached
