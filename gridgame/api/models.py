from __future__ import annotations

from enum import StrEnum
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, Field

from gridgame.core.grid import Coordinate, GridModel
from gridgame.core.movement import Direction


class SessionStage(StrEnum):
    playing = "playing"
    victory = "victory"
    feedback_open = "feedback_open"
    feedback_submitted = "feedback_submitted"
    contact_open = "contact_open"


class ContactFormStatus(StrEnum):
    idle = "idle"
    pending = "pending"
    ready = "ready"
    failed = "failed"


class Position(BaseModel):
    x: int
    y: int

    @staticmethod
    def of(cell: Coordinate) -> "Position":
        return Position(x=cell.x, y=cell.y)


class FeedbackDraft(BaseModel):
    text: str = ""
    # 0 means "not rated yet".
    rating: int = Field(default=0, ge=0, le=5)


class SubmittedFeedback(BaseModel):
    model_config = {"frozen": True}

    text: str
    rating: int = Field(..., ge=1, le=5)


class ContactFormField(BaseModel):
    name: str
    label: str
    kind: Literal["text", "email", "textarea"] = "text"
    required: bool = True


class ContactForm(BaseModel):
    title: str
    fields: list[ContactFormField] = Field(default_factory=list)
    submit_label: str = "Send"


class ContactFormSlot(BaseModel):
    status: ContactFormStatus = ContactFormStatus.idle
    form: ContactForm | None = None
    error: str | None = None


class GridInfo(BaseModel):
    width: int
    height: int
    start: Position
    goal: Position
    obstacles: list[Position]

    @staticmethod
    def of(grid: GridModel) -> "GridInfo":
        return GridInfo(
            width=grid.width,
            height=grid.height,
            start=Position.of(grid.start),
            goal=Position.of(grid.goal),
            obstacles=[Position.of(c) for c in sorted(grid.obstacles)],
        )


class SessionSnapshot(BaseModel):
    """Everything a client needs to render a session.

    Read-only view; the session lifecycle is the only writer of the state
    behind it.
    """

    session_id: UUID
    stage: SessionStage
    position: Position
    has_won: bool
    status: str = ""
    reset_pending: bool = False
    draft: FeedbackDraft = Field(default_factory=FeedbackDraft)
    submitted_feedback: SubmittedFeedback | None = None
    contact_form: ContactFormSlot = Field(default_factory=ContactFormSlot)
    grid: GridInfo


class SessionCreateRequest(BaseModel):
    # Pass a previously issued id to pick up feedback drafts stored under it.
    session_id: UUID | None = None


class MoveRequest(BaseModel):
    direction: Direction


class DraftUpdateRequest(BaseModel):
    text: str | None = Field(default=None, max_length=4000)
    # 0 clears the rating (unset).
    rating: int | None = Field(default=None, ge=0, le=5)


class MoveResponse(BaseModel):
    session: SessionSnapshot
    events: list[str]


class SessionSocketMessage(BaseModel):
    """Client-to-server message on the session websocket."""

    type: Literal["move", "restart", "ping"]
    direction: Direction | None = None
