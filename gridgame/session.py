"""Session lifecycle: the single writer of a game session's state.

Stages run playing -> victory -> feedback_open -> feedback_submitted ->
contact_open, and restart returns to playing from anywhere. The lifecycle
consumes movement engine events, dispatches side effects (sound cues, draft
persistence, contact form loading) and owns the one timer in the system: the
collision auto-reset.

All methods must be called from the event loop thread. Methods that may
schedule work (moves that hit an obstacle, feedback submission) need a
running loop.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from uuid import UUID

from gridgame.api.models import (
    ContactFormSlot,
    ContactFormStatus,
    FeedbackDraft,
    GridInfo,
    Position,
    SessionSnapshot,
    SessionStage,
    SubmittedFeedback,
)
from gridgame.contact_form import ContactFormLoader
from gridgame.core.events import MoveEvent
from gridgame.core.grid import DEFAULT_GRID, GridModel
from gridgame.core.movement import Direction, MovementEngine
from gridgame.draft_store import (
    DraftStore,
    clear_feedback_draft,
    load_feedback_draft,
    save_feedback_text,
    save_rating,
)
from gridgame.fsm import SessionFSM
from gridgame.settings import BLOCKED_RESET_DELAY_MS
from gridgame.sound import SoundCue, SoundNotifier, notify_safely
from gridgame.validation import ValidationContext, pipeline_for_action

logger = logging.getLogger(__name__)

STATUS_OBSTACLE_HIT = "Obstacle hit! Resetting..."
STATUS_VICTORY = "Victory! 🎉"

ChangeListener = Callable[[SessionSnapshot], Awaitable[None]]


class SessionLifecycle:
    def __init__(
        self,
        *,
        session_id: UUID,
        drafts: DraftStore,
        contact_forms: ContactFormLoader,
        sound: SoundNotifier | None = None,
        grid: GridModel = DEFAULT_GRID,
        reset_delay_ms: int = BLOCKED_RESET_DELAY_MS,
        on_change: ChangeListener | None = None,
    ) -> None:
        if reset_delay_ms < 0:
            raise ValueError("reset_delay_ms must be >= 0")

        self.session_id = session_id
        self.engine = MovementEngine(grid)
        self._fsm = SessionFSM()
        self._drafts = drafts
        self._contact_forms = contact_forms
        self._sound = sound
        self._reset_delay_ms = reset_delay_ms
        self._on_change = on_change

        self._status = ""
        self._submitted: SubmittedFeedback | None = None
        self._contact = ContactFormSlot()
        self._reset_handle: asyncio.TimerHandle | None = None
        # Bumped on every restart/teardown; async results tagged with an older
        # generation are stale and get dropped.
        self._generation = 0
        self._tasks: set[asyncio.Task[None]] = set()
        self._closed = False

        # Restored eagerly so a reload mid-draft shows the text once the form reopens.
        self._draft = load_feedback_draft(drafts)

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------
    @property
    def stage(self) -> SessionStage:
        return self._fsm.stage

    @property
    def draft(self) -> FeedbackDraft:
        return self._draft.model_copy()

    @property
    def submitted_feedback(self) -> SubmittedFeedback | None:
        return self._submitted

    @property
    def reset_pending(self) -> bool:
        return self._reset_handle is not None

    @property
    def closed(self) -> bool:
        return self._closed

    def snapshot(self) -> SessionSnapshot:
        return SessionSnapshot(
            session_id=self.session_id,
            stage=self.stage,
            position=Position.of(self.engine.position),
            has_won=self.engine.has_won,
            status=self._status,
            reset_pending=self.reset_pending,
            draft=self.draft,
            submitted_feedback=self._submitted,
            contact_form=self._contact.model_copy(),
            grid=GridInfo.of(self.engine.grid),
        )

    # ------------------------------------------------------------------
    # Movement
    # ------------------------------------------------------------------
    def attempt_move(self, direction: Direction | str) -> list[MoveEvent]:
        """Apply one directional intent. Never raises for game reasons.

        Intents are ignored outside the playing stage and while a collision
        reset is pending.
        """

        if self._closed or self.stage != SessionStage.playing or self.reset_pending:
            return []

        events = self.engine.attempt_move(direction)
        for ev in events:
            if ev.type == "MOVED":
                self._status = ""
                notify_safely(self._sound, SoundCue.move)
                logger.debug("session %s moved to (%d,%d)", self.session_id, ev.cell.x, ev.cell.y)
            elif ev.type == "BLOCKED":
                self._status = STATUS_OBSTACLE_HIT
                notify_safely(self._sound, SoundCue.blocked)
                logger.debug("session %s blocked at (%d,%d)", self.session_id, ev.cell.x, ev.cell.y)
                self._schedule_reset()
            elif ev.type == "WON":
                self._transition("won")
                self._status = STATUS_VICTORY
                notify_safely(self._sound, SoundCue.win)
                logger.info("session %s reached the goal", self.session_id)
        return events

    # ------------------------------------------------------------------
    # Feedback flow
    # ------------------------------------------------------------------
    def open_feedback(self) -> None:
        self._validate("open_feedback")
        self._transition("open_feedback")

    def update_draft(self, *, text: str | None = None, rating: int | None = None) -> FeedbackDraft:
        """Mutate the in-progress feedback and persist each changed field immediately."""

        self._validate("edit_draft")
        if rating is not None and not 0 <= rating <= 5:
            raise ValueError("rating must be between 0 and 5")

        if text is not None:
            self._draft = self._draft.model_copy(update={"text": text})
            save_feedback_text(self._drafts, text)
        if rating is not None:
            self._draft = self._draft.model_copy(update={"rating": rating})
            save_rating(self._drafts, rating)
        return self.draft

    def submit_feedback(self) -> SubmittedFeedback:
        """Validate and submit the draft, then move straight on to the contact stage.

        Raises FeedbackValidationError (draft retained, stage unchanged) when
        the text is blank or no rating was given.
        """

        self._validate("submit_feedback")

        submitted = SubmittedFeedback(text=self._draft.text, rating=self._draft.rating)
        self._transition("submit_feedback")
        self._submitted = submitted
        self._draft = FeedbackDraft()
        clear_feedback_draft(self._drafts)
        logger.info("session %s submitted feedback (rating=%d)", self.session_id, submitted.rating)

        self._transition("show_contact")
        self._request_contact_form()
        return submitted

    # ------------------------------------------------------------------
    # Reset / teardown
    # ------------------------------------------------------------------
    def restart(self) -> None:
        """Return to the canonical initial state from any stage."""

        if self._closed:
            return
        self._cancel_reset()
        self._generation += 1
        self._transition("restart")
        self.engine.reset()
        self._status = ""
        self._draft = FeedbackDraft()
        self._submitted = None
        self._contact = ContactFormSlot()
        clear_feedback_draft(self._drafts)
        logger.info("session %s restarted", self.session_id)

    def close(self) -> None:
        """Tear the session down: no timer or in-flight load may touch it afterwards."""

        if self._closed:
            return
        self._closed = True
        self._cancel_reset()
        self._generation += 1
        for task in list(self._tasks):
            task.cancel()
        self._tasks.clear()
        logger.info("session %s closed", self.session_id)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _validate(self, action: str) -> None:
        ctx = ValidationContext(
            session_id=str(self.session_id),
            action=action,
            stage=self.stage,
            draft=self._draft,
        )
        pipeline_for_action(action).validate(ctx=ctx)

    def _transition(self, event: str) -> None:
        # Leaving the pending-reset condition by any other route disposes the timer.
        if event != "restart":
            self._cancel_reset()
        self._fsm.send(event)

    def _schedule_reset(self) -> None:
        loop = asyncio.get_running_loop()
        if self._reset_handle is not None:
            logger.debug("session %s replacing pending reset timer", self.session_id)
            self._reset_handle.cancel()
        self._reset_handle = loop.call_later(self._reset_delay_ms / 1000, self._on_reset_due, self._generation)

    def _cancel_reset(self) -> None:
        if self._reset_handle is not None:
            self._reset_handle.cancel()
            self._reset_handle = None

    def _on_reset_due(self, generation: int) -> None:
        if self._closed or generation != self._generation:
            return
        self._reset_handle = None
        logger.info("session %s auto-reset after collision", self.session_id)
        self.restart()
        self._emit_change()

    def _request_contact_form(self) -> None:
        self._contact = ContactFormSlot(status=ContactFormStatus.pending)
        self._spawn(self._load_contact_form(self._generation))

    async def _load_contact_form(self, generation: int) -> None:
        try:
            form = await self._contact_forms.load()
        except Exception as e:
            if self._is_stale(generation):
                return
            logger.warning("session %s contact form failed to load: %s", self.session_id, e)
            self._contact = ContactFormSlot(status=ContactFormStatus.failed, error=str(e))
        else:
            if self._is_stale(generation):
                logger.debug("session %s discarding stale contact form load", self.session_id)
                return
            self._contact = ContactFormSlot(status=ContactFormStatus.ready, form=form)
        self._emit_change()

    def _is_stale(self, generation: int) -> bool:
        return self._closed or generation != self._generation or self.stage != SessionStage.contact_open

    def _emit_change(self) -> None:
        if self._on_change is None:
            return
        self._spawn(self._on_change(self.snapshot()))

    def _spawn(self, coro: Awaitable[None]) -> None:
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
