"""Validation pipeline for explicit session actions.

Every UI action that can be refused (open feedback, edit draft, submit
feedback) flows through the same pipeline so refusals carry consistent
messages and show up consistently in server logs. Movement is deliberately
absent: invalid move intents are ignored, never reported.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass

from gridgame.api.models import FeedbackDraft, SessionStage


class StageError(ValueError):
    """An action was attempted in a stage that does not allow it."""


class FeedbackValidationError(ValueError):
    """Submitted feedback is incomplete; reported to the user, draft retained."""


@dataclass(frozen=True, slots=True)
class ValidationContext:
    """Inputs available to validators.

    Keep this tight and serializable-ish so we can safely log it.
    """

    session_id: str
    action: str
    stage: SessionStage
    draft: FeedbackDraft


class ActionValidator(ABC):
    """A small, composable validation unit for an incoming action."""

    @abstractmethod
    def validate(self, *, ctx: ValidationContext) -> None:
        raise NotImplementedError


@dataclass(frozen=True, slots=True)
class StageValidator(ActionValidator):
    allowed_stages: frozenset[SessionStage]

    def validate(self, *, ctx: ValidationContext) -> None:
        if ctx.stage not in self.allowed_stages:
            allowed = ",".join(sorted(s.value for s in self.allowed_stages))
            raise StageError(f"Action '{ctx.action}' not allowed in stage '{ctx.stage.value}' (allowed: {allowed})")


@dataclass(frozen=True, slots=True)
class FeedbackTextValidator(ActionValidator):
    def validate(self, *, ctx: ValidationContext) -> None:
        if not ctx.draft.text.strip():
            raise FeedbackValidationError("Please enter your feedback.")


@dataclass(frozen=True, slots=True)
class RatingValidator(ActionValidator):
    def validate(self, *, ctx: ValidationContext) -> None:
        if ctx.draft.rating == 0:
            raise FeedbackValidationError("Please rate the game.")


@dataclass(frozen=True, slots=True)
class ValidatorPipeline:
    validators: tuple[ActionValidator, ...]

    def validate(self, *, ctx: ValidationContext) -> None:
        # First failure wins; later rules are not evaluated.
        for v in self.validators:
            v.validate(ctx=ctx)


DEFAULT_ACTION_PIPELINES: dict[str, ValidatorPipeline] = {
    "open_feedback": ValidatorPipeline(
        validators=(StageValidator(allowed_stages=frozenset({SessionStage.victory})),)
    ),
    "edit_draft": ValidatorPipeline(
        validators=(StageValidator(allowed_stages=frozenset({SessionStage.feedback_open})),)
    ),
    "submit_feedback": ValidatorPipeline(
        validators=(
            StageValidator(allowed_stages=frozenset({SessionStage.feedback_open})),
            FeedbackTextValidator(),
            RatingValidator(),
        )
    ),
}


def pipeline_for_action(action: str) -> ValidatorPipeline:
    pipe = DEFAULT_ACTION_PIPELINES.get(action)
    if pipe is None:
        raise ValueError(f"Unknown action: {action}")
    return pipe
