from __future__ import annotations

from statemachine import State, StateMachine

from gridgame.api.models import SessionStage


class SessionFSM(StateMachine):
    """Stage machine for one game session.

    This only guards transitions:
    - playing -> victory -> feedback_open -> feedback_submitted -> contact_open
    - restart: any stage -> playing (also used for the collision auto-reset)
    Side effects (sounds, drafts, form loading) are applied by the session lifecycle.
    """

    playing = State(SessionStage.playing.value, value=SessionStage.playing.value, initial=True)
    victory = State(SessionStage.victory.value, value=SessionStage.victory.value)
    feedback_open = State(SessionStage.feedback_open.value, value=SessionStage.feedback_open.value)
    feedback_submitted = State(
        SessionStage.feedback_submitted.value,
        value=SessionStage.feedback_submitted.value,
    )
    contact_open = State(SessionStage.contact_open.value, value=SessionStage.contact_open.value)

    won = playing.to(victory)
    open_feedback = victory.to(feedback_open)
    submit_feedback = feedback_open.to(feedback_submitted)
    show_contact = feedback_submitted.to(contact_open)
    restart = (
        playing.to.itself()
        | victory.to(playing)
        | feedback_open.to(playing)
        | feedback_submitted.to(playing)
        | contact_open.to(playing)
    )

    def __init__(self, stage: SessionStage = SessionStage.playing):
        super().__init__(start_value=stage.value)

    @property
    def stage(self) -> SessionStage:
        return SessionStage(str(self.current_state.value))
