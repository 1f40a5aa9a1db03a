from dataclasses import dataclass
from enum import Enum
from typing import Optional

from cicero_wa.services.intent_parser import normalize_user_menu_text
from cicero_wa.services.session_store import Session


class UserMenuStep(str, Enum):
    MAIN = "main"
    INPUT_USER_ID = "inputUserId"
    CONFIRM_BIND_USER = "confirmBindUser"
    CONFIRM_BIND_UPDATE = "confirmBindUpdate"
    CONFIRM_USER_BY_WA_IDENTITY = "confirmUserByWaIdentity"
    CONFIRM_USER_BY_WA_UPDATE = "confirmUserByWaUpdate"
    TANYA_UPDATE_MY_DATA = "tanyaUpdateMyData"
    UPDATE_ASK_FIELD = "updateAskField"
    UPDATE_ASK_VALUE = "updateAskValue"


# Steps "main" may land on; main can be re-entered from anywhere.
ENTRY_STEPS = {UserMenuStep.INPUT_USER_ID, UserMenuStep.TANYA_UPDATE_MY_DATA}

VALID_TRANSITIONS = {
    UserMenuStep.INPUT_USER_ID: [UserMenuStep.CONFIRM_BIND_USER],
    UserMenuStep.CONFIRM_BIND_USER: [],
    UserMenuStep.CONFIRM_BIND_UPDATE: [UserMenuStep.UPDATE_ASK_FIELD],
    UserMenuStep.CONFIRM_USER_BY_WA_IDENTITY: [],
    UserMenuStep.CONFIRM_USER_BY_WA_UPDATE: [UserMenuStep.UPDATE_ASK_FIELD],
    UserMenuStep.TANYA_UPDATE_MY_DATA: [UserMenuStep.UPDATE_ASK_FIELD],
    UserMenuStep.UPDATE_ASK_FIELD: [UserMenuStep.UPDATE_ASK_VALUE],
    UserMenuStep.UPDATE_ASK_VALUE: [UserMenuStep.UPDATE_ASK_FIELD],
}

GLOBAL_COMMANDS = {"batal", "menu", "userrequest"}


class InvalidTransitionError(Exception):
    def __init__(self, from_step: Optional[str], to_step: str):
        self.from_step = from_step
        self.to_step = to_step
        super().__init__(f"Invalid user menu transition: {from_step} -> {to_step}")


def can_transition(from_step: Optional[str], to_step: str) -> bool:
    """Check if a step change is allowed. A fresh session may start anywhere."""
    try:
        target = UserMenuStep(to_step)
    except ValueError:
        return False
    if target == UserMenuStep.MAIN:
        return False
    if from_step is None or target in ENTRY_STEPS:
        return True
    try:
        source = UserMenuStep(from_step)
    except ValueError:
        return False
    return target in VALID_TRANSITIONS.get(source, [])


def set_user_menu_step(session: Session, step: str) -> UserMenuStep:
    """Move the session to a new step. Raises InvalidTransitionError if not allowed."""
    if not can_transition(session.step, step):
        raise InvalidTransitionError(session.step, step)
    target = UserMenuStep(step)
    session.step = target.value
    session.step_version += 1
    return target


@dataclass(frozen=True)
class StepSnapshot:
    step: Optional[str]
    step_version: int


def create_user_menu_step_snapshot(session: Optional[Session]) -> StepSnapshot:
    if session is None:
        return StepSnapshot(step=None, step_version=0)
    return StepSnapshot(step=session.step, step_version=session.step_version)


def should_drop_stale_user_menu_input(
    snapshot: Optional[StepSnapshot],
    session: Optional[Session],
    text: Optional[str],
) -> bool:
    """Drop burst input that was read for a step another message already moved past."""
    if snapshot is None or session is None:
        return False
    if normalize_user_menu_text(text) in GLOBAL_COMMANDS:
        return False
    return snapshot.step_version != session.step_version
