import time
from typing import Optional

from cicero_wa.services.intent_parser import normalize_user_menu_text
from cicero_wa.services.session_store import InputMeta, Session

DEFAULT_DEBOUNCE_MS = 2500
REPEATED_INVALID_INPUT_FEEDBACK_COOLDOWN_MS = 2500


def _now_ms(now: Optional[float]) -> float:
    return now * 1000 if now is not None else time.monotonic() * 1000


def is_debounced_repeated_input(
    session: Optional[Session],
    step: str,
    text: Optional[str],
    debounce_ms: float = DEFAULT_DEBOUNCE_MS,
    *,
    now: Optional[float] = None,
) -> bool:
    """Return True when the same invalid text arrives again for the same step within the cooldown.

    The latest observation always replaces the previous one.
    """
    normalized = normalize_user_menu_text(text)
    if session is None or not normalized:
        return False

    now_ms = _now_ms(now)
    previous = session.last_invalid_input_meta
    session.last_invalid_input_meta = InputMeta(step=step, normalized=normalized, at=now_ms)

    if previous is None:
        return False
    return previous.step == step and previous.normalized == normalized and now_ms - previous.at <= debounce_ms


def should_send_repeated_input_feedback(
    session: Optional[Session],
    step: Optional[str],
    cooldown_ms: float = REPEATED_INVALID_INPUT_FEEDBACK_COOLDOWN_MS,
    *,
    now: Optional[float] = None,
) -> bool:
    if session is None or not step:
        return False

    now_ms = _now_ms(now)
    previous = session.repeated_invalid_feedback_meta.get(step)
    if previous is not None and now_ms - previous < cooldown_ms:
        return False

    session.repeated_invalid_feedback_meta[step] = now_ms
    return True
