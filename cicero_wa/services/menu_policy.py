from dataclasses import dataclass
from typing import Optional

from cicero_wa.services.validation import validate_nrp

DEFAULT_USER_MENU_COMMAND_WHITELIST = frozenset({"userrequest"})


@dataclass(frozen=True)
class InitialFlowDecision:
    should_evaluate: bool = False
    should_auto_start: bool = False
    use_direct_nrp_input: bool = False
    normalized_nrp: Optional[str] = None


def should_auto_start_user_menu(
    *,
    allow_user_menu: bool,
    has_user_menu_session: bool,
    lower_text: str,
    auto_start_enabled: bool,
    command_whitelist: frozenset = DEFAULT_USER_MENU_COMMAND_WHITELIST,
) -> bool:
    if not allow_user_menu or has_user_menu_session or not auto_start_enabled:
        return False
    if not lower_text:
        return False
    return lower_text in command_whitelist


def resolve_initial_user_menu_flow(
    *,
    allow_user_menu: bool,
    is_admin_command: bool,
    lower_text: str,
    original_text: str,
    has_any_session: bool,
    is_in_timeout_cooldown: bool,
    is_linked: bool,
) -> InitialFlowDecision:
    """Decide how a chat without a menu session reacts to free text."""
    if not allow_user_menu or is_admin_command or not lower_text:
        return InitialFlowDecision()

    if has_any_session or is_in_timeout_cooldown:
        return InitialFlowDecision()

    if is_linked:
        return InitialFlowDecision(should_evaluate=True)

    nrp = validate_nrp(original_text)
    if nrp.valid:
        return InitialFlowDecision(
            should_evaluate=True,
            should_auto_start=True,
            use_direct_nrp_input=True,
            normalized_nrp=nrp.value,
        )

    return InitialFlowDecision(should_evaluate=True, should_auto_start=True)
