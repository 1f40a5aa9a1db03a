from cicero_wa.services.menu_policy import (
    InitialFlowDecision,
    resolve_initial_user_menu_flow,
    should_auto_start_user_menu,
)


def _resolve(**overrides):
    params = {
        "allow_user_menu": True,
        "is_admin_command": False,
        "lower_text": "halo",
        "original_text": "Halo",
        "has_any_session": False,
        "is_in_timeout_cooldown": False,
        "is_linked": False,
    }
    params.update(overrides)
    return resolve_initial_user_menu_flow(**params)


class TestAutoStart:
    def test_only_whitelisted_command(self):
        kwargs = {"allow_user_menu": True, "has_user_menu_session": False, "auto_start_enabled": True}
        assert should_auto_start_user_menu(lower_text="userrequest", **kwargs) is True
        assert should_auto_start_user_menu(lower_text="halo", **kwargs) is False
        assert should_auto_start_user_menu(lower_text="", **kwargs) is False

    def test_blocked_by_session_or_setting(self):
        assert (
            should_auto_start_user_menu(
                allow_user_menu=True, has_user_menu_session=True, lower_text="userrequest", auto_start_enabled=True
            )
            is False
        )
        assert (
            should_auto_start_user_menu(
                allow_user_menu=True, has_user_menu_session=False, lower_text="userrequest", auto_start_enabled=False
            )
            is False
        )


class TestInitialFlow:
    def test_unlinked_free_text_auto_starts(self):
        assert _resolve() == InitialFlowDecision(should_evaluate=True, should_auto_start=True)

    def test_unlinked_nrp_goes_direct(self):
        decision = _resolve(lower_text="69040249", original_text=" 69040249 ")
        assert decision.use_direct_nrp_input is True
        assert decision.normalized_nrp == "69040249"

    def test_linked_number_does_not_auto_start(self):
        decision = _resolve(is_linked=True)
        assert decision.should_evaluate is True
        assert decision.should_auto_start is False

    def test_suppressed_during_cooldown_or_session(self):
        assert _resolve(is_in_timeout_cooldown=True) == InitialFlowDecision()
        assert _resolve(has_any_session=True) == InitialFlowDecision()

    def test_admin_command_or_empty_text(self):
        assert _resolve(is_admin_command=True) == InitialFlowDecision()
        assert _resolve(lower_text="") == InitialFlowDecision()
