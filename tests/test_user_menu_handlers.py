import asyncio
from unittest.mock import AsyncMock, Mock, patch

import pytest

from cicero_wa.config import settings
from cicero_wa.services.session_store import Session
from cicero_wa.services.user_menu_handlers import (
    BIND_CANCELLED_MESSAGE,
    BIND_FAILED_MESSAGE,
    MENU_CLOSED_MESSAGE,
    REPEATED_INVALID_INPUT_FEEDBACK,
    SESSION_CLOSED_MESSAGE,
    USER_MENU_HANDLERS,
    close_session,
)
from cicero_wa.services.user_model import DuplicateWhatsAppError

CHAT_ID = "6281234567890@s.whatsapp.net"

LINKED_USER = {
    "user_id": "69040249",
    "client_id": "POLRES_A",
    "client_name": "POLRES A",
    "nama": "BUDI",
    "title": "AKP",
    "divisi": "SAT BINMAS",
    "jabatan": "KASAT",
    "insta": "budi.ig",
    "tiktok": None,
    "whatsapp": "6281234567890",
    "status": True,
    "ditbinmas": False,
}


def _sent(wa_client):
    return [call.args[1] for call in wa_client.send_message.await_args_list]


def _run(step, session, text, wa_client, user_model):
    asyncio.run(USER_MENU_HANDLERS[step](session, CHAT_ID, text, wa_client, None, user_model))


def _age_last_input(session, seconds=10):
    """Pretend the previous invalid input arrived well outside the debounce window."""
    session.last_invalid_input_meta.at -= seconds * 1000


class TestEmptyInput:
    @pytest.mark.parametrize(
        "step",
        [
            "inputUserId",
            "confirmBindUser",
            "confirmBindUpdate",
            "confirmUserByWaIdentity",
            "confirmUserByWaUpdate",
            "tanyaUpdateMyData",
            "updateAskField",
            "updateAskValue",
        ],
    )
    def test_whitespace_gets_no_reply(self, step, wa_client, user_model):
        session = Session(step=step, step_version=1)
        _run(step, session, "   ", wa_client, user_model)
        wa_client.send_message.assert_not_awaited()
        assert session.step == step
        assert session.step_version == 1
        assert session.exit is False


class TestCloseSession:
    def test_clears_timers_and_marks_exit(self, wa_client):
        session = Session(timeout=Mock(), warning_timeout=Mock(), no_reply_timeout=Mock())
        handles = [session.timeout, session.warning_timeout, session.no_reply_timeout]

        asyncio.run(close_session(session, CHAT_ID, wa_client))

        for handle in handles:
            handle.cancel.assert_called_once()
        assert session.timeout is None
        assert session.warning_timeout is None
        assert session.no_reply_timeout is None
        assert session.exit is True
        wa_client.send_message.assert_awaited_once_with(CHAT_ID, SESSION_CLOSED_MESSAGE)


class TestMain:
    def test_linked_user_sees_report_and_prompt(self, wa_client, user_model):
        user_model.find_user_by_whatsapp.return_value = LINKED_USER
        session = Session()

        _run("main", session, "", wa_client, user_model)

        user_model.find_user_by_whatsapp.assert_awaited_once_with("6281234567890")
        assert session.step == "tanyaUpdateMyData"
        assert session.user_id == "69040249"
        assert session.identity_confirmed is True
        message = _sent(wa_client)[0]
        assert "Bapak/Ibu *BUDI*" in message
        assert "*Instagram*: @budi.ig" in message

    def test_session_length_follows_configured_timeout(self, wa_client, user_model):
        user_model.find_user_by_whatsapp.return_value = LINKED_USER
        session = Session()

        with patch.object(settings, "user_menu_timeout_seconds", 600):
            _run("main", session, "", wa_client, user_model)

        assert "Sesi aktif: 10 menit" in _sent(wa_client)[0]

    def test_unlinked_number_asked_for_nrp(self, wa_client, user_model):
        session = Session()

        _run("main", session, "", wa_client, user_model)

        assert session.step == "inputUserId"
        assert "Registrasi Akun" in _sent(wa_client)[0]

    def test_lookup_failure_ends_session(self, wa_client, user_model):
        user_model.find_user_by_whatsapp.side_effect = RuntimeError("db down")
        session = Session()

        _run("main", session, "", wa_client, user_model)

        assert session.exit is True
        assert "Terjadi kesalahan" in _sent(wa_client)[0]


class TestInputUserId:
    def test_old_jid_format_counts_as_same_number(self, wa_client, user_model):
        user_model.find_user_registration_profile_by_id.return_value = {
            "user_id": "98050515",
            "whatsapp": "6281234567890@c.us",
        }
        session = Session(step="inputUserId")

        _run("inputUserId", session, "98050515", wa_client, user_model)

        assert session.step == "confirmBindUser"
        assert session.bind_user_id == "98050515"
        assert "✅ NRP/NIP *98050515* ditemukan" in _sent(wa_client)[0]

    def test_different_number_blocked(self, wa_client, user_model):
        user_model.find_user_registration_profile_by_id.return_value = {
            "user_id": "98050515",
            "whatsapp": "6289876543210@c.us",
        }
        session = Session(step="inputUserId")

        _run("inputUserId", session, "98050515", wa_client, user_model)

        assert session.step == "inputUserId"
        assert "sudah terhubung dengan nomor WhatsApp lain" in _sent(wa_client)[0]

    def test_unknown_nrp(self, wa_client, user_model):
        session = Session(step="inputUserId")

        _run("inputUserId", session, "98050515", wa_client, user_model)

        assert session.step == "inputUserId"
        assert "tidak ditemukan" in _sent(wa_client)[0]

    def test_invalid_format_reported_inline(self, wa_client, user_model):
        session = Session(step="inputUserId")

        _run("inputUserId", session, "Laporan 1/2 NRP 69040249", wa_client, user_model)

        user_model.find_user_registration_profile_by_id.assert_not_awaited()
        assert "Kirim *NRP/NIP saja*" in _sent(wa_client)[0]

    def test_lookup_error_keeps_session(self, wa_client, user_model):
        user_model.find_user_registration_profile_by_id.side_effect = RuntimeError("timeout")
        session = Session(step="inputUserId")

        _run("inputUserId", session, "98050515", wa_client, user_model)

        assert session.exit is False
        assert session.step == "inputUserId"
        assert "Silakan coba lagi" in _sent(wa_client)[0]

    def test_batal_closes_menu(self, wa_client, user_model):
        session = Session(step="inputUserId")

        _run("inputUserId", session, "Batal", wa_client, user_model)

        assert session.exit is True
        assert _sent(wa_client) == [MENU_CLOSED_MESSAGE]

    def test_userrequest_restarts_main(self, wa_client, user_model):
        session = Session(step="inputUserId")

        _run("inputUserId", session, "userrequest", wa_client, user_model)

        user_model.find_user_by_whatsapp.assert_awaited_once()
        assert session.step == "inputUserId"


class TestConfirmBindUser:
    def _session(self):
        return Session(step="confirmBindUser", bind_user_id="69040249")

    def test_affirmative_links_number(self, wa_client, user_model):
        user_model.find_user_by_id.return_value = {**LINKED_USER, "ditbinmas": True}
        session = self._session()

        _run("confirmBindUser", session, "iya", wa_client, user_model)

        user_model.update_user_field.assert_awaited_once_with("69040249", "whatsapp", "6281234567890")
        assert session.step == "tanyaUpdateMyData"
        assert session.user_id == "69040249"
        assert session.is_ditbinmas is True
        assert "Berhasil Terhubung" in _sent(wa_client)[0]

    def test_missing_profile_after_link_still_succeeds(self, wa_client, user_model):
        user_model.find_user_by_id.return_value = None
        session = self._session()

        _run("confirmBindUser", session, "ya", wa_client, user_model)

        user_model.update_user_field.assert_awaited_once_with("69040249", "whatsapp", "6281234567890")
        assert session.exit is False
        assert session.step == "tanyaUpdateMyData"
        assert session.user_id == "69040249"
        messages = _sent(wa_client)
        assert BIND_FAILED_MESSAGE not in messages
        assert "Berhasil Terhubung" in messages[0]
        assert "Berikut data Anda" not in messages[0]

    def test_profile_reload_error_after_link_still_succeeds(self, wa_client, user_model):
        user_model.find_user_by_id.side_effect = RuntimeError("replica lag")
        session = self._session()

        _run("confirmBindUser", session, "ya", wa_client, user_model)

        assert session.exit is False
        assert session.step == "tanyaUpdateMyData"
        assert BIND_FAILED_MESSAGE not in _sent(wa_client)

    def test_duplicate_number_is_terminal(self, wa_client, user_model):
        user_model.update_user_field.side_effect = DuplicateWhatsAppError("6281234567890")
        session = self._session()

        _run("confirmBindUser", session, "ya", wa_client, user_model)

        assert session.exit is True
        message = _sent(wa_client)[0]
        assert "sudah terdaftar" in message
        assert "Satu nomor WhatsApp hanya dapat digunakan untuk satu akun" in message

    def test_other_error_is_terminal_with_generic_message(self, wa_client, user_model):
        user_model.update_user_field.side_effect = RuntimeError("connection reset")
        session = self._session()

        _run("confirmBindUser", session, "ya", wa_client, user_model)

        assert session.exit is True
        assert _sent(wa_client) == [BIND_FAILED_MESSAGE]

    def test_negative_cancels(self, wa_client, user_model):
        session = self._session()

        _run("confirmBindUser", session, "tidak", wa_client, user_model)

        user_model.update_user_field.assert_not_awaited()
        assert session.exit is True
        assert _sent(wa_client) == [BIND_CANCELLED_MESSAGE]

    def test_unclear_answer_hint_debounced(self, wa_client, user_model):
        session = self._session()

        _run("confirmBindUser", session, "mungkin nanti lagi lagi", wa_client, user_model)
        _run("confirmBindUser", session, "mungkin nanti lagi lagi", wa_client, user_model)

        assert len(_sent(wa_client)) == 1
        assert "Konfirmasi penghubung WhatsApp" in _sent(wa_client)[0]


class TestConfirmBindUpdate:
    def test_affirmative_links_and_shows_fields(self, wa_client, user_model):
        session = Session(step="confirmBindUpdate", update_user_id="69040249")

        _run("confirmBindUpdate", session, "ok", wa_client, user_model)

        user_model.update_user_field.assert_awaited_once_with("69040249", "whatsapp", "6281234567890")
        assert session.step == "updateAskField"
        assert "Pilih Field yang Ingin Diupdate" in _sent(wa_client)[1]


class TestIdentityConfirmation:
    def test_confirm_identity_yes(self, wa_client, user_model):
        session = Session(step="confirmUserByWaIdentity")

        _run("confirmUserByWaIdentity", session, "ya", wa_client, user_model)

        assert session.step == "tanyaUpdateMyData"
        assert session.identity_confirmed is True

    def test_confirm_identity_no_closes(self, wa_client, user_model):
        session = Session(step="confirmUserByWaIdentity")

        _run("confirmUserByWaIdentity", session, "gak", wa_client, user_model)

        assert session.exit is True
        assert _sent(wa_client) == [SESSION_CLOSED_MESSAGE]

    def test_confirm_update_yes(self, wa_client, user_model):
        session = Session(step="confirmUserByWaUpdate", user_id="69040249")

        _run("confirmUserByWaUpdate", session, "ya", wa_client, user_model)

        assert session.step == "updateAskField"
        assert session.update_user_id == "69040249"


class TestTanyaUpdateMyData:
    def test_yes_enters_field_list(self, wa_client, user_model):
        session = Session(step="tanyaUpdateMyData", user_id="69040249", update_ask_field_retry=2)

        _run("tanyaUpdateMyData", session, "baik ya", wa_client, user_model)

        assert session.step == "updateAskField"
        assert session.update_user_id == "69040249"
        assert session.update_ask_field_retry == 0
        assert "1. Nama" in _sent(wa_client)[0]

    def test_no_closes_session(self, wa_client, user_model):
        session = Session(step="tanyaUpdateMyData")

        _run("tanyaUpdateMyData", session, "tidak", wa_client, user_model)

        assert session.exit is True
        assert _sent(wa_client) == [SESSION_CLOSED_MESSAGE]

    def test_repeated_unclear_answer_gets_short_notice(self, wa_client, user_model):
        session = Session(step="tanyaUpdateMyData")

        _run("tanyaUpdateMyData", session, "apa ini", wa_client, user_model)
        _run("tanyaUpdateMyData", session, "apa ini", wa_client, user_model)

        messages = _sent(wa_client)
        assert "Konfirmasi lanjut update data" in messages[0]
        assert messages[1] == REPEATED_INVALID_INPUT_FEEDBACK


class TestUpdateAskField:
    def _session(self, **overrides):
        values = {"step": "updateAskField", "user_id": "69040249", "update_user_id": "69040249"}
        values.update(overrides)
        return Session(**values)

    def test_three_invalid_inputs_reset_retry_and_resend_list(self, wa_client, user_model):
        session = self._session()

        _run("updateAskField", session, "abc", wa_client, user_model)
        assert session.update_ask_field_retry == 1
        _age_last_input(session)
        _run("updateAskField", session, "abc", wa_client, user_model)
        assert session.update_ask_field_retry == 2
        _age_last_input(session)
        _run("updateAskField", session, "abc", wa_client, user_model)

        assert session.update_ask_field_retry == 0
        messages = _sent(wa_client)
        assert len(messages) == 4
        assert "Input tidak sesuai langkah saat ini" in messages[0]
        assert "Input tidak sesuai langkah saat ini" in messages[1]
        assert messages[2].startswith("⚠️ Input belum sesuai.")
        assert "Pilih Field yang Ingin Diupdate" in messages[3]
        assert "7. Desa Binaan" not in messages[3]

    def test_rapid_repeat_gets_cooldown_notice(self, wa_client, user_model):
        session = self._session()

        _run("updateAskField", session, "abc", wa_client, user_model)
        _run("updateAskField", session, "abc", wa_client, user_model)

        assert session.update_ask_field_retry == 1
        assert _sent(wa_client)[1] == REPEATED_INVALID_INPUT_FEEDBACK

    def test_multiple_numbers_get_corrective_hint(self, wa_client, user_model):
        session = self._session()

        _run("updateAskField", session, "2 dan 5", wa_client, user_model)

        assert session.update_ask_field_retry == 1
        assert session.step == "updateAskField"
        assert "*2, 5*" in _sent(wa_client)[0]

    def test_menu_resets_retry(self, wa_client, user_model):
        session = self._session(update_ask_field_retry=2)

        _run("updateAskField", session, "menu", wa_client, user_model)

        assert session.update_ask_field_retry == 0
        assert "Pilih Field yang Ingin Diupdate" in _sent(wa_client)[0]

    def test_batal_exits(self, wa_client, user_model):
        session = self._session()

        _run("updateAskField", session, "batal", wa_client, user_model)

        assert session.exit is True

    def test_select_pangkat_caches_sorted_titles(self, wa_client, user_model):
        user_model.find_user_by_id.return_value = LINKED_USER
        user_model.get_available_titles.return_value = ["BRIPDA", "AKP", "KOMPOL"]
        session = self._session(update_ask_field_retry=1)

        _run("updateAskField", session, "2", wa_client, user_model)

        assert session.step == "updateAskValue"
        assert session.update_field == "pangkat"
        assert session.update_ask_field_retry == 0
        assert session.available_titles == ["KOMPOL", "AKP", "BRIPDA"]
        messages = _sent(wa_client)
        assert "Daftar pangkat yang dapat dipilih" in messages[0]
        assert "Nilai saat ini: *AKP*" in messages[1]

    def test_select_satfung_merges_static_divisions(self, wa_client, user_model):
        user_model.find_user_by_id.return_value = LINKED_USER
        user_model.get_available_satfung.return_value = ["POLSEK KOTA", "UNIT KHUSUS"]
        session = self._session()

        _run("updateAskField", session, "3", wa_client, user_model)

        user_model.get_available_satfung.assert_awaited_once_with("POLRES_A")
        assert session.available_satfung[0] == "BAG OPS"
        assert session.available_satfung[-1] == "POLSEK KOTA"
        assert "UNIT KHUSUS" in session.available_satfung

    def test_desa_only_for_ditbinmas(self, wa_client, user_model):
        session = self._session(is_ditbinmas=True)

        _run("updateAskField", session, "7", wa_client, user_model)

        assert session.update_field == "desa"
        assert session.step == "updateAskValue"

    def test_seven_out_of_range_without_ditbinmas(self, wa_client, user_model):
        session = self._session()

        _run("updateAskField", session, "7", wa_client, user_model)

        assert session.step == "updateAskField"
        assert session.update_ask_field_retry == 1

    def test_option_list_failure_still_prompts(self, wa_client, user_model):
        user_model.get_available_titles = AsyncMock(side_effect=RuntimeError("db down"))
        session = self._session()

        _run("updateAskField", session, "2", wa_client, user_model)

        assert session.step == "updateAskValue"
        assert "Update Pangkat" in _sent(wa_client)[-1]
