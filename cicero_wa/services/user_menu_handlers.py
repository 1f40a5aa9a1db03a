"""Step handlers for the *userrequest* menu.

Every handler has the signature ``(session, chat_id, text, wa_client, pool, user_model)``
and never lets an error from a collaborator escape: failures are logged and turned into
a user-facing message. Setting ``session.exit`` asks the caller to drop the session.
"""

from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Optional

from cicero_wa.config import settings
from cicero_wa.logging_config import get_logger
from cicero_wa.services.debounce import (
    REPEATED_INVALID_INPUT_FEEDBACK_COOLDOWN_MS,
    is_debounced_repeated_input,
    should_send_repeated_input_feedback,
)
from cicero_wa.services.intent_parser import (
    SelectionType,
    YesNoIntent,
    get_intent_parser_hint,
    normalize_user_menu_text,
    parse_affirmative_negative_intent,
    parse_numeric_selection_intent,
)
from cicero_wa.services.menu_helpers import (
    SOCIAL_FIELDS,
    format_field_list,
    format_duration,
    format_field_update_prompt,
    format_options_list,
    format_update_success,
    format_user_report,
    get_db_field_name,
    get_field_display_name,
    get_field_info,
    get_greeting,
    get_update_fields,
    normalize_whatsapp_number,
    sort_division_keys,
    sort_title_keys,
)
from cicero_wa.services.session_store import ProcessedInput, Session
from cicero_wa.services.state_machine import UserMenuStep, set_user_menu_step
from cicero_wa.services.user_model import DuplicateWhatsAppError, UserModel
from cicero_wa.services.validation import (
    validate_instagram,
    validate_list_selection,
    validate_nrp,
    validate_text_field,
    validate_tiktok,
)
from cicero_wa.services.wa_client import WaClient

logger = get_logger("user_menu_handlers")

OTHER_CHANNELS_LINES = [
    "Update data user/personil selain via WA bot juga bisa melalui:",
    "• Web: https://papiqo.com/claim",
    "• Bot Telegram Cicero_Update: https://t.me/cicero_update_bot (ketik */menu* lalu ikuti petunjuk)",
]

SESSION_CLOSED_MESSAGE = "\n".join(
    ["Terima kasih. Sesi ditutup. Ketik *userrequest* untuk memulai lagi.", ""] + OTHER_CHANNELS_LINES
)
MENU_CLOSED_MESSAGE = "✅ Menu ditutup. Terima kasih."
UPDATE_CANCELLED_MESSAGE = "\n".join(
    ["✅ Perubahan dibatalkan. Ketik *userrequest* untuk memulai lagi.", ""] + OTHER_CHANNELS_LINES
)
BIND_CANCELLED_MESSAGE = (
    "✅ Proses dibatalkan. Nomor WhatsApp tidak dihubungkan.\n\n"
    "Ketik *userrequest* untuk mencoba lagi atau hubungi operator jika membutuhkan bantuan."
)
BIND_UPDATE_CANCELLED_MESSAGE = (
    "✅ Proses dibatalkan. Nomor WhatsApp tidak dihubungkan.\n\n"
    "Ketik *userrequest* untuk kembali ke menu atau hubungi operator jika membutuhkan bantuan."
)
BIND_FAILED_MESSAGE = "❌ Terjadi kesalahan saat menghubungkan nomor. Silakan coba lagi dengan ketik *userrequest*."
UPDATE_FAILED_MESSAGE = "❌ Terjadi kesalahan saat memperbarui data. Silakan coba lagi atau ketik *batal* untuk keluar."
LOOKUP_FAILED_MESSAGE = "\n".join(
    [
        "❌ Terjadi kesalahan saat mengambil data. Silakan coba lagi.",
        "",
        "Silakan masukkan NRP/NIP lain atau ketik *batal* untuk keluar.",
    ]
)
MAIN_LOOKUP_FAILED_MESSAGE = "❌ Terjadi kesalahan saat mengambil data. Silakan coba lagi dengan ketik *userrequest*."
REPEATED_INVALID_INPUT_FEEDBACK = "⏳ Input sama terdeteksi, mohon tunggu respon sebelumnya atau ketik *menu*."

UPDATE_ASK_FIELD_MAX_RETRY = 3
BACK_COMMANDS = {"menu", "kembali", "back"}

UPDATE_DATA_PROMPT_LINES = [
    "━━━━━━━━━━━━━━━━━",
    "❓ Apakah Anda ingin melakukan perubahan data?",
    "",
    "✅ Balas *ya* untuk update data",
    "❌ Balas *tidak* untuk keluar",
]

Handler = Callable[[Session, str, str, WaClient, Any, UserModel], Awaitable[None]]


def get_session_active_line() -> str:
    return f"⏱️ Sesi aktif: {format_duration(settings.user_menu_timeout_seconds)}"


def get_menu_retry_fallback_message(max_option: int) -> str:
    return "\n".join(
        [
            "⚠️ Input belum sesuai.",
            "Silakan balas satu angka sesuai field yang ingin diubah.",
            f"Contoh: *1..{max_option}*",
            "💡 Jika bingung, ketik *menu* untuk ulang dari daftar field.",
        ]
    )


def increment_update_ask_field_retry(session: Session) -> int:
    session.update_ask_field_retry += 1
    return session.update_ask_field_retry


def reset_update_ask_field_retry(session: Session) -> None:
    session.update_ask_field_retry = 0


async def send_repeated_invalid_input_feedback(
    session: Session, step: str, chat_id: str, wa_client: Optional[WaClient]
) -> None:
    if wa_client is None:
        return
    if not should_send_repeated_input_feedback(session, step, REPEATED_INVALID_INPUT_FEEDBACK_COOLDOWN_MS):
        return
    await wa_client.send_message(chat_id, REPEATED_INVALID_INPUT_FEEDBACK)


async def close_session(
    session: Session,
    chat_id: str,
    wa_client: WaClient,
    message: str = SESSION_CLOSED_MESSAGE,
) -> None:
    """Cancel pending timers, mark the session finished and send the closing text."""
    session.clear_timers()
    session.exit = True
    await wa_client.send_message(chat_id, message)


async def main(session, chat_id, text, wa_client, pool, user_model) -> None:
    number = normalize_whatsapp_number(chat_id)
    try:
        user = await user_model.find_user_by_whatsapp(number)
    except Exception:
        logger.error("Lookup by WhatsApp number failed", exc_info=True, extra={"context": {"chat_id": chat_id}})
        session.exit = True
        await wa_client.send_message(chat_id, MAIN_LOOKUP_FAILED_MESSAGE)
        return

    if user:
        logger.info(
            "Linked user opened menu",
            extra={"context": {"chat_id": chat_id, "user_id": user.get("user_id")}},
        )
        session.is_ditbinmas = bool(user.get("ditbinmas"))
        session.identity_confirmed = True
        session.user_id = user.get("user_id")

        message = "\n".join(
            [
                f"{get_greeting()}, Bapak/Ibu *{user.get('nama') or ''}* 👋",
                "",
                format_user_report(user),
                "",
                *UPDATE_DATA_PROMPT_LINES,
                "⏹️ Balas *batal* untuk menutup sesi",
                "",
                get_session_active_line(),
            ]
        )
        set_user_menu_step(session, UserMenuStep.TANYA_UPDATE_MY_DATA)
        await wa_client.send_message(chat_id, message.strip())
        return

    logger.info("Unlinked number opened menu", extra={"context": {"chat_id": chat_id, "number": number}})
    set_user_menu_step(session, UserMenuStep.INPUT_USER_ID)
    await wa_client.send_message(
        chat_id,
        "\n".join(
            [
                "🔐 *Registrasi Akun* (Langkah 1/2)",
                "",
                "Nomor WhatsApp Anda belum terdaftar dalam sistem.",
                "",
                "📝 Silakan ketik *NRP/NIP* Anda (hanya angka):",
                "Contoh: 87020990",
                "",
                "💡 *Tips:* Pastikan NRP/NIP sudah terdaftar di sistem sebelum melanjutkan.",
                "",
                "⏹️ Ketik *batal* untuk keluar.",
            ]
        ),
    )


async def confirm_user_by_wa_identity(session, chat_id, text, wa_client, pool, user_model) -> None:
    answer = normalize_user_menu_text(text)
    if not answer:
        return

    intent = parse_affirmative_negative_intent(answer)
    if intent == YesNoIntent.AFFIRMATIVE:
        session.identity_confirmed = True
        set_user_menu_step(session, UserMenuStep.TANYA_UPDATE_MY_DATA)
        await wa_client.send_message(
            chat_id,
            "\n".join(
                [
                    "✅ Identitas berhasil dikonfirmasi.",
                    "",
                    "Apakah Anda ingin melakukan perubahan data?",
                    "Balas *ya* untuk update data atau *tidak* untuk keluar.",
                ]
            ),
        )
        return
    if intent == YesNoIntent.NEGATIVE or answer == "batal":
        await close_session(session, chat_id, wa_client)
        return
    if is_debounced_repeated_input(session, UserMenuStep.CONFIRM_USER_BY_WA_IDENTITY.value, answer):
        return
    await wa_client.send_message(
        chat_id, get_intent_parser_hint("Konfirmasi identitas data pengguna", "ya / tidak")
    )


async def _enter_update_ask_field(session: Session, chat_id: str, wa_client: WaClient) -> None:
    session.identity_confirmed = True
    session.update_user_id = session.user_id
    reset_update_ask_field_retry(session)
    set_user_menu_step(session, UserMenuStep.UPDATE_ASK_FIELD)
    await wa_client.send_message(chat_id, format_field_list(session.is_ditbinmas))


async def confirm_user_by_wa_update(session, chat_id, text, wa_client, pool, user_model) -> None:
    answer = normalize_user_menu_text(text)
    if not answer:
        return

    intent = parse_affirmative_negative_intent(answer)
    if intent == YesNoIntent.AFFIRMATIVE:
        await _enter_update_ask_field(session, chat_id, wa_client)
        return
    if intent == YesNoIntent.NEGATIVE or answer == "batal":
        await close_session(session, chat_id, wa_client)
        return
    if is_debounced_repeated_input(session, UserMenuStep.CONFIRM_USER_BY_WA_UPDATE.value, answer):
        return
    await wa_client.send_message(
        chat_id, get_intent_parser_hint("Konfirmasi lanjut ke menu update field", "ya / tidak")
    )


async def tanya_update_my_data(session, chat_id, text, wa_client, pool, user_model) -> None:
    answer = normalize_user_menu_text(text)
    if not answer:
        return

    intent = parse_affirmative_negative_intent(answer)
    if intent == YesNoIntent.AFFIRMATIVE:
        await _enter_update_ask_field(session, chat_id, wa_client)
        return
    if intent == YesNoIntent.NEGATIVE or answer == "batal":
        await close_session(session, chat_id, wa_client)
        return

    step = UserMenuStep.TANYA_UPDATE_MY_DATA.value
    if is_debounced_repeated_input(session, step, answer):
        await send_repeated_invalid_input_feedback(session, step, chat_id, wa_client)
        return
    await wa_client.send_message(chat_id, get_intent_parser_hint("Konfirmasi lanjut update data", "ya / tidak"))


async def input_user_id(session, chat_id, text, wa_client, pool, user_model) -> None:
    lower = (text or "").strip().lower()
    if not lower:
        return

    if lower == "batal":
        session.exit = True
        await wa_client.send_message(chat_id, MENU_CLOSED_MESSAGE)
        return
    if lower == "userrequest":
        await main(session, chat_id, "", wa_client, pool, user_model)
        return

    validation = validate_nrp(text)
    if not validation.valid:
        await wa_client.send_message(chat_id, validation.error)
        return
    digits = validation.value

    try:
        profile = await user_model.find_user_registration_profile_by_id(digits)
        if not profile:
            await wa_client.send_message(
                chat_id,
                "\n".join(
                    [
                        f"❌ NRP/NIP *{digits}* tidak ditemukan.",
                        "Jika yakin benar, hubungi Opr CICERO Polres Anda.",
                        "",
                        "Silakan masukkan NRP/NIP lain atau ketik *batal* untuk keluar.",
                    ]
                ),
            )
            return

        current_number = normalize_whatsapp_number(chat_id)
        stored_number = normalize_whatsapp_number(profile.get("whatsapp"))
        if stored_number and stored_number != current_number:
            logger.info(
                "NRP already linked to another number",
                extra={"context": {"chat_id": chat_id, "user_id": digits}},
            )
            await wa_client.send_message(
                chat_id,
                "\n".join(
                    [
                        f"❌ NRP/NIP *{digits}* sudah terhubung dengan nomor WhatsApp lain.",
                        "",
                        "Satu akun hanya dapat diakses dari satu nomor WhatsApp yang terdaftar.",
                        "Silahkan update menggunakan https://papiqo.com/claim",
                        "",
                        "Silakan masukkan NRP/NIP lain atau ketik *batal* untuk keluar.",
                    ]
                ),
            )
            return

        set_user_menu_step(session, UserMenuStep.CONFIRM_BIND_USER)
        session.bind_user_id = digits
        await wa_client.send_message(
            chat_id,
            "\n".join(
                [
                    f"✅ NRP/NIP *{digits}* ditemukan. (Langkah 2/2)",
                    "",
                    "🔗 Nomor WhatsApp ini belum terdaftar.",
                    "Apakah Anda ingin menghubungkannya dengan akun tersebut?",
                    "",
                    "✅ Balas *ya* untuk menghubungkan",
                    "❌ Balas *tidak* untuk membatalkan",
                    "",
                    "⏱️ Sesi akan berakhir jika tidak ada aktivitas.",
                ]
            ),
        )
    except Exception:
        logger.error("Registration lookup failed", exc_info=True, extra={"context": {"chat_id": chat_id}})
        await wa_client.send_message(chat_id, LOOKUP_FAILED_MESSAGE)


def _bind_error_message(exc: Exception) -> str:
    if isinstance(exc, DuplicateWhatsAppError) or "sudah terdaftar" in str(exc):
        return f"❌ {exc}. Satu nomor WhatsApp hanya dapat digunakan untuk satu akun."
    return BIND_FAILED_MESSAGE


async def confirm_bind_user(session, chat_id, text, wa_client, pool, user_model) -> None:
    answer = normalize_user_menu_text(text)
    if not answer:
        return

    number = normalize_whatsapp_number(chat_id)
    intent = parse_affirmative_negative_intent(answer)

    if intent == YesNoIntent.AFFIRMATIVE:
        user_id = session.bind_user_id
        try:
            await user_model.update_user_field(user_id, "whatsapp", number)
        except Exception as exc:
            logger.error(
                "Binding WhatsApp number failed",
                exc_info=True,
                extra={"context": {"chat_id": chat_id, "user_id": user_id}},
            )
            await wa_client.send_message(chat_id, _bind_error_message(exc))
            session.exit = True
            return

        logger.info(
            "WhatsApp number linked",
            extra={"context": {"chat_id": chat_id, "user_id": user_id}},
        )
        try:
            user = await user_model.find_user_by_id(user_id)
        except Exception:
            logger.warning(
                "Reloading linked user failed",
                exc_info=True,
                extra={"context": {"chat_id": chat_id, "user_id": user_id}},
            )
            user = None

        lines = ["✅ *Berhasil Terhubung*", "", f"Nomor WhatsApp telah dihubungkan ke NRP/NIP *{user_id}*."]
        if user:
            session.is_ditbinmas = bool(user.get("ditbinmas"))
            lines += ["", "Berikut data Anda:", "", format_user_report(user)]
        session.identity_confirmed = True
        session.user_id = user_id
        set_user_menu_step(session, UserMenuStep.TANYA_UPDATE_MY_DATA)
        await wa_client.send_message(chat_id, "\n".join(lines))
        await wa_client.send_message(
            chat_id, "\n".join(UPDATE_DATA_PROMPT_LINES + ["", get_session_active_line()])
        )
        return

    if intent == YesNoIntent.NEGATIVE or answer == "batal":
        await wa_client.send_message(chat_id, BIND_CANCELLED_MESSAGE)
        session.exit = True
        return
    if is_debounced_repeated_input(session, UserMenuStep.CONFIRM_BIND_USER.value, answer):
        return
    await wa_client.send_message(chat_id, get_intent_parser_hint("Konfirmasi penghubung WhatsApp", "ya / tidak"))


async def confirm_bind_update(session, chat_id, text, wa_client, pool, user_model) -> None:
    answer = normalize_user_menu_text(text)
    if not answer:
        return

    number = normalize_whatsapp_number(chat_id)
    intent = parse_affirmative_negative_intent(answer)

    if intent == YesNoIntent.AFFIRMATIVE:
        user_id = session.update_user_id
        try:
            await user_model.update_user_field(user_id, "whatsapp", number)
            await wa_client.send_message(chat_id, f"✅ Nomor berhasil dihubungkan ke NRP/NIP *{user_id}*.")
            session.identity_confirmed = True
            session.user_id = user_id
            reset_update_ask_field_retry(session)
            set_user_menu_step(session, UserMenuStep.UPDATE_ASK_FIELD)
            await wa_client.send_message(chat_id, format_field_list(session.is_ditbinmas))
        except Exception as exc:
            logger.error(
                "Updating WhatsApp number failed",
                exc_info=True,
                extra={"context": {"chat_id": chat_id, "user_id": user_id}},
            )
            await wa_client.send_message(chat_id, _bind_error_message(exc))
            session.exit = True
        return

    if intent == YesNoIntent.NEGATIVE or answer == "batal":
        await wa_client.send_message(chat_id, BIND_UPDATE_CANCELLED_MESSAGE)
        session.exit = True
        return
    if is_debounced_repeated_input(session, UserMenuStep.CONFIRM_BIND_UPDATE.value, answer):
        return
    await wa_client.send_message(chat_id, get_intent_parser_hint("Konfirmasi update nomor WhatsApp", "ya / tidak"))


async def _find_client_id(session: Session, user_model: UserModel) -> Optional[str]:
    try:
        user = await user_model.find_user_by_id(session.update_user_id)
    except Exception:
        logger.error("Fetching client id failed", exc_info=True, extra={"context": {"user_id": session.update_user_id}})
        return None
    return (user or {}).get("client_id")


async def update_ask_field(session, chat_id, text, wa_client, pool, user_model) -> None:
    fields = get_update_fields(session.is_ditbinmas)
    max_option = len(fields)
    step = UserMenuStep.UPDATE_ASK_FIELD.value

    lower = normalize_user_menu_text(text)
    if not lower:
        return

    if lower == "batal":
        session.exit = True
        await wa_client.send_message(chat_id, MENU_CLOSED_MESSAGE)
        return

    if lower == "menu":
        reset_update_ask_field_retry(session)
        await wa_client.send_message(chat_id, format_field_list(session.is_ditbinmas))
        return

    selection = parse_numeric_selection_intent(lower, max_option, allow_batch=False)

    if selection.type == SelectionType.MULTI_NOT_SUPPORTED:
        retry_count = increment_update_ask_field_retry(session)
        await wa_client.send_message(
            chat_id,
            "\n".join(
                [
                    "ℹ️ Untuk langkah ini, saat ini pilih satu dulu, nanti ditanya lagi.",
                    f"Anda mengirim lebih dari satu angka: *{', '.join(str(value) for value in selection.values)}*",
                    "Ketik satu angka (mis. *4*) atau ketik *menu* untuk ulang dari daftar field.",
                ]
            ),
        )
        if retry_count >= UPDATE_ASK_FIELD_MAX_RETRY:
            reset_update_ask_field_retry(session)
            await wa_client.send_message(chat_id, format_field_list(session.is_ditbinmas))
        return

    if selection.type != SelectionType.SINGLE:
        if is_debounced_repeated_input(session, step, lower):
            await send_repeated_invalid_input_feedback(session, step, chat_id, wa_client)
            return
        retry_count = increment_update_ask_field_retry(session)
        if retry_count >= UPDATE_ASK_FIELD_MAX_RETRY:
            reset_update_ask_field_retry(session)
            await wa_client.send_message(chat_id, get_menu_retry_fallback_message(max_option))
            await wa_client.send_message(chat_id, format_field_list(session.is_ditbinmas))
            return
        hint = get_intent_parser_hint("Pilih field yang ingin diupdate", f"1..{max_option}")
        await wa_client.send_message(chat_id, f"{hint}\n\n{get_menu_retry_fallback_message(max_option)}")
        return

    reset_update_ask_field_retry(session)
    field, label = fields[selection.value - 1]
    session.update_field = field

    current_user = None
    try:
        current_user = await user_model.find_user_by_id(session.update_user_id)
    except Exception:
        logger.error("Fetching current user failed", exc_info=True, extra={"context": {"chat_id": chat_id}})

    try:
        if field == "pangkat":
            titles = await user_model.get_available_titles()
            if titles:
                session.available_titles = sort_title_keys(titles)
                await wa_client.send_message(
                    chat_id, format_options_list(session.available_titles, "Daftar pangkat yang dapat dipilih")
                )
        elif field == "satfung":
            client_id = (current_user or {}).get("client_id")
            divisions = user_model.merge_static_divisions(await user_model.get_available_satfung(client_id))
            if divisions:
                session.available_satfung = sort_division_keys(divisions)
                await wa_client.send_message(
                    chat_id, format_options_list(session.available_satfung, "Daftar satfung yang dapat dipilih")
                )
    except Exception:
        # The list is fetched again when the value arrives.
        logger.error(
            "Loading option list failed",
            exc_info=True,
            extra={"context": {"chat_id": chat_id, "field": field}},
        )

    set_user_menu_step(session, UserMenuStep.UPDATE_ASK_VALUE)
    info = get_field_info(field, current_user)
    await wa_client.send_message(chat_id, format_field_update_prompt(field, label, info["value"]))


async def _validate_update_value(session, chat_id, db_field, value, wa_client, user_model):
    """Return the value to store, or None after telling the user what is wrong."""
    if db_field == "title":
        titles = session.available_titles or sort_title_keys(await user_model.get_available_titles())
        result = validate_list_selection(value, titles)
    elif db_field == "divisi":
        divisions = session.available_satfung
        if not divisions:
            client_id = await _find_client_id(session, user_model)
            divisions = await user_model.get_available_satfung(client_id)
        result = validate_list_selection(value, sort_division_keys(user_model.merge_static_divisions(divisions)))
    elif db_field in SOCIAL_FIELDS:
        result = validate_instagram(value) if db_field == "insta" else validate_tiktok(value)
        if result.valid:
            platform = "instagram" if db_field == "insta" else "tiktok"
            existing = await user_model.find_user_by_social_handle(platform, result.value)
            if existing and existing.get("user_id") != session.update_user_id:
                label = get_field_display_name(db_field)
                await wa_client.send_message(
                    chat_id,
                    f"❌ {label} *@{result.value}* sudah terdaftar pada pengguna lain. "
                    "Silakan gunakan akun lain atau ketik *batal* untuk membatalkan.",
                )
                return None
    elif db_field == "whatsapp":
        return normalize_whatsapp_number(value)
    elif db_field in ("nama", "jabatan", "desa"):
        result = validate_text_field(db_field, value)
    else:
        return value

    if not result.valid:
        await wa_client.send_message(chat_id, result.error)
        return None
    return result.value


async def update_ask_value(session, chat_id, text, wa_client, pool, user_model) -> None:
    lower = (text or "").strip().lower()
    if not lower:
        return

    if lower == "batal":
        session.exit = True
        await wa_client.send_message(chat_id, UPDATE_CANCELLED_MESSAGE)
        return

    if lower in BACK_COMMANDS:
        session.clear_field_cache()
        reset_update_ask_field_retry(session)
        set_user_menu_step(session, UserMenuStep.UPDATE_ASK_FIELD)
        await wa_client.send_message(chat_id, format_field_list(session.is_ditbinmas))
        return

    user_id = session.update_user_id
    db_field = get_db_field_name(session.update_field or "")
    raw_input = text.strip()

    try:
        value = await _validate_update_value(session, chat_id, db_field, raw_input, wa_client, user_model)
        if value is None:
            return

        session.last_processed_input = ProcessedInput(field=db_field, value=value, raw_input=raw_input)
        session.last_processed_at = datetime.now(timezone.utc).isoformat()

        await user_model.update_user_field(user_id, db_field, value)
        logger.info(
            "Profile field updated from menu",
            extra={"context": {"chat_id": chat_id, "user_id": user_id, "field": db_field}},
        )

        committed = session.last_processed_input.value
        display_value = f"@{committed}" if db_field in SOCIAL_FIELDS else committed
        await wa_client.send_message(
            chat_id, format_update_success(get_field_display_name(db_field), display_value, user_id)
        )

        session.clear_field_cache()
        await main(session, chat_id, "", wa_client, pool, user_model)
    except Exception:
        logger.error(
            "Updating profile field failed",
            exc_info=True,
            extra={"context": {"chat_id": chat_id, "user_id": user_id, "field": db_field}},
        )
        await wa_client.send_message(chat_id, UPDATE_FAILED_MESSAGE)


USER_MENU_HANDLERS: dict[str, Handler] = {
    UserMenuStep.MAIN.value: main,
    UserMenuStep.INPUT_USER_ID.value: input_user_id,
    UserMenuStep.CONFIRM_BIND_USER.value: confirm_bind_user,
    UserMenuStep.CONFIRM_BIND_UPDATE.value: confirm_bind_update,
    UserMenuStep.CONFIRM_USER_BY_WA_IDENTITY.value: confirm_user_by_wa_identity,
    UserMenuStep.CONFIRM_USER_BY_WA_UPDATE.value: confirm_user_by_wa_update,
    UserMenuStep.TANYA_UPDATE_MY_DATA.value: tanya_update_my_data,
    UserMenuStep.UPDATE_ASK_FIELD.value: update_ask_field,
    UserMenuStep.UPDATE_ASK_VALUE.value: update_ask_value,
}
