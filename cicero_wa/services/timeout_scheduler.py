"""Inactivity timers for user menu sessions.

Every turn re-arms three timers on the session: a no-reply nudge, a warning shortly
before expiry and the expiry itself. Each timer remembers the session's activity_seq
at arm time and does nothing if the session moved on (or was removed) before it fired.
Expiry also opens a short per-chat cooldown during which free text does not start a
new session.
"""

import asyncio
import time
from typing import Optional

from cicero_wa.config import settings
from cicero_wa.logging_config import get_logger
from cicero_wa.services.menu_helpers import format_duration
from cicero_wa.services.session_store import Session, SessionStore
from cicero_wa.services.wa_client import WaClient

logger = get_logger("timeout_scheduler")


def build_session_expired_message(timeout_seconds: float) -> str:
    return (
        "⏰ *Sesi Telah Berakhir*\n\n"
        f"Sesi Anda telah berakhir karena tidak ada aktivitas selama {format_duration(timeout_seconds)}.\n\n"
        "📝 *Tips:* Siapkan informasi yang diperlukan sebelum memulai sesi untuk menghindari timeout.\n\n"
        "Untuk memulai lagi, ketik *userrequest*."
    )


def build_session_warning_message(remaining_seconds: float) -> str:
    return (
        "⏰ *Peringatan Sesi*\n\n"
        f"Sesi akan berakhir dalam {format_duration(remaining_seconds)}.\n\n"
        "✅ Balas sesuai pilihan untuk melanjutkan dan memperpanjang sesi.\n"
        "⏹️ Ketik *batal* untuk keluar sekarang."
    )


def build_no_reply_message(remaining_seconds: float) -> str:
    return (
        "🤖 *Menunggu Balasan*\n\n"
        "Kami masih menunggu balasan Anda.\n\n"
        "✍️ Silakan jawab sesuai instruksi untuk melanjutkan.\n"
        "❓ Ketik *batal* jika ingin keluar.\n\n"
        f"⏱️ Sisa waktu: ~{format_duration(remaining_seconds)} sebelum sesi berakhir."
    )


TIMER_EXPIRY = "expiry"
TIMER_WARNING = "warning"
TIMER_NO_REPLY = "no_reply"


class TimeoutScheduler:
    def __init__(
        self,
        store: SessionStore,
        *,
        timeout_seconds: Optional[float] = None,
        warning_seconds: Optional[float] = None,
        no_reply_seconds: Optional[float] = None,
        cooldown_seconds: Optional[float] = None,
    ):
        self.store = store
        self.timeout_seconds = timeout_seconds if timeout_seconds is not None else settings.user_menu_timeout_seconds
        self.warning_seconds = warning_seconds if warning_seconds is not None else settings.menu_warning_seconds
        self.no_reply_seconds = no_reply_seconds if no_reply_seconds is not None else settings.no_reply_timeout_seconds
        self.cooldown_seconds = cooldown_seconds if cooldown_seconds is not None else settings.timeout_cooldown_seconds
        self.session_expired_message = build_session_expired_message(self.timeout_seconds)
        self.session_warning_message = build_session_warning_message(min(self.warning_seconds, self.timeout_seconds))
        self.no_reply_message = build_no_reply_message(max(self.timeout_seconds - self.no_reply_seconds, 0))
        self._cooldowns: dict[str, float] = {}
        self._send_tasks: set[asyncio.Task] = set()

    def set_menu_timeout(self, chat_id: str, wa_client: Optional[WaClient], expect_reply: bool = False) -> Session:
        """Cancel the session's timers and arm fresh ones for this turn."""
        session = self.store.get_or_create(chat_id)
        session.clear_timers()
        session.activity_seq += 1
        seq = session.activity_seq

        loop = asyncio.get_running_loop()
        session.timeout = loop.call_later(
            self.timeout_seconds, self._on_timer, TIMER_EXPIRY, chat_id, session, seq, wa_client
        )
        session.warning_timeout = loop.call_later(
            max(self.timeout_seconds - self.warning_seconds, 0),
            self._on_timer,
            TIMER_WARNING,
            chat_id,
            session,
            seq,
            wa_client,
        )
        if expect_reply:
            session.no_reply_timeout = loop.call_later(
                self.no_reply_seconds, self._on_timer, TIMER_NO_REPLY, chat_id, session, seq, wa_client
            )
        return session

    def clear_menu_timeout(self, chat_id: str) -> None:
        session = self.store.get(chat_id)
        if session is not None:
            session.clear_timers()

    def is_stale(self, chat_id: str, session: Session, seq: int) -> bool:
        return session.exit or session.activity_seq != seq or not self.store.is_current(chat_id, session)

    def _on_timer(
        self,
        kind: str,
        chat_id: str,
        session: Session,
        seq: int,
        wa_client: Optional[WaClient],
    ) -> None:
        if self.is_stale(chat_id, session, seq):
            logger.debug(
                "Skipping stale session timer",
                extra={"context": {"chat_id": chat_id, "timer": kind, "armed_seq": seq, "seq": session.activity_seq}},
            )
            return

        if kind == TIMER_EXPIRY:
            self.store.delete(chat_id)
            self.set_session_timeout_cooldown(chat_id)
            logger.info("User menu session expired", extra={"context": {"chat_id": chat_id, "step": session.step}})
            text = self.session_expired_message
        elif kind == TIMER_WARNING:
            session.warning_timeout = None
            text = self.session_warning_message
        else:
            session.no_reply_timeout = None
            text = self.no_reply_message

        if wa_client is None:
            return
        task = asyncio.get_running_loop().create_task(self._send(wa_client, chat_id, text, kind))
        self._send_tasks.add(task)
        task.add_done_callback(self._send_tasks.discard)

    async def _send(self, wa_client: WaClient, chat_id: str, text: str, kind: str) -> None:
        try:
            await wa_client.send_message(chat_id, text)
        except Exception as exc:
            logger.error(
                "Session timer message failed",
                extra={"context": {"chat_id": chat_id, "timer": kind, "error": str(exc)}},
            )

    async def drain(self) -> None:
        """Wait for timer messages that are still being sent."""
        if self._send_tasks:
            await asyncio.gather(*list(self._send_tasks), return_exceptions=True)

    def set_session_timeout_cooldown(self, chat_id: str, *, now: Optional[float] = None) -> None:
        self._cooldowns[chat_id] = now if now is not None else time.monotonic()

    def is_in_timeout_cooldown(self, chat_id: str, *, now: Optional[float] = None) -> bool:
        started_at = self._cooldowns.get(chat_id)
        if started_at is None:
            return False
        now = now if now is not None else time.monotonic()
        if now - started_at >= self.cooldown_seconds:
            del self._cooldowns[chat_id]
            return False
        return True

    def clear_timeout_cooldown(self, chat_id: str) -> None:
        self._cooldowns.pop(chat_id, None)
