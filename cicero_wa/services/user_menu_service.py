from typing import Any, Optional

from cicero_wa.config import settings
from cicero_wa.logging_config import ChatLoggerAdapter, get_logger
from cicero_wa.schemas.webhook import InboundMessage
from cicero_wa.services.event_aggregator import EventAggregator
from cicero_wa.services.intent_parser import normalize_user_menu_text
from cicero_wa.services.menu_helpers import normalize_whatsapp_number
from cicero_wa.services.menu_policy import resolve_initial_user_menu_flow, should_auto_start_user_menu
from cicero_wa.services.processing_lock import ProcessingLock
from cicero_wa.services.session_store import ClientRequestSessionStore, Session, SessionStore
from cicero_wa.services.state_machine import (
    UserMenuStep,
    create_user_menu_step_snapshot,
    set_user_menu_step,
    should_drop_stale_user_menu_input,
)
from cicero_wa.services.timeout_scheduler import TimeoutScheduler
from cicero_wa.services.user_menu_handlers import USER_MENU_HANDLERS, Handler
from cicero_wa.services.user_model import UserModel
from cicero_wa.services.wa_client import WaClient

logger = get_logger("user_menu_service")

START_COMMAND = "userrequest"


class UserMenuService:
    """Entry point for inbound chat text: dedup, per-chat lock, step dispatch, timers."""

    def __init__(
        self,
        wa_client: WaClient,
        user_model: UserModel,
        pool: Any = None,
        *,
        store: Optional[SessionStore] = None,
        lock: Optional[ProcessingLock] = None,
        scheduler: Optional[TimeoutScheduler] = None,
        aggregator: Optional[EventAggregator] = None,
        client_sessions: Optional[ClientRequestSessionStore] = None,
        auto_start: Optional[bool] = None,
    ):
        self.wa_client = wa_client
        self.user_model = user_model
        self.pool = pool
        self.store = store if store is not None else SessionStore()
        self.lock = lock if lock is not None else ProcessingLock()
        self.scheduler = scheduler if scheduler is not None else TimeoutScheduler(self.store)
        self.aggregator = aggregator if aggregator is not None else EventAggregator()
        self.client_sessions = client_sessions if client_sessions is not None else ClientRequestSessionStore()
        self.auto_start = auto_start if auto_start is not None else settings.user_menu_auto_start

    def start(self) -> None:
        self.aggregator.start_sweeper()

    async def stop(self) -> None:
        await self.aggregator.stop_sweeper()
        self.store.clear()
        await self.scheduler.drain()

    def get_stats(self) -> dict[str, int]:
        return {"active_sessions": len(self.store), "active_locks": self.lock.active_count()}

    async def handle_message(
        self,
        msg: InboundMessage,
        *,
        adapter: str = "chatflow",
        allow_replay: bool = False,
        now: Optional[float] = None,
    ) -> bool:
        """Feed one inbound message through dedup. Returns False for duplicates."""
        if not msg.step_snapshot and msg.chat_id:
            # Semantic dedup keys on the step the reply was written for.
            session = self.store.get(msg.chat_id)
            if session is not None and session.step:
                msg = msg.model_copy(update={"step_snapshot": session.step})
        return await self.aggregator.handle_incoming(
            adapter, msg, self._on_message, allow_replay=allow_replay, now=now
        )

    async def _on_message(self, msg: InboundMessage) -> None:
        await self.process_text(msg.chat_id, msg.body or "", message_id=msg.message_id)

    async def process_text(self, chat_id: str, text: str, *, message_id: Optional[str] = None) -> bool:
        """Run the menu for one message. Returns True if a step handler ran."""
        log = ChatLoggerAdapter(logger, {"chat_id": chat_id, "message_id": message_id})
        existing = self.store.get(chat_id)
        snapshot = create_user_menu_step_snapshot(existing) if existing is not None else None

        release = await self.lock.acquire(
            chat_id, {"message_id": message_id, "step": snapshot.step if snapshot else None}
        )
        try:
            resolved = await self._resolve_handler(chat_id, text, snapshot, log)
            if resolved is None:
                return False
            session, handler, handler_text = resolved
            # Timers stay off while the turn runs and are re-armed below.
            self.scheduler.clear_menu_timeout(chat_id)

            try:
                await handler(session, chat_id, handler_text, self.wa_client, self.pool, self.user_model)
            except Exception:
                log.error("User menu handler failed", exc_info=True, context={"step": session.step})

            if session.exit:
                self.store.delete(chat_id)
                self.scheduler.set_session_timeout_cooldown(chat_id)
                log.info("User menu session closed", context={"step": session.step})
            elif self.store.is_current(chat_id, session):
                self.scheduler.set_menu_timeout(chat_id, self.wa_client, expect_reply=True)
            return True
        finally:
            release()

    async def _resolve_handler(
        self,
        chat_id: str,
        text: str,
        snapshot,
        log: ChatLoggerAdapter,
    ) -> Optional[tuple[Session, Handler, str]]:
        lower = normalize_user_menu_text(text)
        session = self.store.get(chat_id)

        if session is not None:
            if should_drop_stale_user_menu_input(snapshot, session, text):
                log.info(
                    "Dropping stale user menu input",
                    context={"snapshot_version": snapshot.step_version, "step_version": session.step_version},
                )
                return None
            if lower == START_COMMAND:
                self.store.delete(chat_id)
                return self.store.get_or_create(chat_id), USER_MENU_HANDLERS[UserMenuStep.MAIN.value], text
            handler = USER_MENU_HANDLERS.get(session.step or UserMenuStep.MAIN.value)
            if handler is None:
                log.warning("Unknown user menu step, restarting", context={"step": session.step})
                handler = USER_MENU_HANDLERS[UserMenuStep.MAIN.value]
            return session, handler, text

        if should_auto_start_user_menu(
            allow_user_menu=True,
            has_user_menu_session=False,
            lower_text=lower,
            auto_start_enabled=True,
        ):
            self.scheduler.clear_timeout_cooldown(chat_id)
            return self.store.get_or_create(chat_id), USER_MENU_HANDLERS[UserMenuStep.MAIN.value], text

        if not self.auto_start or not lower:
            return None
        if self.scheduler.is_in_timeout_cooldown(chat_id):
            log.info("Suppressing auto start during timeout cooldown")
            return None
        if self.client_sessions.get(chat_id) is not None:
            log.info("Suppressing auto start during clientrequest session")
            return None

        try:
            is_linked = await self.user_model.find_user_by_whatsapp(normalize_whatsapp_number(chat_id)) is not None
        except Exception:
            log.error("Linked number lookup failed", exc_info=True)
            return None

        decision = resolve_initial_user_menu_flow(
            allow_user_menu=self.auto_start,
            is_admin_command=False,
            lower_text=lower,
            original_text=text,
            has_any_session=False,
            is_in_timeout_cooldown=False,
            is_linked=is_linked,
        )
        if not decision.should_auto_start:
            return None

        session = self.store.get_or_create(chat_id)
        if decision.use_direct_nrp_input:
            log.info("Starting registration from direct NRP input")
            set_user_menu_step(session, UserMenuStep.INPUT_USER_ID)
            return session, USER_MENU_HANDLERS[UserMenuStep.INPUT_USER_ID.value], decision.normalized_nrp
        return session, USER_MENU_HANDLERS[UserMenuStep.MAIN.value], text
