import asyncio
import os

from fastapi import FastAPI

from cicero_wa.config import settings
from cicero_wa.database import SessionLocal
from cicero_wa.logging_config import get_logger, setup_logging
from cicero_wa.routers import health, webhook
from cicero_wa.services.outbox_service import OutboxWaClient, RateLimiter, claim_pending_outbox, process_outbox_rows
from cicero_wa.services.user_menu_service import UserMenuService
from cicero_wa.services.user_model import SqlUserModel
from cicero_wa.services.wa_client import ChatflowWaClient

setup_logging(settings.log_level)

app = FastAPI(
    title="Cicero WA",
    description="WhatsApp user menu for personnel self-registration",
    version="0.1.0",
)

app.include_router(webhook.router)
app.include_router(health.router)

outbox_logger = get_logger("outbox_worker")
_outbox_worker_task: asyncio.Task | None = None


def _is_outbox_worker_enabled() -> bool:
    if os.environ.get("PYTEST_CURRENT_TEST"):
        return False
    return settings.outbox_worker_enabled


async def _outbox_worker_loop(sender: ChatflowWaClient, rate_limiter: RateLimiter) -> None:
    interval_seconds = max(settings.outbox_worker_interval_seconds, 0.1)
    while True:
        try:
            await asyncio.sleep(interval_seconds)
            db = SessionLocal()
            try:
                rows = claim_pending_outbox(db, limit=settings.outbox_process_limit)
                if rows:
                    results = await process_outbox_rows(db, rows, sender, rate_limiter=rate_limiter)
                    outbox_logger.info("Outbox worker processed", extra={"context": results})
            finally:
                db.close()
        except asyncio.CancelledError:
            break
        except Exception as exc:
            outbox_logger.error(
                "Outbox worker loop failed",
                extra={"context": {"error": str(exc)}},
            )


@app.on_event("startup")
async def start_services() -> None:
    global _outbox_worker_task
    worker_enabled = _is_outbox_worker_enabled()
    wa_client = OutboxWaClient() if worker_enabled else ChatflowWaClient()
    service = UserMenuService(wa_client, SqlUserModel())
    service.start()
    app.state.user_menu_service = service

    if not worker_enabled:
        return
    if _outbox_worker_task is None or _outbox_worker_task.done():
        _outbox_worker_task = asyncio.create_task(_outbox_worker_loop(ChatflowWaClient(), RateLimiter()))
        outbox_logger.info("Outbox worker started")


@app.on_event("shutdown")
async def stop_services() -> None:
    global _outbox_worker_task
    service = getattr(app.state, "user_menu_service", None)
    if service is not None:
        await service.stop()

    if _outbox_worker_task is None:
        return
    _outbox_worker_task.cancel()
    try:
        await _outbox_worker_task
    except asyncio.CancelledError:
        pass
    _outbox_worker_task = None


@app.get("/health")
async def health_check():
    return {"status": "ok"}
