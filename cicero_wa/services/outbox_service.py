from __future__ import annotations

import asyncio
import time
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable

from sqlalchemy import text
from sqlalchemy.orm import Session

from cicero_wa.config import settings
from cicero_wa.database import SessionLocal
from cicero_wa.logging_config import get_logger
from cicero_wa.models import OutboxMessage

logger = get_logger("outbox")

PRIORITY_HIGH = 10
PRIORITY_LOW = 1


def normalize_priority(priority: str | int | None) -> int:
    if isinstance(priority, int):
        return priority
    return PRIORITY_HIGH if str(priority or "").strip().lower() == "high" else PRIORITY_LOW


def enqueue_send(
    db: Session,
    chat_id: str,
    payload: dict[str, Any],
    *,
    priority: str | int = "low",
    attempts: int = 5,
    backoff_seconds: float = 2.0,
) -> OutboxMessage:
    now = datetime.now(timezone.utc)
    message = OutboxMessage(
        id=uuid.uuid4(),
        chat_id=chat_id,
        payload_json=payload,
        priority=normalize_priority(priority),
        status="PENDING",
        attempts=0,
        max_attempts=attempts,
        backoff_seconds=backoff_seconds,
        created_at=now,
        updated_at=now,
    )
    db.add(message)
    db.flush()
    return message


def claim_pending_outbox(db: Session, *, limit: int = 10) -> list[dict[str, Any]]:
    rows = (
        db.execute(
            text(
                """
                WITH cte AS (
                    SELECT id
                    FROM wa_outbox_messages
                    WHERE status = 'PENDING'
                      AND (next_attempt_at IS NULL OR next_attempt_at <= NOW())
                    ORDER BY priority DESC, created_at
                    LIMIT :limit
                    FOR UPDATE SKIP LOCKED
                )
                UPDATE wa_outbox_messages
                SET status = 'PROCESSING',
                    attempts = attempts + 1,
                    updated_at = NOW()
                FROM cte
                WHERE wa_outbox_messages.id = cte.id
                RETURNING wa_outbox_messages.id,
                          wa_outbox_messages.chat_id,
                          wa_outbox_messages.payload_json,
                          wa_outbox_messages.priority,
                          wa_outbox_messages.attempts,
                          wa_outbox_messages.max_attempts,
                          wa_outbox_messages.backoff_seconds,
                          wa_outbox_messages.created_at
                """
            ),
            {"limit": limit},
        )
        .mappings()
        .all()
    )
    db.commit()
    return [dict(row) for row in rows]


def mark_outbox_status(
    db: Session,
    *,
    outbox_id,
    status: str,
    last_error: str | None = None,
    next_attempt_at: datetime | None = None,
) -> None:
    db.execute(
        text(
            """
            UPDATE wa_outbox_messages
            SET status = :status,
                last_error = :last_error,
                next_attempt_at = :next_attempt_at,
                updated_at = NOW()
            WHERE id = :id
            """
        ),
        {"id": outbox_id, "status": status, "last_error": last_error, "next_attempt_at": next_attempt_at},
    )
    db.commit()


class RateLimiter:
    """Spaces sends by a minimum interval and caps them per refresh window."""

    def __init__(
        self,
        *,
        min_interval_seconds: float | None = None,
        reservoir: int | None = None,
        refresh_seconds: float | None = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.min_interval_seconds = (
            min_interval_seconds if min_interval_seconds is not None else settings.outbox_min_interval_seconds
        )
        self.reservoir = reservoir if reservoir is not None else settings.outbox_reservoir
        self.refresh_seconds = refresh_seconds if refresh_seconds is not None else settings.outbox_reservoir_refresh_seconds
        self._clock = clock
        self._sleep = sleep
        self._lock = asyncio.Lock()
        self._remaining = self.reservoir
        self._window_started_at: float | None = None
        self._last_sent_at: float | None = None

    @property
    def remaining(self) -> int:
        return self._remaining

    async def acquire(self) -> None:
        async with self._lock:
            now = self._clock()
            if self._window_started_at is None or now - self._window_started_at >= self.refresh_seconds:
                self._window_started_at = now
                self._remaining = self.reservoir

            if self._remaining <= 0:
                wait = self._window_started_at + self.refresh_seconds - now
                logger.info("Outbox reservoir exhausted", extra={"context": {"wait_seconds": round(wait, 2)}})
                await self._sleep(wait)
                now = self._clock()
                self._window_started_at = now
                self._remaining = self.reservoir

            if self._last_sent_at is not None:
                gap = self.min_interval_seconds - (now - self._last_sent_at)
                if gap > 0:
                    await self._sleep(gap)
                    now = self._clock()

            self._remaining -= 1
            self._last_sent_at = now


@dataclass
class OutboxMetrics:
    processed: int = 0
    failed: int = 0
    latency_ms_total: float = 0.0
    latency_ms_max: float = 0.0
    last_processed_at: str | None = None
    last_failed_at: str | None = None

    def record_success(self, latency_ms: float) -> None:
        latency_ms = max(latency_ms, 0.0)
        self.processed += 1
        self.latency_ms_total += latency_ms
        self.latency_ms_max = max(self.latency_ms_max, latency_ms)
        self.last_processed_at = datetime.now(timezone.utc).isoformat()

    def record_failure(self) -> None:
        self.failed += 1
        self.last_failed_at = datetime.now(timezone.utc).isoformat()

    @property
    def average_latency_ms(self) -> float:
        if not self.processed:
            return 0.0
        return round(self.latency_ms_total / self.processed, 2)


outbox_metrics = OutboxMetrics()


def _latency_ms(created_at: Any, now: datetime) -> float:
    if not isinstance(created_at, datetime):
        return 0.0
    if created_at.tzinfo is None:
        created_at = created_at.replace(tzinfo=timezone.utc)
    return (now - created_at).total_seconds() * 1000


async def process_outbox_rows(
    db: Session,
    rows: list[dict[str, Any]],
    wa_client,
    *,
    rate_limiter: RateLimiter,
    metrics: OutboxMetrics | None = None,
) -> dict[str, int]:
    """Send claimed rows one by one; failures are rescheduled with exponential backoff."""
    metrics = metrics if metrics is not None else outbox_metrics
    results = {"sent": 0, "failed": 0, "retry_scheduled": 0}

    for row in rows:
        outbox_id = row.get("id")
        chat_id = row.get("chat_id")
        payload = row.get("payload_json") or {}
        message_text = payload.get("text")
        if not outbox_id:
            continue

        if not chat_id or not message_text:
            mark_outbox_status(db, outbox_id=outbox_id, status="FAILED", last_error="invalid_payload")
            metrics.record_failure()
            results["failed"] += 1
            continue

        try:
            await rate_limiter.acquire()
            await wa_client.send_message(chat_id, message_text, idempotency_key=str(outbox_id))
            now = datetime.now(timezone.utc)
            mark_outbox_status(db, outbox_id=outbox_id, status="SENT")
            metrics.record_success(_latency_ms(row.get("created_at"), now))
            results["sent"] += 1
        except Exception as exc:
            try:
                db.rollback()
            except Exception as rollback_exc:
                logger.warning("Outbox rollback failed", extra={"context": {"error": str(rollback_exc)}})

            attempts = int(row.get("attempts") or 0)
            max_attempts = int(row.get("max_attempts") or 5)
            logger.warning(
                "Outbox send failed",
                extra={
                    "context": {
                        "outbox_id": str(outbox_id),
                        "chat_id": chat_id,
                        "attempts": attempts,
                        "max_attempts": max_attempts,
                        "error": str(exc),
                    }
                },
            )
            if attempts >= max_attempts:
                mark_outbox_status(db, outbox_id=outbox_id, status="FAILED", last_error=str(exc)[:500])
                metrics.record_failure()
                results["failed"] += 1
                continue

            backoff_seconds = float(row.get("backoff_seconds") or 2.0)
            backoff = backoff_seconds * (2 ** max(attempts - 1, 0))
            mark_outbox_status(
                db,
                outbox_id=outbox_id,
                status="PENDING",
                last_error=str(exc)[:500],
                next_attempt_at=datetime.now(timezone.utc) + timedelta(seconds=backoff),
            )
            results["retry_scheduled"] += 1

    return results


def get_outbox_metrics(db: Session, metrics: OutboxMetrics | None = None) -> dict[str, Any]:
    metrics = metrics if metrics is not None else outbox_metrics
    counts = {
        status: count
        for status, count in db.execute(
            text("SELECT status, COUNT(*) FROM wa_outbox_messages GROUP BY status")
        ).all()
    }
    return {
        "queue_depth": counts.get("PENDING", 0) + counts.get("PROCESSING", 0),
        "queue_counts": counts,
        "send_latency_ms": {
            "average": metrics.average_latency_ms,
            "max": round(metrics.latency_ms_max, 2),
        },
        "processed": metrics.processed,
        "failed": metrics.failed,
        "last_processed_at": metrics.last_processed_at,
        "last_failed_at": metrics.last_failed_at,
    }


class OutboxWaClient:
    """WaClient that queues messages in the outbox instead of sending them inline."""

    def __init__(self, session_factory: Callable[[], Session] = SessionLocal, *, priority: str = "high"):
        self.session_factory = session_factory
        self.priority = priority

    async def send_message(self, chat_id: str, text: str, *, idempotency_key: str | None = None) -> None:
        payload = {"text": text}
        if idempotency_key:
            payload["idempotency_key"] = idempotency_key
        db = self.session_factory()
        try:
            message = enqueue_send(db, chat_id, payload, priority=self.priority)
            db.commit()
            logger.debug(
                "Outbox message queued",
                extra={"context": {"outbox_id": str(message.id), "chat_id": chat_id}},
            )
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()
