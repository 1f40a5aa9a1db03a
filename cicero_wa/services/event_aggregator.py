"""Inbound WhatsApp message deduplication.

Two independent TTL caches gate the handler:
- exact ids, keyed by ``{jid}:{message_id}`` (adapters re-deliver the same event);
- semantic fingerprints, keyed by ``{jid}:{body}:{step}:{time_bucket}`` (the same
  text re-sent under a new id within a few seconds).
Expired entries are swept periodically and ignored on lookup.
"""

import asyncio
import math
import os
import re
import time
from typing import Any, Awaitable, Callable, Optional

from cicero_wa.logging_config import get_logger, is_wa_debug_logging_enabled
from cicero_wa.schemas.webhook import InboundMessage

logger = get_logger("event_aggregator")

DEFAULT_TTL_MS = 24 * 60 * 60 * 1000
DEFAULT_SEMANTIC_DEDUP_TTL_MS = 15000
DEFAULT_SEMANTIC_DEDUP_BUCKET_MS = 5000
CLEANUP_INTERVAL_SECONDS = 60 * 60

WHITESPACE_PATTERN = re.compile(r"\s+")

MessageHandler = Callable[[InboundMessage], Awaitable[Any]]


def _read_bounded_ms(
    env_name: str,
    default: int,
    *,
    min_value: int,
    max_value: Optional[int] = None,
) -> int:
    raw = os.environ.get(env_name)
    if not raw:
        return default
    try:
        parsed = int(raw)
    except ValueError:
        parsed = None
    if parsed is None or parsed < min_value or (max_value is not None and parsed > max_value):
        bounds = f">= {min_value}ms" if max_value is None else f"between {min_value}ms and {max_value}ms"
        logger.warning(
            f"Invalid {env_name}={raw!r}, using default {default}ms (must be {bounds})",
            extra={"context": {"env": env_name, "value": raw, "default": default}},
        )
        return default
    return parsed


def parse_message_dedup_ttl_ms() -> int:
    return _read_bounded_ms("WA_MESSAGE_DEDUP_TTL_MS", DEFAULT_TTL_MS, min_value=60000)


def parse_semantic_dedup_ttl_ms() -> int:
    return _read_bounded_ms(
        "WA_SEMANTIC_DEDUP_TTL_MS", DEFAULT_SEMANTIC_DEDUP_TTL_MS, min_value=10000, max_value=30000
    )


def parse_semantic_dedup_bucket_ms() -> int:
    return _read_bounded_ms(
        "WA_SEMANTIC_DEDUP_BUCKET_MS", DEFAULT_SEMANTIC_DEDUP_BUCKET_MS, min_value=2000, max_value=5000
    )


def get_normalized_message_body(msg: InboundMessage) -> str:
    return WHITESPACE_PATTERN.sub(" ", (msg.body or "").lower()).strip()


def get_step_snapshot(msg: InboundMessage) -> str:
    return msg.step_snapshot or "default"


class EventAggregator:
    def __init__(
        self,
        *,
        ttl_ms: Optional[int] = None,
        semantic_ttl_ms: Optional[int] = None,
        semantic_bucket_ms: Optional[int] = None,
    ):
        self.ttl_ms = ttl_ms if ttl_ms is not None else parse_message_dedup_ttl_ms()
        self.semantic_ttl_ms = semantic_ttl_ms if semantic_ttl_ms is not None else parse_semantic_dedup_ttl_ms()
        self.semantic_bucket_ms = (
            semantic_bucket_ms if semantic_bucket_ms is not None else parse_semantic_dedup_bucket_ms()
        )
        self._seen_messages: dict[str, float] = {}
        self._seen_fingerprints: dict[str, float] = {}
        self._sweeper_task: Optional[asyncio.Task] = None
        self.debug = is_wa_debug_logging_enabled()

    def build_semantic_fingerprint(self, jid: str, msg: InboundMessage, now_ms: float) -> Optional[str]:
        body = get_normalized_message_body(msg)
        if not body:
            return None
        time_bucket = math.floor(now_ms / self.semantic_bucket_ms)
        return f"{jid}:{body}:{get_step_snapshot(msg)}:{time_bucket}"

    def _is_fresh(self, cache: dict[str, float], key: str, ttl_ms: int, now_ms: float) -> bool:
        seen_at = cache.get(key)
        return seen_at is not None and now_ms - seen_at <= ttl_ms

    async def handle_incoming(
        self,
        from_adapter: str,
        msg: InboundMessage,
        handler: MessageHandler,
        *,
        allow_replay: bool = False,
        now: Optional[float] = None,
    ) -> bool:
        """Run ``handler`` unless the message is a duplicate. Returns True if it ran."""
        jid = msg.chat_id
        message_id = msg.message_id
        now_ms = (now if now is not None else time.time()) * 1000

        if self.debug:
            logger.debug(
                "Message received",
                extra={"context": {"adapter": from_adapter, "jid": jid, "message_id": message_id}},
            )

        if not jid or not message_id:
            logger.warning(
                "Message missing identifier",
                extra={"context": {"adapter": from_adapter, "jid": jid, "message_id": message_id}},
            )
            await self._invoke(handler, msg, from_adapter)
            return True

        key = f"{jid}:{message_id}"
        if not allow_replay and self._is_fresh(self._seen_messages, key, self.ttl_ms, now_ms):
            if self.debug:
                logger.debug("Duplicate message skipped", extra={"context": {"key": key}})
            return False

        fingerprint = self.build_semantic_fingerprint(jid, msg, now_ms)
        if fingerprint and self._is_fresh(self._seen_fingerprints, fingerprint, self.semantic_ttl_ms, now_ms):
            if self.debug:
                logger.debug("Semantic duplicate skipped", extra={"context": {"fingerprint": fingerprint}})
            return False

        if allow_replay and self.debug:
            logger.debug("Replay allowed for message id", extra={"context": {"key": key}})

        self._seen_messages[key] = now_ms
        if fingerprint:
            self._seen_fingerprints[fingerprint] = now_ms

        await self._invoke(handler, msg, from_adapter)
        return True

    async def _invoke(self, handler: MessageHandler, msg: InboundMessage, from_adapter: str) -> None:
        try:
            await handler(msg)
        except Exception:
            logger.error(
                "WA handler error",
                exc_info=True,
                extra={"context": {"jid": msg.chat_id, "message_id": msg.message_id, "adapter": from_adapter}},
            )

    def cleanup_expired(self, *, now: Optional[float] = None) -> int:
        now_ms = (now if now is not None else time.time()) * 1000
        removed = 0
        for cache, ttl_ms in ((self._seen_messages, self.ttl_ms), (self._seen_fingerprints, self.semantic_ttl_ms)):
            expired = [key for key, seen_at in cache.items() if now_ms - seen_at > ttl_ms]
            for key in expired:
                del cache[key]
            removed += len(expired)

        if removed and self.debug:
            logger.debug(
                "Cleaned up expired dedup entries",
                extra={"context": {"removed": removed, "cache_size": len(self._seen_messages)}},
            )
        return removed

    async def _sweep_loop(self, interval_seconds: float) -> None:
        while True:
            try:
                await asyncio.sleep(interval_seconds)
                self.cleanup_expired()
            except asyncio.CancelledError:
                break
            except Exception as exc:
                logger.error("Dedup sweep failed", extra={"context": {"error": str(exc)}})

    def start_sweeper(self, interval_seconds: float = CLEANUP_INTERVAL_SECONDS) -> None:
        if self._sweeper_task is None or self._sweeper_task.done():
            self._sweeper_task = asyncio.get_running_loop().create_task(self._sweep_loop(interval_seconds))

    async def stop_sweeper(self) -> None:
        if self._sweeper_task is None:
            return
        self._sweeper_task.cancel()
        try:
            await self._sweeper_task
        except asyncio.CancelledError:
            pass
        self._sweeper_task = None

    def get_message_dedup_stats(self, *, now: Optional[float] = None) -> dict:
        now_ms = (now if now is not None else time.time()) * 1000
        oldest_id = min(self._seen_messages.values(), default=now_ms)
        oldest_semantic = min(self._seen_fingerprints.values(), default=now_ms)
        return {
            "id_dedup": {
                "size": len(self._seen_messages),
                "ttl_ms": self.ttl_ms,
                "oldest_entry_age_ms": now_ms - oldest_id,
            },
            "semantic_dedup": {
                "size": len(self._seen_fingerprints),
                "ttl_ms": self.semantic_ttl_ms,
                "bucket_ms": self.semantic_bucket_ms,
                "oldest_entry_age_ms": now_ms - oldest_semantic,
            },
        }
