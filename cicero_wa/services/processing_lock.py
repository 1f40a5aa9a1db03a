import asyncio
import json
import time
from collections import deque
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from cicero_wa.config import settings
from cicero_wa.logging_config import get_logger

logger = get_logger("processing_lock")

ReleaseFn = Callable[[], None]


def read_processing_lock_timeout_seconds() -> float:
    timeout = settings.processing_lock_timeout_seconds
    if timeout <= 0:
        logger.warning(
            "Invalid processing lock timeout, using default",
            extra={"context": {"configured": timeout, "default": 30.0}},
        )
        return 30.0
    return timeout


@dataclass(eq=False)
class _Waiter:
    future: asyncio.Future
    context: dict[str, Any]
    requested_at: float
    queue_depth: int


@dataclass
class LockHolder:
    chat_id: str
    context: dict[str, Any]
    acquired_at: float
    wait_time_ms: float
    queue_depth_on_acquire: int
    released: bool = False
    timer: Optional[asyncio.TimerHandle] = field(default=None, repr=False)


class ProcessingLock:
    """Per-chat mutual exclusion with FIFO hand-off and a safety auto-release."""

    def __init__(self, timeout_seconds: Optional[float] = None):
        self.timeout_seconds = timeout_seconds if timeout_seconds is not None else read_processing_lock_timeout_seconds()
        self._holders: dict[str, LockHolder] = {}
        self._queues: dict[str, deque[_Waiter]] = {}

    def is_processing(self, chat_id: str) -> bool:
        return chat_id in self._holders

    def queue_depth(self, chat_id: str) -> int:
        return len(self._queues.get(chat_id, ()))

    def holder(self, chat_id: str) -> Optional[LockHolder]:
        return self._holders.get(chat_id)

    def active_count(self) -> int:
        return len(self._holders)

    async def acquire(self, chat_id: str, context: Optional[dict[str, Any]] = None) -> ReleaseFn:
        """Wait for the chat's lock and return an idempotent release function."""
        context = dict(context or {})
        requested_at = time.monotonic()

        if chat_id not in self._holders:
            return self._grant(chat_id, context, requested_at, queue_depth=0)

        queue = self._queues.setdefault(chat_id, deque())
        waiter = _Waiter(
            future=asyncio.get_running_loop().create_future(),
            context=context,
            requested_at=requested_at,
            queue_depth=len(queue) + 1,
        )
        queue.append(waiter)
        try:
            return await waiter.future
        except asyncio.CancelledError:
            if waiter.future.done() and not waiter.future.cancelled():
                # Lock was handed over right before the cancellation landed.
                waiter.future.result()()
            else:
                self._discard_waiter(chat_id, waiter)
            raise

    @asynccontextmanager
    async def locked(self, chat_id: str, context: Optional[dict[str, Any]] = None):
        release = await self.acquire(chat_id, context)
        try:
            yield
        finally:
            release()

    def _grant(self, chat_id: str, context: dict[str, Any], requested_at: float, queue_depth: int) -> ReleaseFn:
        now = time.monotonic()
        holder = LockHolder(
            chat_id=chat_id,
            context=context,
            acquired_at=now,
            wait_time_ms=round((now - requested_at) * 1000, 2),
            queue_depth_on_acquire=queue_depth,
        )
        self._holders[chat_id] = holder

        def release() -> None:
            self._release(holder)

        def force_release() -> None:
            if holder.released:
                return
            logger.warning(
                f"Processing lock timeout for chat_id={chat_id}, forcing release "
                f"queue_depth={self.queue_depth(chat_id)} wait_time_ms={holder.wait_time_ms} "
                f"context={json.dumps(context, default=str, separators=(',', ':'))}",
                extra={
                    "context": {
                        "chat_id": chat_id,
                        "held_ms": round((time.monotonic() - holder.acquired_at) * 1000, 2),
                        "wait_time_ms": holder.wait_time_ms,
                        "queue_depth": self.queue_depth(chat_id),
                        "queue_depth_on_acquire": holder.queue_depth_on_acquire,
                        "caller": context,
                    }
                },
            )
            self._release(holder)

        holder.timer = asyncio.get_running_loop().call_later(self.timeout_seconds, force_release)
        return release

    def _release(self, holder: LockHolder) -> None:
        if holder.released:
            return
        holder.released = True
        if holder.timer is not None:
            holder.timer.cancel()

        chat_id = holder.chat_id
        if self._holders.get(chat_id) is holder:
            del self._holders[chat_id]

        queue = self._queues.get(chat_id)
        while queue:
            waiter = queue.popleft()
            if waiter.future.done():
                continue
            release = self._grant(chat_id, waiter.context, waiter.requested_at, waiter.queue_depth)
            waiter.future.set_result(release)
            break

        if queue is not None and not queue:
            self._queues.pop(chat_id, None)

    def _discard_waiter(self, chat_id: str, waiter: _Waiter) -> None:
        queue = self._queues.get(chat_id)
        if not queue:
            return
        if waiter in queue:
            queue.remove(waiter)
        if not queue:
            self._queues.pop(chat_id, None)
