"""Background worker pool that delivers queued callback requests."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable
from contextlib import suppress
from datetime import UTC, datetime
from enum import StrEnum

from callback_dispatch.domain.models import CallbackRequest, CallbackResult
from callback_dispatch.domain.ports import (
    CallbackQueue,
    CallbackRetryPolicy,
    CallbackSender,
    CallbackStore,
)

logger = logging.getLogger(__name__)


class RedeliveryMode(StrEnum):
    """How retry-scheduled requests get back onto the queue."""

    IN_MEMORY = "in_memory"
    DURABLE = "durable"


class CallbackWorker:
    """Consume the callback queue with a fixed number of concurrent loops.

    Every attempt goes through `process_one`. Retries are redelivered either by
    a timer task per request (`IN_MEMORY`) or by a loop that polls the store for
    due requests (`DURABLE`), which also picks up work left behind by a crash.
    """

    def __init__(
        self,
        queue: CallbackQueue,
        sender: CallbackSender,
        retry_policy: CallbackRetryPolicy,
        store: CallbackStore,
        *,
        concurrency: int = 1,
        redelivery: RedeliveryMode = RedeliveryMode.IN_MEMORY,
        recovery_poll_seconds: float = 1.0,
        recovery_batch_size: int = 20,
    ) -> None:
        self._queue = queue
        self._sender = sender
        self._retry_policy = retry_policy
        self._store = store
        self._concurrency = max(concurrency, 1)
        self._redelivery = redelivery
        self._recovery_poll_seconds = max(recovery_poll_seconds, 0.01)
        self._recovery_batch_size = max(recovery_batch_size, 1)

        self._loop_tasks: list[asyncio.Task[None]] = []
        self._recovery_task: asyncio.Task[None] | None = None
        self._requeue_tasks: set[asyncio.Task[None]] = set()
        self._recovery_wake = asyncio.Event()
        self._stopping = asyncio.Event()
        self._lifecycle_lock = asyncio.Lock()

    @property
    def concurrency(self) -> int:
        return self._concurrency

    @property
    def redelivery(self) -> RedeliveryMode:
        return self._redelivery

    @property
    def is_running(self) -> bool:
        """Return whether at least one worker loop is alive."""

        return any(not task.done() for task in self._loop_tasks)

    @property
    def pending_redeliveries(self) -> int:
        """Return the number of in-memory retry timers still waiting."""

        return sum(1 for task in self._requeue_tasks if not task.done())

    async def start(self) -> None:
        """Start worker loops, plus the recovery loop in durable mode."""

        async with self._lifecycle_lock:
            if self.is_running:
                return

            self._stopping.clear()
            self._loop_tasks = [
                asyncio.create_task(self._run_loop(), name=f"callback-worker-{index}")
                for index in range(self._concurrency)
            ]
            if self._redelivery is RedeliveryMode.DURABLE:
                self._recovery_wake.set()
                self._recovery_task = asyncio.create_task(
                    self._run_recovery_loop(),
                    name="callback-worker-recovery",
                )
            logger.info(
                "Started %s callback worker loop(s) with %s redelivery.",
                self._concurrency,
                self._redelivery,
            )

    async def stop(self) -> None:
        """Cancel loops, pending retry timers and in-flight sends."""

        async with self._lifecycle_lock:
            tasks = [*self._loop_tasks, *self._requeue_tasks]
            if self._recovery_task is not None:
                tasks.append(self._recovery_task)
            self._loop_tasks = []
            self._requeue_tasks = set()
            self._recovery_task = None
            if not tasks:
                return

            self._stopping.set()
            self._recovery_wake.set()
            for task in tasks:
                task.cancel()

        with suppress(asyncio.CancelledError):
            await asyncio.gather(*tasks, return_exceptions=True)
        logger.info("Stopped callback worker.")

    def wake_recovery(self) -> None:
        """Let the recovery loop poll the store without waiting for its interval."""

        self._recovery_wake.set()

    async def process_one(self, request: CallbackRequest) -> CallbackResult | None:
        """Run one delivery attempt and record its outcome.

        Returns `None` without sending when the store refuses the claim, which
        happens for requests already finished or claimed through another copy.
        """

        if not await self._claim(request):
            logger.debug(
                "Skipping callback %s request %s attempt %s; claim refused by store.",
                request.callback_id,
                request.request_id,
                request.attempt + 1,
            )
            return None
        result = await self._send(request)

        if result.success:
            await self._store_call(
                "mark_succeeded",
                self._store.mark_succeeded(request, result),
                request,
            )
            logger.debug(
                "Delivered callback %s to %s (attempt %s, status %s).",
                request.callback_id,
                request.target_url,
                request.attempt + 1,
                result.status_code,
            )
            return result

        decision = self._retry_policy.evaluate(request, result)
        if not decision.should_retry:
            logger.warning(
                "Callback %s to %s failed permanently after attempt %s (%s): %s %s",
                request.callback_id,
                request.target_url,
                request.attempt + 1,
                decision.reason,
                result.status_code or result.error_type,
                result.error_message or "",
            )
            await self._store_call(
                "mark_failed_permanent",
                self._store.mark_failed_permanent(request, result),
                request,
            )
            return result

        request.schedule_retry(decision.next_attempt_at)
        logger.warning(
            "Callback %s to %s failed (%s); retry %s scheduled in %.2fs.",
            request.callback_id,
            request.target_url,
            result.status_code or result.error_type,
            request.attempt,
            decision.delay_seconds,
        )
        await self._store_call(
            "mark_retry_scheduled",
            self._store.mark_retry_scheduled(request, result),
            request,
        )
        if self._redelivery is RedeliveryMode.IN_MEMORY:
            self._schedule_requeue(request)
        return result

    async def recover_due_once(self) -> int:
        """Enqueue one batch of due requests from the store and return its size."""

        requests = await self._store.dequeue_due(self._recovery_batch_size)
        for request in requests:
            await self._queue.enqueue(request)
        if requests:
            logger.info("Recovered %s due callback request(s) from store.", len(requests))
        return len(requests)

    async def _run_loop(self) -> None:
        while not self._stopping.is_set():
            request = await self._queue.dequeue()
            try:
                await self.process_one(request)
            except Exception:
                logger.exception(
                    "Callback worker failed to process request %s.",
                    request.request_id,
                )

    async def _run_recovery_loop(self) -> None:
        while not self._stopping.is_set():
            try:
                recovered = await self.recover_due_once()
            except Exception:
                logger.exception("Callback recovery loop failed.")
                recovered = 0

            if recovered >= self._recovery_batch_size:
                continue

            self._recovery_wake.clear()
            try:
                await asyncio.wait_for(
                    self._recovery_wake.wait(),
                    timeout=self._recovery_poll_seconds,
                )
            except TimeoutError:
                pass

    async def _claim(self, request: CallbackRequest) -> bool:
        try:
            return await self._store.mark_in_flight(request)
        except Exception:
            logger.exception(
                "Callback store mark_in_flight failed for request %s.",
                request.request_id,
            )
            return True

    async def _send(self, request: CallbackRequest) -> CallbackResult:
        try:
            return await self._sender.send(request)
        except Exception as exc:
            logger.exception(
                "Callback sender raised for request %s.",
                request.request_id,
            )
            return CallbackResult(
                success=False,
                error_type=type(exc).__name__,
                error_message=str(exc) or type(exc).__name__,
                completed_at=datetime.now(tz=UTC),
            )

    def _schedule_requeue(self, request: CallbackRequest) -> None:
        task = asyncio.create_task(
            self._requeue_when_due(request),
            name=f"callback-requeue-{request.request_id}",
        )
        self._requeue_tasks.add(task)
        task.add_done_callback(self._requeue_tasks.discard)

    async def _requeue_when_due(self, request: CallbackRequest) -> None:
        due_at = request.next_attempt_at or datetime.now(tz=UTC)
        delay = (due_at - datetime.now(tz=UTC)).total_seconds()
        if delay > 0:
            await asyncio.sleep(delay)
        await self._queue.enqueue(request)

    async def _store_call(
        self, operation: str, call: Awaitable[None], request: CallbackRequest
    ) -> None:
        try:
            await call
        except Exception:
            logger.exception(
                "Callback store %s failed for request %s.",
                operation,
                request.request_id,
            )


__all__ = ["CallbackWorker", "RedeliveryMode"]
