from __future__ import annotations

import asyncio
from collections.abc import Callable

from callback_dispatch.application import CallbackDispatcher, CallbackDispatchOptions
from callback_dispatch.domain import (
    CallbackRecord,
    CallbackRequest,
    CallbackResult,
    CallbackState,
)
from callback_dispatch.infrastructure.queue import InMemoryCallbackQueue
from callback_dispatch.infrastructure.resolution import DefaultCallbackUrlResolver
from callback_dispatch.infrastructure.retry import DefaultCallbackRetryPolicy
from callback_dispatch.infrastructure.serialization import JsonCallbackBodySerializer
from callback_dispatch.infrastructure.stores import InMemoryCallbackStore
from callback_dispatch.infrastructure.workers import CallbackWorker, RedeliveryMode


def _request(callback_id: str = "paymentStatus") -> CallbackRequest:
    return CallbackRequest(
        callback_id=callback_id,
        operation_id="paymentStatusChanged",
        target_url="https://hooks.example.com/v1/payments/p1/status",
        http_method="POST",
        headers={},
        content_type="application/json",
        body=b"{}",
        correlation_id="corr-1",
        idempotency_key="paymentId=p1:paymentStatus:paymentStatusChanged",
        timeout_seconds=1.0,
    )


class _RecordingStore:
    def __init__(self, fail_on: set[str] | None = None) -> None:
        self.calls: list[tuple[str, str, int]] = []
        self._fail_on = fail_on or set()

    def names(self) -> list[str]:
        return [name for name, _, _ in self.calls]

    async def _record(self, name: str, request: CallbackRequest) -> None:
        self.calls.append((name, request.request_id, request.attempt))
        if name in self._fail_on:
            raise RuntimeError(f"{name} unavailable")

    async def save_new(self, request: CallbackRequest) -> None:
        await self._record("save_new", request)

    async def mark_in_flight(self, request: CallbackRequest) -> bool:
        await self._record("mark_in_flight", request)
        return True

    async def mark_succeeded(self, request: CallbackRequest, result: CallbackResult) -> None:
        await self._record("mark_succeeded", request)

    async def mark_retry_scheduled(
        self, request: CallbackRequest, result: CallbackResult
    ) -> None:
        await self._record("mark_retry_scheduled", request)

    async def mark_failed_permanent(
        self, request: CallbackRequest, result: CallbackResult
    ) -> None:
        await self._record("mark_failed_permanent", request)

    async def dequeue_due(self, max_items: int) -> list[CallbackRequest]:
        return []

    async def get_record(self, request_id: str) -> CallbackRecord | None:
        return None


class _ScriptedSender:
    def __init__(self, *results: CallbackResult | Exception) -> None:
        self._results = list(results)
        self.sent: list[tuple[str, int]] = []

    async def send(self, request: CallbackRequest) -> CallbackResult:
        self.sent.append((request.request_id, request.attempt))
        outcome = self._results.pop(0) if len(self._results) > 1 else self._results[0]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


class _BlockingSender:
    def __init__(self) -> None:
        self.entered = asyncio.Event()

    async def send(self, request: CallbackRequest) -> CallbackResult:
        self.entered.set()
        await asyncio.Event().wait()
        raise AssertionError("unreachable")


def _ok() -> CallbackResult:
    return CallbackResult(success=True, status_code=200)


def _server_error() -> CallbackResult:
    return CallbackResult(success=False, status_code=500, error_type="HttpError")


def _fast_policy(max_attempts: int) -> DefaultCallbackRetryPolicy:
    return DefaultCallbackRetryPolicy(
        max_attempts=max_attempts,
        base_delay_seconds=0.0,
        max_delay_seconds=0.0,
        jitter_ratio=0.0,
    )


async def _wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    async def poll() -> None:
        while not predicate():
            await asyncio.sleep(0.01)

    await asyncio.wait_for(poll(), timeout=timeout)


def test_worker_delivers_queued_request_and_marks_success() -> None:
    async def scenario() -> tuple[_RecordingStore, _ScriptedSender]:
        queue = InMemoryCallbackQueue()
        store = _RecordingStore()
        sender = _ScriptedSender(_ok())
        worker = CallbackWorker(queue, sender, DefaultCallbackRetryPolicy(), store)

        await worker.start()
        try:
            await queue.enqueue(_request())
            await _wait_until(lambda: "mark_succeeded" in store.names())
        finally:
            await worker.stop()
        return store, sender

    store, sender = asyncio.run(scenario())

    assert store.names() == ["mark_in_flight", "mark_succeeded"]
    assert len(sender.sent) == 1


def test_worker_retries_once_then_stops() -> None:
    request = _request()

    async def scenario() -> tuple[_RecordingStore, _ScriptedSender]:
        queue = InMemoryCallbackQueue()
        store = _RecordingStore()
        sender = _ScriptedSender(_server_error())
        worker = CallbackWorker(queue, sender, _fast_policy(max_attempts=2), store)

        await worker.start()
        try:
            await queue.enqueue(request)
            await _wait_until(lambda: "mark_failed_permanent" in store.names())
        finally:
            await worker.stop()
        return store, sender

    store, sender = asyncio.run(scenario())

    assert sender.sent == [(request.request_id, 0), (request.request_id, 1)]
    assert store.names() == [
        "mark_in_flight",
        "mark_retry_scheduled",
        "mark_in_flight",
        "mark_failed_permanent",
    ]
    assert request.attempt == 1


def test_worker_loops_share_the_queue() -> None:
    async def scenario() -> tuple[_RecordingStore, int]:
        queue = InMemoryCallbackQueue()
        store = _RecordingStore()
        worker = CallbackWorker(
            queue,
            _ScriptedSender(_ok()),
            DefaultCallbackRetryPolicy(),
            store,
            concurrency=3,
        )

        await worker.start()
        try:
            for index in range(6):
                await queue.enqueue(_request(f"callback-{index}"))
            await _wait_until(lambda: store.names().count("mark_succeeded") == 6)
            running = worker.is_running
        finally:
            await worker.stop()
        return store, running

    store, running = asyncio.run(scenario())

    assert running is True
    assert store.names().count("mark_in_flight") == 6


def test_durable_worker_redelivers_retries_from_the_store() -> None:
    async def scenario() -> tuple[CallbackRecord | None, _ScriptedSender, int]:
        queue = InMemoryCallbackQueue()
        store = InMemoryCallbackStore(lease_seconds=30.0)
        sender = _ScriptedSender(
            CallbackResult(success=False, status_code=503, error_type="HttpError"),
            _ok(),
        )
        worker = CallbackWorker(
            queue,
            sender,
            _fast_policy(max_attempts=3),
            store,
            redelivery=RedeliveryMode.DURABLE,
            recovery_poll_seconds=0.01,
        )
        request = _request()
        await store.save_new(request)

        await worker.start()
        try:
            await queue.enqueue(request)
            await _wait_until(lambda: len(sender.sent) == 2)
            await _wait_until(lambda: worker.pending_redeliveries == 0)
            record = await store.get_record(request.request_id)
            for _ in range(100):
                if record is not None and record.state is CallbackState.SUCCEEDED:
                    break
                await asyncio.sleep(0.01)
                record = await store.get_record(request.request_id)
        finally:
            await worker.stop()
        return record, sender, worker.pending_redeliveries

    record, sender, pending = asyncio.run(scenario())

    assert record is not None
    assert record.state is CallbackState.SUCCEEDED
    assert record.attempt == 1
    assert [attempt for _, attempt in sender.sent] == [0, 1]
    assert pending == 0


def test_recover_due_once_enqueues_requests_left_pending_by_a_crash() -> None:
    async def scenario() -> tuple[int, int]:
        queue = InMemoryCallbackQueue()
        store = InMemoryCallbackStore(lease_seconds=0.0)
        await store.save_new(_request())
        worker = CallbackWorker(
            queue,
            _ScriptedSender(_ok()),
            DefaultCallbackRetryPolicy(),
            store,
            redelivery=RedeliveryMode.DURABLE,
        )

        recovered = await worker.recover_due_once()
        return recovered, queue.size

    assert asyncio.run(scenario()) == (1, 1)


def test_sender_exceptions_become_failed_results() -> None:
    async def scenario() -> tuple[CallbackResult, _RecordingStore]:
        store = _RecordingStore()
        worker = CallbackWorker(
            InMemoryCallbackQueue(),
            _ScriptedSender(RuntimeError("boom")),
            DefaultCallbackRetryPolicy(),
            store,
        )
        result = await worker.process_one(_request())
        return result, store

    result, store = asyncio.run(scenario())

    assert result.success is False
    assert result.error_type == "RuntimeError"
    assert result.error_message == "boom"
    assert store.names() == ["mark_in_flight", "mark_failed_permanent"]


def test_store_failures_do_not_abort_delivery() -> None:
    async def scenario() -> tuple[CallbackResult, _RecordingStore]:
        store = _RecordingStore(fail_on={"mark_in_flight"})
        worker = CallbackWorker(
            InMemoryCallbackQueue(),
            _ScriptedSender(_ok()),
            DefaultCallbackRetryPolicy(),
            store,
        )
        result = await worker.process_one(_request())
        return result, store

    result, store = asyncio.run(scenario())

    assert result.success is True
    assert store.names() == ["mark_in_flight", "mark_succeeded"]


def test_stop_cancels_in_flight_sends_without_marking_success() -> None:
    async def scenario() -> tuple[_RecordingStore, bool]:
        queue = InMemoryCallbackQueue()
        store = _RecordingStore()
        sender = _BlockingSender()
        worker = CallbackWorker(queue, sender, DefaultCallbackRetryPolicy(), store)

        await worker.start()
        await queue.enqueue(_request())
        await asyncio.wait_for(sender.entered.wait(), timeout=1.0)
        await worker.stop()
        return store, worker.is_running

    store, running = asyncio.run(scenario())

    assert running is False
    assert store.names() == ["mark_in_flight"]


def test_stop_cancels_pending_in_memory_redeliveries() -> None:
    async def scenario() -> tuple[int, int]:
        queue = InMemoryCallbackQueue()
        store = _RecordingStore()
        worker = CallbackWorker(
            queue,
            _ScriptedSender(_server_error()),
            DefaultCallbackRetryPolicy(
                max_attempts=3,
                base_delay_seconds=60.0,
                max_delay_seconds=60.0,
                jitter_ratio=0.0,
            ),
            store,
        )

        await worker.start()
        await queue.enqueue(_request())
        await _wait_until(lambda: "mark_retry_scheduled" in store.names())
        await _wait_until(lambda: worker.pending_redeliveries == 1)
        await worker.stop()
        return worker.pending_redeliveries, queue.size

    assert asyncio.run(scenario()) == (0, 0)


class _SlowSender:
    def __init__(self, delay: float) -> None:
        self._delay = delay
        self.sent: list[str] = []

    async def send(self, request: CallbackRequest) -> CallbackResult:
        self.sent.append(request.request_id)
        await asyncio.sleep(self._delay)
        return _ok()


def test_durable_backlog_longer_than_lease_delivers_each_request_once() -> None:
    async def scenario() -> tuple[list[str], list[CallbackRequest], list[CallbackRecord]]:
        queue = InMemoryCallbackQueue()
        store = InMemoryCallbackStore(lease_seconds=0.15)
        sender = _SlowSender(delay=0.1)
        dispatcher = CallbackDispatcher(
            queue=queue,
            store=store,
            url_resolver=DefaultCallbackUrlResolver(),
            body_serializer=JsonCallbackBodySerializer(),
            options=CallbackDispatchOptions(),
        )
        worker = CallbackWorker(
            queue,
            sender,
            DefaultCallbackRetryPolicy(),
            store,
            redelivery=RedeliveryMode.DURABLE,
            recovery_poll_seconds=0.01,
        )
        requests = [_request(f"callback-{index}") for index in range(5)]

        await worker.start()
        try:
            for request in requests:
                await dispatcher.enqueue(request)
            await _wait_until(
                lambda: len(set(sender.sent)) == len(requests) and queue.size == 0,
                timeout=5.0,
            )
            # Give recovered copies time to reach the worker.
            await asyncio.sleep(0.3)
            await _wait_until(lambda: queue.size == 0)
        finally:
            await worker.stop()
        return sender.sent, requests, await store.list_records()

    sent, requests, records = asyncio.run(scenario())

    assert sorted(sent) == sorted(request.request_id for request in requests)
    assert {record.state for record in records} == {CallbackState.SUCCEEDED}


def test_process_one_skips_requests_the_store_already_finished() -> None:
    async def scenario() -> tuple[CallbackResult | None, _ScriptedSender]:
        store = InMemoryCallbackStore()
        sender = _ScriptedSender(_ok())
        worker = CallbackWorker(InMemoryCallbackQueue(), sender, DefaultCallbackRetryPolicy(), store)
        request = _request()
        await store.save_new(request)
        await store.mark_succeeded(request, _ok())

        return await worker.process_one(request), sender

    result, sender = asyncio.run(scenario())

    assert result is None
    assert sender.sent == []


def test_stale_queue_copy_does_not_send_a_retry_early() -> None:
    async def scenario() -> tuple[CallbackResult | None, _ScriptedSender, CallbackRecord | None]:
        store = InMemoryCallbackStore(lease_seconds=0.0)
        sender = _ScriptedSender(_server_error())
        worker = CallbackWorker(
            InMemoryCallbackQueue(),
            sender,
            DefaultCallbackRetryPolicy(
                max_attempts=3,
                base_delay_seconds=60.0,
                max_delay_seconds=60.0,
                jitter_ratio=0.0,
            ),
            store,
            redelivery=RedeliveryMode.DURABLE,
        )
        original = _request()
        await store.save_new(original)
        [recovered] = await store.dequeue_due(1)

        await worker.process_one(original)
        stale = await worker.process_one(recovered)
        return stale, sender, await store.get_record(original.request_id)

    stale, sender, record = asyncio.run(scenario())

    assert stale is None
    assert len(sender.sent) == 1
    assert record is not None
    assert record.state is CallbackState.RETRY_SCHEDULED
    assert record.attempt == 1
