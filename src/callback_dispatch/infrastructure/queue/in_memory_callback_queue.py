"""Bounded in-process queue shared by callback producers and workers."""

from __future__ import annotations

import asyncio

from callback_dispatch.domain.models import CallbackRequest
from callback_dispatch.domain.ports import CallbackQueue

_DEFAULT_CAPACITY = 1000


class InMemoryCallbackQueue(CallbackQueue):
    """FIFO channel of callback requests with back-pressure when full."""

    def __init__(self, capacity: int = _DEFAULT_CAPACITY) -> None:
        self._capacity = max(1, capacity)
        self._queue: asyncio.Queue[CallbackRequest] = asyncio.Queue(maxsize=self._capacity)

    @property
    def capacity(self) -> int:
        """Return the maximum number of queued requests."""

        return self._capacity

    @property
    def size(self) -> int:
        """Return the number of requests waiting for a worker."""

        return self._queue.qsize()

    async def enqueue(self, request: CallbackRequest) -> None:
        """Queue a request, waiting while the queue is full."""

        await self._queue.put(request)

    def try_enqueue(self, request: CallbackRequest) -> bool:
        """Queue a request without waiting; return `False` when the queue is full."""

        try:
            self._queue.put_nowait(request)
        except asyncio.QueueFull:
            return False
        return True

    async def dequeue(self) -> CallbackRequest:
        """Wait until a request is available and return it."""

        return await self._queue.get()


__all__ = ["InMemoryCallbackQueue"]
