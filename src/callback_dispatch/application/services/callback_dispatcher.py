"""Callback dispatch use-case service."""

from __future__ import annotations

import logging
from collections.abc import Iterable

from callback_dispatch.application.request_factory import (
    CallbackDispatchOptions,
    build_callback_request,
)
from callback_dispatch.domain.models import CallbackRequest, CallbackRuntimeContext
from callback_dispatch.domain.plans import CallbackExecutionPlan
from callback_dispatch.domain.ports import (
    CallbackBodySerializer,
    CallbackQueue,
    CallbackStore,
    CallbackUrlResolver,
)

logger = logging.getLogger(__name__)


class CallbackDispatcher:
    """Turn execution plans of one triggering request into queued callback requests."""

    def __init__(
        self,
        queue: CallbackQueue,
        store: CallbackStore,
        url_resolver: CallbackUrlResolver,
        body_serializer: CallbackBodySerializer,
        options: CallbackDispatchOptions | None = None,
    ) -> None:
        self._queue = queue
        self._store = store
        self._url_resolver = url_resolver
        self._body_serializer = body_serializer
        self._options = options or CallbackDispatchOptions()

    @property
    def options(self) -> CallbackDispatchOptions:
        return self._options

    def build_requests(
        self,
        executions: Iterable[CallbackExecutionPlan],
        context: CallbackRuntimeContext,
    ) -> list[CallbackRequest]:
        """Build every request up front so resolution errors surface before queueing."""

        return [
            build_callback_request(
                execution,
                context,
                self._url_resolver,
                self._body_serializer,
                self._options,
            )
            for execution in executions
        ]

    async def enqueue(self, request: CallbackRequest) -> None:
        """Persist a new request and hand it to the worker queue."""

        await self._store.save_new(request)
        await self._queue.enqueue(request)
        logger.debug(
            "Enqueued callback %s (request %s) for %s.",
            request.callback_id,
            request.request_id,
            request.target_url,
        )

    async def dispatch(
        self,
        executions: Iterable[CallbackExecutionPlan],
        context: CallbackRuntimeContext,
    ) -> list[CallbackRequest]:
        """Build, persist and queue all callbacks of one triggering request."""

        requests = self.build_requests(executions, context)
        if requests:
            logger.info("Enqueuing %s callbacks for dispatch.", len(requests))
        for request in requests:
            await self.enqueue(request)
        return requests


__all__ = ["CallbackDispatcher"]
