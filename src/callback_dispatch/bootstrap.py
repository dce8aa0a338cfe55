"""Application bootstrap/wiring."""

import logging
from dataclasses import dataclass

from callback_dispatch.application import (
    CallbackDispatcher,
    CallbackDispatchOptions,
    CallbackRegistry,
    CallbackRuntimeContextFactory,
)
from callback_dispatch.config import Settings, StoreBackend
from callback_dispatch.domain.ports import CallbackStore
from callback_dispatch.infrastructure import (
    CallbackWorker,
    DefaultCallbackRetryPolicy,
    DefaultCallbackUrlResolver,
    HmacCallbackSigner,
    HttpCallbackSender,
    InMemoryCallbackQueue,
    InMemoryCallbackStore,
    JsonCallbackBodySerializer,
    PostgresCallbackStore,
    RedeliveryMode,
)

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class CallbackRuntime:
    """Composed callback engine: producers use `dispatcher`, `worker` delivers."""

    settings: Settings
    registry: CallbackRegistry
    context_factory: CallbackRuntimeContextFactory
    queue: InMemoryCallbackQueue
    store: CallbackStore
    sender: HttpCallbackSender
    dispatcher: CallbackDispatcher
    worker: CallbackWorker

    async def start(self) -> None:
        """Start background delivery."""

        await self.worker.start()

    async def stop(self) -> None:
        """Stop delivery and release network and database resources."""

        await self.worker.stop()
        await self.sender.aclose()
        if isinstance(self.store, PostgresCallbackStore):
            await self.store.close()


def _build_store(settings: Settings) -> CallbackStore:
    if settings.store_backend == StoreBackend.POSTGRES:
        if settings.postgres_dsn is None:
            raise ValueError(
                "CALLBACK_DISPATCH_POSTGRES_DSN is required when "
                "CALLBACK_DISPATCH_STORE_BACKEND=postgres."
            )
        return PostgresCallbackStore(
            dsn=settings.postgres_dsn,
            min_pool_size=settings.postgres_pool_min_size,
            max_pool_size=settings.postgres_pool_max_size,
            lease_seconds=settings.store_lease_seconds,
        )
    return InMemoryCallbackStore(lease_seconds=settings.store_lease_seconds)


def _build_sender(settings: Settings) -> HttpCallbackSender:
    if settings.signing_secret is None:
        return HttpCallbackSender()
    return HttpCallbackSender(
        signer=HmacCallbackSigner(settings.signing_secret, key_id=settings.signing_key_id),
    )


def _redelivery_mode(settings: Settings) -> RedeliveryMode:
    if settings.store_backend == StoreBackend.POSTGRES:
        return RedeliveryMode.DURABLE
    return RedeliveryMode.IN_MEMORY


def build_callback_runtime(
    settings: Settings,
    registry: CallbackRegistry | None = None,
) -> CallbackRuntime:
    """Compose the callback engine graph."""

    store = _build_store(settings)
    queue = InMemoryCallbackQueue(capacity=settings.queue_capacity)
    sender = _build_sender(settings)
    options = CallbackDispatchOptions(
        default_timeout_seconds=settings.default_timeout_seconds,
        timeouts=dict(settings.callback_timeouts),
        headers=dict(settings.default_headers),
        signature_key_id=settings.signing_key_id,
    )
    redelivery = _redelivery_mode(settings)

    logger.info(
        "Wiring callback runtime with %s store, %s worker(s) and %s redelivery.",
        settings.store_backend,
        settings.worker_concurrency,
        redelivery,
    )
    return CallbackRuntime(
        settings=settings,
        registry=registry or CallbackRegistry(),
        context_factory=CallbackRuntimeContextFactory(
            default_base_url=settings.default_base_url,
        ),
        queue=queue,
        store=store,
        sender=sender,
        dispatcher=CallbackDispatcher(
            queue=queue,
            store=store,
            url_resolver=DefaultCallbackUrlResolver(),
            body_serializer=JsonCallbackBodySerializer(),
            options=options,
        ),
        worker=CallbackWorker(
            queue=queue,
            sender=sender,
            retry_policy=DefaultCallbackRetryPolicy(
                max_attempts=settings.max_attempts,
                base_delay_seconds=settings.retry_base_delay_seconds,
                max_delay_seconds=settings.retry_max_delay_seconds,
                jitter_ratio=settings.retry_jitter_ratio,
            ),
            store=store,
            concurrency=settings.worker_concurrency,
            redelivery=redelivery,
            recovery_poll_seconds=settings.recovery_poll_seconds,
            recovery_batch_size=settings.recovery_batch_size,
        ),
    )


__all__ = ["CallbackRuntime", "build_callback_runtime"]
