# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Network engine facade.

The engine owns every piece of mutable state (pending queue, cache, stats,
quality window, request history) and wires the components together:

    submit -> cache lookup -> AdmissionScheduler -> transport attempt
           -> success: cache + stats + quality -> caller
           -> failure: RetryController -> backoff re-enqueue or terminal error

All bookkeeping runs in synchronous sections on the engine's event loop, so
concurrent callers never observe torn state.
"""

import asyncio
import logging
import time
from collections import deque
from collections.abc import Callable, Iterable, Mapping
from dataclasses import fields, replace
from typing import Any

from typing_extensions import Self

from .cache.keys import make_cache_key, should_cache
from .cache.models import CacheValidator
from .cache.store import CacheStore
from .exceptions import (
    EngineNotRunningError,
    HttpError,
    InvalidRequestError,
    MaxRetriesExceededError,
    NetworkUnavailableError,
    QueueOverflowError,
    RequestCancelledError,
    RequestOptimizerError,
    RequestTimeoutError,
)
from .observability.collector import UnifiedMetricsCollector, get_metrics_collector
from .observability.constants import (
    REQUEST_LATENCY_SECONDS,
    REQUEST_TIMEOUTS_TOTAL,
    REQUESTS_CANCELLED_TOTAL,
    REQUESTS_COMPLETED_TOTAL,
    REQUESTS_DISPATCHED_TOTAL,
    REQUESTS_FAILED_TOTAL,
    REQUESTS_RETRIED_TOTAL,
    REQUESTS_SUBMITTED_TOTAL,
)
from .observability.events import EventEmitter, TelemetryEvent, TelemetryEventType
from .observability.protocols import MetricsCollectorProtocol, TelemetrySinkProtocol
from .observability.stats import NetworkStats, StatsAggregator
from .protocols.transport import TransportProtocol, TransportResponse
from .quality.estimator import ConnectionQualityEstimator, QualityCallback
from .scheduler.admission import AdmissionScheduler
from .scheduler.batch import BatchCoordinator
from .scheduler.config import EngineConfig
from .scheduler.retry import RetryController
from .transport.headers import merge_headers
from .types.batch import Batch, BatchResult, BatchSpec
from .types.quality import ConnectionQuality
from .types.queue import QueuedRequest, RequestHandle, RequestOutcome, RequestRecord
from .types.request import (
    CancellationToken,
    Priority,
    RequestDescriptor,
    RequestTarget,
    create_request_descriptor,
)

logger = logging.getLogger(__name__)


def _failure_reason(error: BaseException) -> str:
    """Low-cardinality metric label for a terminal error."""
    if isinstance(error, MaxRetriesExceededError):
        return "max_retries"
    if isinstance(error, RequestTimeoutError):
        return "timeout"
    if isinstance(error, HttpError):
        return "http_error"
    if isinstance(error, NetworkUnavailableError):
        return "network"
    if isinstance(error, QueueOverflowError):
        return "overflow"
    if isinstance(error, InvalidRequestError):
        return "invalid"
    return "error"


class NetworkEngine:
    """
    Schedules, caches, retries and health-classifies outbound requests.

    Example:
        >>> async with create_engine(transport=my_transport) as engine:
        ...     data = await engine.request("https://api.example.com/items")
        ...     results = await engine.submit_batch([
        ...         BatchSpec(url="https://api.example.com/a"),
        ...         BatchSpec(url="https://api.example.com/b", priority="high"),
        ...     ])
    """

    def __init__(
        self,
        transport: TransportProtocol | None = None,
        config: EngineConfig | None = None,
        metrics_collector: MetricsCollectorProtocol | None = None,
        telemetry_sinks: Iterable[TelemetrySinkProtocol] = (),
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """
        Args:
            transport: Performs network attempts. When omitted, an
                HttpxTransport is created on start() (requires the httpx extra)
            config: Engine configuration (defaults are used when omitted)
            metrics_collector: Metrics backend. When omitted, a private
                collector is created if config.metrics_enabled
            telemetry_sinks: Callables receiving retry/failure events
            clock: Monotonic clock, injectable for tests
        """
        self.config = config or EngineConfig()
        self._transport = transport
        self._owns_transport = False
        self._clock = clock

        if metrics_collector is not None:
            self._metrics: MetricsCollectorProtocol | None = metrics_collector
        elif not self.config.metrics_enabled:
            self._metrics = None
        elif self.config.prometheus_enabled:
            # Prometheus registries reject duplicate names, so share one collector
            self._metrics = get_metrics_collector(enable_prometheus=True)
        else:
            self._metrics = UnifiedMetricsCollector(enable_prometheus=False)

        self.events = EventEmitter()
        for sink in telemetry_sinks:
            self.events.add_sink(sink)

        self.cache = CacheStore(
            default_ttl=self.config.cache_ttl,
            max_entries=self.config.max_cache_entries,
            clock=clock,
            metrics_collector=self._metrics,
        )
        self.stats = StatsAggregator(clock=clock)
        self.quality = ConnectionQualityEstimator(
            window_size=self.config.quality_window_size, clock=clock
        )
        self.quality.subscribe(self._on_quality_changed)
        self.retry = RetryController.from_config(self.config)
        self._scheduler = AdmissionScheduler(
            dispatch=self._dispatch,
            on_cancelled=self._on_dequeued_cancelled,
            max_concurrency=self.config.max_concurrent_requests,
            max_queue_size=self.config.max_queue_size,
            overflow_policy=self.config.overflow_policy,
            clock=clock,
            metrics_collector=self._metrics,
        )
        self._batches = BatchCoordinator(
            submit=self.submit,
            build_descriptor=self._descriptor_from_spec,
            max_retained=self.config.max_batches_retained,
            clock=clock,
            emitter=self.events,
        )

        # Active requests: queued, in flight or waiting out a retry backoff
        self._requests: dict[str, QueuedRequest] = {}
        self._token_callbacks: dict[str, Callable[[str | None], None]] = {}
        self._tasks: dict[str, asyncio.Task[None]] = {}
        self._backoff: dict[str, asyncio.TimerHandle] = {}
        self._history: deque[RequestRecord] = deque(maxlen=self.config.history_size)
        self._failed_total = 0

        self._running = False
        self._loop: asyncio.AbstractEventLoop | None = None

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def start(self) -> None:
        """Start the engine on the running event loop."""
        if self._running:
            return

        self._loop = asyncio.get_running_loop()
        if self._transport is None:
            from .transport import HttpxTransport

            self._transport = HttpxTransport()
            self._owns_transport = True

        self._running = True
        self._scheduler.resume()

        if self.config.enable_quality_monitor:
            self.quality.start_monitor(
                interval=self.config.quality_check_interval,
                idle_after=self.config.idle_probe_after,
                probe=self.test_connectivity if self.config.probe_url else None,
            )

        self._maybe_start_metrics_server()

        logger.info(
            f"NetworkEngine started (max_concurrent="
            f"{self.config.max_concurrent_requests})"
        )

    async def stop(self) -> None:
        """Cancel all outstanding work, stop the monitor and close owned resources."""
        if not self._running:
            return

        self._running = False
        self._scheduler.pause()
        await self.quality.stop_monitor()

        cancelled = self.cancel_all("engine stopped")
        tasks = list(self._tasks.values())
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

        if self._owns_transport and self._transport is not None:
            close = getattr(self._transport, "aclose", None)
            if close is not None:
                try:
                    await close()
                except Exception as e:
                    logger.error(f"Error closing transport: {e}")
            self._transport = None
            self._owns_transport = False

        logger.info(f"NetworkEngine stopped ({cancelled} requests cancelled)")

    def _maybe_start_metrics_server(self) -> None:
        if not (self.config.prometheus_enabled and self.config.start_prometheus_server):
            return
        start_server = getattr(self._metrics, "start_http_server", None)
        if start_server is None or getattr(self._metrics, "server_running", False):
            return
        start_server(self.config.prometheus_host, self.config.prometheus_port)

    def reset(self) -> None:
        """Clear cache, stats, history and the quality window."""
        self.cache.reset()
        self.stats.reset()
        self.quality.reset()
        self._history.clear()
        self._batches.clear()
        self._failed_total = 0
        if self._metrics is not None:
            self._metrics.reset()

    @property
    def is_running(self) -> bool:
        return self._running

    async def __aenter__(self) -> Self:
        await self.start()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        await self.stop()

    # =========================================================================
    # Submission
    # =========================================================================

    def create_descriptor(
        self,
        url: str,
        method: str = "GET",
        **options: Any,
    ) -> RequestDescriptor[Any]:
        """
        Build a descriptor with this engine's default timeout and retry budget.

        Accepts the keyword arguments of create_request_descriptor.
        """
        options.setdefault("timeout", self.config.request_timeout)
        options.setdefault("max_retries", self.config.max_retries)
        return create_request_descriptor(url, method, **options)

    def submit(self, descriptor: RequestDescriptor[Any]) -> RequestHandle:
        """
        Submit a request and return immediately.

        The returned handle is awaitable and resolves exactly once with the
        response data or the terminal error.

        Ids are unique among active requests. Once a request has finished its
        id may be submitted again; history keeps the earlier record.

        Raises:
            EngineNotRunningError: The engine is not started
            InvalidRequestError: A request with the same id is still active
            QueueOverflowError: The queue is full and rejects the request
        """
        if not self._running or self._loop is None:
            raise EngineNotRunningError()
        if descriptor.id in self._requests:
            raise InvalidRequestError(f"Request id {descriptor.id} is already active")

        future: asyncio.Future[Any] = self._loop.create_future()
        queued = QueuedRequest(
            descriptor=descriptor, future=future, submitted_at=self._clock()
        )
        handle = RequestHandle(descriptor.id, future, canceller=self.cancel_request)
        self._inc(REQUESTS_SUBMITTED_TOTAL, {"priority": descriptor.priority.name.lower()})

        token = descriptor.cancellation_token
        if token.cancelled:
            self._finish(
                queued,
                RequestOutcome.CANCELLED,
                error=RequestCancelledError(request_id=descriptor.id, reason=token.reason),
            )
            return handle

        if self.config.enable_caching and descriptor.is_cacheable:
            queued.cache_key = make_cache_key(
                descriptor.method, descriptor.url, descriptor.payload
            )
            entry, stale = self.cache.lookup(queued.cache_key)
            if entry is not None:
                logger.debug(f"Cache hit for {descriptor.id} ({queued.cache_key})")
                self._finish(
                    queued, RequestOutcome.SUCCEEDED, result=entry.data, from_cache=True
                )
                return handle
            if (
                stale is not None
                and stale.validator is not None
                and self.config.enable_conditional_revalidation
            ):
                queued.stale_entry = stale

        self._requests[descriptor.id] = queued
        callback = self._make_token_callback(descriptor.id)
        self._token_callbacks[descriptor.id] = callback
        future.add_done_callback(
            lambda f, rid=descriptor.id: self._on_future_done(f, rid)
        )

        try:
            evicted = self._scheduler.enqueue(queued)
        except QueueOverflowError:
            self._forget(queued)
            raise

        # Registered after enqueue so a cancel during admission sees the entry
        token.add_callback(callback)
        if evicted is not None:
            self._finish(
                evicted,
                RequestOutcome.FAILED,
                error=QueueOverflowError(
                    "Dropped from a full queue", request_id=evicted.request_id
                ),
            )
        return handle

    async def submit_request(self, descriptor: RequestDescriptor[Any]) -> Any:
        """Submit a request and wait for its data."""
        return await self.submit(descriptor)

    async def request(self, url: str, method: str = "GET", **options: Any) -> Any:
        """
        Convenience wrapper: build a descriptor and wait for its data.

        Example:
            >>> user = await engine.request("https://api.example.com/me",
            ...                             priority="high")
        """
        return await self.submit_request(self.create_descriptor(url, method, **options))

    async def submit_batch(
        self, specs: Iterable[BatchSpec | Mapping[str, Any]]
    ) -> list[BatchResult]:
        """
        Submit a group of requests and wait for all of them.

        Returns one result per spec, aligned with the input order. Item
        failures are reported in their result; see BatchCoordinator.

        Raises:
            EngineNotRunningError: The engine is not started
            BatchError: The batch could not be processed
        """
        if not self._running:
            raise EngineNotRunningError()
        return await self._batches.submit_batch(specs)

    def get_batch(self, batch_id: str) -> Batch | None:
        return self._batches.get_batch(batch_id)

    def recent_batches(self) -> list[Batch]:
        return self._batches.recent_batches()

    def _descriptor_from_spec(
        self, spec: BatchSpec, request_id: str
    ) -> RequestDescriptor[Any]:
        return self.create_descriptor(
            spec.url,
            spec.method,
            payload=spec.payload,
            headers=spec.headers,
            priority=spec.priority,
            timeout=spec.timeout if spec.timeout is not None else self.config.request_timeout,
            max_retries=(
                spec.max_retries if spec.max_retries is not None else self.config.max_retries
            ),
            request_id=request_id,
        )

    # =========================================================================
    # Cancellation
    # =========================================================================

    def cancel_request(self, request_id: str, reason: str | None = None) -> bool:
        """
        Cancel an active request.

        A queued request is removed and never dispatched; an in-flight one has
        its transport call aborted. Returns False when the id is not active.
        """
        queued = self._requests.get(request_id)
        if queued is None or queued.is_finished:
            return False
        queued.descriptor.cancellation_token.cancel(reason or "cancelled")
        return True

    def cancel_all(self, reason: str | None = None) -> int:
        """Cancel every active request. Returns the number cancelled."""
        count = 0
        for request_id in list(self._requests):
            if self.cancel_request(request_id, reason or "cancel_all"):
                count += 1
        return count

    def _make_token_callback(self, request_id: str) -> Callable[[str | None], None]:
        def on_cancel(reason: str | None) -> None:
            self._on_token_cancelled(request_id, reason)

        return on_cancel

    def _on_token_cancelled(self, request_id: str, reason: str | None) -> None:
        queued = self._requests.get(request_id)
        if queued is None or queued.is_finished:
            return
        error = RequestCancelledError(request_id=request_id, reason=reason)

        if self._scheduler.remove(request_id) is not None:
            logger.debug(f"Cancelled queued request {request_id}")
            self._finish(queued, RequestOutcome.CANCELLED, error=error)
            return

        timer = self._backoff.pop(request_id, None)
        if timer is not None:
            timer.cancel()
            logger.debug(f"Cancelled request {request_id} during retry backoff")
            self._finish(queued, RequestOutcome.CANCELLED, error=error)
        # In-flight attempts observe the token in _race()

    def _on_dequeued_cancelled(self, queued: QueuedRequest) -> None:
        token = queued.descriptor.cancellation_token
        self._finish(
            queued,
            RequestOutcome.CANCELLED,
            error=RequestCancelledError(request_id=queued.request_id, reason=token.reason),
        )

    def _on_future_done(self, future: "asyncio.Future[Any]", request_id: str) -> None:
        # A caller cancelling the future itself (e.g. asyncio.wait_for) cancels the request
        if future.cancelled():
            self.cancel_request(request_id, "future cancelled")

    # =========================================================================
    # Dispatch
    # =========================================================================

    def _dispatch(self, queued: QueuedRequest) -> None:
        assert self._loop is not None
        self._tasks[queued.request_id] = self._loop.create_task(
            self._run_attempt(queued), name=f"netopt-{queued.request_id}"
        )

    def _build_headers(self, queued: QueuedRequest) -> dict[str, str]:
        conditional = None
        if queued.stale_entry is not None and queued.stale_entry.validator is not None:
            conditional = queued.stale_entry.validator.conditional_headers()
        return merge_headers(
            self.config.default_headers, queued.descriptor.headers, conditional
        )

    async def _run_attempt(self, queued: QueuedRequest) -> None:
        request_id = queued.request_id
        descriptor = queued.descriptor
        self._inc(REQUESTS_DISPATCHED_TOTAL, {"method": descriptor.method})
        logger.debug(
            f"Dispatching {request_id} {descriptor.method} {descriptor.url} "
            f"(attempt {descriptor.attempt}/{descriptor.max_retries + 1})"
        )

        started = self._clock()
        try:
            response = await self._race(descriptor, self._build_headers(queued))
            data = self._handle_response(queued, response, self._clock() - started)
        except RequestCancelledError as e:
            self._finish(queued, RequestOutcome.CANCELLED, error=e)
        except asyncio.CancelledError:
            self._finish(
                queued,
                RequestOutcome.CANCELLED,
                error=RequestCancelledError(request_id=request_id, reason="task cancelled"),
            )
            raise
        except Exception as e:
            self._on_attempt_failed(queued, e, self._clock() - started)
        else:
            self._finish(queued, RequestOutcome.SUCCEEDED, result=data)
        finally:
            self._tasks.pop(request_id, None)
            self._scheduler.release(request_id)

    async def _race(
        self, descriptor: RequestDescriptor[Any], headers: Mapping[str, str]
    ) -> TransportResponse:
        """
        Race the transport call against cancellation and the timeout.

        Every loser is cancelled and awaited before returning, so the
        transport's connection scope is closed on every exit path.
        """
        assert self._transport is not None
        token = descriptor.cancellation_token
        send_task = asyncio.ensure_future(self._transport.send(descriptor, headers))
        cancel_task = asyncio.ensure_future(token.wait())
        try:
            done, _ = await asyncio.wait(
                {send_task, cancel_task},
                timeout=descriptor.timeout,
                return_when=asyncio.FIRST_COMPLETED,
            )
            if send_task in done:
                return send_task.result()
            if cancel_task in done:
                raise RequestCancelledError(
                    request_id=descriptor.id, reason=token.reason
                )
            raise RequestTimeoutError(
                f"Request {descriptor.id} timed out after {descriptor.timeout}s",
                request_id=descriptor.id,
                timeout=descriptor.timeout,
            )
        finally:
            for task in (send_task, cancel_task):
                if not task.done():
                    task.cancel()
            await asyncio.gather(send_task, cancel_task, return_exceptions=True)

    def _handle_response(
        self, queued: QueuedRequest, response: TransportResponse, latency: float
    ) -> Any:
        descriptor = queued.descriptor

        if response.not_modified and queued.stale_entry is not None:
            entry = self.cache.refresh(queued.stale_entry)
            logger.debug(f"Revalidated cache entry for {descriptor.id}")
            self._record_success(descriptor, latency, response.size)
            return entry.data

        if not response.ok:
            raise HttpError(response.status, retry_after=response.retry_after)

        self._record_success(descriptor, latency, response.size)

        if queued.cache_key is not None:
            storable = (
                should_cache(descriptor.method, response.status)
                if descriptor.cache is None
                else response.status == 200
            )
            if storable:
                self.cache.set(
                    queued.cache_key,
                    response.data,
                    ttl=descriptor.cache_ttl,
                    validator=CacheValidator.from_headers(response.headers),
                )
        return response.data

    def _record_success(
        self, descriptor: RequestDescriptor[Any], latency: float, size: int
    ) -> None:
        self.stats.record_success(latency, size)
        self.quality.record(latency, success=True)
        self._inc(REQUESTS_COMPLETED_TOTAL, {"method": descriptor.method})
        if self._metrics is not None:
            self._metrics.observe_histogram(
                REQUEST_LATENCY_SECONDS, latency, {"method": descriptor.method}
            )

    # =========================================================================
    # Failure and retry
    # =========================================================================

    def _on_attempt_failed(
        self, queued: QueuedRequest, error: Exception, latency: float
    ) -> None:
        descriptor = queued.descriptor
        self.stats.record_failure()
        self.quality.record(latency, success=False)
        if isinstance(error, RequestTimeoutError):
            self._inc(REQUEST_TIMEOUTS_TOTAL)

        decision = self.retry.decide(descriptor, error)
        if not decision.retry or not self._running:
            self._finish(queued, RequestOutcome.FAILED, error=decision.error or error)
            return

        assert self._loop is not None
        self.stats.record_retry()
        self._inc(REQUESTS_RETRIED_TOTAL, {"method": descriptor.method})
        self.events.emit(
            TelemetryEvent(
                event_type=TelemetryEventType.RETRY_SCHEDULED,
                request_id=descriptor.id,
                attempt=descriptor.attempt,
                error=error,
                details={"delay": decision.delay, "url": descriptor.url},
            )
        )
        queued.descriptor = descriptor.next_attempt()
        self._backoff[descriptor.id] = self._loop.call_later(
            decision.delay, self._requeue, descriptor.id
        )

    def _requeue(self, request_id: str) -> None:
        self._backoff.pop(request_id, None)
        queued = self._requests.get(request_id)
        if queued is None or queued.is_finished:
            return

        token = queued.descriptor.cancellation_token
        if token.cancelled or not self._running:
            self._finish(
                queued,
                RequestOutcome.CANCELLED,
                error=RequestCancelledError(request_id=request_id, reason=token.reason),
            )
            return

        try:
            evicted = self._scheduler.enqueue(queued)
        except QueueOverflowError as e:
            self._finish(queued, RequestOutcome.FAILED, error=e)
            return
        if evicted is not None:
            self._finish(
                evicted,
                RequestOutcome.FAILED,
                error=QueueOverflowError(
                    "Dropped from a full queue", request_id=evicted.request_id
                ),
            )

    # =========================================================================
    # Terminal transition
    # =========================================================================

    def _finish(
        self,
        queued: QueuedRequest,
        outcome: RequestOutcome,
        result: Any = None,
        error: BaseException | None = None,
        from_cache: bool = False,
    ) -> bool:
        """
        Move a request to its terminal state. Later calls are no-ops.

        Returns:
            True if this call performed the transition
        """
        if queued.outcome is not None:
            return False
        queued.outcome = outcome
        self._forget(queued)

        descriptor = queued.descriptor
        future = queued.future
        if outcome is RequestOutcome.SUCCEEDED:
            if not future.done():
                future.set_result(result)
        else:
            assert error is not None
            if outcome is RequestOutcome.CANCELLED:
                self.stats.record_cancelled()
                self._inc(REQUESTS_CANCELLED_TOTAL)
                event_type = TelemetryEventType.REQUEST_CANCELLED
            else:
                self._failed_total += 1
                self._inc(
                    REQUESTS_FAILED_TOTAL,
                    {"method": descriptor.method, "reason": _failure_reason(error)},
                )
                event_type = TelemetryEventType.REQUEST_FAILED
                logger.debug(f"Request {descriptor.id} failed: {error}")
            self.events.emit(
                TelemetryEvent(
                    event_type=event_type,
                    request_id=descriptor.id,
                    attempt=queued.attempts,
                    error=error,
                    details={"url": descriptor.url, "method": descriptor.method},
                )
            )
            if not future.done():
                future.set_exception(error)

        now = self._clock()
        self._history.append(
            RequestRecord(
                request_id=descriptor.id,
                method=descriptor.method,
                url=descriptor.url,
                priority=descriptor.priority,
                outcome=outcome,
                attempts=queued.attempts,
                duration=now - queued.submitted_at,
                finished_at=now,
                from_cache=from_cache,
                error_type=type(error).__name__ if error is not None else None,
            )
        )
        return True

    def _forget(self, queued: QueuedRequest) -> None:
        request_id = queued.request_id
        if self._requests.get(request_id) is queued:
            del self._requests[request_id]
        callback = self._token_callbacks.pop(request_id, None)
        if callback is not None:
            queued.descriptor.cancellation_token.remove_callback(callback)
        timer = self._backoff.pop(request_id, None)
        if timer is not None:
            timer.cancel()

    # =========================================================================
    # Cache
    # =========================================================================

    def get_cached(self, key: str) -> Any | None:
        """Return cached data for key (counts a hit or miss)."""
        if not self.config.enable_caching:
            return None
        return self.cache.get(key)

    def set_cached(self, key: str, data: Any, ttl: float | None = None) -> None:
        if not self.config.enable_caching:
            return
        self.cache.set(key, data, ttl=ttl)

    def clear_cache(self, key: str | None = None) -> int:
        return self.cache.clear(key)

    def cache_key_for(self, url: str, method: str = "GET", payload: Any = None) -> str:
        """
        Cache key the engine uses for a request.

        Raises:
            InvalidRequestError: The url or method is malformed
        """
        target = RequestTarget(url=url, method=method)
        return make_cache_key(target.method, target.url, payload)

    def handle_memory_pressure(self, keep_fraction: float = 0.5) -> int:
        """
        Memory-pressure hook: drop expired entries, then evict least recently
        used entries until keep_fraction of the cache remains.

        Returns:
            Number of entries removed
        """
        purged = self.cache.purge_expired()
        evicted = self.cache.evict(keep_fraction)
        if purged or evicted:
            logger.info(
                f"Memory pressure: purged {purged} expired, evicted {evicted} cache entries"
            )
        return purged + evicted

    # =========================================================================
    # Stats, quality and introspection
    # =========================================================================

    def get_stats(self) -> NetworkStats:
        return self.stats.snapshot(
            cache_hits=self.cache.metrics.hits,
            cache_misses=self.cache.metrics.misses,
        )

    def get_connection_quality(self) -> ConnectionQuality:
        """Re-evaluate and return the current connection quality."""
        return self.quality.evaluate()

    def subscribe_quality(self, callback: QualityCallback) -> Callable[[], None]:
        """Subscribe to quality changes. Returns an unsubscribe function."""
        return self.quality.subscribe(callback)

    def set_online(self, online: bool) -> ConnectionQuality:
        """Platform online/offline signal. Offline forces OFFLINE quality."""
        return self.quality.set_online(online)

    @property
    def is_online(self) -> bool:
        return self.quality.is_online

    def _on_quality_changed(
        self, previous: ConnectionQuality, current: ConnectionQuality
    ) -> None:
        self.events.emit(
            TelemetryEvent(
                event_type=TelemetryEventType.QUALITY_CHANGED,
                details={"previous": previous.value, "current": current.value},
            )
        )

    async def test_connectivity(self, url: str | None = None) -> bool:
        """
        Lightweight connectivity probe.

        Bypasses the queue, the cache and retries, but feeds stats, the
        quality window and the request history like any other attempt.

        Raises:
            InvalidRequestError: No url given and no probe_url configured
        """
        target = url or self.config.probe_url
        if not target:
            raise InvalidRequestError("No probe URL configured")
        if self._transport is None:
            raise EngineNotRunningError("Engine has no transport; call start() first")

        descriptor = create_request_descriptor(
            target,
            "GET",
            priority=Priority.LOW,
            timeout=self.config.probe_timeout,
            max_retries=0,
            cache=False,
            cancellation_token=CancellationToken(),
        )
        started = self._clock()
        try:
            response = await self._race(
                descriptor, merge_headers(self.config.default_headers)
            )
        except (RequestOptimizerError, OSError) as e:
            ok = False
            error_type: str | None = type(e).__name__
            logger.debug(f"Connectivity probe failed: {e}")
        else:
            ok = response.ok
            error_type = None if ok else HttpError.__name__

        latency = self._clock() - started
        if ok:
            self.stats.record_success(latency, 0)
        else:
            self.stats.record_failure()
        self.quality.record(latency, success=ok)
        self.quality.evaluate()

        now = self._clock()
        self._history.append(
            RequestRecord(
                request_id=descriptor.id,
                method="GET",
                url=target,
                priority=Priority.LOW,
                outcome=RequestOutcome.SUCCEEDED if ok else RequestOutcome.FAILED,
                attempts=1,
                duration=now - started,
                finished_at=now,
                error_type=error_type,
            )
        )
        return ok

    def get_request_history(self) -> list[RequestRecord]:
        """Finished requests, oldest first."""
        return list(self._history)

    def clear_request_history(self) -> None:
        self._history.clear()

    @property
    def pending_requests(self) -> int:
        """Requests waiting for a slot."""
        return self._scheduler.pending_count

    @property
    def active_requests(self) -> int:
        """Requests currently in flight."""
        return self._scheduler.in_flight_count

    @property
    def failed_requests(self) -> int:
        """Requests that ended in a terminal failure."""
        return self._failed_total

    def pending_ids(self) -> list[str]:
        return self._scheduler.pending_ids()

    def get_metrics(self) -> dict[str, Any]:
        """Metrics snapshot plus engine state, suitable for JSON export."""
        metrics = self._metrics.get_metrics() if self._metrics is not None else {}
        stats = self.get_stats()
        return {
            **metrics,
            "engine": {
                "running": self._running,
                "pending_requests": self.pending_requests,
                "active_requests": self.active_requests,
                "failed_requests": self.failed_requests,
                "cache_entries": len(self.cache),
                "connection_quality": self.quality.current.value,
                "estimated_speed_mbps": self.quality.estimated_speed_mbps,
            },
            "stats": stats.model_dump(),
        }

    def _inc(self, name: str, labels: dict[str, str] | None = None) -> None:
        if self._metrics is not None:
            self._metrics.inc_counter(name, labels=labels)


def create_engine(
    transport: TransportProtocol | None = None,
    config: EngineConfig | None = None,
    **kwargs: Any,
) -> NetworkEngine:
    """
    Factory function to create a NetworkEngine.

    Keyword arguments matching EngineConfig fields override the config;
    the rest are passed to the NetworkEngine constructor.

    Example:
        >>> engine = create_engine(max_concurrent_requests=4, cache_ttl=60.0)

    Raises:
        ValueError: If a config override is invalid
    """
    config_fields = {f.name for f in fields(EngineConfig)}
    overrides = {k: kwargs.pop(k) for k in list(kwargs) if k in config_fields}
    if config is None:
        config = EngineConfig(**overrides)
    elif overrides:
        config = replace(config, **overrides)

    return NetworkEngine(transport=transport, config=config, **kwargs)


__all__ = ["NetworkEngine", "create_engine"]
