# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Batch coordination.

A batch fans its items into the engine's normal submission path, so each
item gets the same cache lookup, priority admission and retry handling as a
single request. Item failures are reported per item; only a fault of the
coordinator itself fails the batch as a whole.
"""

import asyncio
import logging
import time
from collections import OrderedDict
from collections.abc import Callable, Iterable, Mapping
from typing import Any

from ..exceptions import BatchError, InvalidRequestError, QueueOverflowError
from ..observability.events import EventEmitter, TelemetryEvent, TelemetryEventType
from ..types.batch import Batch, BatchResult, BatchSpec, BatchStatus, generate_batch_id
from ..types.queue import RequestHandle
from ..types.request import RequestDescriptor, generate_request_id

logger = logging.getLogger(__name__)

DescriptorBuilder = Callable[[BatchSpec, str], RequestDescriptor[Any]]
Submitter = Callable[[RequestDescriptor[Any]], RequestHandle]


def coerce_spec(spec: BatchSpec | Mapping[str, Any]) -> BatchSpec:
    """Accept a BatchSpec or a mapping of its fields."""
    if isinstance(spec, BatchSpec):
        return spec
    if isinstance(spec, Mapping):
        try:
            return BatchSpec(**spec)
        except TypeError as e:
            raise InvalidRequestError(f"Invalid batch item: {e}") from e
    raise InvalidRequestError(f"Invalid batch item type: {type(spec).__name__}")


class BatchCoordinator:
    """
    Runs batches through an engine's submission path and keeps a bounded
    registry of recent batches.

    Args:
        submit: Synchronous submission returning a RequestHandle
        build_descriptor: Turns a spec plus a pre-assigned id into a descriptor
        max_retained: Number of batches kept for lookup
        emitter: Telemetry emitter for batch level faults
    """

    def __init__(
        self,
        submit: Submitter,
        build_descriptor: DescriptorBuilder,
        max_retained: int = 100,
        clock: Callable[[], float] = time.monotonic,
        emitter: EventEmitter | None = None,
    ) -> None:
        self._submit = submit
        self._build_descriptor = build_descriptor
        self._max_retained = max_retained
        self._clock = clock
        self._emitter = emitter
        self._batches: OrderedDict[str, Batch] = OrderedDict()

    def get_batch(self, batch_id: str) -> Batch | None:
        return self._batches.get(batch_id)

    def recent_batches(self) -> list[Batch]:
        """Retained batches, newest first."""
        return list(reversed(self._batches.values()))

    def clear(self) -> None:
        self._batches.clear()

    async def submit_batch(
        self, specs: Iterable[BatchSpec | Mapping[str, Any]]
    ) -> list[BatchResult]:
        """
        Submit every spec and wait for all of them.

        Returns:
            One BatchResult per spec, in spec order

        Raises:
            BatchError: The coordinator could not process the batch. The
                batch is FAILED and every unresolved item carries the fault.
        """
        batch = Batch(id=generate_batch_id())
        self._retain(batch)

        try:
            items = list(specs)
        except TypeError as e:
            self._fail(batch, e, [])
            raise BatchError(f"Batch {batch.id} specs are not iterable", batch) from e

        request_ids = [generate_request_id() for _ in items]
        batch.request_ids = list(request_ids)
        batch.status = BatchStatus.PROCESSING
        logger.debug(f"Batch {batch.id} processing {len(items)} items")

        submitted_at = self._clock()
        finished_at: dict[str, float] = {}
        handles: dict[str, RequestHandle] = {}

        try:
            for request_id, item in zip(request_ids, items):
                try:
                    descriptor = self._build_descriptor(coerce_spec(item), request_id)
                    handle = self._submit(descriptor)
                except (InvalidRequestError, QueueOverflowError) as e:
                    batch.record_error(request_id, e)
                    finished_at[request_id] = self._clock()
                    continue

                handles[request_id] = handle
                handle.future.add_done_callback(
                    lambda _f, rid=request_id: finished_at.setdefault(rid, self._clock())
                )

            if handles:
                await asyncio.wait([h.future for h in handles.values()])
        except asyncio.CancelledError:
            self._fail(batch, RuntimeError("Batch cancelled"), list(handles.values()))
            self._abort(handles, "batch cancelled")
            raise
        except Exception as e:
            self._fail(batch, e, list(handles.values()))
            self._abort(handles, "batch failed")
            logger.warning(f"Batch {batch.id} failed: {e}")
            raise BatchError(f"Batch {batch.id} failed: {e}", batch) from e

        for request_id, handle in handles.items():
            future = handle.future
            if future.cancelled():
                batch.record_error(request_id, asyncio.CancelledError())
            elif future.exception() is not None:
                batch.record_error(request_id, future.exception())  # type: ignore[arg-type]
            else:
                batch.record_success(request_id, future.result())

        batch.finish(BatchStatus.COMPLETED)
        logger.debug(
            f"Batch {batch.id} completed: {len(batch.results)} ok, "
            f"{len(batch.errors)} failed"
        )

        return [
            BatchResult(
                request_id=rid,
                success=rid in batch.results,
                data=batch.results.get(rid),
                error=batch.errors.get(rid),
                latency=finished_at.get(rid, submitted_at) - submitted_at,
            )
            for rid in request_ids
        ]

    def _retain(self, batch: Batch) -> None:
        self._batches[batch.id] = batch
        while len(self._batches) > self._max_retained:
            self._batches.popitem(last=False)

    @staticmethod
    def _abort(handles: Mapping[str, RequestHandle], reason: str) -> None:
        for handle in handles.values():
            handle.cancel(reason)

    def _fail(
        self, batch: Batch, fault: BaseException, handles: list[RequestHandle]
    ) -> None:
        # Items that already reached an outcome keep it
        for handle in handles:
            future = handle.future
            if future.done() and not future.cancelled():
                if future.exception() is None:
                    batch.record_success(handle.request_id, future.result())
                else:
                    batch.record_error(handle.request_id, future.exception())  # type: ignore[arg-type]
        for request_id in batch.unresolved_ids:
            batch.record_error(request_id, fault)
        batch.finish(BatchStatus.FAILED)

        if self._emitter is not None:
            self._emitter.emit(
                TelemetryEvent(
                    event_type=TelemetryEventType.BATCH_FAILED,
                    error=fault,
                    details={"batch_id": batch.id, "items": len(batch.request_ids)},
                )
            )


__all__ = ["BatchCoordinator", "coerce_spec"]
