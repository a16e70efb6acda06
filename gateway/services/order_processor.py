"""
Asynchronous dispatch of order mutation batches to the commerce API.

``create_job`` returns as soon as the job is stored. A per-job queue is then
drained by a fixed pool of workers, and a process-wide semaphore caps the
number of order updates in flight across all jobs. The job is completed once
the queue reports every order as done.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from typing import Any, Dict, Iterable, List, Optional, Protocol, Tuple

from gateway.core.errors import OrderIdFormatError
from gateway.models.jobs import Job, JobStats
from gateway.schemas.orders import OrderMutation
from gateway.services.job_store import JobStore

logger = logging.getLogger(__name__)

ORDER_ID_SEGMENTS = 5
NO_VALID_ITEMS_MESSAGE = "No valid items to process"


class OrderUpdater(Protocol):
    async def update_order(
        self, account_id: str, customer_id: str, order_items: List[Dict[str, Any]]
    ) -> Any:
        ...


def parse_order_id(order_id: str) -> Tuple[str, str]:
    """Return ``(account_id, customer_id)`` from ``accounts/{a}/customers/{c}/orders/...``.

    A resource path with a leading slash is accepted as well.
    """
    parts = order_id.lstrip("/").split("/")
    if len(parts) < ORDER_ID_SEGMENTS:
        raise OrderIdFormatError("Invalid orderId format")
    return parts[1], parts[3]


def partition_orders(
    orders: Iterable[OrderMutation],
) -> Tuple[List[OrderMutation], List[OrderMutation]]:
    """Split orders into those with a dispatchable item and those without."""
    valid: List[OrderMutation] = []
    invalid: List[OrderMutation] = []
    for order in orders:
        (valid if order.is_dispatchable else invalid).append(order)
    return valid, invalid


class OrderJobProcessor:
    """Create jobs for order batches and dispatch them with bounded concurrency."""

    def __init__(
        self,
        order_client: OrderUpdater,
        job_store: JobStore,
        *,
        concurrency: int = 5,
    ) -> None:
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        self._client = order_client
        self._jobs = job_store
        self._concurrency = concurrency
        self._in_flight = asyncio.Semaphore(concurrency)
        self._dispatches: Dict[str, asyncio.Task] = {}

    async def create_job(self, orders: Iterable[OrderMutation]) -> str:
        valid, invalid = partition_orders(orders)
        job_id = str(uuid.uuid4())
        self._jobs.create(
            Job(job_id=job_id, stats=JobStats(total=len(valid)), invalid=invalid)
        )
        logger.info(
            "Created job %s with %s valid and %s invalid order(s)",
            job_id,
            len(valid),
            len(invalid),
        )

        task = asyncio.create_task(self._dispatch(job_id, valid), name=f"job:{job_id}")
        self._dispatches[job_id] = task
        task.add_done_callback(lambda _: self._dispatches.pop(job_id, None))
        return job_id

    def get_job(self, job_id: str) -> Optional[Job]:
        return self._jobs.get(job_id)

    async def wait_for(self, job_id: str) -> Optional[Job]:
        """Wait until a job's dispatch has finished and return its final state."""
        task = self._dispatches.get(job_id)
        if task is not None:
            await asyncio.shield(task)
        return self._jobs.get(job_id)

    async def drain(self) -> None:
        """Wait for every job still dispatching."""
        pending = list(self._dispatches.values())
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

    async def _dispatch(self, job_id: str, orders: List[OrderMutation]) -> None:
        queue: asyncio.Queue[OrderMutation] = asyncio.Queue()
        for order in orders:
            queue.put_nowait(order)

        workers = [
            asyncio.create_task(self._worker(job_id, queue))
            for _ in range(min(self._concurrency, len(orders)))
        ]
        try:
            await queue.join()
        finally:
            for worker in workers:
                worker.cancel()
            await asyncio.gather(*workers, return_exceptions=True)

        stats = self._jobs.update(job_id, _complete)
        logger.info(
            "Job %s completed: %s succeeded, %s failed of %s",
            job_id,
            stats.succeeded,
            stats.failed,
            stats.total,
        )

    async def _worker(self, job_id: str, queue: "asyncio.Queue[OrderMutation]") -> None:
        while True:
            order = await queue.get()
            try:
                await self._process_order(job_id, order)
            finally:
                queue.task_done()

    async def _process_order(self, job_id: str, order: OrderMutation) -> None:
        items = [item.to_wire() for item in order.valid_items]
        if not items:
            self._jobs.update(
                job_id, lambda job: job.record_failure(order.order_id, NO_VALID_ITEMS_MESSAGE)
            )
            return

        try:
            account_id, customer_id = parse_order_id(order.order_id)
            async with self._in_flight:
                result = await self._client.update_order(account_id, customer_id, items)
        except Exception as exc:
            logger.warning("Order %s failed in job %s: %s", order.order_id, job_id, exc)
            message = str(exc) or type(exc).__name__
            self._jobs.update(job_id, lambda job: job.record_failure(order.order_id, message))
            return

        self._jobs.update(job_id, lambda job: job.record_success(order.order_id, result))


def _complete(job: Job) -> JobStats:
    job.complete()
    return JobStats(job.stats.total, job.stats.succeeded, job.stats.failed)


__all__ = [
    "NO_VALID_ITEMS_MESSAGE",
    "OrderJobProcessor",
    "OrderUpdater",
    "parse_order_id",
    "partition_orders",
]
