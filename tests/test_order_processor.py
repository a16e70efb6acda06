from __future__ import annotations

try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

import asyncio

import pytest

from gateway.core.errors import CommerceApiError, JobNotFound, OrderIdFormatError
from gateway.models.jobs import Job, JobStateError, JobStats, JobStatus
from gateway.schemas.orders import OrderItemMutation, OrderMutation
from gateway.services.job_store import JobStore
from gateway.services.order_processor import (
    OrderJobProcessor,
    parse_order_id,
    partition_orders,
)


def _item(**overrides) -> OrderItemMutation:
    values = {
        "product_id": "prod-1",
        "sku_id": "0001",
        "plan_id": "plan-1",
        "action": "UPDATE",
        "quantity": 3,
        "resource_id": "res-1",
    }
    values.update(overrides)
    return OrderItemMutation(**values)


def _order(order_id: str, *items: OrderItemMutation) -> OrderMutation:
    return OrderMutation(order_id=order_id, order_items=list(items) or [_item()])


def _order_id(account: str, customer: str) -> str:
    return f"accounts/{account}/customers/{customer}/orders/o-1"


class RecordingOrderClient:
    def __init__(self, failing: tuple[str, ...] = (), delay: float = 0.0) -> None:
        self.failing = failing
        self.delay = delay
        self.calls: list[tuple[str, str, list]] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def update_order(self, account_id, customer_id, order_items):
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delay)
            self.calls.append((account_id, customer_id, order_items))
            if customer_id in self.failing:
                raise CommerceApiError("Order update failed: quota exceeded")
            return {"status": "ok", "customer": customer_id}
        finally:
            self.in_flight -= 1


def test_parse_order_id_extracts_account_and_customer() -> None:
    assert parse_order_id("accounts/a-1/customers/c-9/orders/o-1") == ("a-1", "c-9")
    assert parse_order_id("/accounts/a-1/customers/c-9/orders/o-1") == ("a-1", "c-9")
    with pytest.raises(OrderIdFormatError):
        parse_order_id("accounts/a-1/customers/c-9")


def test_partition_orders_requires_one_valid_item() -> None:
    good = _order("accounts/a/customers/c/orders/1", _item(), _item(error="SKU_NOT_FOUND"))
    bad = _order("accounts/a/customers/c/orders/2", _item(error="PLAN_NOT_FOUND"))

    valid, invalid = partition_orders([good, bad])

    assert valid == [good]
    assert invalid == [bad]


def test_job_accounting_invariants() -> None:
    job = Job(job_id="j", stats=JobStats(total=2))

    with pytest.raises(JobStateError):
        job.complete()

    job.record_success("o-1", {"ok": True})
    job.record_failure("o-2", "boom")
    with pytest.raises(JobStateError):
        job.record_failure("o-3", "over the total")

    job.complete()
    assert job.status is JobStatus.COMPLETED
    with pytest.raises(JobStateError):
        job.complete()
    with pytest.raises(JobStateError):
        job.record_success("o-1", None)


def test_job_status_payload_hides_results_until_completed() -> None:
    job = Job(job_id="j", stats=JobStats(total=1))
    payload = job.to_status_payload()

    assert payload["status"] == "processing"
    assert "results" not in payload
    assert "errors" not in payload

    job.record_success("o-1", {"ok": True})
    job.complete()
    payload = job.to_status_payload()

    assert payload["status"] == "completed"
    assert payload["results"] == [{"orderId": "o-1", "result": {"ok": True}}]
    assert payload["errors"] == []


def test_job_store_returns_copies_and_guards_updates() -> None:
    store = JobStore()
    store.create(Job(job_id="j", stats=JobStats(total=1)))

    snapshot = store.get("j")
    snapshot.stats.succeeded = 1
    assert store.get("j").stats.succeeded == 0

    store.update("j", lambda job: job.record_success("o", None))
    assert store.get("j").stats.succeeded == 1

    assert store.get("missing") is None
    with pytest.raises(JobNotFound):
        store.update("missing", lambda job: None)
    with pytest.raises(ValueError):
        store.create(Job(job_id="j", stats=JobStats(total=0)))


@pytest.mark.asyncio
async def test_job_records_successes_and_failures() -> None:
    client = RecordingOrderClient(failing=("c-2",))
    processor = OrderJobProcessor(client, JobStore(), concurrency=2)

    job_id = await processor.create_job(
        [
            _order(_order_id("a", "c-1")),
            _order(_order_id("a", "c-2")),
            _order(_order_id("a", "c-3")),
        ]
    )
    job = await processor.wait_for(job_id)

    assert job.status is JobStatus.COMPLETED
    assert job.stats.as_dict() == {"total": 3, "succeeded": 2, "failed": 1}
    assert job.errors == [
        {"orderId": _order_id("a", "c-2"), "error": "Order update failed: quota exceeded"}
    ]
    assert sorted(result["orderId"] for result in job.results) == [
        _order_id("a", "c-1"),
        _order_id("a", "c-3"),
    ]
    assert job.completed_at is not None


@pytest.mark.asyncio
async def test_malformed_order_id_fails_without_outbound_call() -> None:
    client = RecordingOrderClient()
    processor = OrderJobProcessor(client, JobStore())

    job_id = await processor.create_job([_order("accounts/a/customers/c")])
    job = await processor.wait_for(job_id)

    assert client.calls == []
    assert job.stats.as_dict() == {"total": 1, "succeeded": 0, "failed": 1}
    assert job.errors == [{"orderId": "accounts/a/customers/c", "error": "Invalid orderId format"}]


@pytest.mark.asyncio
async def test_only_valid_items_are_sent() -> None:
    client = RecordingOrderClient()
    processor = OrderJobProcessor(client, JobStore())

    order = _order(_order_id("a", "c"), _item(sku_id="keep"), _item(error="SKU_NOT_FOUND"))
    await processor.wait_for(await processor.create_job([order]))

    (call,) = client.calls
    assert call[0:2] == ("a", "c")
    assert [item["skuId"] for item in call[2]] == ["keep"]
    assert "error" not in call[2][0]


@pytest.mark.asyncio
async def test_invalid_orders_are_not_counted_or_dispatched() -> None:
    client = RecordingOrderClient()
    processor = OrderJobProcessor(client, JobStore())

    job_id = await processor.create_job(
        [
            _order(_order_id("a", "c-1")),
            _order(_order_id("a", "c-2"), _item(error="PLAN_NOT_FOUND")),
        ]
    )

    snapshot = processor.get_job(job_id)
    assert snapshot.stats.total == 1
    assert len(snapshot.invalid) == 1

    job = await processor.wait_for(job_id)
    assert job.stats.total == 1
    assert [call[1] for call in client.calls] == ["c-1"]


@pytest.mark.asyncio
async def test_empty_job_completes_immediately() -> None:
    processor = OrderJobProcessor(RecordingOrderClient(), JobStore())

    job_id = await processor.create_job([])
    job = await processor.wait_for(job_id)

    assert job.status is JobStatus.COMPLETED
    assert job.stats.as_dict() == {"total": 0, "succeeded": 0, "failed": 0}


@pytest.mark.asyncio
async def test_concurrency_is_bounded_across_jobs() -> None:
    client = RecordingOrderClient(delay=0.01)
    processor = OrderJobProcessor(client, JobStore(), concurrency=2)

    first = await processor.create_job([_order(_order_id("a", f"c-{i}")) for i in range(5)])
    second = await processor.create_job([_order(_order_id("b", f"c-{i}")) for i in range(5)])
    await processor.drain()

    assert client.max_in_flight <= 2
    assert processor.get_job(first).stats.succeeded == 5
    assert processor.get_job(second).stats.succeeded == 5


def test_processor_rejects_non_positive_concurrency() -> None:
    with pytest.raises(ValueError):
        OrderJobProcessor(RecordingOrderClient(), JobStore(), concurrency=0)


def test_unknown_job_returns_none() -> None:
    processor = OrderJobProcessor(RecordingOrderClient(), JobStore())
    assert processor.get_job("missing") is None
