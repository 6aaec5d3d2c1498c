import pytest

from core import task as payment_tasks
from core.queue.asyncio_provider import AsyncioQueueProvider
from core.queue.tasks import execute_registered_task, is_registered, register_task


@pytest.mark.asyncio
async def test_queue_registry_executes_task():
    async def _sample_task(value: int) -> int:
        return value + 1

    register_task("test_queue_registry_executes_task", _sample_task)
    result = await execute_registered_task(
        task_key="test_queue_registry_executes_task",
        payload={"value": 2},
    )
    assert result == 3


def test_queue_registry_rejects_second_function_for_same_key():
    async def _first() -> None:
        return None

    async def _second() -> None:
        return None

    register_task("test_queue_registry_conflict", _first)
    register_task("test_queue_registry_conflict", _first)

    with pytest.raises(ValueError):
        register_task("test_queue_registry_conflict", _second)


@pytest.mark.asyncio
async def test_queue_registry_unknown_key_lists_available_keys():
    with pytest.raises(ValueError) as exc_info:
        await execute_registered_task(task_key="missing_task", payload={})

    assert payment_tasks.PAYMENT_AUDIT_TASK in str(exc_info.value)


def test_payment_side_effect_tasks_are_registered():
    assert is_registered(payment_tasks.PAYMENT_AUDIT_TASK)
    assert is_registered(payment_tasks.PAYMENT_NOTIFICATION_TASK)


@pytest.mark.asyncio
async def test_asyncio_queue_runs_payment_tasks(fake_db, queue_provider):
    payload = {"user_id": 7, "payment_id": 1, "amount": "160", "currency": "USD", "status": "completed"}

    first = queue_provider.enqueue(payment_tasks.PAYMENT_AUDIT_TASK, payload)
    second = queue_provider.enqueue(payment_tasks.PAYMENT_NOTIFICATION_TASK, payload)
    await queue_provider.drain()

    assert queue_provider.get_status(first.task_id) == "SUCCESS"
    assert queue_provider.get_status(second.task_id) == "SUCCESS"
    assert fake_db.audit_logs.rows[0]["description"] == "Payment completed: 160.00 USD"
    assert fake_db.audit_logs.rows[0]["action"] == "payment"
    notification = fake_db.notifications.rows[0]
    assert notification["user_id"] == 7
    assert notification["title"] == "Payment Update"
    assert notification["message"] == "Payment of 160.00 USD has been completed"
    assert notification["read"] is False


@pytest.mark.asyncio
async def test_asyncio_queue_marks_failed_tasks(queue_provider):
    async def _boom() -> None:
        raise RuntimeError("boom")

    register_task("test_asyncio_queue_marks_failed_tasks", _boom)
    job = queue_provider.enqueue("test_asyncio_queue_marks_failed_tasks", {})
    await queue_provider.drain()

    assert queue_provider.get_status(job.task_id) == "FAILURE"


@pytest.mark.asyncio
async def test_asyncio_queue_keeps_only_recent_statuses():
    async def _noop() -> None:
        return None

    register_task("test_asyncio_queue_keeps_only_recent_statuses", _noop)
    provider = AsyncioQueueProvider(max_tracked_statuses=2)
    jobs = [provider.enqueue("test_asyncio_queue_keeps_only_recent_statuses", {}) for _ in range(5)]
    await provider.drain()

    assert len(provider._statuses) == 2
    assert [provider.get_status(job.task_id) for job in jobs[-2:]] == ["SUCCESS", "SUCCESS"]
    assert provider.get_status(jobs[0].task_id) == "PENDING"
