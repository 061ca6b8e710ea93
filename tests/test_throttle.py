"""ThrottleGate unit tests."""

import asyncio

import pytest

from image_service.core.exceptions import ConfigurationError, DisposedError
from image_service.core.throttle import ThrottleGate


@pytest.mark.asyncio
async def test_never_exceeds_max_concurrent():
    gate = ThrottleGate(max_concurrent=3)
    running = 0
    peak = 0

    async def operation():
        nonlocal running, peak
        running += 1
        peak = max(peak, running)
        await asyncio.sleep(0.01)
        running -= 1
        return 1

    results = await asyncio.gather(*(gate.run(operation) for _ in range(10)))

    assert sum(results) == 10
    assert peak == 3
    assert gate.active == 0
    assert gate.queued == 0


@pytest.mark.asyncio
async def test_queued_operations_run_in_fifo_order():
    gate = ThrottleGate(max_concurrent=1)
    release_a = asyncio.Event()
    order = []

    async def a():
        await release_a.wait()
        order.append("A")

    async def b():
        order.append("B")

    async def c():
        order.append("C")

    task_a = asyncio.create_task(gate.run(a))
    await asyncio.sleep(0)
    task_b = asyncio.create_task(gate.run(b))
    task_c = asyncio.create_task(gate.run(c))
    await asyncio.sleep(0)

    assert gate.active == 1
    assert gate.queued == 2

    release_a.set()
    await asyncio.gather(task_a, task_b, task_c)

    assert order == ["A", "B", "C"]
    assert gate.active == 0


@pytest.mark.asyncio
async def test_slot_released_when_operation_fails():
    gate = ThrottleGate(max_concurrent=1)

    async def boom():
        raise RuntimeError("decoder crashed")

    async def ok():
        return "done"

    with pytest.raises(RuntimeError):
        await gate.run(boom)

    assert gate.active == 0
    assert await gate.run(ok) == "done"


@pytest.mark.asyncio
async def test_dispose_fails_queued_waiters():
    gate = ThrottleGate(max_concurrent=1)
    release = asyncio.Event()

    async def holder():
        await release.wait()
        return "held"

    async def queued():
        return "should not run"

    task_a = asyncio.create_task(gate.run(holder))
    await asyncio.sleep(0)
    task_b = asyncio.create_task(gate.run(queued))
    task_c = asyncio.create_task(gate.run(queued))
    await asyncio.sleep(0)

    gate.dispose()

    with pytest.raises(DisposedError):
        await task_b
    with pytest.raises(DisposedError):
        await task_c

    release.set()
    assert await task_a == "held"
    assert gate.active == 0


@pytest.mark.asyncio
async def test_run_after_dispose_fails_fast():
    gate = ThrottleGate(max_concurrent=2)
    gate.dispose()

    async def operation():
        return 1

    with pytest.raises(DisposedError):
        await gate.run(operation)
    assert gate.active == 0


def test_dispose_is_idempotent():
    gate = ThrottleGate()
    gate.dispose()
    gate.dispose()
    assert gate.disposed is True


@pytest.mark.asyncio
async def test_cancelled_waiter_does_not_leak_slot():
    gate = ThrottleGate(max_concurrent=1)
    release = asyncio.Event()

    async def holder():
        await release.wait()

    async def operation():
        return "ran"

    task_a = asyncio.create_task(gate.run(holder))
    await asyncio.sleep(0)
    task_b = asyncio.create_task(gate.run(operation))
    await asyncio.sleep(0)

    task_b.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task_b

    release.set()
    await task_a

    assert gate.active == 0
    assert await gate.run(operation) == "ran"


@pytest.mark.asyncio
async def test_cancelled_running_operation_releases_slot():
    gate = ThrottleGate(max_concurrent=1)

    async def slow():
        await asyncio.sleep(10)

    task = asyncio.create_task(gate.run(slow))
    await asyncio.sleep(0)
    assert gate.active == 1

    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert gate.active == 0


@pytest.mark.parametrize("value", [0, -3])
def test_non_positive_limit_is_rejected(value):
    with pytest.raises(ConfigurationError):
        ThrottleGate(max_concurrent=value)
