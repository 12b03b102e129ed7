import asyncio

import pytest
from stubs import StubExecutor

from runnerfleet.core.errors import UnreachableError, WorkflowCancelledError
from runnerfleet.lifecycle.readiness import ReadinessWaiter


@pytest.mark.asyncio
async def test_ready_on_first_probe(context):
    executor = StubExecutor(probes=[True])
    waiter = ReadinessWaiter(executor, context)

    await waiter.wait_ready("203.0.113.10", "pw", retries=10, interval=30, per_attempt_timeout=5)

    assert executor.probe_calls == ["203.0.113.10"]
    assert context.sleeps == []


@pytest.mark.asyncio
async def test_fixed_interval_between_attempts(context):
    executor = StubExecutor(probes=[False, False, True])
    waiter = ReadinessWaiter(executor, context)

    await waiter.wait_ready("203.0.113.10", "pw", retries=10, interval=30, per_attempt_timeout=5)

    assert len(executor.probe_calls) == 3
    assert context.sleeps == [30, 30]


@pytest.mark.asyncio
async def test_exhausted_retries_raise_unreachable(context):
    executor = StubExecutor(probes=[False])
    waiter = ReadinessWaiter(executor, context)

    with pytest.raises(UnreachableError):
        await waiter.wait_ready("203.0.113.10", "pw", retries=4, interval=2, per_attempt_timeout=5)

    assert len(executor.probe_calls) == 4
    assert context.sleeps == [2, 2, 2]


@pytest.mark.asyncio
async def test_hung_probe_counts_as_failed_attempt(context):
    class HangingExecutor(StubExecutor):
        async def probe(self, address, credential, *, timeout):
            self.probe_calls.append(address)
            if len(self.probe_calls) == 1:
                await asyncio.sleep(10)
            return True

    executor = HangingExecutor()
    waiter = ReadinessWaiter(executor, context)

    await waiter.wait_ready("203.0.113.10", "pw", retries=3, interval=1, per_attempt_timeout=0.01)

    assert len(executor.probe_calls) == 2


@pytest.mark.asyncio
async def test_cancellation_stops_polling(context):
    context.cancel = asyncio.Event()
    context.cancel.set()
    waiter = ReadinessWaiter(StubExecutor(probes=[False]), context)

    with pytest.raises(WorkflowCancelledError):
        await waiter.wait_ready("203.0.113.10", "pw", retries=3, interval=1, per_attempt_timeout=1)
