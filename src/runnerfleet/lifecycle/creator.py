"""Instance creation against a rate-limited provider."""

from __future__ import annotations

import math

from tenacity import AsyncRetrying, RetryCallState, RetryError, retry_if_exception_type, stop_after_attempt, wait_fixed

from runnerfleet.core.errors import ThrottleBudgetExhaustedError, ThrottledError, ValidationError
from runnerfleet.lifecycle.context import RunContext
from runnerfleet.lifecycle.models import InstanceRecord, InstanceSpec
from runnerfleet.lifecycle.protocols import ComputeProvider


def attempts_for_budget(total_budget: float, poll_interval: float) -> int:
    """Number of attempts a time budget affords; never less than one."""
    if poll_interval <= 0:
        raise ValidationError("poll interval must be positive", invalid=[str(poll_interval)])
    # Tolerate float error so 30.0 / 10.0-style budgets land on whole numbers.
    return max(1, math.floor(total_budget / poll_interval + 1e-9))


class RateLimitedCreator:
    """Creates an instance, retrying only on throttling signals.

    Any other provider error is raised on the attempt that produced it:
    a request the provider rejected outright will not succeed on retry.
    """

    def __init__(self, provider: ComputeProvider, context: RunContext) -> None:
        self._provider = provider
        self._context = context

    async def create_with_budget(
        self,
        spec: InstanceSpec,
        *,
        total_budget: float,
        poll_interval: float,
    ) -> InstanceRecord:
        max_attempts = attempts_for_budget(total_budget, poll_interval)
        log = self._context.log.bind(label=spec.label, max_attempts=max_attempts)

        async def attempt() -> InstanceRecord:
            self._context.check_cancelled()
            return await self._provider.create_instance(spec)

        def before_sleep(state: RetryCallState) -> None:
            log.warning("instance_create_throttled", attempt=state.attempt_number, retry_in=poll_interval)

        retrying = AsyncRetrying(
            stop=stop_after_attempt(max_attempts),
            wait=wait_fixed(poll_interval),
            retry=retry_if_exception_type(ThrottledError),
            sleep=self._context.sleep,
            before_sleep=before_sleep,
        )
        log.info("instance_create_requested", machine_type=spec.machine_type, region=spec.region)
        try:
            record = await retrying(attempt)
        except RetryError as exc:
            log.error("instance_create_budget_exhausted", attempts=exc.last_attempt.attempt_number)
            raise ThrottleBudgetExhaustedError(
                exc.last_attempt.attempt_number, total_budget
            ) from exc.last_attempt.exception()

        self._context.mask(record.id, record.address)
        log.info("instance_created", instance_id=record.id, address=record.address)
        return record
