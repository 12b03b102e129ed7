"""Poll a host until it accepts SSH connections."""

from __future__ import annotations

import asyncio

from tenacity import AsyncRetrying, RetryCallState, RetryError, retry_if_result, stop_after_attempt, wait_fixed

from runnerfleet.core.errors import UnreachableError
from runnerfleet.lifecycle.context import RunContext
from runnerfleet.lifecycle.protocols import RemoteExecutor


class ReadinessWaiter:
    """Retries a binary readiness probe at a fixed interval.

    The interval does not grow between attempts: the wait is for the host to
    finish booting, not for a congested service to recover.
    """

    def __init__(self, executor: RemoteExecutor, context: RunContext) -> None:
        self._executor = executor
        self._context = context

    async def wait_ready(
        self,
        address: str,
        credential: str,
        *,
        retries: int,
        interval: float,
        per_attempt_timeout: float,
    ) -> None:
        log = self._context.log.bind(address=address)
        retries = max(1, retries)

        async def attempt() -> bool:
            self._context.check_cancelled()
            try:
                return await asyncio.wait_for(
                    self._executor.probe(address, credential, timeout=per_attempt_timeout),
                    timeout=per_attempt_timeout,
                )
            except asyncio.TimeoutError:
                return False

        def before_sleep(state: RetryCallState) -> None:
            log.info(
                "readiness_probe_failed",
                attempt=state.attempt_number,
                retries=retries,
                retry_in=interval,
            )

        retrying = AsyncRetrying(
            stop=stop_after_attempt(retries),
            wait=wait_fixed(interval),
            retry=retry_if_result(lambda ready: not ready),
            sleep=self._context.sleep,
            before_sleep=before_sleep,
        )
        try:
            await retrying(attempt)
        except RetryError as exc:
            log.error("instance_unreachable", attempts=exc.last_attempt.attempt_number)
            raise UnreachableError(
                f"Unable to connect to {address} after {retries} attempts",
                details={"attempts": retries},
            ) from None
        log.info("instance_reachable")
