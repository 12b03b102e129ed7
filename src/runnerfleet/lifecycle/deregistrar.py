from __future__ import annotations

from enum import Enum

from runnerfleet.core.errors import AmbiguousSelectorError, CoordinatorError
from runnerfleet.lifecycle.context import RunContext
from runnerfleet.lifecycle.models import CoordinatorScope, WorkerRecord
from runnerfleet.lifecycle.protocols import Coordinator
from runnerfleet.logging import mask_tail

# Returned when the runner is busy or already being removed.
CONFLICT_STATUS = 422
NOT_FOUND_STATUS = 404

# Labels GitHub assigns to self-hosted runners automatically.
IMPLICIT_LABELS = frozenset({"self-hosted", "linux", "windows", "macos", "x64", "arm", "arm64"})


class Deregistration(str, Enum):
    REMOVED = "removed"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"


class RunnerDeregistrar:
    """Removes a worker's registration from the coordinator.

    A worker that was never registered, or is already gone, is an acceptable
    end state rather than a failure.
    """

    def __init__(self, coordinator: Coordinator, context: RunContext) -> None:
        self._coordinator = coordinator
        self._context = context

    async def deregister(self, scope: CoordinatorScope, label: str) -> Deregistration:
        log = self._context.log.bind(owner=scope.owner, repo=scope.repo, runner_label=label)
        roster = [runner async for runner in self._coordinator.iter_runners(scope)]
        log.info("runners_fetched", count=len(roster), names=[mask_tail(runner.name) for runner in roster])

        runner = self._select(roster, label)
        if runner is None:
            log.info("runner_not_found")
            return Deregistration.NOT_FOUND

        log.info("runner_unregistering", runner_id=runner.id, busy=runner.busy)
        try:
            await self._coordinator.delete_runner(scope, runner.id)
        except CoordinatorError as exc:
            if exc.status_code == CONFLICT_STATUS:
                log.warning("runner_unregister_conflict", runner_id=runner.id, error=exc.message)
                return Deregistration.CONFLICT
            if exc.status_code == NOT_FOUND_STATUS:
                log.info("runner_already_removed", runner_id=runner.id)
                return Deregistration.NOT_FOUND
            raise
        log.info("runner_unregistered", runner_id=runner.id)
        return Deregistration.REMOVED

    @staticmethod
    def _select(roster: list[WorkerRecord], label: str) -> WorkerRecord | None:
        if label.lower() in IMPLICIT_LABELS:
            # Every self-hosted runner carries these; only a runner named after it is ours.
            candidates = [runner for runner in roster if runner.name == label]
        else:
            candidates = [runner for runner in roster if label in runner.labels]
        if len(candidates) <= 1:
            return candidates[0] if candidates else None
        # Provisioned runners are named after their label; prefer that entry.
        named = [runner for runner in candidates if runner.name == label]
        if len(named) == 1:
            return named[0]
        raise AmbiguousSelectorError(
            f"Multiple runners carry label {label!r}",
            matches=[runner.id for runner in candidates],
        )
