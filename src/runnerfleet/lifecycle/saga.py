"""Compensating actions for a partially completed provision.

The plan is plain data so it can be inspected and tested without running
any step; ``run_compensation`` executes it against a table of handlers.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Mapping

from runnerfleet.lifecycle.models import InstanceRecord, ProvisionStage, StepFailure

DEREGISTER_RUNNER = "deregister_runner"
DELETE_FIREWALL = "delete_firewall"
DELETE_INSTANCE = "delete_instance"

StepHandler = Callable[[str], Awaitable[Any]]


@dataclass(frozen=True)
class CompensationStep:
    name: str
    target: str


def compensation_plan(
    failed_stage: ProvisionStage,
    instance: InstanceRecord | None,
    runner_label: str,
) -> list[CompensationStep]:
    """Full teardown once an instance exists; nothing to undo before that."""
    if instance is None or failed_stage is ProvisionStage.REQUESTING_TOKEN:
        return []
    return [
        CompensationStep(DEREGISTER_RUNNER, runner_label),
        CompensationStep(DELETE_FIREWALL, instance.id),
        CompensationStep(DELETE_INSTANCE, instance.id),
    ]


async def run_compensation(
    plan: list[CompensationStep],
    handlers: Mapping[str, StepHandler],
    log: Any,
) -> list[StepFailure]:
    """Run every step, collecting failures instead of stopping at the first."""
    failures: list[StepFailure] = []
    for step in plan:
        try:
            await handlers[step.name](step.target)
        except Exception as exc:
            log.error("compensation_step_failed", step=step.name, error=str(exc))
            failures.append(StepFailure(step.name, exc))
        else:
            log.info("compensation_step_completed", step=step.name)
    return failures
