from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, TypedDict

from langgraph.graph import END, StateGraph

from runnerfleet.lifecycle.context import RunContext
from runnerfleet.lifecycle.deregistrar import Deregistration, RunnerDeregistrar
from runnerfleet.lifecycle.firewall import FirewallManager
from runnerfleet.lifecycle.models import (
    CoordinatorScope,
    DecommissionStage,
    InstanceRecord,
    RunnerSelector,
    StepFailure,
    WorkflowOutcome,
)
from runnerfleet.lifecycle.protocols import ComputeProvider
from runnerfleet.lifecycle.resolver import ResourceSearchResolver, fetch_inventory


class DecommissionState(TypedDict, total=False):
    action: str
    scope: CoordinatorScope
    selector: RunnerSelector
    runner_label: str | None
    wait: bool
    deregister: bool
    delete: bool
    stage: DecommissionStage
    instance: InstanceRecord | None
    deregistration: Deregistration | None
    failures: list[StepFailure]
    outcome: WorkflowOutcome | None


@dataclass(slots=True)
class DecommissionWorkflow:
    """ResolvingTarget → Deregistering → DeletingFirewall → DeletingInstance → Done.

    Deregistration and deletion are independent: a failure in one is recorded
    and the other still runs. A resolution failure ends the run with no side
    effects.
    """

    resolver: ResourceSearchResolver
    deregistrar: RunnerDeregistrar
    firewalls: FirewallManager
    provider: ComputeProvider
    context: RunContext
    _graph: Any = field(init=False)

    def __post_init__(self) -> None:
        graph = StateGraph(DecommissionState)
        graph.add_node("resolve_target", self._resolve_target)
        graph.add_node("deregister_runner", self._deregister_runner)
        graph.add_node("delete_firewall", self._delete_firewall)
        graph.add_node("delete_instance", self._delete_instance)
        graph.add_node("finish", self._finish)

        graph.set_entry_point("resolve_target")
        graph.add_conditional_edges(
            "resolve_target",
            self._route_after_resolve,
            {
                "failed": "finish",
                "deregister": "deregister_runner",
                "delete": "delete_firewall",
                "done": "finish",
            },
        )
        graph.add_conditional_edges(
            "deregister_runner",
            self._route_after_deregister,
            {"delete": "delete_firewall", "done": "finish"},
        )
        graph.add_edge("delete_firewall", "delete_instance")
        graph.add_edge("delete_instance", "finish")
        graph.add_edge("finish", END)

        self._graph = graph.compile()

    async def run(self, state: DecommissionState) -> DecommissionState:
        return await self._graph.ainvoke(state)

    async def execute(
        self,
        scope: CoordinatorScope,
        selector: RunnerSelector,
        *,
        action: str = "destroy",
        runner_label: str | None = None,
        wait: bool = True,
        deregister: bool = True,
        delete: bool = True,
    ) -> WorkflowOutcome:
        state: DecommissionState = {
            "action": action,
            "scope": scope,
            "selector": selector,
            "runner_label": runner_label,
            "wait": wait,
            "deregister": deregister,
            "delete": delete,
            "stage": DecommissionStage.RESOLVING_TARGET,
            "instance": None,
            "deregistration": None,
            "failures": [],
            "outcome": None,
        }
        result = await self.run(state)
        return result["outcome"]

    def _route_after_resolve(self, state: DecommissionState) -> str:
        if state.get("instance") is None:
            return "failed"
        if state.get("deregister"):
            return "deregister"
        if state.get("delete"):
            return "delete"
        return "done"

    def _route_after_deregister(self, state: DecommissionState) -> str:
        return "delete" if state.get("delete") else "done"

    def _record(self, state: DecommissionState, step: str, exc: Exception) -> DecommissionState:
        self.context.log.error(
            "decommission_step_failed",
            step=step,
            error_type=type(exc).__name__,
            error=str(exc),
        )
        return state | {"failures": [*state.get("failures", []), StepFailure(step, exc)]}

    async def _resolve_target(self, state: DecommissionState) -> DecommissionState:
        state = state | {"stage": DecommissionStage.RESOLVING_TARGET}
        try:
            self.context.check_cancelled()
            inventory = await fetch_inventory(self.provider.iter_instances())
            instance = self.resolver.resolve(state["selector"], inventory)
        except Exception as exc:
            return self._record(state, "resolve_target", exc)
        self.context.mask(instance.id, instance.address, instance.label)
        self.context.log.info("target_resolved", instance_id=instance.id, label=instance.label)
        return state | {"instance": instance}

    async def _deregister_runner(self, state: DecommissionState) -> DecommissionState:
        state = state | {"stage": DecommissionStage.DEREGISTERING}
        label = state.get("runner_label") or state["instance"].label
        try:
            self.context.check_cancelled()
            result = await self.deregistrar.deregister(state["scope"], label)
        except Exception as exc:
            return self._record(state, "deregister_runner", exc)
        return state | {"deregistration": result}

    async def _delete_firewall(self, state: DecommissionState) -> DecommissionState:
        state = state | {"stage": DecommissionStage.DELETING_FIREWALL}
        try:
            self.context.check_cancelled()
            await self.firewalls.delete(state["instance"].id, wait=state.get("wait", True))
        except Exception as exc:
            return self._record(state, "delete_firewall", exc)
        return state

    async def _delete_instance(self, state: DecommissionState) -> DecommissionState:
        state = state | {"stage": DecommissionStage.DELETING_INSTANCE}
        instance_id = state["instance"].id
        try:
            self.context.check_cancelled()
            if state.get("wait", True):
                await self.provider.delete_instance(instance_id)
                self.context.log.info("instance_deleted", instance_id=instance_id)
            else:
                await self.provider.submit_delete_instance(instance_id)
                self.context.log.info("instance_delete_submitted", instance_id=instance_id)
        except Exception as exc:
            return self._record(state, "delete_instance", exc)
        return state

    async def _finish(self, state: DecommissionState) -> DecommissionState:
        failures = state.get("failures", [])
        stage = state["stage"] if failures else DecommissionStage.DONE
        outcome = WorkflowOutcome(state.get("action", "destroy"), stage.value, failures=list(failures))
        if outcome.success:
            self.context.log.info("decommission_completed", action=outcome.workflow)
        return state | {"stage": stage, "outcome": outcome}
