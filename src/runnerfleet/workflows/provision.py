from __future__ import annotations

from dataclasses import dataclass, field
from functools import partial
from typing import Any, TypedDict

from langgraph.graph import END, StateGraph

from runnerfleet.core.errors import ProviderError
from runnerfleet.lifecycle.context import RunContext
from runnerfleet.lifecycle.creator import RateLimitedCreator
from runnerfleet.lifecycle.deregistrar import RunnerDeregistrar
from runnerfleet.lifecycle.firewall import FirewallManager
from runnerfleet.lifecycle.installer import AgentInstaller
from runnerfleet.lifecycle.models import (
    CoordinatorScope,
    FirewallRecord,
    InstanceRecord,
    InstanceSpec,
    ProvisionOutput,
    ProvisionStage,
    RegistrationToken,
    StepFailure,
    WorkflowOutcome,
)
from runnerfleet.lifecycle.protocols import ComputeProvider
from runnerfleet.lifecycle.readiness import ReadinessWaiter
from runnerfleet.lifecycle.saga import (
    DELETE_FIREWALL,
    DELETE_INSTANCE,
    DEREGISTER_RUNNER,
    compensation_plan,
    run_compensation,
)
from runnerfleet.lifecycle.tokens import RegistrationTokenIssuer


@dataclass(frozen=True)
class ProvisionOptions:
    ssh_retries: int = 10
    ssh_retry_interval: float = 30.0
    ssh_connect_timeout: float = 30.0
    create_timeout: float = 300.0
    create_poll_interval: float = 10.0
    install_timeout: float = 900.0
    runner_version: str = "2.317.0"


class ProvisionState(TypedDict, total=False):
    scope: CoordinatorScope
    spec: InstanceSpec
    runner_label: str
    blocked_ports: list[str]
    stage: ProvisionStage
    token: RegistrationToken | None
    instance: InstanceRecord | None
    firewall: FirewallRecord | None
    error: BaseException | None
    outcome: WorkflowOutcome | None


@dataclass(slots=True)
class ProvisionWorkflow:
    """RequestingToken → CreatingInstance → AwaitingReachability → InstallingAgent
    → (AttachingFirewall) → Ready, with any failure routed to compensation."""

    tokens: RegistrationTokenIssuer
    creator: RateLimitedCreator
    waiter: ReadinessWaiter
    installer: AgentInstaller
    firewalls: FirewallManager
    deregistrar: RunnerDeregistrar
    provider: ComputeProvider
    context: RunContext
    options: ProvisionOptions = field(default_factory=ProvisionOptions)
    _graph: Any = field(init=False)

    def __post_init__(self) -> None:
        graph = StateGraph(ProvisionState)
        graph.add_node("request_token", self._request_token)
        graph.add_node("create_instance", self._create_instance)
        graph.add_node("await_reachability", self._await_reachability)
        graph.add_node("install_agent", self._install_agent)
        graph.add_node("attach_firewall", self._attach_firewall)
        graph.add_node("ready", self._ready)
        graph.add_node("compensate", self._compensate)

        graph.set_entry_point("request_token")
        for source, target in (
            ("request_token", "create_instance"),
            ("create_instance", "await_reachability"),
            ("await_reachability", "install_agent"),
            ("attach_firewall", "ready"),
        ):
            graph.add_conditional_edges(source, self._route, {"ok": target, "failed": "compensate"})

        graph.add_conditional_edges(
            "install_agent",
            self._route_after_install,
            {
                "firewall": "attach_firewall",
                "ready": "ready",
                "failed": "compensate",
            },
        )
        graph.add_edge("ready", END)
        graph.add_edge("compensate", END)

        self._graph = graph.compile()

    async def run(self, state: ProvisionState) -> ProvisionState:
        return await self._graph.ainvoke(state)

    async def execute(
        self,
        scope: CoordinatorScope,
        spec: InstanceSpec,
        runner_label: str,
        blocked_ports: list[str] | None = None,
    ) -> WorkflowOutcome:
        state: ProvisionState = {
            "scope": scope,
            "spec": spec,
            "runner_label": runner_label,
            "blocked_ports": list(blocked_ports or []),
            "stage": ProvisionStage.REQUESTING_TOKEN,
            "token": None,
            "instance": None,
            "firewall": None,
            "error": None,
            "outcome": None,
        }
        result = await self.run(state)
        return result["outcome"]

    def _route(self, state: ProvisionState) -> str:
        return "failed" if state.get("error") is not None else "ok"

    def _route_after_install(self, state: ProvisionState) -> str:
        if state.get("error") is not None:
            return "failed"
        return "firewall" if state.get("blocked_ports") else "ready"

    def _failed(self, state: ProvisionState, exc: Exception) -> ProvisionState:
        self.context.log.error(
            "provision_stage_failed",
            stage=state["stage"].value,
            error_type=type(exc).__name__,
            error=str(exc),
        )
        return state | {"error": exc}

    async def _request_token(self, state: ProvisionState) -> ProvisionState:
        state = state | {"stage": ProvisionStage.REQUESTING_TOKEN}
        try:
            token = await self.tokens.issue(state["scope"])
        except Exception as exc:
            return self._failed(state, exc)
        return state | {"token": token}

    async def _create_instance(self, state: ProvisionState) -> ProvisionState:
        state = state | {"stage": ProvisionStage.CREATING_INSTANCE}
        try:
            instance = await self.creator.create_with_budget(
                state["spec"],
                total_budget=self.options.create_timeout,
                poll_interval=self.options.create_poll_interval,
            )
        except Exception as exc:
            return self._failed(state, exc)
        return state | {"instance": instance}

    async def _await_reachability(self, state: ProvisionState) -> ProvisionState:
        state = state | {"stage": ProvisionStage.AWAITING_REACHABILITY}
        instance = state["instance"]
        try:
            if not instance.address:
                raise ProviderError("Provider did not report an address for the new instance")
            await self.waiter.wait_ready(
                instance.address,
                state["spec"].root_password,
                retries=self.options.ssh_retries,
                interval=self.options.ssh_retry_interval,
                per_attempt_timeout=self.options.ssh_connect_timeout,
            )
        except Exception as exc:
            return self._failed(state, exc)
        return state

    async def _install_agent(self, state: ProvisionState) -> ProvisionState:
        state = state | {"stage": ProvisionStage.INSTALLING_AGENT}
        try:
            await self.installer.install(
                state["instance"].address,
                state["spec"].root_password,
                scope=state["scope"],
                token=state["token"],
                runner_label=state["runner_label"],
                runner_version=self.options.runner_version,
                timeout=self.options.install_timeout,
            )
        except Exception as exc:
            return self._failed(state, exc)
        return state

    async def _attach_firewall(self, state: ProvisionState) -> ProvisionState:
        state = state | {"stage": ProvisionStage.ATTACHING_FIREWALL}
        try:
            firewall = await self.firewalls.ensure_blocking(state["instance"].id, state["blocked_ports"])
        except Exception as exc:
            return self._failed(state, exc)
        return state | {"firewall": firewall}

    async def _ready(self, state: ProvisionState) -> ProvisionState:
        instance = state["instance"]
        output = ProvisionOutput(
            instance_id=instance.id,
            address=instance.address or "",
            runner_label=state["runner_label"],
        )
        self.context.log.info("provision_ready", instance_id=instance.id, address=instance.address)
        outcome = WorkflowOutcome("provision", ProvisionStage.READY.value, output=output)
        return state | {"stage": ProvisionStage.READY, "outcome": outcome}

    async def _compensate(self, state: ProvisionState) -> ProvisionState:
        stage = state["stage"]
        scope = state["scope"]
        plan = compensation_plan(stage, state.get("instance"), state["runner_label"])
        log = self.context.log.bind(failed_stage=stage.value)
        if plan:
            log.info("compensation_started", steps=[step.name for step in plan])
        handlers = {
            DEREGISTER_RUNNER: partial(self.deregistrar.deregister, scope),
            DELETE_FIREWALL: self.firewalls.delete,
            DELETE_INSTANCE: self.provider.delete_instance,
        }
        compensation_failures = await run_compensation(plan, handlers, log)
        outcome = WorkflowOutcome(
            "provision",
            stage.value,
            failures=[StepFailure(stage.value, state["error"])],
            compensation=compensation_failures,
        )
        return state | {"outcome": outcome}
