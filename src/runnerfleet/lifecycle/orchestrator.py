"""
Lifecycle orchestrator.

Composes the lifecycle components into the provision and decommission
workflows and exposes one entry point per action. Every entry point
returns a ``WorkflowOutcome``; configuration problems are raised before
anything touches the network.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from runnerfleet.config.settings import Settings
from runnerfleet.core.errors import ConfigurationError
from runnerfleet.lifecycle.context import RunContext
from runnerfleet.lifecycle.creator import RateLimitedCreator
from runnerfleet.lifecycle.deregistrar import RunnerDeregistrar
from runnerfleet.lifecycle.firewall import FirewallManager, validate_ports
from runnerfleet.lifecycle.installer import AgentInstaller
from runnerfleet.lifecycle.models import (
    CoordinatorScope,
    InstanceSpec,
    RunnerSelector,
    WorkflowOutcome,
)
from runnerfleet.lifecycle.protocols import ComputeProvider, Coordinator, RemoteExecutor
from runnerfleet.lifecycle.readiness import ReadinessWaiter
from runnerfleet.lifecycle.resolver import ResourceSearchResolver
from runnerfleet.lifecycle.tokens import RegistrationTokenIssuer
from runnerfleet.workflows.decommission import DecommissionWorkflow
from runnerfleet.workflows.provision import ProvisionOptions, ProvisionWorkflow

CREATE = "create"
DESTROY = "destroy"
DESTROY_MACHINE = "destroy-machine"
DESTROY_RUNNER = "destroy-runner"
ASYNC_SUFFIX = "-async"

BASE_ACTIONS = (CREATE, DESTROY, DESTROY_MACHINE, DESTROY_RUNNER)
ACTIONS = BASE_ACTIONS + tuple(
    f"{action}{ASYNC_SUFFIX}" for action in BASE_ACTIONS if action != CREATE
)


def parse_action(action: str) -> tuple[str, bool]:
    """Split an action name into its base action and whether deletes should wait."""
    name = action.strip().lower()
    if name not in ACTIONS:
        raise ConfigurationError(
            f"Unknown action {action!r}",
            details={"valid_actions": list(ACTIONS)},
        )
    if name.endswith(ASYNC_SUFFIX):
        return name[: -len(ASYNC_SUFFIX)], False
    return name, True


def require_inputs(settings: Settings, names: Iterable[str]) -> None:
    missing = [name for name in names if not getattr(settings, name)]
    if missing:
        raise ConfigurationError(
            f"Missing required inputs: {', '.join(missing)}",
            details={"missing": missing},
        )


@dataclass(frozen=True)
class ProvisionRequest:
    scope: CoordinatorScope
    spec: InstanceSpec
    runner_label: str
    blocked_ports: tuple[str, ...] = ()

    @classmethod
    def from_settings(cls, settings: Settings) -> "ProvisionRequest":
        require_inputs(
            settings,
            (
                "organization",
                "repo_name",
                "linode_token",
                "github_token",
                "root_password",
                "machine_type",
                "image",
            ),
        )
        return cls(
            scope=CoordinatorScope(settings.organization, settings.repo_name),
            spec=InstanceSpec(
                label=settings.runner_label,
                machine_type=settings.machine_type,
                image=settings.image,
                region=settings.region,
                root_password=settings.root_password,
                tags=tuple(settings.tag_list),
            ),
            runner_label=settings.runner_label,
            blocked_ports=tuple(settings.blocked_port_list),
        )


@dataclass(frozen=True)
class DecommissionRequest:
    scope: CoordinatorScope
    selector: RunnerSelector
    action: str = DESTROY
    runner_label: str | None = None
    wait: bool = True

    @property
    def deregister(self) -> bool:
        return self.action in (DESTROY, DESTROY_RUNNER)

    @property
    def delete(self) -> bool:
        return self.action in (DESTROY, DESTROY_MACHINE)

    @classmethod
    def from_settings(cls, settings: Settings, action: str = DESTROY, *, wait: bool = True) -> "DecommissionRequest":
        required = ["organization", "repo_name", "linode_token"]
        if action in (DESTROY, DESTROY_RUNNER):
            required.append("github_token")
        require_inputs(settings, required)

        selector = settings.selector()
        if selector is None:
            raise ConfigurationError("Either machine_id or search_phrase must be provided")
        return cls(
            scope=CoordinatorScope(settings.organization, settings.repo_name),
            selector=selector,
            action=action,
            runner_label=settings.runner_label if settings.has_custom_runner_label else None,
            wait=wait and settings.wait_for_deletion,
        )


class LifecycleOrchestrator:
    """Runs provision and decommission workflows against the given capabilities."""

    def __init__(
        self,
        provider: ComputeProvider,
        coordinator: Coordinator,
        executor: RemoteExecutor,
        context: RunContext | None = None,
        options: ProvisionOptions | None = None,
    ) -> None:
        self.provider = provider
        self.coordinator = coordinator
        self.executor = executor
        self.context = context or RunContext()
        self.options = options or ProvisionOptions()

        self.resolver = ResourceSearchResolver()
        self.firewalls = FirewallManager(provider, self.context)
        self.deregistrar = RunnerDeregistrar(coordinator, self.context)

        self._provision = ProvisionWorkflow(
            tokens=RegistrationTokenIssuer(coordinator, self.context),
            creator=RateLimitedCreator(provider, self.context),
            waiter=ReadinessWaiter(executor, self.context),
            installer=AgentInstaller(executor, self.context),
            firewalls=self.firewalls,
            deregistrar=self.deregistrar,
            provider=provider,
            context=self.context,
            options=self.options,
        )
        self._decommission = DecommissionWorkflow(
            resolver=self.resolver,
            deregistrar=self.deregistrar,
            firewalls=self.firewalls,
            provider=provider,
            context=self.context,
        )

    @classmethod
    def from_settings(cls, settings: Settings, context: RunContext | None = None) -> "LifecycleOrchestrator":
        from runnerfleet.clients.github import GitHubClient
        from runnerfleet.clients.linode import LinodeClient
        from runnerfleet.remote.ssh import SSHExecutor

        http = {
            "timeout": settings.http_timeout,
            "max_retries": settings.http_max_retries,
            "backoff_factor": settings.http_retry_backoff_factor,
        }
        return cls(
            provider=LinodeClient(settings.linode_token or "", base_url=settings.linode_base_url, **http),
            coordinator=GitHubClient(settings.github_token or "", base_url=settings.github_base_url, **http),
            executor=SSHExecutor(),
            context=context,
            options=ProvisionOptions(
                ssh_retries=settings.ssh_retries,
                ssh_retry_interval=settings.ssh_retry_interval,
                ssh_connect_timeout=settings.ssh_connect_timeout,
                create_timeout=settings.create_timeout,
                create_poll_interval=settings.create_poll_interval,
                install_timeout=settings.install_timeout,
                runner_version=settings.runner_version,
            ),
        )

    async def provision(self, request: ProvisionRequest) -> WorkflowOutcome:
        # Bad ports must fail before a token or an instance exists.
        if request.blocked_ports:
            validate_ports(request.blocked_ports)
        self.context.mask(request.spec.root_password, request.runner_label)
        self.context.log.info(
            "provision_started",
            owner=request.scope.owner,
            repo=request.scope.repo,
            machine_type=request.spec.machine_type,
            region=request.spec.region,
        )
        outcome = await self._provision.execute(
            request.scope,
            request.spec,
            request.runner_label,
            list(request.blocked_ports),
        )
        self._log_outcome(outcome)
        return outcome

    async def decommission(self, request: DecommissionRequest) -> WorkflowOutcome:
        if request.runner_label:
            self.context.mask(request.runner_label)
        action = request.action if request.wait else f"{request.action}{ASYNC_SUFFIX}"
        self.context.log.info("decommission_started", action=action, wait=request.wait)
        outcome = await self._decommission.execute(
            request.scope,
            request.selector,
            action=action,
            runner_label=request.runner_label,
            wait=request.wait,
            deregister=request.deregister,
            delete=request.delete,
        )
        self._log_outcome(outcome)
        return outcome

    async def destroy(
        self,
        scope: CoordinatorScope,
        selector: RunnerSelector,
        *,
        runner_label: str | None = None,
        wait: bool = True,
    ) -> WorkflowOutcome:
        return await self.decommission(DecommissionRequest(scope, selector, DESTROY, runner_label, wait))

    async def destroy_machine(
        self, scope: CoordinatorScope, selector: RunnerSelector, *, wait: bool = True
    ) -> WorkflowOutcome:
        return await self.decommission(DecommissionRequest(scope, selector, DESTROY_MACHINE, None, wait))

    async def destroy_runner(
        self, scope: CoordinatorScope, selector: RunnerSelector, *, runner_label: str | None = None
    ) -> WorkflowOutcome:
        return await self.decommission(DecommissionRequest(scope, selector, DESTROY_RUNNER, runner_label))

    async def run_action(self, action: str, settings: Settings) -> WorkflowOutcome:
        """Validate inputs for ``action`` and run the matching workflow."""
        base, wait = parse_action(action)
        if base == CREATE:
            return await self.provision(ProvisionRequest.from_settings(settings))
        return await self.decommission(DecommissionRequest.from_settings(settings, base, wait=wait))

    def _log_outcome(self, outcome: WorkflowOutcome) -> None:
        if outcome.success:
            self.context.log.info("workflow_succeeded", workflow=outcome.workflow, stage=outcome.stage)
        else:
            self.context.log.error(
                "workflow_failed",
                workflow=outcome.workflow,
                stage=outcome.stage,
                causes=[str(cause) for cause in outcome.causes],
            )
