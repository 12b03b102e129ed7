"""Capabilities the lifecycle core consumes from its collaborators."""

from __future__ import annotations

from dataclasses import dataclass
from typing import AsyncIterator, Protocol

from runnerfleet.lifecycle.models import (
    CoordinatorScope,
    FirewallRecord,
    FirewallRule,
    InstanceRecord,
    InstanceSpec,
    RegistrationToken,
    WorkerRecord,
)


@dataclass(frozen=True)
class RemoteResult:
    exit_status: int
    output: str = ""

    @property
    def ok(self) -> bool:
        return self.exit_status == 0


class ComputeProvider(Protocol):
    """Instance and firewall operations of the compute provider."""

    async def create_instance(self, spec: InstanceSpec) -> InstanceRecord:
        ...

    def iter_instances(self) -> AsyncIterator[InstanceRecord]:
        ...

    async def delete_instance(self, instance_id: str) -> None:
        ...

    async def submit_delete_instance(self, instance_id: str) -> None:
        ...

    def iter_firewalls(self) -> AsyncIterator[FirewallRecord]:
        ...

    async def create_firewall(
        self,
        label: str,
        inbound: list[FirewallRule],
        *,
        instance_ids: list[str],
    ) -> FirewallRecord:
        ...

    async def update_firewall_rules(self, firewall_id: str, inbound: list[FirewallRule]) -> FirewallRecord:
        ...

    async def delete_firewall(self, firewall_id: str) -> None:
        ...

    async def submit_delete_firewall(self, firewall_id: str) -> None:
        ...


class Coordinator(Protocol):
    """Runner registration operations of the CI coordinator."""

    async def create_registration_token(self, scope: CoordinatorScope) -> RegistrationToken:
        ...

    def iter_runners(self, scope: CoordinatorScope) -> AsyncIterator[WorkerRecord]:
        ...

    async def delete_runner(self, scope: CoordinatorScope, runner_id: str) -> None:
        ...


class RemoteExecutor(Protocol):
    """Reachability probe and script execution on a remote host."""

    async def probe(self, address: str, credential: str, *, timeout: float) -> bool:
        ...

    async def run_script(
        self,
        address: str,
        credential: str,
        script: str,
        *,
        timeout: float,
    ) -> RemoteResult:
        ...
