"""Stub collaborators standing in for the provider, coordinator and SSH."""

from __future__ import annotations

from runnerfleet.lifecycle.models import (
    CoordinatorScope,
    FirewallRecord,
    InstanceRecord,
    InstanceSpec,
    RegistrationToken,
    WorkerRecord,
)
from runnerfleet.lifecycle.protocols import RemoteResult

SCOPE = CoordinatorScope("acme", "widgets")


def make_spec(**overrides) -> InstanceSpec:
    values = {
        "label": "ci-runner-01",
        "machine_type": "g6-standard-2",
        "image": "linode/ubuntu22.04",
        "region": "us-east",
        "root_password": "s3cret-root-pass",
        "tags": ("ci",),
    }
    values.update(overrides)
    return InstanceSpec(**values)


class StubProvider:
    def __init__(
        self,
        instances: list[InstanceRecord] | None = None,
        firewalls: list[FirewallRecord] | None = None,
        create_results: list | None = None,
    ) -> None:
        self.instances = {record.id: record for record in instances or []}
        self.firewalls = {firewall.id: firewall for firewall in firewalls or []}
        self.create_results = list(create_results or [])
        self.delete_instance_error: Exception | None = None
        self.delete_firewall_error: Exception | None = None
        self.create_firewall_error: Exception | None = None
        self.calls: list[tuple] = []

    @property
    def call_names(self) -> list[str]:
        return [call[0] for call in self.calls]

    async def create_instance(self, spec: InstanceSpec) -> InstanceRecord:
        self.calls.append(("create_instance", spec.label))
        if self.create_results:
            result = self.create_results.pop(0)
        else:
            result = InstanceRecord(
                id=str(1000 + len(self.instances)),
                label=spec.label,
                tags=frozenset(spec.tags),
                address="203.0.113.10",
                status="provisioning",
            )
        if isinstance(result, Exception):
            raise result
        self.instances[result.id] = result
        return result

    async def iter_instances(self):
        self.calls.append(("list_instances",))
        for record in list(self.instances.values()):
            yield record

    async def delete_instance(self, instance_id: str) -> None:
        self.calls.append(("delete_instance", instance_id))
        if self.delete_instance_error is not None:
            raise self.delete_instance_error
        self.instances.pop(instance_id, None)

    async def submit_delete_instance(self, instance_id: str) -> None:
        self.calls.append(("submit_delete_instance", instance_id))
        self.instances.pop(instance_id, None)

    async def iter_firewalls(self):
        self.calls.append(("list_firewalls",))
        for firewall in list(self.firewalls.values()):
            yield firewall

    async def create_firewall(self, label, inbound, *, instance_ids):
        self.calls.append(("create_firewall", label, tuple(instance_ids)))
        if self.create_firewall_error is not None:
            raise self.create_firewall_error
        firewall = FirewallRecord(id=f"fw-{len(self.firewalls) + 1}", label=label, inbound=tuple(inbound))
        self.firewalls[firewall.id] = firewall
        return firewall

    async def update_firewall_rules(self, firewall_id, inbound):
        self.calls.append(("update_firewall_rules", firewall_id))
        current = self.firewalls[firewall_id]
        updated = FirewallRecord(id=current.id, label=current.label, inbound=tuple(inbound))
        self.firewalls[firewall_id] = updated
        return updated

    async def delete_firewall(self, firewall_id: str) -> None:
        self.calls.append(("delete_firewall", firewall_id))
        if self.delete_firewall_error is not None:
            raise self.delete_firewall_error
        self.firewalls.pop(firewall_id, None)

    async def submit_delete_firewall(self, firewall_id: str) -> None:
        self.calls.append(("submit_delete_firewall", firewall_id))
        self.firewalls.pop(firewall_id, None)


class StubCoordinator:
    def __init__(self, runners: list[WorkerRecord] | None = None, token: str = "AABBCCtoken") -> None:
        self.runners = list(runners or [])
        self.token = token
        self.token_error: Exception | None = None
        self.delete_error: Exception | None = None
        self.calls: list[tuple] = []

    @property
    def call_names(self) -> list[str]:
        return [call[0] for call in self.calls]

    async def create_registration_token(self, scope: CoordinatorScope) -> RegistrationToken:
        self.calls.append(("create_registration_token", scope.owner, scope.repo))
        if self.token_error is not None:
            raise self.token_error
        return RegistrationToken(self.token, expires_at="2026-10-19T12:00:00Z")

    async def iter_runners(self, scope: CoordinatorScope):
        self.calls.append(("list_runners",))
        for runner in list(self.runners):
            yield runner

    async def delete_runner(self, scope: CoordinatorScope, runner_id: str) -> None:
        self.calls.append(("delete_runner", runner_id))
        if self.delete_error is not None:
            raise self.delete_error
        self.runners = [runner for runner in self.runners if runner.id != runner_id]


class StubExecutor:
    def __init__(self, probes: list[bool] | None = None, result: RemoteResult | None = None) -> None:
        self.probes = list(probes if probes is not None else [True])
        self.result = result or RemoteResult(0, "runner configured")
        self.probe_calls: list[str] = []
        self.scripts: list[str] = []

    async def probe(self, address: str, credential: str, *, timeout: float) -> bool:
        self.probe_calls.append(address)
        if len(self.probes) > 1:
            return self.probes.pop(0)
        return self.probes[0]

    async def run_script(self, address: str, credential: str, script: str, *, timeout: float) -> RemoteResult:
        self.scripts.append(script)
        return self.result


def runner(runner_id: str, name: str, *labels: str, busy: bool = False) -> WorkerRecord:
    return WorkerRecord(id=runner_id, name=name, labels=frozenset(labels or (name,)), busy=busy)
