"""Data model shared by the lifecycle components."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Union

from runnerfleet.core.errors import CompensationError, WorkflowError

FIREWALL_LABEL_PREFIX = "firewall-"


def firewall_label(instance_id: str | int) -> str:
    """Label of the firewall owned by an instance."""
    return f"{FIREWALL_LABEL_PREFIX}{instance_id}"


@dataclass(frozen=True)
class InstanceSpec:
    """Request body for a new instance."""

    label: str
    machine_type: str
    image: str
    region: str
    root_password: str = field(repr=False)
    tags: tuple[str, ...] = ()

    def to_payload(self) -> dict[str, Any]:
        return {
            "label": self.label,
            "type": self.machine_type,
            "image": self.image,
            "region": self.region,
            "root_pass": self.root_password,
            "tags": list(self.tags),
        }


@dataclass(frozen=True)
class InstanceRecord:
    """A compute instance as last reported by the provider."""

    id: str
    label: str
    tags: frozenset[str] = frozenset()
    address: str | None = None
    status: str = "unknown"

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "InstanceRecord":
        addresses = data.get("ipv4") or []
        return cls(
            id=str(data["id"]),
            label=data.get("label", ""),
            tags=frozenset(data.get("tags") or ()),
            address=addresses[0] if addresses else None,
            status=data.get("status", "unknown"),
        )

    def matches(self, phrase: str) -> bool:
        """Label contains or equals the phrase, or the phrase is one of the tags."""
        return phrase in self.label or self.label == phrase or phrase in self.tags


@dataclass(frozen=True)
class FirewallRule:
    """One inbound rule; the default policy set is accept, so rules drop."""

    port: int
    protocol: str = "TCP"
    action: str = "DROP"
    ipv4: tuple[str, ...] = ("0.0.0.0/0",)
    ipv6: tuple[str, ...] = ("::/0",)

    def to_payload(self) -> dict[str, Any]:
        return {
            "action": self.action,
            "protocol": self.protocol,
            "ports": str(self.port),
            "addresses": {"ipv4": list(self.ipv4), "ipv6": list(self.ipv6)},
        }

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "FirewallRule":
        addresses = data.get("addresses") or {}
        return cls(
            port=int(str(data.get("ports", "0")).split("-")[0] or 0),
            protocol=data.get("protocol", "TCP"),
            action=data.get("action", "DROP"),
            ipv4=tuple(addresses.get("ipv4") or ()),
            ipv6=tuple(addresses.get("ipv6") or ()),
        )


@dataclass(frozen=True)
class FirewallRecord:
    id: str
    label: str
    inbound: tuple[FirewallRule, ...] = ()

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "FirewallRecord":
        rules = (data.get("rules") or {}).get("inbound") or []
        return cls(
            id=str(data["id"]),
            label=data.get("label", ""),
            inbound=tuple(FirewallRule.from_api(rule) for rule in rules),
        )

    @property
    def blocked_ports(self) -> list[int]:
        return [rule.port for rule in self.inbound if rule.action == "DROP"]


@dataclass(frozen=True)
class RegistrationToken:
    """Short-lived secret used once by the runner's ``config.sh``."""

    value: str = field(repr=False)
    expires_at: str | None = None

    def __str__(self) -> str:
        return "***"


@dataclass(frozen=True)
class CoordinatorScope:
    """Repository whose runner pool the workers join."""

    owner: str
    repo: str

    @property
    def path(self) -> str:
        return f"/repos/{self.owner}/{self.repo}"

    @property
    def html_url(self) -> str:
        return f"https://github.com/{self.owner}/{self.repo}"


@dataclass(frozen=True)
class WorkerRecord:
    id: str
    name: str
    labels: frozenset[str] = frozenset()
    busy: bool = False

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "WorkerRecord":
        return cls(
            id=str(data["id"]),
            name=data.get("name", ""),
            labels=frozenset(label["name"] for label in data.get("labels") or ()),
            busy=bool(data.get("busy", False)),
        )


@dataclass(frozen=True)
class ExplicitId:
    id: str


@dataclass(frozen=True)
class SearchPhrase:
    text: str


RunnerSelector = Union[ExplicitId, SearchPhrase]


class ProvisionStage(str, Enum):
    REQUESTING_TOKEN = "RequestingToken"
    CREATING_INSTANCE = "CreatingInstance"
    AWAITING_REACHABILITY = "AwaitingReachability"
    INSTALLING_AGENT = "InstallingAgent"
    ATTACHING_FIREWALL = "AttachingFirewall"
    READY = "Ready"


class DecommissionStage(str, Enum):
    RESOLVING_TARGET = "ResolvingTarget"
    DEREGISTERING = "Deregistering"
    DELETING_FIREWALL = "DeletingFirewall"
    DELETING_INSTANCE = "DeletingInstance"
    DONE = "Done"


@dataclass(frozen=True)
class ProvisionOutput:
    """Observable result of a successful provision. All fields are sensitive."""

    instance_id: str
    address: str
    runner_label: str


@dataclass(frozen=True)
class StepFailure:
    step: str
    error: BaseException


@dataclass
class WorkflowOutcome:
    """Result of one workflow run.

    ``failures`` holds the causes of the failure itself; ``compensation``
    holds failures of cleanup steps run because of it. Both are reported,
    neither replaces the other.
    """

    workflow: str
    stage: str
    output: ProvisionOutput | None = None
    failures: list[StepFailure] = field(default_factory=list)
    compensation: list[StepFailure] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.failures and not self.compensation

    @property
    def causes(self) -> list[BaseException]:
        causes: list[BaseException] = [failure.error for failure in self.failures]
        if self.compensation:
            causes.append(CompensationError([(f.step, f.error) for f in self.compensation]))
        return causes

    def raise_for_failure(self) -> None:
        if not self.success:
            raise WorkflowError(self.workflow, self.stage, self.causes)

    def summary(self) -> str:
        if self.success:
            return f"{self.workflow} completed ({self.stage})"
        return WorkflowError(self.workflow, self.stage, self.causes).message
