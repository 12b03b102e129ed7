"""Lifecycle components for provisioning and tearing down CI runner instances."""

from runnerfleet.lifecycle.models import (
    CoordinatorScope,
    DecommissionStage,
    ExplicitId,
    FirewallRecord,
    FirewallRule,
    InstanceRecord,
    InstanceSpec,
    ProvisionOutput,
    ProvisionStage,
    RegistrationToken,
    RunnerSelector,
    SearchPhrase,
    StepFailure,
    WorkerRecord,
    WorkflowOutcome,
    firewall_label,
)

__all__ = [
    "CoordinatorScope",
    "DecommissionStage",
    "ExplicitId",
    "FirewallRecord",
    "FirewallRule",
    "InstanceRecord",
    "InstanceSpec",
    "ProvisionOutput",
    "ProvisionStage",
    "RegistrationToken",
    "RunnerSelector",
    "SearchPhrase",
    "StepFailure",
    "WorkerRecord",
    "WorkflowOutcome",
    "firewall_label",
]
