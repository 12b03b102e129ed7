from runnerfleet.workflows.decommission import DecommissionState, DecommissionWorkflow
from runnerfleet.workflows.provision import ProvisionOptions, ProvisionState, ProvisionWorkflow

__all__ = [
    "DecommissionState",
    "DecommissionWorkflow",
    "ProvisionOptions",
    "ProvisionState",
    "ProvisionWorkflow",
]
