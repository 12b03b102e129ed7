"""
GitHub Actions workflow commands.

When running as an action step, secrets are masked in the job log with
``::add-mask::``, outputs are appended to the ``$GITHUB_OUTPUT`` file and
failures are annotated with ``::error::``.
"""

from __future__ import annotations

import os
import sys
import uuid
from typing import TextIO

from runnerfleet.lifecycle.models import ProvisionOutput


def is_github_actions() -> bool:
    return os.environ.get("GITHUB_ACTIONS", "").lower() == "true"


def _escape_data(value: str) -> str:
    return value.replace("%", "%25").replace("\r", "%0D").replace("\n", "%0A")


def add_mask(value: str, stream: TextIO | None = None) -> None:
    if value:
        print(f"::add-mask::{_escape_data(str(value))}", file=stream or sys.stdout, flush=True)


def set_failed(message: str, stream: TextIO | None = None) -> None:
    print(f"::error::{_escape_data(message)}", file=stream or sys.stdout, flush=True)


def set_output(name: str, value: str) -> None:
    """Append ``name=value`` to ``$GITHUB_OUTPUT``; no-op outside Actions."""
    path = os.environ.get("GITHUB_OUTPUT")
    if not path:
        return
    value = str(value)
    with open(path, "a", encoding="utf-8") as fh:
        if "\n" in value:
            delimiter = f"ghadelimiter_{uuid.uuid4().hex}"
            fh.write(f"{name}<<{delimiter}\n{value}\n{delimiter}\n")
        else:
            fh.write(f"{name}={value}\n")


def write_provision_outputs(output: ProvisionOutput) -> None:
    set_output("machine_id", output.instance_id)
    set_output("machine_ip", output.address)
    set_output("runner_label", output.runner_label)
