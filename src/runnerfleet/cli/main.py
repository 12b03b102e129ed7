"""
runnerfleet CLI.

Usage:
    runnerfleet create [--ports 22,8080] [--from-action-inputs]
    runnerfleet destroy --search-phrase ci-runner
    runnerfleet destroy-machine-async --machine-id 12345
"""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import signal
import sys
from typing import Sequence

from runnerfleet.actions import add_mask, is_github_actions, set_failed, write_provision_outputs
from runnerfleet.cli import ux
from runnerfleet.config.settings import Settings, get_settings
from runnerfleet.core.errors import (
    ExitCode,
    RunnerFleetError,
    WorkflowError,
    describe_error,
    format_error_message,
    main_with_error_handling,
)
from runnerfleet.lifecycle.context import RunContext
from runnerfleet.lifecycle.models import WorkflowOutcome
from runnerfleet.lifecycle.orchestrator import ACTIONS, ASYNC_SUFFIX, LifecycleOrchestrator
from runnerfleet.logging import SecretMasker, configure_logging


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="runnerfleet",
        description="Provision and tear down ephemeral self-hosted CI runners",
    )
    parser.add_argument("action", choices=ACTIONS, help="Lifecycle action to run")
    target = parser.add_mutually_exclusive_group()
    target.add_argument("--machine-id", help="Explicit instance id to tear down")
    target.add_argument("--search-phrase", help="Label substring or tag identifying the instance")
    parser.add_argument("--runner-label", help="Runner label (default: self-hosted)")
    parser.add_argument("--ports", help="Comma separated TCP ports to block on the new instance")
    parser.add_argument("--no-wait", action="store_true", help="Submit deletes without confirming them")
    parser.add_argument(
        "--from-action-inputs",
        action="store_true",
        help="Read inputs from GitHub Action INPUT_* variables",
    )
    parser.add_argument("--log-level", help="Log level (default: INFO)")
    parser.add_argument("--show-traceback", action="store_true", help="Print tracebacks for unexpected errors")
    return parser


def load_settings(args: argparse.Namespace) -> Settings:
    return get_settings(
        from_action_inputs=args.from_action_inputs,
        machine_id=args.machine_id,
        search_phrase=args.search_phrase,
        runner_label=args.runner_label,
        blocked_ports=args.ports,
        wait_for_deletion=False if args.no_wait else None,
        log_level=args.log_level,
    )


async def execute(orchestrator: LifecycleOrchestrator, action: str, settings: Settings) -> WorkflowOutcome:
    """Run one action; SIGTERM cancels it at the next wait point."""
    cancel = asyncio.Event()
    orchestrator.context.cancel = cancel
    loop = asyncio.get_running_loop()
    with contextlib.suppress(NotImplementedError):
        loop.add_signal_handler(signal.SIGTERM, cancel.set)
    try:
        return await orchestrator.run_action(action, settings)
    finally:
        with contextlib.suppress(NotImplementedError):
            loop.remove_signal_handler(signal.SIGTERM)


def report(outcome: WorkflowOutcome, masker: SecretMasker, *, in_actions: bool) -> int:
    if outcome.success:
        ux.success(masker.redact(outcome.summary()))
        if outcome.workflow.endswith(ASYNC_SUFFIX):
            ux.warning("Deletes were submitted without waiting for confirmation")
        if outcome.output is not None and in_actions:
            write_provision_outputs(outcome.output)
            ux.info("Outputs written: machine_id, machine_ip, runner_label")
        return ExitCode.SUCCESS

    failure = WorkflowError(outcome.workflow, outcome.stage, outcome.causes)
    message = masker.redact(failure.message)
    ux.error(message)
    ux.print_table(
        f"{outcome.workflow} stopped at {outcome.stage}",
        ["Cause"],
        [[masker.redact(describe_error(cause))] for cause in failure.causes],
    )
    if in_actions:
        set_failed(message)
    return failure.exit_code


def run(args: argparse.Namespace) -> int:
    in_actions = is_github_actions()
    masker = SecretMasker(listeners=(add_mask,) if in_actions else ())
    settings = load_settings(args)
    configure_logging(settings.log_level, masker=masker)
    for value in settings.sensitive_values():
        masker.add(value)

    ux.header(f"runnerfleet {args.action}")
    try:
        orchestrator = LifecycleOrchestrator.from_settings(settings, RunContext(masker=masker))
        outcome = asyncio.run(execute(orchestrator, args.action, settings))
    except RunnerFleetError as exc:
        ux.error(masker.redact(format_error_message(exc)))
        if in_actions:
            set_failed(masker.redact(exc.message))
        raise
    return report(outcome, masker, in_actions=in_actions)


def main(argv: Sequence[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    command = main_with_error_handling(show_traceback=args.show_traceback)(run)
    sys.exit(command(args))


if __name__ == "__main__":
    main()
