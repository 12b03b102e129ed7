"""
Unified error handling for runnerfleet.

Every failure the lifecycle components can surface is a ``RunnerFleetError``
subclass carrying an exit code, so the CLI can turn any terminal report into
a process status without inspecting messages.

Exit Codes:
- 0: Success
- 10: Configuration error
- 11: Provider error (compute API failure, throttling exhausted)
- 12: Validation error (bad port list)
- 13: Coordinator error (CI service failure)
- 14: Selector error (target not found or ambiguous)
- 15: Instance unreachable
- 20: Workflow failed (stage + aggregated causes)
- 127: Unknown/internal error
- 130: Cancelled
"""

from __future__ import annotations

import functools
import sys
import traceback
from enum import IntEnum
from typing import Any, Callable, Sequence, TypeVar

import structlog

logger = structlog.get_logger()


class ExitCode(IntEnum):
    """Standardized exit codes for CLI commands."""

    SUCCESS = 0
    CONFIG_ERROR = 10
    PROVIDER_ERROR = 11
    VALIDATION_ERROR = 12
    COORDINATOR_ERROR = 13
    SELECTOR_ERROR = 14
    UNREACHABLE = 15
    WORKFLOW_FAILED = 20
    UNKNOWN_ERROR = 127
    CANCELLED = 130


class RunnerFleetError(Exception):
    """Base exception for runnerfleet errors with exit code support."""

    exit_code: ExitCode = ExitCode.UNKNOWN_ERROR
    show_traceback: bool = False

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ConfigurationError(RunnerFleetError):
    """Raised when required inputs are missing or inconsistent."""

    exit_code = ExitCode.CONFIG_ERROR


class ProviderError(RunnerFleetError):
    """Raised when the compute provider rejects a request."""

    exit_code = ExitCode.PROVIDER_ERROR

    @property
    def status_code(self) -> int | None:
        return self.details.get("status")


class ThrottledError(ProviderError):
    """A single rate-limit rejection from the provider. Retryable."""


class ThrottleBudgetExhaustedError(ProviderError):
    """Every attempt allowed by the creation budget was throttled."""

    def __init__(self, attempts: int, budget: float):
        super().__init__(
            f"Instance creation still throttled after {attempts} attempts ({budget:g}s budget)",
            details={"attempts": attempts, "budget": budget},
        )
        self.attempts = attempts


class CoordinatorError(RunnerFleetError):
    """Raised when the CI coordinator rejects a request."""

    exit_code = ExitCode.COORDINATOR_ERROR

    @property
    def status_code(self) -> int | None:
        return self.details.get("status")


class ValidationError(RunnerFleetError):
    """Raised for invalid caller input; lists every offending value."""

    exit_code = ExitCode.VALIDATION_ERROR

    def __init__(self, message: str, invalid: Sequence[str] = (), details: dict[str, Any] | None = None):
        super().__init__(message, details)
        self.invalid = list(invalid)


class SelectorNotFoundError(RunnerFleetError):
    """No resource matched the selector."""

    exit_code = ExitCode.SELECTOR_ERROR


class AmbiguousSelectorError(RunnerFleetError):
    """More than one resource matched the selector."""

    exit_code = ExitCode.SELECTOR_ERROR

    def __init__(self, message: str, matches: Sequence[str] = ()):
        super().__init__(message, details={"match_count": len(matches)})
        self.matches = list(matches)


class UnreachableError(RunnerFleetError):
    """The readiness probe never succeeded within its retry budget."""

    exit_code = ExitCode.UNREACHABLE


class AgentInstallError(RunnerFleetError):
    """Remote installation of the runner agent failed."""

    exit_code = ExitCode.PROVIDER_ERROR


class WorkflowCancelledError(RunnerFleetError):
    """An external supervisor cancelled the workflow at a wait point."""

    exit_code = ExitCode.CANCELLED


class CompensationError(RunnerFleetError):
    """One or more cleanup steps failed after a provisioning failure."""

    exit_code = ExitCode.WORKFLOW_FAILED

    def __init__(self, failures: Sequence[tuple[str, BaseException]]):
        summary = "; ".join(f"{step}: {error}" for step, error in failures)
        super().__init__(f"Cleanup failed ({summary})", details={"steps": [step for step, _ in failures]})
        self.failures = list(failures)


class WorkflowError(RunnerFleetError):
    """Terminal report of a failed workflow: the stage reached and every cause."""

    exit_code = ExitCode.WORKFLOW_FAILED

    def __init__(self, workflow: str, stage: str, causes: Sequence[BaseException]):
        self.workflow = workflow
        self.stage = stage
        self.causes = list(causes)
        reasons = "; ".join(describe_error(cause) for cause in self.causes) or "unknown cause"
        super().__init__(
            f"{workflow} failed at {stage}: {reasons}",
            details={"stage": stage, "cause_count": len(self.causes)},
        )
        if len(self.causes) == 1 and isinstance(self.causes[0], RunnerFleetError):
            self.exit_code = self.causes[0].exit_code


def describe_error(error: BaseException) -> str:
    """One-line description naming the error kind."""
    message = error.message if isinstance(error, RunnerFleetError) else str(error)
    return f"{type(error).__name__}: {message}"


# Type variable for decorated functions
F = TypeVar("F", bound=Callable[..., int])


def main_with_error_handling(
    *,
    show_traceback: bool = False,
    log_errors: bool = True,
) -> Callable[[F], F]:
    """
    Wrap a CLI command so every failure becomes a process exit status.

    Args:
        show_traceback: Print the traceback of unexpected errors to stderr
        log_errors: Emit a structured ``command_error`` event per failure

    A ``RunnerFleetError`` exits with its own code, an interrupt with 130
    and anything else with 127.
    """

    def decorator(func: F) -> F:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> int:
            try:
                return func(*args, **kwargs)
            except RunnerFleetError as e:
                if log_errors:
                    logger.error(
                        "command_error",
                        error_type=type(e).__name__,
                        message=e.message,
                        exit_code=int(e.exit_code),
                        **e.details,
                    )
                if e.show_traceback or show_traceback:
                    traceback.print_exc(file=sys.stderr)
                return e.exit_code
            except KeyboardInterrupt:
                if log_errors:
                    logger.info("command_interrupted")
                return ExitCode.CANCELLED
            except Exception as e:
                if log_errors:
                    logger.error(
                        "unexpected_error",
                        error_type=type(e).__name__,
                        message=str(e),
                        exit_code=int(ExitCode.UNKNOWN_ERROR),
                    )
                if show_traceback:
                    traceback.print_exc(file=sys.stderr)
                return ExitCode.UNKNOWN_ERROR

        return wrapper  # type: ignore[return-value]

    return decorator


def format_error_message(error: RunnerFleetError) -> str:
    """Message followed by its details as ``key=value`` pairs."""
    msg = error.message
    if error.details:
        detail_str = ", ".join(f"{k}={v}" for k, v in error.details.items())
        msg = f"{msg} ({detail_str})"
    return msg
