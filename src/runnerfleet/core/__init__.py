"""Core modules for runnerfleet - centralized definitions and utilities."""

from runnerfleet.core.errors import (
    AgentInstallError,
    AmbiguousSelectorError,
    CompensationError,
    ConfigurationError,
    CoordinatorError,
    ExitCode,
    ProviderError,
    RunnerFleetError,
    SelectorNotFoundError,
    ThrottleBudgetExhaustedError,
    ThrottledError,
    UnreachableError,
    ValidationError,
    WorkflowCancelledError,
    WorkflowError,
    describe_error,
    format_error_message,
    main_with_error_handling,
)

__all__ = [
    "ExitCode",
    "RunnerFleetError",
    "ConfigurationError",
    "ProviderError",
    "ThrottledError",
    "ThrottleBudgetExhaustedError",
    "CoordinatorError",
    "ValidationError",
    "SelectorNotFoundError",
    "AmbiguousSelectorError",
    "UnreachableError",
    "AgentInstallError",
    "WorkflowCancelledError",
    "CompensationError",
    "WorkflowError",
    "describe_error",
    "format_error_message",
    "main_with_error_handling",
]
