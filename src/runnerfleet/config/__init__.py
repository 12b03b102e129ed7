"""
runnerfleet configuration.

Pydantic-based settings from environment variables, a ``.env`` file, or
GitHub Action step inputs.
"""

from runnerfleet.config.settings import (
    DEFAULT_RUNNER_LABEL,
    ActionInputs,
    Settings,
    get_settings,
    split_csv,
)

__all__ = [
    "DEFAULT_RUNNER_LABEL",
    "ActionInputs",
    "Settings",
    "get_settings",
    "split_csv",
]
