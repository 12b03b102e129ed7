"""
Application settings using Pydantic.

Provides environment-based configuration loading with RUNNERFLEET_ prefix,
plus a variant that reads GitHub Action step inputs (INPUT_ prefix).
"""

from __future__ import annotations

from pydantic_settings import BaseSettings

from runnerfleet.lifecycle.models import ExplicitId, RunnerSelector, SearchPhrase

DEFAULT_RUNNER_LABEL = "self-hosted"


def split_csv(value: str | None) -> list[str]:
    """Split a comma separated input, trimming entries and dropping empties."""
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


class Settings(BaseSettings):
    """Application settings."""

    # Compute provider
    linode_token: str | None = None
    linode_base_url: str = "https://api.linode.com/v4"

    # CI coordinator
    github_token: str | None = None
    github_base_url: str = "https://api.github.com"
    organization: str | None = None
    repo_name: str | None = None

    # Target selection
    machine_id: str | None = None
    search_phrase: str | None = None
    runner_label: str = DEFAULT_RUNNER_LABEL

    # Instance spec
    root_password: str | None = None
    machine_type: str | None = None
    image: str | None = None
    region: str = "us-east"
    tags: str = ""

    # Network isolation
    blocked_ports: str = ""

    # Readiness polling
    ssh_retries: int = 10
    ssh_retry_interval: float = 30.0
    ssh_connect_timeout: float = 30.0

    # Rate-limited creation
    create_timeout: float = 300.0
    create_poll_interval: float = 10.0

    # Agent installation
    install_timeout: float = 900.0
    runner_version: str = "2.317.0"

    # Teardown
    wait_for_deletion: bool = True

    # HTTP client settings
    http_timeout: float = 30.0
    http_max_retries: int = 3
    http_retry_backoff_factor: float = 0.5

    # Logging
    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        env_prefix = "RUNNERFLEET_"
        env_ignore_empty = True
        extra = "ignore"

    @property
    def tag_list(self) -> list[str]:
        return split_csv(self.tags)

    @property
    def blocked_port_list(self) -> list[str]:
        return split_csv(self.blocked_ports)

    @property
    def has_custom_runner_label(self) -> bool:
        return self.runner_label != DEFAULT_RUNNER_LABEL

    def selector(self) -> RunnerSelector | None:
        """Selector for teardown; an explicit id wins over a search phrase."""
        if self.machine_id:
            return ExplicitId(self.machine_id.strip())
        if self.search_phrase:
            return SearchPhrase(self.search_phrase)
        return None

    def sensitive_values(self) -> list[str]:
        return [value for value in (self.linode_token, self.github_token, self.root_password) if value]


class ActionInputs(Settings):
    """Settings read from GitHub Action step inputs (``INPUT_<NAME>``)."""

    class Config:
        env_file = None
        env_prefix = "INPUT_"
        env_ignore_empty = True
        extra = "ignore"


def get_settings(*, from_action_inputs: bool = False, **overrides: object) -> Settings:
    """Build settings from the environment, applying explicit overrides."""
    cls = ActionInputs if from_action_inputs else Settings
    return cls(**{key: value for key, value in overrides.items() if value is not None})
