"""Shell transcript that installs and starts a GitHub Actions runner."""

from __future__ import annotations

import shlex
from dataclasses import dataclass, field

RUNNER_DOWNLOAD_URL = (
    "https://github.com/actions/runner/releases/download/v{version}/actions-runner-linux-x64-{version}.tar.gz"
)


@dataclass(frozen=True)
class RunnerScriptOptions:
    repo_url: str
    token: str = field(repr=False)
    label: str
    version: str = "2.317.0"
    workdir: str = "actions-runner"


def render_runner_script(options: RunnerScriptOptions) -> str:
    """Render the install transcript; every inserted value is shell-quoted."""
    archive = f"actions-runner-linux-x64-{options.version}.tar.gz"
    url = RUNNER_DOWNLOAD_URL.format(version=options.version)
    q = shlex.quote
    lines = [
        "set -e",
        'export RUNNER_ALLOW_RUNASROOT="1"',
        "export DEBIAN_FRONTEND=noninteractive",
        "apt-get update",
        "apt-get install -y libssl-dev curl tar",
        f"mkdir -p {q(options.workdir)} && cd {q(options.workdir)}",
        f"curl -sSfL -o {q(archive)} {q(url)}",
        f"tar xzf ./{q(archive)}",
        (
            f"./config.sh --unattended --url {q(options.repo_url)} --token {q(options.token)}"
            f" --labels {q(options.label)} --name {q(options.label)}"
        ),
        "nohup ./run.sh > runner.log 2>&1 &",
    ]
    return "\n".join(lines) + "\n"
