from __future__ import annotations

from runnerfleet.core.errors import AgentInstallError
from runnerfleet.lifecycle.context import RunContext
from runnerfleet.lifecycle.models import CoordinatorScope, RegistrationToken
from runnerfleet.lifecycle.protocols import RemoteExecutor
from runnerfleet.remote.scripts import RunnerScriptOptions, render_runner_script

OUTPUT_TAIL = 2000


class AgentInstaller:
    """Runs the runner install transcript on a reachable instance.

    Decides when to install and what a failure means; the transcript itself
    comes from ``render_runner_script``.
    """

    def __init__(self, executor: RemoteExecutor, context: RunContext) -> None:
        self._executor = executor
        self._context = context

    async def install(
        self,
        address: str,
        credential: str,
        *,
        scope: CoordinatorScope,
        token: RegistrationToken,
        runner_label: str,
        runner_version: str,
        timeout: float,
    ) -> None:
        self._context.check_cancelled()
        log = self._context.log.bind(address=address, runner_label=runner_label)
        script = render_runner_script(
            RunnerScriptOptions(
                repo_url=scope.html_url,
                token=token.value,
                label=runner_label,
                version=runner_version,
            )
        )
        log.info("runner_setup_started", runner_version=runner_version)
        result = await self._executor.run_script(address, credential, script, timeout=timeout)
        if not result.ok:
            output = self._context.masker.redact(result.output[-OUTPUT_TAIL:])
            log.error("runner_setup_failed", exit_status=result.exit_status, output=output)
            raise AgentInstallError(
                f"Runner setup exited with status {result.exit_status}",
                details={"exit_status": result.exit_status},
            )
        log.info("runner_setup_completed")
