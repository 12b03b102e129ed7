from runnerfleet.remote.scripts import RunnerScriptOptions, render_runner_script
from runnerfleet.remote.ssh import SSHExecutor

__all__ = ["RunnerScriptOptions", "SSHExecutor", "render_runner_script"]
