"""SSH probe and script execution over paramiko."""

from __future__ import annotations

import asyncio

import paramiko
import structlog

from runnerfleet.core.errors import UnreachableError
from runnerfleet.lifecycle.protocols import RemoteResult

logger = structlog.get_logger()

SSH_PORT = 22
PROBE_COMMAND = "echo ok"


class SSHExecutor:
    """Password-authenticated SSH as ``root``.

    Fresh instances have unknown host keys, so any key is accepted. Blocking
    paramiko calls run in a worker thread.
    """

    def __init__(self, username: str = "root", port: int = SSH_PORT) -> None:
        self.username = username
        self.port = port

    def _connect(self, address: str, credential: str, timeout: float) -> paramiko.SSHClient:
        client = paramiko.SSHClient()
        client.set_missing_host_key_policy(paramiko.AutoAddPolicy())
        try:
            client.connect(
                address,
                port=self.port,
                username=self.username,
                password=credential,
                timeout=timeout,
                banner_timeout=timeout,
                auth_timeout=timeout,
                allow_agent=False,
                look_for_keys=False,
            )
        except BaseException:
            client.close()
            raise
        return client

    async def probe(self, address: str, credential: str, *, timeout: float) -> bool:
        return await asyncio.to_thread(self._probe_sync, address, credential, timeout)

    def _probe_sync(self, address: str, credential: str, timeout: float) -> bool:
        try:
            client = self._connect(address, credential, timeout)
        except (paramiko.SSHException, OSError, EOFError) as exc:
            logger.debug("ssh_probe_failed", error_type=type(exc).__name__)
            return False
        try:
            _, stdout, _ = client.exec_command(PROBE_COMMAND, timeout=timeout)
            return stdout.channel.recv_exit_status() == 0
        except (paramiko.SSHException, OSError, EOFError) as exc:
            logger.debug("ssh_probe_failed", error_type=type(exc).__name__)
            return False
        finally:
            client.close()

    async def run_script(
        self,
        address: str,
        credential: str,
        script: str,
        *,
        timeout: float,
    ) -> RemoteResult:
        return await asyncio.to_thread(self._run_script_sync, address, credential, script, timeout)

    def _run_script_sync(self, address: str, credential: str, script: str, timeout: float) -> RemoteResult:
        try:
            client = self._connect(address, credential, timeout)
        except (paramiko.SSHException, OSError, EOFError) as exc:
            raise UnreachableError(f"SSH connection failed: {type(exc).__name__}") from exc
        try:
            stdin, stdout, _ = client.exec_command("bash -s", timeout=timeout)
            stdout.channel.set_combine_stderr(True)
            stdin.write(script)
            stdin.channel.shutdown_write()
            output = stdout.read().decode("utf-8", errors="replace")
            exit_status = stdout.channel.recv_exit_status()
        except (paramiko.SSHException, OSError, EOFError) as exc:
            raise UnreachableError(f"SSH session failed: {type(exc).__name__}") from exc
        finally:
            client.close()
        return RemoteResult(exit_status=exit_status, output=output)
