"""Remote command execution over the system ``ssh`` client.

``SubprocessSSHExecutor`` builds an ``ssh`` command line and runs it via
``subprocess.run``. Every call is bounded by a timeout, applied both to
the TCP connect (``ConnectTimeout``) and to the whole process.
"""

from __future__ import annotations

import logging
import shlex
import subprocess
from pathlib import Path
from typing import Protocol, runtime_checkable

logger = logging.getLogger(__name__)


class RemoteFetchError(Exception):
    """Raised when a remote host cannot be reached or a remote command fails."""

    def __init__(self, host: str, message: str) -> None:
        super().__init__(f"{host}: {message}")
        self.host = host


@runtime_checkable
class SSHExecutor(Protocol):
    """Protocol for running a shell command on a remote host."""

    def run(
        self,
        host: str,
        command: str,
        *,
        user: str,
        port: int = 22,
        identity: str | Path | None = None,
        timeout: float = 5,
    ) -> str:
        """Run *command* on *host* and return its stdout.

        Raises:
            RemoteFetchError: On connection failure, timeout or non-zero exit.
        """
        ...


def build_ssh_args(
    host: str,
    command: str,
    *,
    user: str,
    port: int = 22,
    identity: str | Path | None = None,
    timeout: float = 5,
    ssh_path: str = "ssh",
) -> list[str]:
    """Build a non-interactive ssh command line."""
    args: list[str] = [
        ssh_path,
        "-p", str(port),
        "-o", "BatchMode=yes",
        "-o", f"ConnectTimeout={max(1, int(timeout))}",
        "-o", "StrictHostKeyChecking=accept-new",
    ]
    if identity:
        args.extend(["-i", str(identity)])
    args.append(f"{user}@{host}")
    args.append(command)
    return args


class SubprocessSSHExecutor:
    """SSH executor backed by the local ``ssh`` binary."""

    def __init__(self, ssh_path: str = "ssh") -> None:
        self._ssh_path = ssh_path

    def run(
        self,
        host: str,
        command: str,
        *,
        user: str,
        port: int = 22,
        identity: str | Path | None = None,
        timeout: float = 5,
    ) -> str:
        args = build_ssh_args(
            host, command,
            user=user, port=port, identity=identity,
            timeout=timeout, ssh_path=self._ssh_path,
        )
        logger.debug("ssh %s@%s:%d: %s", user, host, port, command)

        try:
            result = subprocess.run(
                args,
                capture_output=True,
                text=True,
                timeout=timeout,
            )
        except subprocess.TimeoutExpired as e:
            raise RemoteFetchError(host, f"Command timed out after {timeout}s") from e
        except OSError as e:
            raise RemoteFetchError(host, f"Cannot run {self._ssh_path}: {e}") from e
        except UnicodeDecodeError as e:
            raise RemoteFetchError(host, f"Output is not valid UTF-8: {e}") from e

        if result.returncode != 0:
            stderr = result.stderr.strip() or f"exit status {result.returncode}"
            raise RemoteFetchError(host, stderr)
        return result.stdout


def read_remote_file(
    executor: SSHExecutor,
    host: str,
    path: str,
    *,
    user: str,
    port: int = 22,
    identity: str | Path | None = None,
    timeout: float = 5,
) -> str:
    """Return the text content of *path* on *host*."""
    return executor.run(
        host, f"cat {shlex.quote(path)}",
        user=user, port=port, identity=identity, timeout=timeout,
    )
