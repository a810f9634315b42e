"""SSH access to the hosts of an imported cluster."""

from clusterops.ssh.executor import (
    RemoteFetchError,
    SSHExecutor,
    SubprocessSSHExecutor,
    read_remote_file,
)

__all__ = [
    "RemoteFetchError",
    "SSHExecutor",
    "SubprocessSSHExecutor",
    "read_remote_file",
]
