"""Import live component configuration from the deployment hosts.

For every instance with a TOML config file the importer reads
``<deploy_dir>/conf/<role>.toml`` over SSH, keeps a raw copy under the
cluster's ``config-cache`` directory and stores the parsed table on the
instance so it is persisted with the cluster metadata.
"""

from __future__ import annotations

import logging
import tomllib

from clusterops.models import ClusterMeta, ComponentRole, InstanceSpec
from clusterops.ssh.executor import RemoteFetchError, SSHExecutor, read_remote_file
from clusterops.store.meta import MetaStore
from clusterops.utils.fs import create_dir

logger = logging.getLogger(__name__)

CONFIG_CACHE_DIR = "config-cache"

CONFIGURABLE_ROLES = frozenset({
    ComponentRole.TIDB,
    ComponentRole.TIKV,
    ComponentRole.PD,
    ComponentRole.PUMP,
    ComponentRole.DRAINER,
})


def remote_config_path(instance: InstanceSpec) -> str:
    return f"{instance.deploy_dir}/conf/{instance.role}.toml"


def cache_file_name(instance: InstanceSpec) -> str:
    return f"{instance.role}-{instance.host}-{instance.port}.toml"


class ConfigImporter:
    """Fetches per-instance configuration and merges it into ``ClusterMeta``."""

    def __init__(self, store: MetaStore, executor: SSHExecutor) -> None:
        self._store = store
        self._executor = executor

    def import_config(self, name: str, meta: ClusterMeta, timeout: float) -> None:
        """Fill ``instance.config`` for every configurable instance of *meta*.

        Uses the SSH key already copied to ``<store>/<name>/ssh/id_rsa``.

        Raises:
            RemoteFetchError: If a host cannot be read or returns invalid TOML.
            OSError: If the config cache cannot be written.
        """
        identity = self._store.cluster_path(name, "ssh", "id_rsa")
        cache_dir = self._store.cluster_path(name, CONFIG_CACHE_DIR)

        for instance in meta.topology:
            if instance.role not in CONFIGURABLE_ROLES:
                continue

            path = remote_config_path(instance)
            logger.info("Fetching %s from %s", path, instance.id)
            text = read_remote_file(
                self._executor, instance.host, path,
                user=meta.user, port=instance.ssh_port,
                identity=identity, timeout=timeout,
            )

            try:
                instance.config = tomllib.loads(text)
            except tomllib.TOMLDecodeError as e:
                raise RemoteFetchError(instance.host, f"Invalid config in {path}: {e}") from e

            create_dir(cache_dir)
            (cache_dir / cache_file_name(instance)).write_text(text, encoding="utf-8")
