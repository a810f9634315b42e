"""Import orchestrator: take over a cluster deployed with TiDB-Ansible.

Runs the migration as an ordered, fail-fast sequence::

    parse inventory -> resolve name -> reject duplicate
        -> copy SSH keys -> import config -> persist metadata
        -> archive the Ansible directory

Nothing is written before the duplicate-name check passes. If copying
keys, importing config or persisting metadata fails, the cluster
directory is removed again, unless it already existed before the run.
Errors are re-raised unchanged.
"""

from __future__ import annotations

import enum
import logging
import os
import shutil
from collections.abc import Callable
from datetime import UTC, datetime
from pathlib import Path

from clusterops.ansible.config_import import ConfigImporter
from clusterops.ansible.inventory import parse_inventory
from clusterops.config import DEFAULT_INVENTORY_FILE, DEFAULT_SSH_TIMEOUT
from clusterops.models import ClusterMeta
from clusterops.ssh.executor import SSHExecutor
from clusterops.store.meta import MetaStore
from clusterops.utils.fs import copy_file, create_dir, is_exist, move

logger = logging.getLogger(__name__)

SSH_DIR = "ssh"
PRIVATE_KEY_NAME = "id_rsa"
BACKUP_DIR = "ansible-backup"

DUPLICATE_SUGGESTION = (
    "Please use --rename `NAME` to specify another name "
    "(You can use `clusterops list` to see all clusters)"
)

InventoryParser = Callable[[str, str, float], tuple[str, ClusterMeta]]
ConfigImportFunc = Callable[[str, ClusterMeta, float], None]


class ClusterImportError(Exception):
    """Base class for errors raised by the import orchestrator itself."""


class ClusterNameError(ClusterImportError):
    """Raised when the resolved cluster name is empty or not a plain directory name."""


class DuplicateClusterError(ClusterImportError):
    """Raised when a cluster with the target name is already managed."""

    def __init__(self, name: str, suggestion: str = DUPLICATE_SUGGESTION) -> None:
        super().__init__(f"Cluster name '{name}' is duplicated")
        self.name = name
        self.suggestion = suggestion


class ImportStep(enum.StrEnum):
    PARSING_INVENTORY = "parsing-inventory"
    RESOLVING_NAME = "resolving-name"
    VALIDATING_DUPLICATE = "validating-duplicate"
    COPYING_CREDENTIALS = "copying-credentials"
    IMPORTING_CONFIG = "importing-config"
    PERSISTING_METADATA = "persisting-metadata"
    ARCHIVING_SOURCE = "archiving-source"
    COMPLETED = "completed"


def check_cluster_name(name: str) -> None:
    """Reject names that would resolve outside their own store directory."""
    if not name:
        raise ClusterNameError("cluster name should not be empty")
    separators = {"/", os.sep} | ({os.altsep} if os.altsep else set())
    if name in (".", "..") or any(sep in name for sep in separators):
        raise ClusterNameError(f"cluster name '{name}' must not be a path")


_CLEANUP_STEPS = frozenset({
    ImportStep.COPYING_CREDENTIALS,
    ImportStep.IMPORTING_CONFIG,
    ImportStep.PERSISTING_METADATA,
})


class Importer:
    """Imports one Ansible-managed cluster into a ``MetaStore``.

    The inventory parser and config importer are injected so they can be
    replaced in tests; ``build_importer()`` wires the real ones.
    """

    def __init__(
        self,
        store: MetaStore,
        *,
        ssh_key: str | Path,
        parse_inventory: InventoryParser,
        import_config: ConfigImportFunc,
    ) -> None:
        self._store = store
        self._ssh_key = Path(ssh_key)
        self._parse_inventory = parse_inventory
        self._import_config = import_config
        self._step: ImportStep | None = None

    @property
    def step(self) -> ImportStep | None:
        """The step the last run reached (the failing step after an error)."""
        return self._step

    def _enter(self, step: ImportStep) -> None:
        self._step = step
        logger.info("Import step: %s", step)

    def run(
        self,
        ansible_dir: str = "",
        inventory_file: str = DEFAULT_INVENTORY_FILE,
        rename: str = "",
        timeout: float = DEFAULT_SSH_TIMEOUT,
    ) -> str:
        """Import the cluster described by *ansible_dir* and return its name.

        Raises:
            InventoryParseError: If the inventory cannot be parsed.
            ClusterNameError: If the resolved cluster name is empty.
            DuplicateClusterError: If the name is already in the store.
            RemoteFetchError: If a deployment host cannot be queried.
            OSError: If a filesystem operation fails.
        """
        self._step = None
        try:
            return self._run(ansible_dir, inventory_file, rename, timeout)
        except Exception as e:
            logger.error("Import failed while %s: %s", self._step, e)
            raise

    def _run(self, ansible_dir: str, inventory_file: str, rename: str, timeout: float) -> str:
        self._enter(ImportStep.PARSING_INVENTORY)
        name, meta = self._parse_inventory(ansible_dir, inventory_file, timeout)

        self._enter(ImportStep.RESOLVING_NAME)
        source_dir = Path(ansible_dir or os.getcwd()).resolve()
        if rename:
            name = rename
        check_cluster_name(name)

        self._enter(ImportStep.VALIDATING_DUPLICATE)
        if self._store.exists(name):
            raise DuplicateClusterError(name)

        cluster_dir = self._store.cluster_path(name)
        created = not is_exist(cluster_dir)
        try:
            self._enter(ImportStep.COPYING_CREDENTIALS)
            self._copy_ssh_keys(name)

            self._enter(ImportStep.IMPORTING_CONFIG)
            self._import_config(name, meta, timeout)

            self._enter(ImportStep.PERSISTING_METADATA)
            meta.imported_at = datetime.now(tz=UTC)
            self._store.save_cluster_meta(name, meta)
        except Exception:
            if created and self._step in _CLEANUP_STEPS:
                self._remove_partial(cluster_dir)
            raise

        self._enter(ImportStep.ARCHIVING_SOURCE)
        backup_dir = self._store.cluster_path(name, BACKUP_DIR)
        move(source_dir, backup_dir)
        logger.info("Ansible inventory saved in %s", backup_dir)

        self._enter(ImportStep.COMPLETED)
        logger.info("Cluster %s imported", name)
        return name

    def _copy_ssh_keys(self, name: str) -> None:
        ssh_dir = create_dir(self._store.cluster_path(name, SSH_DIR))
        dst_priv = ssh_dir / PRIVATE_KEY_NAME
        copy_file(self._ssh_key, dst_priv)
        copy_file(f"{self._ssh_key}.pub", f"{dst_priv}.pub")

    def _remove_partial(self, cluster_dir: Path) -> None:
        if not is_exist(cluster_dir):
            return
        logger.info("Removing partially imported %s", cluster_dir)
        try:
            shutil.rmtree(cluster_dir)
        except OSError as e:
            logger.warning("Could not remove %s, clean it up manually: %s", cluster_dir, e)


def build_importer(
    store: MetaStore,
    *,
    ssh_key: str | Path,
    executor: SSHExecutor,
) -> Importer:
    """Wire an ``Importer`` with the Ansible inventory parser and SSH config import."""

    def _parse(ansible_dir: str, inventory_file: str, timeout: float) -> tuple[str, ClusterMeta]:
        return parse_inventory(
            ansible_dir, inventory_file, timeout,
            executor=executor, ssh_key=ssh_key,
        )

    return Importer(
        store,
        ssh_key=ssh_key,
        parse_inventory=_parse,
        import_config=ConfigImporter(store, executor).import_config,
    )
