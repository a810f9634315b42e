"""clusterops: cluster metadata management and TiDB-Ansible import."""

__version__ = "0.1.0"

from clusterops.ansible.config_import import ConfigImporter
from clusterops.ansible.inventory import InventoryParseError, parse_inventory
from clusterops.config import ClusteropsConfig, find_config, load_config
from clusterops.importer import (
    ClusterImportError,
    ClusterNameError,
    DuplicateClusterError,
    Importer,
    ImportStep,
    build_importer,
)
from clusterops.models import ClusterMeta, ComponentRole, InstanceSpec
from clusterops.ssh.executor import RemoteFetchError, SSHExecutor, SubprocessSSHExecutor
from clusterops.store.meta import META_FILE_NAME, MetaStore, MetaStoreError

__all__ = [
    "ClusterImportError",
    "ClusterMeta",
    "ClusterNameError",
    "ClusteropsConfig",
    "ComponentRole",
    "ConfigImporter",
    "DuplicateClusterError",
    "find_config",
    "ImportStep",
    "Importer",
    "InstanceSpec",
    "InventoryParseError",
    "load_config",
    "META_FILE_NAME",
    "MetaStore",
    "MetaStoreError",
    "RemoteFetchError",
    "SSHExecutor",
    "SubprocessSSHExecutor",
    "build_importer",
    "parse_inventory",
    "__version__",
]
