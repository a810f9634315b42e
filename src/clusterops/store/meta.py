"""Cluster metadata store.

Filesystem-backed namespace holding one directory per managed cluster::

    <root>/<cluster>/meta.yaml
    <root>/<cluster>/ssh/id_rsa{,.pub}
    <root>/<cluster>/config-cache/...
    <root>/<cluster>/ansible-backup/

A cluster "exists" once its meta file has been written; a bare directory
left over from an interrupted import does not count.
"""

from __future__ import annotations

import os
import tempfile
from pathlib import Path

import yaml
from pydantic import ValidationError

from clusterops.models import ClusterMeta

META_FILE_NAME = "meta.yaml"


class MetaStoreError(Exception):
    """Raised when persisted cluster metadata is missing or invalid."""


class MetaStore:
    """YAML-backed store of cluster metadata under a single root directory."""

    def __init__(self, root: str | Path) -> None:
        self._root = Path(root)

    @property
    def root(self) -> Path:
        return self._root

    def cluster_path(self, name: str, *parts: str) -> Path:
        """Canonical path for *name*, optionally joined with sub-paths."""
        return self._root.joinpath(name, *parts)

    def meta_path(self, name: str) -> Path:
        return self.cluster_path(name, META_FILE_NAME)

    def exists(self, name: str) -> bool:
        return self.meta_path(name).is_file()

    def save_cluster_meta(self, name: str, meta: ClusterMeta) -> Path:
        """Write *meta* for *name*, replacing any previous version in one step."""
        path = self.meta_path(name)
        path.parent.mkdir(parents=True, exist_ok=True)
        text = yaml.safe_dump(meta.model_dump(mode="json"), sort_keys=False)

        fd, tmp = tempfile.mkstemp(dir=path.parent, prefix=".meta-", suffix=".yaml")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(text)
            os.replace(tmp, path)
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise
        return path

    def load_cluster_meta(self, name: str) -> ClusterMeta:
        """Load the persisted metadata for *name*.

        Raises:
            MetaStoreError: If the cluster does not exist or the file is invalid.
        """
        path = self.meta_path(name)
        if not path.is_file():
            raise MetaStoreError(f"Cluster not found: {name}")

        try:
            raw = yaml.safe_load(path.read_text(encoding="utf-8"))
        except yaml.YAMLError as e:
            raise MetaStoreError(f"Invalid YAML in {path}: {e}") from e

        if not isinstance(raw, dict):
            raise MetaStoreError(f"Cluster metadata must be a mapping: {path}")

        try:
            return ClusterMeta(**raw)
        except (ValidationError, TypeError) as e:
            raise MetaStoreError(f"Invalid cluster metadata in {path}: {e}") from e

    def list_clusters(self) -> list[str]:
        """Names of all persisted clusters, sorted."""
        if not self._root.is_dir():
            return []
        return sorted(
            p.name for p in self._root.iterdir()
            if p.is_dir() and (p / META_FILE_NAME).is_file()
        )
