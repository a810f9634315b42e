"""Filesystem-backed cluster metadata store."""

from clusterops.store.meta import META_FILE_NAME, MetaStore, MetaStoreError

__all__ = [
    "META_FILE_NAME",
    "MetaStore",
    "MetaStoreError",
]
