"""Core data models for clusterops.

Defines the schemas for:
- Component roles (what a deployed process is)
- Instance specs (where each process runs)
- Cluster metadata (what the store persists per cluster)
"""

from __future__ import annotations

import enum
from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

# --- Enums ---


class ComponentRole(enum.StrEnum):
    TIDB = "tidb"
    TIKV = "tikv"
    PD = "pd"
    PUMP = "pump"
    DRAINER = "drainer"
    PROMETHEUS = "prometheus"
    GRAFANA = "grafana"
    ALERTMANAGER = "alertmanager"


# --- Topology Schema ---


class InstanceSpec(BaseModel):
    """A single deployed component process.

    Built by the inventory parser; ``config`` is filled in later by the
    config importer from the host's live configuration file.
    """

    role: ComponentRole
    host: str
    alias: str | None = None
    ssh_port: int = Field(default=22, ge=1, le=65535)
    port: int = Field(..., ge=1, le=65535)
    status_port: int | None = Field(default=None, ge=1, le=65535)
    deploy_dir: str
    data_dir: str | None = None
    config: dict[str, Any] = Field(default_factory=dict)
    imported: bool = True

    @property
    def id(self) -> str:
        return f"{self.host}:{self.port}"


class ClusterMeta(BaseModel):
    """Persisted description of a managed cluster."""

    user: str
    version: str = ""
    deploy_dir: str = ""
    ssh_port: int = Field(default=22, ge=1, le=65535)
    topology: list[InstanceSpec] = Field(default_factory=list)
    imported_at: datetime | None = None

    def instances(self, role: ComponentRole | str) -> list[InstanceSpec]:
        """Return all instances of a given role, in inventory order."""
        return [i for i in self.topology if i.role == role]

    def hosts(self) -> list[str]:
        """Return the distinct hosts of the cluster, in first-seen order."""
        return list(dict.fromkeys(i.host for i in self.topology))
