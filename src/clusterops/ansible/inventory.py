"""Ansible inventory parser.

Reads a TiDB-Ansible deployment directory (``inventory.ini`` plus the
optional ``group_vars/*.yml`` files) and converts it into a
``ClusterMeta``. Only the INI subset TiDB-Ansible generates is supported.

Variable precedence, highest first:

1. host variables on the host line
2. ``[<group>:vars]``
3. ``group_vars/<group>.yml``
4. ``[all:vars]``
5. ``group_vars/all.yml``
6. built-in role defaults
"""

from __future__ import annotations

import logging
import re
import shlex
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from clusterops.config import DEFAULT_INVENTORY_FILE, DEFAULT_SSH_TIMEOUT
from clusterops.models import ClusterMeta, ComponentRole, InstanceSpec
from clusterops.ssh.executor import SSHExecutor, read_remote_file

logger = logging.getLogger(__name__)

DEFAULT_USER = "tidb"
DEFAULT_DEPLOY_DIR = "/home/tidb/deploy"

_SECTION_RE = re.compile(r"^\[([^\]]+)\]$")
_DATA_DIR_RE = re.compile(r"--(?:data-dir|storage\.tsdb\.path)[= ]\"?([^\"\s\\]+)")


class InventoryParseError(Exception):
    """Raised when the inventory directory is missing, malformed or inconsistent."""


@dataclass(frozen=True)
class RoleGroup:
    """How an inventory group maps onto a component role."""

    role: ComponentRole
    port_var: str
    default_port: int
    status_port_var: str | None = None
    default_status_port: int | None = None
    has_data: bool = False


ROLE_GROUPS: dict[str, RoleGroup] = {
    "tidb_servers": RoleGroup(
        ComponentRole.TIDB, "tidb_port", 4000, "tidb_status_port", 10080,
    ),
    "tikv_servers": RoleGroup(
        ComponentRole.TIKV, "tikv_port", 20160, "tikv_status_port", 20180,
        has_data=True,
    ),
    "pd_servers": RoleGroup(
        ComponentRole.PD, "pd_client_port", 2379, "pd_peer_port", 2380,
        has_data=True,
    ),
    "pump_servers": RoleGroup(ComponentRole.PUMP, "pump_port", 8250, has_data=True),
    "drainer_servers": RoleGroup(ComponentRole.DRAINER, "drainer_port", 8249, has_data=True),
    "monitoring_servers": RoleGroup(
        ComponentRole.PROMETHEUS, "prometheus_port", 9090, has_data=True,
    ),
    "grafana_servers": RoleGroup(ComponentRole.GRAFANA, "grafana_port", 3000),
    "alertmanager_servers": RoleGroup(
        ComponentRole.ALERTMANAGER, "alertmanager_port", 9093,
        "alertmanager_cluster_port", 9094,
    ),
}

STATEFUL_ROLES = frozenset(spec.role for spec in ROLE_GROUPS.values() if spec.has_data)


@dataclass
class InventoryFile:
    """Raw contents of an INI inventory: hosts per group and section vars."""

    hosts: dict[str, list[tuple[str, dict[str, str]]]] = field(default_factory=dict)
    group_vars: dict[str, dict[str, str]] = field(default_factory=dict)


def _unquote(value: str) -> str:
    value = value.strip()
    if len(value) >= 2 and value[0] == value[-1] and value[0] in "'\"":
        return value[1:-1]
    return value


def _read_text(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8")
    except UnicodeDecodeError as e:
        raise InventoryParseError(f"{path} is not valid UTF-8: {e}") from e


def read_inventory_file(path: Path) -> InventoryFile:
    """Parse the INI inventory at *path* into groups and variables."""
    inv = InventoryFile()
    group, kind = "ungrouped", "hosts"

    for lineno, raw in enumerate(_read_text(path).splitlines(), 1):
        line = raw.strip()
        if not line or line[0] in "#;":
            continue

        match = _SECTION_RE.match(line)
        if match:
            group, _, kind = match.group(1).strip().partition(":")
            kind = kind or "hosts"
            if kind not in ("hosts", "vars", "children"):
                raise InventoryParseError(f"{path}:{lineno}: unknown section type '{kind}'")
            continue

        if kind == "children":
            continue

        if kind == "vars":
            key, sep, value = line.partition("=")
            if not sep or not key.strip():
                raise InventoryParseError(f"{path}:{lineno}: expected 'key = value', got {line!r}")
            inv.group_vars.setdefault(group, {})[key.strip()] = _unquote(value)
            continue

        try:
            tokens = shlex.split(line, comments=True)
        except ValueError as e:
            raise InventoryParseError(f"{path}:{lineno}: {e}") from e
        host_vars: dict[str, str] = {}
        for token in tokens[1:]:
            key, sep, value = token.partition("=")
            if not sep or not key:
                raise InventoryParseError(f"{path}:{lineno}: invalid host variable {token!r}")
            host_vars[key] = value
        inv.hosts.setdefault(group, []).append((tokens[0], host_vars))

    return inv


def _load_group_vars(ansible_dir: Path, group: str) -> dict[str, Any]:
    for suffix in (".yml", ".yaml"):
        path = ansible_dir / "group_vars" / f"{group}{suffix}"
        if path.is_file():
            break
    else:
        return {}

    try:
        data = yaml.safe_load(_read_text(path))
    except yaml.YAMLError as e:
        raise InventoryParseError(f"Invalid YAML in {path}: {e}") from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise InventoryParseError(f"group_vars file must be a mapping: {path}")
    return data


def _as_port(value: Any, name: str, where: str) -> int:
    try:
        port = int(value)
    except (TypeError, ValueError) as e:
        raise InventoryParseError(f"{where}: {name} must be an integer, got {value!r}") from e
    if not 1 <= port <= 65535:
        raise InventoryParseError(f"{where}: {name} out of range: {port}")
    return port


def _remote_data_dir(
    executor: SSHExecutor,
    instance: InstanceSpec,
    *,
    user: str,
    identity: str | Path | None,
    timeout: float,
) -> str | None:
    """Extract the data directory from the instance's run script."""
    script = f"{instance.deploy_dir}/scripts/run_{instance.role}.sh"
    content = read_remote_file(
        executor, instance.host, script,
        user=user, port=instance.ssh_port, identity=identity, timeout=timeout,
    )
    match = _DATA_DIR_RE.search(content)
    if match is None:
        return None
    data_dir = match.group(1)
    if not data_dir.startswith("/"):
        data_dir = f"{instance.deploy_dir}/{data_dir}"
    return data_dir


def parse_inventory(
    ansible_dir: str | Path,
    inventory_file: str = DEFAULT_INVENTORY_FILE,
    timeout: float = DEFAULT_SSH_TIMEOUT,
    *,
    executor: SSHExecutor | None = None,
    ssh_key: str | Path | None = None,
) -> tuple[str, ClusterMeta]:
    """Convert an Ansible deployment directory into ``(cluster_name, meta)``.

    An empty *ansible_dir* means the current directory. When *executor* is
    given, data directories of stateful instances are read from the hosts'
    run scripts within *timeout*; otherwise ``<deploy_dir>/data`` is assumed.

    Raises:
        InventoryParseError: If the directory or inventory is invalid.
        RemoteFetchError: If a host cannot be queried.
    """
    base = Path(ansible_dir or ".")
    path = base / (inventory_file or DEFAULT_INVENTORY_FILE)
    if not path.is_file():
        raise InventoryParseError(f"Inventory file not found: {path}")

    inv = read_inventory_file(path)
    all_vars: dict[str, Any] = {**_load_group_vars(base, "all"), **inv.group_vars.get("all", {})}

    cluster_name = str(all_vars.get("cluster_name", "")).strip()
    meta_fields = {
        "user": str(all_vars.get("ansible_user", DEFAULT_USER)),
        "version": str(all_vars.get("tidb_version", "")),
        "deploy_dir": str(all_vars.get("deploy_dir", DEFAULT_DEPLOY_DIR)),
        "ssh_port": _as_port(all_vars.get("ansible_port", 22), "ansible_port", str(path)),
    }

    topology: list[InstanceSpec] = []
    seen: set[str] = set()
    for group, hosts in inv.hosts.items():
        spec = ROLE_GROUPS.get(group)
        if spec is None:
            logger.debug("Skipping inventory group %s", group)
            continue

        group_vars = {
            **all_vars,
            **_load_group_vars(base, group),
            **inv.group_vars.get(group, {}),
        }
        for name, host_vars in hosts:
            merged = {**group_vars, **host_vars}
            where = f"{path} [{group}] {name}"
            status_port = None
            if spec.status_port_var is not None:
                status_port = _as_port(
                    merged.get(spec.status_port_var, spec.default_status_port),
                    spec.status_port_var, where,
                )
            try:
                instance = InstanceSpec(
                    role=spec.role,
                    host=str(merged.get("ansible_host", name)),
                    alias=name if "ansible_host" in merged else None,
                    ssh_port=_as_port(merged.get("ansible_port", 22), "ansible_port", where),
                    port=_as_port(merged.get(spec.port_var, spec.default_port), spec.port_var, where),
                    status_port=status_port,
                    deploy_dir=str(merged.get("deploy_dir", DEFAULT_DEPLOY_DIR)).rstrip("/"),
                )
            except ValidationError as e:
                raise InventoryParseError(f"{where}: {e}") from e

            if instance.id in seen:
                raise InventoryParseError(f"{where}: duplicate instance {instance.id}")
            seen.add(instance.id)
            topology.append(instance)

    if not topology:
        raise InventoryParseError(f"No cluster instances found in {path}")

    for instance in topology:
        if instance.role not in STATEFUL_ROLES:
            continue
        data_dir = None
        if executor is not None:
            data_dir = _remote_data_dir(
                executor, instance,
                user=meta_fields["user"], identity=ssh_key, timeout=timeout,
            )
        instance.data_dir = data_dir or f"{instance.deploy_dir}/data"

    logger.info("Parsed %d instance(s) from %s", len(topology), path)
    return cluster_name, ClusterMeta(topology=topology, **meta_fields)
