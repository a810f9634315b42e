"""clusterops CLI: command-line interface for clusterops.

Commands:
    import      Import a cluster deployed with TiDB-Ansible
    list        Show all managed clusters
    display     Show the topology of a managed cluster
"""

from __future__ import annotations

import json
import logging
import sys
from dataclasses import dataclass

import click
import yaml

from clusterops import __version__
from clusterops.ansible.inventory import InventoryParseError
from clusterops.config import (
    DEFAULT_INVENTORY_FILE,
    DEFAULT_SSH_TIMEOUT,
    ClusteropsConfig,
    load_config,
    resolve_home,
    resolve_ssh_key,
)
from clusterops.importer import (
    BACKUP_DIR,
    ClusterImportError,
    DuplicateClusterError,
    build_importer,
)
from clusterops.ssh.executor import RemoteFetchError, SubprocessSSHExecutor
from clusterops.store.meta import MetaStore, MetaStoreError


@dataclass(frozen=True)
class Settings:
    """Options shared by every command, resolved once by the root group."""

    cfg: ClusteropsConfig
    store: MetaStore
    ssh_timeout: int


def _load_cfg(path: str | None) -> ClusteropsConfig:
    """Load an explicit config file, or auto-discover one (never error)."""
    if path is not None:
        try:
            return load_config(path)
        except (OSError, ValueError, yaml.YAMLError) as e:
            raise click.BadParameter(str(e), param_hint="--config") from e
    try:
        return load_config()
    except Exception:
        return ClusteropsConfig()


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
        force=True,
    )


# --- Root group ---


@click.group()
@click.version_option(version=__version__)
@click.option("--home", default=None, help="Root directory of the cluster metadata store")
@click.option(
    "--ssh-timeout", type=click.IntRange(min=1), default=None,
    help=f"Timeout in seconds for SSH operations (default {DEFAULT_SSH_TIMEOUT})",
)
@click.option("--config", "config_path", default=None, help="Path to clusterops.yaml")
@click.option("--verbose", "-v", is_flag=True, help="Log progress to stderr")
@click.pass_context
def cli(
    ctx: click.Context,
    home: str | None,
    ssh_timeout: int | None,
    config_path: str | None,
    verbose: bool,
) -> None:
    """clusterops: manage clusters and take over TiDB-Ansible deployments."""
    _configure_logging(verbose)
    cfg = _load_cfg(config_path)
    ctx.obj = Settings(
        cfg=cfg,
        store=MetaStore(resolve_home(home, cfg)),
        ssh_timeout=ssh_timeout or cfg.ssh_timeout or DEFAULT_SSH_TIMEOUT,
    )


# --- import command ---


@cli.command("import")
@click.option("--dir", "-d", "ansible_dir", default="", help="The path to TiDB-Ansible directory")
@click.option(
    "--inventory", "inventory_file", default=None,
    help=f"The name of inventory file (default {DEFAULT_INVENTORY_FILE})",
)
@click.option("--rename", "-r", default="", metavar="NAME", help="Rename the imported cluster to NAME")
@click.pass_obj
def import_cluster(
    settings: Settings,
    ansible_dir: str,
    inventory_file: str | None,
    rename: str,
) -> None:
    """Import an existing TiDB cluster from TiDB-Ansible."""
    importer = build_importer(
        settings.store,
        ssh_key=resolve_ssh_key(settings.cfg),
        executor=SubprocessSSHExecutor(),
    )
    inventory_file = inventory_file or settings.cfg.inventory or DEFAULT_INVENTORY_FILE

    try:
        name = importer.run(
            ansible_dir=ansible_dir,
            inventory_file=inventory_file,
            rename=rename,
            timeout=settings.ssh_timeout,
        )
    except DuplicateClusterError as e:
        click.echo(click.style("Error: ", fg="red") + str(e), err=True)
        click.echo(e.suggestion, err=True)
        sys.exit(1)
    except (ClusterImportError, InventoryParseError, RemoteFetchError, OSError) as e:
        click.echo(click.style("Error: ", fg="red") + str(e), err=True)
        sys.exit(1)

    click.echo(f"Ansible inventory saved in {settings.store.cluster_path(name, BACKUP_DIR)}.")
    click.echo(click.style(f"Cluster {name} imported.", fg="green", bold=True))
    click.echo(
        "Try `" + click.style(f"clusterops display {name}", fg="bright_yellow")
        + "` to see the cluster."
    )


# --- list command ---


@cli.command("list")
@click.option("--json-output", is_flag=True, help="Output as JSON")
@click.pass_obj
def list_clusters(settings: Settings, json_output: bool) -> None:
    """Show all managed clusters."""
    rows = []
    for name in settings.store.list_clusters():
        try:
            meta = settings.store.load_cluster_meta(name)
        except MetaStoreError as e:
            click.echo(click.style("WARN", fg="yellow") + f"  {e}", err=True)
            continue
        rows.append({
            "name": name,
            "user": meta.user,
            "version": meta.version,
            "path": str(settings.store.cluster_path(name)),
        })

    if json_output:
        click.echo(json.dumps(rows, indent=2))
        return
    if not rows:
        click.echo("No clusters found.")
        return
    click.echo(f"  {'Name':<24} {'User':<12} {'Version':<12} Path")
    for row in rows:
        click.echo(f"  {row['name']:<24} {row['user']:<12} {row['version']:<12} {row['path']}")
    click.echo(f"\n{len(rows)} cluster(s) managed.")


# --- display command ---


_ROLE_COLORS = {
    "tidb": "cyan", "tikv": "green", "pd": "magenta",
    "pump": "blue", "drainer": "blue",
}


@cli.command()
@click.argument("name")
@click.option("--json-output", is_flag=True, help="Output as JSON")
@click.pass_obj
def display(settings: Settings, name: str, json_output: bool) -> None:
    """Show the topology of cluster NAME."""
    try:
        meta = settings.store.load_cluster_meta(name)
    except MetaStoreError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    if json_output:
        click.echo(json.dumps(meta.model_dump(mode="json"), indent=2))
        return

    click.echo(click.style("Cluster name:    ", bold=True) + name)
    click.echo(click.style("Cluster version: ", bold=True) + (meta.version or "unknown"))
    click.echo(click.style("SSH user:        ", bold=True) + meta.user)
    click.echo(click.style("Metadata:        ", bold=True) + str(settings.store.meta_path(name)))
    click.echo("")
    click.echo(f"  {'ID':<24} {'Role':<13} {'Ports':<12} {'Data Dir':<32} Deploy Dir")
    for inst in meta.topology:
        ports = str(inst.port) if inst.status_port is None else f"{inst.port}/{inst.status_port}"
        role = click.style(f"{inst.role:<13}", fg=_ROLE_COLORS.get(inst.role, "white"))
        click.echo(f"  {inst.id:<24} {role} {ports:<12} {inst.data_dir or '-':<32} {inst.deploy_dir}")
    click.echo(f"\n{len(meta.topology)} instance(s).")
