"""Readers for TiDB-Ansible deployments: inventory parsing and config import."""

from clusterops.ansible.config_import import ConfigImporter
from clusterops.ansible.inventory import InventoryParseError, parse_inventory

__all__ = [
    "ConfigImporter",
    "InventoryParseError",
    "parse_inventory",
]
