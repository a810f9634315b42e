"""Tests for importing live component configuration over SSH."""

from pathlib import Path

import pytest

from clusterops.ansible.config_import import (
    CONFIG_CACHE_DIR,
    ConfigImporter,
    cache_file_name,
    remote_config_path,
)
from clusterops.ansible.inventory import parse_inventory
from clusterops.models import ComponentRole, InstanceSpec
from clusterops.ssh.executor import RemoteFetchError
from clusterops.store.meta import MetaStore


@pytest.fixture()
def meta(ansible_dir: Path):
    _, meta = parse_inventory(ansible_dir)
    return meta


class TestPaths:
    def test_remote_config_path(self):
        inst = InstanceSpec(role=ComponentRole.TIKV, host="h", port=20160, deploy_dir="/d")
        assert remote_config_path(inst) == "/d/conf/tikv.toml"

    def test_cache_file_name(self):
        inst = InstanceSpec(role=ComponentRole.PD, host="10.0.0.1", port=2379, deploy_dir="/d")
        assert cache_file_name(inst) == "pd-10.0.0.1-2379.toml"


class TestImportConfig:
    def test_fills_instance_config(self, store: MetaStore, meta, fake_executor):
        ConfigImporter(store, fake_executor).import_config("prod-cluster", meta, 5)
        tidb = meta.instances(ComponentRole.TIDB)[0]
        assert tidb.config == {"token-limit": 1000, "log": {"level": "info"}}
        assert meta.instances(ComponentRole.TIKV)[0].config["storage"]["reserve-space"] == "2GB"
        assert meta.instances(ComponentRole.PD)[0].config["schedule"]["leader-schedule-limit"] == 4

    def test_monitoring_roles_skipped(self, store: MetaStore, meta, fake_executor):
        ConfigImporter(store, fake_executor).import_config("prod-cluster", meta, 5)
        hosts = {c["host"] for c in fake_executor.calls}
        assert "10.0.1.8" not in hosts
        assert len(fake_executor.calls) == 5
        assert meta.instances(ComponentRole.GRAFANA)[0].config == {}

    def test_raw_files_cached(self, store: MetaStore, meta, fake_executor):
        ConfigImporter(store, fake_executor).import_config("prod-cluster", meta, 5)
        cache = store.cluster_path("prod-cluster", CONFIG_CACHE_DIR)
        assert sorted(p.name for p in cache.iterdir()) == [
            "pd-10.0.1.7-2379.toml",
            "tidb-10.0.1.1-4000.toml",
            "tidb-10.0.1.2-4001.toml",
            "tikv-10.0.1.4-20171.toml",
            "tikv-10.0.1.5-20160.toml",
        ]
        assert (cache / "pd-10.0.1.7-2379.toml").read_text(encoding="utf-8").startswith("[schedule]")

    def test_ssh_parameters(self, store: MetaStore, meta, fake_executor):
        meta.topology[0].ssh_port = 2222
        ConfigImporter(store, fake_executor).import_config("prod-cluster", meta, 9)
        first = fake_executor.calls[0]
        assert first["host"] == "10.0.1.1"
        assert first["port"] == 2222
        assert first["user"] == "tidb"
        assert first["timeout"] == 9
        assert first["identity"] == store.cluster_path("prod-cluster", "ssh", "id_rsa")
        assert first["command"] == "cat /home/tidb/deploy/conf/tidb.toml"

    def test_missing_remote_file(self, store: MetaStore, meta, make_executor):
        executor = make_executor(files={})
        with pytest.raises(RemoteFetchError, match="No such file") as exc:
            ConfigImporter(store, executor).import_config("prod-cluster", meta, 5)
        assert exc.value.host == "10.0.1.1"

    def test_invalid_toml(self, store: MetaStore, meta, make_executor):
        executor = make_executor()
        executor.files[("10.0.1.7", "/home/tidb/deploy/conf/pd.toml")] = "[[[ not toml"
        with pytest.raises(RemoteFetchError, match="Invalid config"):
            ConfigImporter(store, executor).import_config("prod-cluster", meta, 5)
