"""Unit tests for the Kind cluster lifecycle and workspace descriptor."""

from __future__ import annotations

import pytest
import yaml

from devcluster import cluster, workspace
from devcluster.errors import ProvisioningError


class TestKindConfig:
    """Tests for the Kind topology descriptor."""

    def test_manifest_topology(self, cfg, paths) -> None:
        manifest = workspace.kind_cluster_manifest(cfg, paths)

        assert manifest["kind"] == "Cluster"
        assert manifest["apiVersion"] == "kind.x-k8s.io/v1alpha4"
        assert manifest["networking"] == {"disableDefaultCNI": True}
        roles = [node["role"] for node in manifest["nodes"]]
        assert roles == ["control-plane", "worker", "worker", "worker"]
        for node, host_dir in zip(manifest["nodes"], paths.mount_dirs):
            assert node["extraMounts"] == [
                {"hostPath": str(host_dir), "containerPath": "/var/lib/disk1"}
            ]

    def test_write_and_remove(self, cfg, paths) -> None:
        workspace.write_kind_config(cfg, paths)
        assert yaml.safe_load(paths.kind_config.read_text()) == workspace.kind_cluster_manifest(cfg, paths)

        workspace.remove_kind_config(paths)
        workspace.remove_kind_config(paths)
        assert not paths.kind_config.exists()

    def test_ensure_mount_dirs(self, cfg, paths) -> None:
        workspace.ensure_mount_dirs(cfg, paths)
        workspace.ensure_mount_dirs(cfg, paths)
        assert all(directory.is_dir() for directory in paths.mount_dirs)


class TestEnsureCluster:
    """Tests for ensure_cluster."""

    def test_creates_with_socket_env(self, fake_host, cfg, paths) -> None:
        assert cluster.ensure_cluster(cfg, paths) is True

        index = fake_host.calls.index(
            ("kind", "create", "cluster", "--name", "testk8s", "--config", str(paths.kind_config))
        )
        assert fake_host.envs[index]["DOCKER_HOST"] == f"unix://{paths.docker_socket}"

    def test_existing_cluster_is_reused(self, fake_host, cfg, paths) -> None:
        fake_host.clusters.add("testk8s")

        assert cluster.ensure_cluster(cfg, paths) is False
        assert fake_host.count("kind", "create") == 0

    def test_missing_after_create_is_fatal(self, fake_host, cfg, paths) -> None:
        fake_host.cluster_create_noop = True

        with pytest.raises(ProvisioningError, match="not found after creation"):
            cluster.ensure_cluster(cfg, paths)


class TestDeleteCluster:
    """Tests for delete_cluster and taint_control_plane."""

    def test_absent_cluster_is_not_an_error(self, fake_host, cfg, paths) -> None:
        cluster.delete_cluster(cfg, paths)
        assert fake_host.count("kind", "delete") == 0

    def test_deletes_existing(self, fake_host, cfg, paths) -> None:
        fake_host.clusters.add("testk8s")
        cluster.delete_cluster(cfg, paths)
        assert fake_host.clusters == set()

    def test_taint_failure_is_a_warning(self, fake_host, cfg, paths) -> None:
        fake_host.missing_commands.add("kubectl")
        cluster.taint_control_plane(cfg, paths)
        assert fake_host.count("kubectl", "taint", "nodes", "testk8s-control-plane") == 1
