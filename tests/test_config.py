"""Unit tests for configuration resolution and derived paths."""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from devcluster.config import ClusterConfig, resolve_config, resolve_paths


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in ("VM_NAME", "CPUS", "MEMORY", "DISK", "CLUSTER_NAME", "WORKERS"):
        monkeypatch.delenv(f"DEVCLUSTER_{key}", raising=False)
    monkeypatch.delenv("LIMA_HOME", raising=False)


class TestResolveConfig:
    """Tests for resolve_config precedence."""

    def test_defaults(self) -> None:
        cfg = resolve_config()

        assert cfg.vm_name == "myk8s-docker"
        assert cfg.cpus == 8
        assert cfg.memory == 16
        assert cfg.disk == 500
        assert cfg.cluster_name == "myk8s"
        assert cfg.workers == 3

    def test_env_overrides_defaults(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("DEVCLUSTER_CPUS", "4")
        monkeypatch.setenv("DEVCLUSTER_CLUSTER_NAME", "envk8s")

        cfg = resolve_config()

        assert cfg.cpus == 4
        assert cfg.cluster_name == "envk8s"

    def test_cli_overrides_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("DEVCLUSTER_CPUS", "4")

        cfg = resolve_config(cpus=2, memory=None)

        assert cfg.cpus == 2
        assert cfg.memory == 16

    @pytest.mark.parametrize(
        "overrides",
        [{"cpus": 0}, {"disk": 1}, {"cluster_name": "Bad_Name"}, {"workers": 11}],
    )
    def test_rejects_invalid_values(self, overrides: dict) -> None:
        with pytest.raises(ValidationError):
            resolve_config(**overrides)

    def test_config_is_immutable(self) -> None:
        cfg = resolve_config()
        with pytest.raises(ValidationError):
            cfg.cpus = 2

    def test_node_roles(self) -> None:
        cfg = ClusterConfig(workers=2)
        assert cfg.node_roles == [
            ("control-plane", "control"),
            ("worker", "worker1"),
            ("worker", "worker2"),
        ]
        assert cfg.kube_context == "kind-myk8s"
        assert cfg.control_plane_node == "myk8s-control-plane"


class TestResolvePaths:
    """Tests for resolve_paths."""

    def test_derives_locations_from_home(self, tmp_path: Path) -> None:
        cfg = ClusterConfig(vm_name="vm1", cluster_name="c1", mount_root=tmp_path / "mnt")

        paths = resolve_paths(cfg, home=tmp_path)

        assert paths.docker_socket == tmp_path / ".lima" / "vm1" / "sock" / "docker.sock"
        assert paths.docker_context == "lima-vm1"
        assert paths.kubeconfig == tmp_path / ".kube" / "c1-config"
        assert paths.default_kubeconfig == tmp_path / ".kube" / "config"
        assert paths.activation_script == tmp_path / "bin" / "use-k8s.sh"
        assert paths.shell_profiles == (tmp_path / ".zshrc", tmp_path / ".bashrc")
        assert paths.kind_config.parent == tmp_path / ".devcluster" / "c1"
        assert paths.mount_dirs == (
            tmp_path / "mnt" / "c1-control-disk",
            tmp_path / "mnt" / "c1-worker1-disk",
            tmp_path / "mnt" / "c1-worker2-disk",
            tmp_path / "mnt" / "c1-worker3-disk",
        )

    def test_honours_lima_home(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("LIMA_HOME", str(tmp_path / "lima"))

        paths = resolve_paths(ClusterConfig(vm_name="vm1"), home=tmp_path)

        assert paths.docker_socket == tmp_path / "lima" / "vm1" / "sock" / "docker.sock"
