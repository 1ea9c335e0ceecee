# /*
# Copyright 2026 The Grove Authors.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
# */

"""Configuration classes, derived paths, and config resolution/display."""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict
from rich.panel import Panel

from devcluster import console
from devcluster.constants import (
    ACTIVATION_SCRIPT_NAME,
    BACKUP_SUFFIX,
    DEFAULT_CLUSTER_NAME,
    DEFAULT_CONTAINER_MOUNT_PATH,
    DEFAULT_CPUS,
    DEFAULT_DISK_GIB,
    DEFAULT_LIMA_TEMPLATE,
    DEFAULT_MEMORY_GIB,
    DEFAULT_MOUNT_ROOT,
    DEFAULT_VM_NAME,
    DEFAULT_WORKER_NODES,
    DOCKER_CONTEXT_PREFIX,
    ENV_PREFIX,
    KIND_CONFIG_FILE,
    KIND_CONTEXT_PREFIX,
    LAUNCHD_LABEL_PREFIX,
    OUTPUTS_FILE,
    SHELL_PROFILES,
    STATE_DIR_NAME,
    SYSTEMD_UNIT_PREFIX,
    dep_value,
)


def _default_vm_type() -> str:
    return "vz" if sys.platform == "darwin" else "qemu"


# ============================================================================
# Configuration classes
# ============================================================================

class ClusterConfig(BaseSettings):
    """Provisioning configuration, auto-loaded from DEVCLUSTER_* env vars.

    Attributes:
        vm_name: Name of the Lima VM hosting the Docker runtime.
        cpus: Number of virtual CPUs for the VM.
        memory: VM memory size in GiB.
        disk: VM disk size in GiB.
        cluster_name: Name of the Kind cluster.
        workers: Number of Kind worker nodes.
        vm_type: Lima VM type (``vz`` on macOS, ``qemu`` elsewhere).
        lima_template: Lima template used when creating the VM.
        mount_root: Host directory holding per-node mount directories.
        container_mount_path: Path each node mount appears at inside the node.
    """

    model_config = SettingsConfigDict(env_prefix=ENV_PREFIX, extra="ignore", frozen=True)

    vm_name: str = Field(default=DEFAULT_VM_NAME, pattern=r"^[A-Za-z0-9][A-Za-z0-9._-]*$")
    cpus: int = Field(default=DEFAULT_CPUS, ge=1, le=128)
    memory: int = Field(default=DEFAULT_MEMORY_GIB, ge=1, le=1024)
    disk: int = Field(default=DEFAULT_DISK_GIB, ge=10, le=4096)
    cluster_name: str = Field(default=DEFAULT_CLUSTER_NAME, pattern=r"^[a-z0-9]([-a-z0-9]*[a-z0-9])?$")
    workers: int = Field(default=DEFAULT_WORKER_NODES, ge=0, le=10)
    vm_type: str = Field(default_factory=_default_vm_type, pattern=r"^(vz|qemu)$")
    lima_template: str = dep_value("lima", "template", default=DEFAULT_LIMA_TEMPLATE)
    mount_root: Path = Path(DEFAULT_MOUNT_ROOT)
    container_mount_path: str = DEFAULT_CONTAINER_MOUNT_PATH

    @property
    def kube_context(self) -> str:
        """Name Kind gives the cluster's kubeconfig context."""
        return f"{KIND_CONTEXT_PREFIX}-{self.cluster_name}"

    @property
    def control_plane_node(self) -> str:
        return f"{self.cluster_name}-control-plane"

    @property
    def node_roles(self) -> list[tuple[str, str]]:
        """(role, disk suffix) for every Kind node, control plane first."""
        roles = [("control-plane", "control")]
        roles.extend(("worker", f"worker{i}") for i in range(1, self.workers + 1))
        return roles


# ============================================================================
# Derived paths
# ============================================================================

@dataclass(frozen=True)
class ClusterPaths:
    """Every on-disk location touched by a provisioning run.

    Attributes:
        home: The user's home directory.
        lima_home: Lima state directory (``$LIMA_HOME`` or ``~/.lima``).
        docker_socket: Docker socket forwarded from the VM.
        docker_context: Docker CLI context name for the VM.
        state_dir: Per-cluster devcluster state directory.
        kind_config: Cluster topology descriptor consumed by ``kind``.
        outputs_file: JSON file holding the run outputs.
        launch_agent: Boot-time launch descriptor for the VM.
        kubeconfig: Cluster-scoped kubeconfig.
        default_kubeconfig: The default kubeconfig location (``~/.kube/config``).
        shell_profiles: Shell startup files receiving ``export KUBECONFIG``.
        activation_script: Generated helper that activates the kubeconfig.
        mount_dirs: Host directories mounted into each Kind node.
    """

    home: Path
    lima_home: Path
    docker_socket: Path
    docker_context: str
    state_dir: Path
    kind_config: Path
    outputs_file: Path
    launch_agent: Path
    kubeconfig: Path
    default_kubeconfig: Path
    shell_profiles: tuple[Path, ...]
    activation_script: Path
    mount_dirs: tuple[Path, ...]

    @property
    def kubeconfig_backup(self) -> Path:
        return self.kubeconfig.with_name(self.kubeconfig.name + BACKUP_SUFFIX)

    @property
    def vm_socket_dir(self) -> Path:
        return self.docker_socket.parent


def _launch_agent_path(home: Path, vm_name: str) -> Path:
    if sys.platform == "darwin":
        return home / "Library" / "LaunchAgents" / f"{LAUNCHD_LABEL_PREFIX}.{vm_name}.plist"
    return home / ".config" / "systemd" / "user" / f"{SYSTEMD_UNIT_PREFIX}-{vm_name}.service"


def resolve_paths(cfg: ClusterConfig, home: Path | None = None) -> ClusterPaths:
    """Derive all on-disk locations from the configuration.

    Args:
        cfg: Resolved provisioning configuration.
        home: Home directory override, defaults to ``Path.home()``.

    Returns:
        The resolved ClusterPaths.
    """
    home = home or Path.home()
    lima_home = Path(os.environ.get("LIMA_HOME", home / ".lima"))
    state_dir = home / STATE_DIR_NAME / cfg.cluster_name
    kube_dir = home / ".kube"
    return ClusterPaths(
        home=home,
        lima_home=lima_home,
        docker_socket=lima_home / cfg.vm_name / "sock" / "docker.sock",
        docker_context=f"{DOCKER_CONTEXT_PREFIX}-{cfg.vm_name}",
        state_dir=state_dir,
        kind_config=state_dir / KIND_CONFIG_FILE,
        outputs_file=state_dir / OUTPUTS_FILE,
        launch_agent=_launch_agent_path(home, cfg.vm_name),
        kubeconfig=kube_dir / f"{cfg.cluster_name}-config",
        default_kubeconfig=kube_dir / "config",
        shell_profiles=tuple(home / name for name in SHELL_PROFILES),
        activation_script=home / "bin" / ACTIVATION_SCRIPT_NAME,
        mount_dirs=tuple(
            cfg.mount_root / f"{cfg.cluster_name}-{suffix}-disk" for _, suffix in cfg.node_roles
        ),
    )


# ============================================================================
# Config resolution
# ============================================================================

def resolve_config(
    vm_name: str | None = None,
    cpus: int | None = None,
    memory: int | None = None,
    disk: int | None = None,
    cluster_name: str | None = None,
    workers: int | None = None,
) -> ClusterConfig:
    """Merge CLI overrides, environment variables, and defaults.

    Resolution priority: CLI arguments > DEVCLUSTER_* environment variables > defaults.

    Args:
        vm_name: CLI override for the VM name, or None.
        cpus: CLI override for the VM CPU count, or None.
        memory: CLI override for the VM memory in GiB, or None.
        disk: CLI override for the VM disk size in GiB, or None.
        cluster_name: CLI override for the Kind cluster name, or None.
        workers: CLI override for the Kind worker count, or None.

    Returns:
        The resolved, immutable ClusterConfig.
    """
    overrides = {
        key: value
        for key, value in {
            "vm_name": vm_name,
            "cpus": cpus,
            "memory": memory,
            "disk": disk,
            "cluster_name": cluster_name,
            "workers": workers,
        }.items()
        if value is not None
    }
    # Re-validate through the constructor so CLI values get the same bounds as env values.
    return ClusterConfig(**overrides)


# ============================================================================
# Display
# ============================================================================

def display_config(cfg: ClusterConfig, paths: ClusterPaths) -> None:
    """Print the resolved configuration.

    Args:
        cfg: Resolved provisioning configuration.
        paths: Derived on-disk locations.
    """
    console.print(Panel.fit("Configuration", style="bold blue"))
    console.print("[yellow]Lima VM:[/yellow]")
    console.print(f"  vm_name         : {cfg.vm_name}")
    console.print(f"  cpus            : {cfg.cpus}")
    console.print(f"  memory          : {cfg.memory} GiB")
    console.print(f"  disk            : {cfg.disk} GiB")
    console.print(f"  vm_type         : {cfg.vm_type}")
    console.print(f"  docker_socket   : {paths.docker_socket}")
    console.print("[yellow]Kind cluster:[/yellow]")
    console.print(f"  cluster_name    : {cfg.cluster_name}")
    console.print(f"  workers         : {cfg.workers}")
    console.print(f"  kubeconfig      : {paths.kubeconfig}")
