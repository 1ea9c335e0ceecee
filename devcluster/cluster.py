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

"""Kind cluster lifecycle inside the VM's Docker runtime."""

from __future__ import annotations

import sh
from rich.panel import Panel

from devcluster import console, logger
from devcluster.config import ClusterConfig, ClusterPaths
from devcluster.constants import CONTROL_PLANE_TAINT, LIMA_COMMAND_TIMEOUT
from devcluster.errors import ProvisioningError
from devcluster.utils import docker_env, run_command, run_kubectl


def list_clusters(paths: ClusterPaths) -> list[str]:
    """List Kind clusters in the VM's runtime (empty if the listing fails)."""
    ok, stdout, stderr = run_command(["kind", "get", "clusters"], env=docker_env(paths.docker_socket))
    if not ok:
        logger.debug("kind get clusters failed: %s", stderr.strip())
        return []
    # kind prints "No kind clusters found." on stderr when empty.
    return [line.strip() for line in stdout.splitlines() if line.strip()]


def cluster_exists(name: str, paths: ClusterPaths) -> bool:
    return name in list_clusters(paths)


def ensure_cluster(cfg: ClusterConfig, paths: ClusterPaths) -> bool:
    """Create the Kind cluster unless one with the same name already exists.

    Args:
        cfg: Provisioning configuration with the cluster name.
        paths: Derived on-disk locations with the socket and topology descriptor.

    Returns:
        True if a cluster was created, False if an existing one was reused.

    Raises:
        ProvisioningError: If the cluster is still absent after creation.
        sh.ErrorReturnCode: If ``kind create cluster`` fails.
    """
    console.print(Panel.fit(f"Creating Kind cluster '{cfg.cluster_name}'", style="bold blue"))
    if cluster_exists(cfg.cluster_name, paths):
        console.print(f"[yellow]   Cluster '{cfg.cluster_name}' already exists, skipping creation[/yellow]")
        return False

    sh.kind(
        "create", "cluster",
        "--name", cfg.cluster_name,
        "--config", str(paths.kind_config),
        _env=docker_env(paths.docker_socket),
        _timeout=LIMA_COMMAND_TIMEOUT,
    )
    if not cluster_exists(cfg.cluster_name, paths):
        raise ProvisioningError(f"Kind cluster '{cfg.cluster_name}' not found after creation")
    console.print(f"[green]\u2705 Cluster '{cfg.cluster_name}' created[/green]")
    return True


def delete_cluster(cfg: ClusterConfig, paths: ClusterPaths) -> None:
    """Delete the Kind cluster if present. Never raises."""
    if not cluster_exists(cfg.cluster_name, paths):
        console.print(f"[yellow]\u26a0\ufe0f  Cluster '{cfg.cluster_name}' not found or already deleted[/yellow]")
        return
    console.print(f"[yellow]\u2139\ufe0f  Deleting Kind cluster '{cfg.cluster_name}'...[/yellow]")
    ok, _, stderr = run_command(
        ["kind", "delete", "cluster", "--name", cfg.cluster_name],
        timeout=LIMA_COMMAND_TIMEOUT,
        env=docker_env(paths.docker_socket),
    )
    if ok:
        console.print(f"[green]\u2705 Cluster '{cfg.cluster_name}' deleted[/green]")
    else:
        console.print(f"[yellow]\u26a0\ufe0f  Failed to delete cluster '{cfg.cluster_name}': {stderr.strip()[:200]}[/yellow]")


def taint_control_plane(cfg: ClusterConfig, paths: ClusterPaths) -> None:
    """Keep workloads off the control-plane node. Failure is only a warning."""
    console.print("[yellow]\u2139\ufe0f  Applying taints to control plane node...[/yellow]")
    ok, _, stderr = run_kubectl(
        ["taint", "nodes", cfg.control_plane_node, CONTROL_PLANE_TAINT, "--overwrite"],
        kubeconfig=paths.kubeconfig,
    )
    if ok:
        console.print(f"[green]\u2705 Tainted {cfg.control_plane_node}[/green]")
    else:
        console.print(f"[yellow]\u26a0\ufe0f  Could not taint {cfg.control_plane_node}: {stderr.strip()[:200]}[/yellow]")
