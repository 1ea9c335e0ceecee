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

"""Provisioning workflows that compose the domain modules into a step graph."""

from __future__ import annotations

import json
import shutil

from rich.panel import Panel

from devcluster import console, logger
from devcluster.cluster import delete_cluster, ensure_cluster, taint_control_plane
from devcluster.cni import install_calico, uninstall_calico, wait_for_calico
from devcluster.config import ClusterConfig, ClusterPaths, display_config, resolve_paths
from devcluster.constants import REQUIRED_COMMANDS
from devcluster.graph import GraphRun, Step, StepGraph
from devcluster.health import CheckResult, print_usage_summary, verify_cluster
from devcluster.host import (
    install_launch_agent,
    setup_docker_context,
    teardown_docker_context,
    uninstall_launch_agent,
)
from devcluster.kubeconfig import export_kubeconfig, remove_kubeconfig
from devcluster.profiles import register_shell_environment, unregister_shell_environment
from devcluster.utils import require_command
from devcluster.vm import delete_vm, ensure_vm
from devcluster.workspace import ensure_mount_dirs, remove_kind_config, write_kind_config

# ============================================================================
# Internal helpers
# ============================================================================


def _check_prerequisites() -> None:
    """Check that every external CLI is installed.

    Raises:
        RuntimeError: If a command is missing.
    """
    console.print(Panel.fit("Checking prerequisites", style="bold blue"))
    for cmd in REQUIRED_COMMANDS:
        require_command(cmd)
    console.print("[green]\u2705 All required tools are available[/green]")


def _verify_step(cfg: ClusterConfig, paths: ClusterPaths) -> None:
    verify_cluster(cfg, paths)
    print_usage_summary(cfg, paths)


def build_graph(cfg: ClusterConfig, paths: ClusterPaths, *, skip_launch_agent: bool = False) -> StepGraph:
    """Assemble the provisioning steps and their dependency edges.

    Args:
        cfg: Resolved provisioning configuration.
        paths: Derived on-disk locations.
        skip_launch_agent: Leave the boot-time launch entry out of the graph.

    Returns:
        The step graph, ready for ``create()`` or ``destroy()``.
    """
    graph = StepGraph()
    graph.add(Step("create-dirs", lambda: ensure_mount_dirs(cfg, paths)))
    graph.add(Step(
        "create-kind-config",
        lambda: write_kind_config(cfg, paths),
        lambda: remove_kind_config(paths),
    ))
    graph.add(Step(
        "lima-vm",
        lambda: ensure_vm(cfg),
        lambda: delete_vm(cfg, paths),
        depends_on=("create-dirs", "create-kind-config"),
    ))

    cluster_deps = ["docker-context"]
    if not skip_launch_agent:
        graph.add(Step(
            "launch-agent",
            lambda: install_launch_agent(cfg, paths),
            lambda: uninstall_launch_agent(paths),
            depends_on=("lima-vm",),
        ))
        cluster_deps.insert(0, "launch-agent")
    graph.add(Step(
        "docker-context",
        lambda: setup_docker_context(cfg, paths),
        lambda: teardown_docker_context(paths),
        depends_on=("lima-vm",),
    ))

    graph.add(Step(
        "kind-cluster",
        lambda: ensure_cluster(cfg, paths),
        lambda: delete_cluster(cfg, paths),
        depends_on=tuple(cluster_deps),
    ))
    graph.add(Step(
        "export-kubeconfig",
        lambda: export_kubeconfig(cfg, paths),
        lambda: remove_kubeconfig(cfg, paths),
        depends_on=("kind-cluster",),
    ))
    graph.add(Step(
        "shell-profiles",
        lambda: register_shell_environment(cfg, paths),
        lambda: unregister_shell_environment(paths),
        depends_on=("export-kubeconfig",),
    ))
    graph.add(Step(
        "taint-control-plane",
        lambda: taint_control_plane(cfg, paths),
        depends_on=("export-kubeconfig",),
    ))
    graph.add(Step(
        "install-calico",
        lambda: install_calico(cfg, paths),
        lambda: uninstall_calico(paths),
        depends_on=("export-kubeconfig",),
    ))
    graph.add(Step(
        "wait-for-calico",
        lambda: wait_for_calico(paths),
        depends_on=("install-calico",),
    ))
    graph.add(Step(
        "verify-cluster",
        lambda: _verify_step(cfg, paths),
        depends_on=("wait-for-calico", "shell-profiles"),
    ))
    return graph


# ============================================================================
# Outputs
# ============================================================================

def stack_outputs(cfg: ClusterConfig, paths: ClusterPaths) -> dict[str, str]:
    return {"clusterName": cfg.cluster_name, "kubeconfigPath": str(paths.kubeconfig)}


def write_outputs(outputs: dict[str, str], paths: ClusterPaths) -> None:
    paths.outputs_file.parent.mkdir(parents=True, exist_ok=True)
    paths.outputs_file.write_text(json.dumps(outputs, indent=2) + "\n")


def read_outputs(paths: ClusterPaths) -> dict[str, str] | None:
    """Return the outputs of the last successful ``up``, or None."""
    try:
        return json.loads(paths.outputs_file.read_text())
    except (OSError, json.JSONDecodeError):
        return None


# ============================================================================
# Public API
# ============================================================================


def run_up(
    cfg: ClusterConfig,
    paths: ClusterPaths | None = None,
    *,
    skip_launch_agent: bool = False,
    check_prerequisites: bool = True,
) -> dict[str, str]:
    """Provision the VM, cluster, credentials, and CNI, then verify.

    Safe to re-run: every step re-queries external state and skips work that
    is already done.

    Args:
        cfg: Resolved provisioning configuration.
        paths: Derived on-disk locations, resolved from *cfg* if None.
        skip_launch_agent: Do not register the boot-time launch entry.
        check_prerequisites: Verify required CLIs are installed first.

    Returns:
        The run outputs: ``clusterName`` and ``kubeconfigPath``.

    Raises:
        StepGraphError: If any step fails fatally.
        RuntimeError: If a required command is missing.
    """
    paths = paths or resolve_paths(cfg)
    display_config(cfg, paths)
    if check_prerequisites:
        _check_prerequisites()

    run = build_graph(cfg, paths, skip_launch_agent=skip_launch_agent).create()
    run.raise_for_failures()

    outputs = stack_outputs(cfg, paths)
    write_outputs(outputs, paths)
    console.print(Panel.fit(
        "\n".join(f"{key}: {value}" for key, value in outputs.items()),
        title="Outputs",
        style="bold blue",
    ))
    return outputs


def run_down(cfg: ClusterConfig, paths: ClusterPaths | None = None) -> GraphRun:
    """Tear down everything ``run_up`` creates. Never raises.

    Args:
        cfg: Resolved provisioning configuration.
        paths: Derived on-disk locations, resolved from *cfg* if None.

    Returns:
        The teardown run; failures in it are informational only.
    """
    paths = paths or resolve_paths(cfg)
    console.print(Panel.fit(f"Tearing down '{cfg.cluster_name}' on VM '{cfg.vm_name}'", style="bold blue"))
    run = build_graph(cfg, paths).destroy()
    shutil.rmtree(paths.state_dir, ignore_errors=True)
    if run.failed:
        logger.warning("Teardown finished with %d ignored failure(s)", len(run.failed))
    console.print("[green]\u2705 Teardown complete[/green]")
    return run


def run_verify(cfg: ClusterConfig, paths: ClusterPaths | None = None) -> list[CheckResult]:
    """Run the health checks against an existing environment."""
    paths = paths or resolve_paths(cfg)
    return verify_cluster(cfg, paths)
