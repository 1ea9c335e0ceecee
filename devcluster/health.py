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

"""Point-in-time health checks and the verification report.

Every check runs its own query and classifies the result as PASS, WARN or
FAIL. Checks never raise and never retry; a failing check does not stop the
others.
"""

from __future__ import annotations

import enum
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass

import docker
from rich.panel import Panel
from rich.table import Table

from devcluster import console, logger
from devcluster.cluster import cluster_exists
from devcluster.config import ClusterConfig, ClusterPaths
from devcluster.constants import (
    CALICO_SELECTOR,
    DNS_SELECTOR,
    DOCKER_PING_TIMEOUT_SECONDS,
    NS_KUBE_SYSTEM,
    VM_STATUS_RUNNING,
)
from devcluster.utils import kubectl_json, run_kubectl
from devcluster.vm import vm_status


class CheckStatus(str, enum.Enum):
    PASS = "PASS"
    WARN = "WARN"
    FAIL = "FAIL"


@dataclass(frozen=True)
class CheckResult:
    """Outcome of one health check.

    Attributes:
        name: Short identifier of the check.
        status: PASS, WARN or FAIL.
        detail: Human-readable explanation.
    """

    name: str
    status: CheckStatus
    detail: str = ""


def classify_counts(name: str, ok_count: int, total: int, noun: str) -> CheckResult:
    """Classify an ``ok/total`` count: none found is FAIL, partial is WARN."""
    detail = f"{ok_count}/{total} {noun}"
    if total == 0:
        return CheckResult(name, CheckStatus.FAIL, f"no {noun} found")
    if ok_count == total:
        return CheckResult(name, CheckStatus.PASS, detail)
    if ok_count == 0:
        return CheckResult(name, CheckStatus.FAIL, detail)
    return CheckResult(name, CheckStatus.WARN, detail)


def _running_pods(name: str, selector_args: list[str], paths: ClusterPaths, noun: str) -> CheckResult:
    pods = kubectl_json(["get", "pods", "-n", NS_KUBE_SYSTEM, *selector_args], kubeconfig=paths.kubeconfig)
    if pods is None:
        return CheckResult(name, CheckStatus.FAIL, "could not list pods")
    items = pods.get("items", [])
    running = sum(1 for pod in items if pod.get("status", {}).get("phase") == "Running")
    return classify_counts(name, running, len(items), noun)


# ============================================================================
# Checks
# ============================================================================

def check_vm_running(cfg: ClusterConfig, paths: ClusterPaths) -> CheckResult:
    status = vm_status(cfg.vm_name)
    if status == VM_STATUS_RUNNING:
        return CheckResult("vm_running", CheckStatus.PASS, f"{cfg.vm_name} is {status}")
    return CheckResult("vm_running", CheckStatus.FAIL, f"{cfg.vm_name} is {status or 'absent'}")


def check_runtime_reachable(cfg: ClusterConfig, paths: ClusterPaths) -> CheckResult:
    try:
        client = docker.DockerClient(
            base_url=f"unix://{paths.docker_socket}", timeout=DOCKER_PING_TIMEOUT_SECONDS
        )
    except Exception as e:
        return CheckResult("runtime_reachable", CheckStatus.FAIL, f"Failed to connect to Docker: {e}")
    try:
        client.ping()
        version = client.version().get("Version", "unknown")
    except docker.errors.APIError as e:
        return CheckResult("runtime_reachable", CheckStatus.FAIL, f"Docker API error: {e}")
    except Exception as e:
        return CheckResult("runtime_reachable", CheckStatus.FAIL, str(e))
    finally:
        client.close()
    return CheckResult("runtime_reachable", CheckStatus.PASS, f"Docker {version} at {paths.docker_socket}")


def check_cluster_present(cfg: ClusterConfig, paths: ClusterPaths) -> CheckResult:
    if cluster_exists(cfg.cluster_name, paths):
        return CheckResult("cluster_present", CheckStatus.PASS, f"kind cluster {cfg.cluster_name}")
    return CheckResult("cluster_present", CheckStatus.FAIL, f"kind cluster {cfg.cluster_name} not found")


def check_api_reachable(cfg: ClusterConfig, paths: ClusterPaths) -> CheckResult:
    ok, stdout, stderr = run_kubectl(["cluster-info"], kubeconfig=paths.kubeconfig)
    if ok:
        first = stdout.strip().splitlines()[0] if stdout.strip() else "cluster-info ok"
        return CheckResult("api_reachable", CheckStatus.PASS, first)
    return CheckResult("api_reachable", CheckStatus.FAIL, stderr.strip()[:200] or "cluster-info failed")


def check_nodes_ready(cfg: ClusterConfig, paths: ClusterPaths) -> CheckResult:
    nodes = kubectl_json(["get", "nodes"], kubeconfig=paths.kubeconfig)
    if nodes is None:
        return CheckResult("nodes_ready", CheckStatus.FAIL, "could not list nodes")
    items = nodes.get("items", [])
    ready = sum(
        1 for node in items
        if any(
            cond.get("type") == "Ready" and cond.get("status") == "True"
            for cond in node.get("status", {}).get("conditions", [])
        )
    )
    result = classify_counts("nodes_ready", ready, len(items), "nodes Ready")
    expected = len(cfg.node_roles)
    if result.status is CheckStatus.PASS and len(items) != expected:
        return CheckResult("nodes_ready", CheckStatus.WARN, f"{result.detail}, expected {expected}")
    return result


def check_system_pods_running(cfg: ClusterConfig, paths: ClusterPaths) -> CheckResult:
    return _running_pods("system_pods_running", [], paths, "kube-system pods Running")


def check_cni_healthy(cfg: ClusterConfig, paths: ClusterPaths) -> CheckResult:
    return _running_pods("cni_healthy", ["-l", CALICO_SELECTOR], paths, "calico-node pods Running")


def check_dns_healthy(cfg: ClusterConfig, paths: ClusterPaths) -> CheckResult:
    return _running_pods("dns_healthy", ["-l", DNS_SELECTOR], paths, "DNS pods Running")


HEALTH_CHECKS: list[tuple[str, Callable[[ClusterConfig, ClusterPaths], CheckResult]]] = [
    ("vm_running", check_vm_running),
    ("runtime_reachable", check_runtime_reachable),
    ("cluster_present", check_cluster_present),
    ("api_reachable", check_api_reachable),
    ("nodes_ready", check_nodes_ready),
    ("system_pods_running", check_system_pods_running),
    ("cni_healthy", check_cni_healthy),
    ("dns_healthy", check_dns_healthy),
]


def _run_isolated(
    name: str,
    check: Callable[[ClusterConfig, ClusterPaths], CheckResult],
    cfg: ClusterConfig,
    paths: ClusterPaths,
) -> CheckResult:
    try:
        return check(cfg, paths)
    except Exception as e:
        logger.debug("Health check %s raised", name, exc_info=True)
        return CheckResult(name, CheckStatus.FAIL, f"check error: {e}")


def run_health_checks(cfg: ClusterConfig, paths: ClusterPaths) -> list[CheckResult]:
    """Run every health check concurrently.

    Returns:
        One result per check, in HEALTH_CHECKS order.
    """
    with ThreadPoolExecutor(max_workers=len(HEALTH_CHECKS)) as executor:
        futures = [
            executor.submit(_run_isolated, name, check, cfg, paths)
            for name, check in HEALTH_CHECKS
        ]
        return [future.result() for future in futures]


# ============================================================================
# Report
# ============================================================================

_STATUS_STYLE = {
    CheckStatus.PASS: "green",
    CheckStatus.WARN: "yellow",
    CheckStatus.FAIL: "red",
}


def render_report(results: list[CheckResult]) -> Table:
    table = Table(title="Cluster health")
    table.add_column("Check")
    table.add_column("Status")
    table.add_column("Detail")
    for result in results:
        style = _STATUS_STYLE[result.status]
        table.add_row(result.name, f"[{style}]{result.status.value}[/{style}]", result.detail)
    return table


def print_troubleshooting(cfg: ClusterConfig, paths: ClusterPaths) -> None:
    console.print("[red]\u274c Failed to connect to Kubernetes cluster[/red]")
    console.print("Troubleshooting steps:")
    console.print(f"  1. Check the cluster exists in the Lima VM: DOCKER_HOST=unix://{paths.docker_socket} kind get clusters")
    console.print(f"  2. Your kubeconfig is at: {paths.kubeconfig}")
    console.print(f"  3. Try running: source {paths.activation_script}")
    console.print(f"  4. Or explicitly: kubectl --kubeconfig={paths.kubeconfig} get nodes")


def print_cluster_resources(paths: ClusterPaths) -> None:
    for title, args in (
        ("Kubernetes Nodes:", ["get", "nodes", "-o", "wide"]),
        ("Kubernetes System Pods:", ["-n", NS_KUBE_SYSTEM, "get", "pods"]),
    ):
        ok, stdout, _ = run_kubectl(args, kubeconfig=paths.kubeconfig)
        if ok:
            console.print(f"\n[bold]{title}[/bold]")
            console.print(stdout, markup=False)


def print_usage_summary(cfg: ClusterConfig, paths: ClusterPaths) -> None:
    console.print(Panel.fit(
        "To use kubectl with this cluster, do ONE of the following:\n"
        "  1. In a new terminal: source ~/.bashrc  (or ~/.zshrc)\n"
        f"  2. In this terminal: export KUBECONFIG={paths.kubeconfig}\n"
        f"  3. Run the helper script: source {paths.activation_script}\n"
        "\n"
        f"Cluster Name: {cfg.cluster_name}\n"
        f"Lima VM Name: {cfg.vm_name}",
        title="Setup complete",
        style="bold green",
    ))


def verify_cluster(cfg: ClusterConfig, paths: ClusterPaths) -> list[CheckResult]:
    """Run the health checks and print a report. Never raises.

    Args:
        cfg: Provisioning configuration.
        paths: Derived on-disk locations.

    Returns:
        The check results in fixed order.
    """
    console.print(Panel.fit("Verifying Kubernetes cluster", style="bold blue"))
    results = run_health_checks(cfg, paths)
    by_name = {result.name: result for result in results}
    if by_name["api_reachable"].status is CheckStatus.PASS:
        console.print("[green]\u2705 Successfully connected to Kubernetes cluster[/green]")
        print_cluster_resources(paths)
    else:
        print_troubleshooting(cfg, paths)

    console.print(render_report(results))
    failed = [r.name for r in results if r.status is not CheckStatus.PASS]
    if failed:
        console.print(f"[yellow]\u26a0\ufe0f  {len(failed)} check(s) not passing: {', '.join(failed)}[/yellow]")
    return results
