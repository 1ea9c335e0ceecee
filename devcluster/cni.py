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

"""Calico CNI installation, overlay tuning, and readiness polling."""

from __future__ import annotations

from pathlib import Path

import sh
from rich.panel import Panel
from tenacity import RetryError, retry, stop_after_attempt, wait_fixed

from devcluster import console, logger
from devcluster.config import ClusterConfig, ClusterPaths
from devcluster.constants import (
    CALICO_APPLY_MAX_RETRIES,
    CALICO_APPLY_RETRY_WAIT_SECONDS,
    CALICO_DAEMONSET,
    CALICO_READY_POLL_INTERVAL_SECONDS,
    CALICO_READY_TIMEOUT_SECONDS,
    CALICO_SELECTOR,
    CALICO_WAIT_ATTEMPT_TIMEOUT,
    NS_KUBE_SYSTEM,
    dep_value,
)
from devcluster.errors import ProvisioningError
from devcluster.utils import kube_env, kubectl_json, poll_until, run_kubectl


def calico_manifest_url() -> str:
    return dep_value("calico", "manifest")


# ============================================================================
# Install
# ============================================================================

@retry(
    stop=stop_after_attempt(CALICO_APPLY_MAX_RETRIES),
    wait=wait_fixed(CALICO_APPLY_RETRY_WAIT_SECONDS),
    reraise=True,
)
def _apply_manifest(url: str, kubeconfig: Path) -> None:
    """Apply a manifest with retry for API server readiness.

    Raises:
        RuntimeError: If kubectl apply fails.
    """
    ok, _, stderr = run_kubectl(["apply", "-f", url], kubeconfig=kubeconfig, timeout=120)
    if not ok:
        logger.warning("kubectl apply -f %s failed: %s", url, stderr.strip()[:200])
        raise RuntimeError(stderr.strip() or "kubectl apply failed")


def apply_calico_manifest(url: str, kubeconfig: Path) -> None:
    """Apply the Calico manifest, retrying a fixed number of times.

    Raises:
        ProvisioningError: If every attempt fails.
    """
    try:
        _apply_manifest(url, kubeconfig)
    except (RuntimeError, RetryError) as err:
        raise ProvisioningError(
            f"Failed to apply Calico manifest after {CALICO_APPLY_MAX_RETRIES} attempts: {err}"
        ) from err


def configure_calico_overlay(kubeconfig: Path) -> None:
    """Switch the IPv4 pool to VXLAN and disable IP-in-IP on calico-node."""
    overlay_env = dep_value("calico", "env", default={})
    for key, value in overlay_env.items():
        sh.kubectl(
            "set", "env", "-n", NS_KUBE_SYSTEM, CALICO_DAEMONSET, f"{key}={value}",
            _env=kube_env(kubeconfig),
        )


def install_calico(cfg: ClusterConfig, paths: ClusterPaths) -> None:
    """Install Calico and tune its overlay mode.

    Args:
        cfg: Provisioning configuration.
        paths: Derived on-disk locations with the kubeconfig.

    Raises:
        ProvisioningError: If the manifest cannot be applied.
    """
    console.print(Panel.fit(f"Installing Calico CNI ({dep_value('calico', 'version')})", style="bold blue"))
    apply_calico_manifest(calico_manifest_url(), paths.kubeconfig)
    configure_calico_overlay(paths.kubeconfig)
    console.print("[green]\u2705 Calico manifest applied[/green]")


def uninstall_calico(paths: ClusterPaths) -> None:
    """Delete the Calico manifest, ignoring absence. Never raises."""
    console.print("[yellow]\u2139\ufe0f  Removing Calico CNI...[/yellow]")
    ok, _, stderr = run_kubectl(
        ["delete", "-f", calico_manifest_url(), "--ignore-not-found=true"],
        kubeconfig=paths.kubeconfig,
        timeout=120,
    )
    if not ok:
        logger.info("Calico removal skipped: %s", stderr.strip()[:200])


# ============================================================================
# Readiness
# ============================================================================

def count_ready_pods(pod_list: dict | None) -> tuple[int, int]:
    """Count pods whose containers all report ready.

    Args:
        pod_list: Parsed ``kubectl get pods -o json`` document, or None.

    Returns:
        Tuple of (ready_pods, total_pods).
    """
    items = (pod_list or {}).get("items", [])
    ready = 0
    for pod in items:
        statuses = pod.get("status", {}).get("containerStatuses") or []
        if statuses and all(status.get("ready") for status in statuses):
            ready += 1
    return ready, len(items)


def calico_pods_ready(kubeconfig: Path) -> bool:
    """One readiness probe: ``kubectl wait`` first, pod counting as fallback."""
    ok, _, _ = run_kubectl(
        ["wait", "--for=condition=ready", "pods", "-l", CALICO_SELECTOR,
         "-n", NS_KUBE_SYSTEM, f"--timeout={CALICO_WAIT_ATTEMPT_TIMEOUT}"],
        kubeconfig=kubeconfig,
    )
    if ok:
        return True
    ready, total = count_ready_pods(
        kubectl_json(["get", "pods", "-n", NS_KUBE_SYSTEM, "-l", CALICO_SELECTOR], kubeconfig=kubeconfig)
    )
    if total >= 1 and ready == total:
        return True
    console.print(f"[yellow]   Waiting for Calico pods... ({ready}/{total} ready)[/yellow]")
    return False


def wait_for_calico(paths: ClusterPaths) -> bool:
    """Block until the calico-node pods are ready or the timeout elapses.

    A timeout is reported as a warning together with the current pod status.

    Returns:
        True if Calico became ready.
    """
    console.print("[yellow]\u2139\ufe0f  Waiting for Calico pods to be ready...[/yellow]")
    ready = poll_until(
        lambda: calico_pods_ready(paths.kubeconfig),
        interval=CALICO_READY_POLL_INTERVAL_SECONDS,
        timeout=CALICO_READY_TIMEOUT_SECONDS,
    )
    if ready:
        console.print("[green]\u2705 All Calico pods are ready[/green]")
        return True

    console.print("[yellow]\u26a0\ufe0f  Timed out waiting for Calico pods to be ready[/yellow]")
    _, stdout, stderr = run_kubectl(
        ["-n", NS_KUBE_SYSTEM, "get", "pods", "-l", CALICO_SELECTOR], kubeconfig=paths.kubeconfig
    )
    console.print(stdout or stderr, markup=False)
    return False
