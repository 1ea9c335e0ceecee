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

"""Kubeconfig export, default-path symlink, and credential teardown."""

from __future__ import annotations

import os
import shutil
from pathlib import Path

import sh
from rich.panel import Panel

from devcluster import console, logger
from devcluster.config import ClusterConfig, ClusterPaths
from devcluster.constants import (
    KUBECONFIG_ENV,
    KUBECONFIG_MODE,
    LOCALHOST_SERVER,
    LOOPBACK_SERVER,
)
from devcluster.utils import docker_env, kube_env, run_kubectl


# ============================================================================
# Helpers
# ============================================================================

def link_default_kubeconfig(paths: ClusterPaths) -> bool:
    """Point the default kubeconfig at the cluster kubeconfig if it is unused.

    The link is created only when the default path is absent or empty; an
    existing non-empty default is never touched.

    Args:
        paths: Derived on-disk locations.

    Returns:
        True if the symlink was created.
    """
    default = paths.default_kubeconfig
    if default.is_dir():
        logger.warning("%s is a directory, not linking", default)
        return False
    if default.is_file() and default.stat().st_size > 0:
        return False
    default.parent.mkdir(parents=True, exist_ok=True)
    # Covers an empty file and a dangling symlink.
    default.unlink(missing_ok=True)
    default.symlink_to(paths.kubeconfig)
    console.print(f"[green]  \u2713 Created symlink from {default} to {paths.kubeconfig}[/green]")
    return True


def default_links_to_managed(paths: ClusterPaths) -> bool:
    """True if the default kubeconfig is a symlink to the managed kubeconfig."""
    default = paths.default_kubeconfig
    if not default.is_symlink():
        return False
    target = Path(os.readlink(default))
    if not target.is_absolute():
        target = default.parent / target
    return os.path.normpath(target) == os.path.normpath(paths.kubeconfig)


def normalize_server_endpoints(path: Path, backup: Path | None = None) -> bool:
    """Rewrite ``https://localhost:`` API endpoints to ``https://127.0.0.1:``.

    Args:
        path: Kubeconfig file to rewrite in place.
        backup: Where to keep a copy of the original file, or None.

    Returns:
        True if the file was changed.
    """
    text = path.read_text()
    if backup is not None:
        shutil.copy2(path, backup)
    if LOCALHOST_SERVER not in text:
        return False
    path.write_text(text.replace(LOCALHOST_SERVER, LOOPBACK_SERVER))
    return True


# ============================================================================
# Export / teardown
# ============================================================================

def export_kubeconfig(cfg: ClusterConfig, paths: ClusterPaths) -> Path:
    """Export the cluster's kubeconfig and make it the active one.

    Args:
        cfg: Provisioning configuration with the cluster name.
        paths: Derived on-disk locations.

    Returns:
        Path of the exported kubeconfig.

    Raises:
        sh.ErrorReturnCode: If kind cannot export the kubeconfig or the
            context cannot be selected.
    """
    console.print(Panel.fit("Configuring kubeconfig", style="bold blue"))
    paths.kubeconfig.parent.mkdir(parents=True, exist_ok=True)
    console.print(f"[yellow]\u2139\ufe0f  Exporting kubeconfig to {paths.kubeconfig}[/yellow]")
    sh.kind(
        "export", "kubeconfig",
        "--name", cfg.cluster_name,
        "--kubeconfig", str(paths.kubeconfig),
        _env=docker_env(paths.docker_socket),
    )
    paths.kubeconfig.chmod(KUBECONFIG_MODE)

    link_default_kubeconfig(paths)
    os.environ[KUBECONFIG_ENV] = str(paths.kubeconfig)

    if normalize_server_endpoints(paths.kubeconfig, backup=paths.kubeconfig_backup):
        console.print("[green]  \u2713 Replaced localhost API endpoint with 127.0.0.1[/green]")

    sh.kubectl("config", "use-context", cfg.kube_context, _env=kube_env(paths.kubeconfig))

    ok, stdout, _ = run_kubectl(["version", "--client"], kubeconfig=paths.kubeconfig)
    if ok:
        logger.info("kubectl client: %s", stdout.strip().splitlines()[0] if stdout.strip() else "unknown")
    console.print(f"[green]\u2705 Current kubectl context: {cfg.kube_context}[/green]")
    return paths.kubeconfig


def remove_kubeconfig(cfg: ClusterConfig, paths: ClusterPaths) -> None:
    """Remove the cluster's credentials. Never raises.

    Drops the ``kind-<cluster>`` context, cluster and user entries from the
    default kubeconfig, deletes the cluster kubeconfig and its backup, and
    removes the default symlink only if it still points at our file.

    Args:
        cfg: Provisioning configuration with the cluster name.
        paths: Derived on-disk locations.
    """
    if paths.default_kubeconfig.exists():
        for kind in ("delete-context", "delete-cluster", "delete-user"):
            ok, _, stderr = run_kubectl(
                ["config", kind, cfg.kube_context], kubeconfig=paths.default_kubeconfig
            )
            if not ok:
                logger.debug("kubectl config %s %s: %s", kind, cfg.kube_context, stderr.strip())

    owned_link = default_links_to_managed(paths)
    for path in (paths.kubeconfig, paths.kubeconfig_backup):
        try:
            path.unlink(missing_ok=True)
        except OSError as exc:
            logger.warning("Could not remove %s: %s", path, exc)

    if owned_link:
        try:
            paths.default_kubeconfig.unlink(missing_ok=True)
            console.print(f"[green]  \u2713 Removed symlink {paths.default_kubeconfig}[/green]")
        except OSError as exc:
            logger.warning("Could not remove %s: %s", paths.default_kubeconfig, exc)
    elif paths.default_kubeconfig.is_symlink():
        console.print(f"[yellow]   {paths.default_kubeconfig} no longer points at {paths.kubeconfig}, leaving it[/yellow]")

    if os.environ.get(KUBECONFIG_ENV) == str(paths.kubeconfig):
        del os.environ[KUBECONFIG_ENV]
    console.print(f"[green]\u2705 Kubeconfig for '{cfg.cluster_name}' removed[/green]")
