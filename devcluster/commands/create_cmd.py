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

"""Create subcommands (workspace, vm, cluster, kubeconfig)."""

from __future__ import annotations

import typer

from devcluster.cluster import ensure_cluster
from devcluster.commands import (
    cluster_name_option,
    cpus_option,
    disk_option,
    memory_option,
    vm_name_option,
    workers_option,
)
from devcluster.config import resolve_config, resolve_paths
from devcluster.kubeconfig import export_kubeconfig
from devcluster.vm import ensure_vm
from devcluster.workspace import ensure_mount_dirs, write_kind_config

app = typer.Typer(help="Create infrastructure resources.")


@app.command()
def workspace(
    cluster_name: str | None = cluster_name_option(),
    workers: int | None = workers_option(),
) -> None:
    """Create node mount directories and the Kind config."""
    cfg = resolve_config(cluster_name=cluster_name, workers=workers)
    paths = resolve_paths(cfg)
    ensure_mount_dirs(cfg, paths)
    write_kind_config(cfg, paths)


@app.command()
def vm(
    vm_name: str | None = vm_name_option(),
    cpus: int | None = cpus_option(),
    memory: int | None = memory_option(),
    disk: int | None = disk_option(),
) -> None:
    """Create or start the Lima VM and wait until it is running."""
    cfg = resolve_config(vm_name=vm_name, cpus=cpus, memory=memory, disk=disk)
    ensure_vm(cfg)


@app.command()
def cluster(
    vm_name: str | None = vm_name_option(),
    cluster_name: str | None = cluster_name_option(),
    workers: int | None = workers_option(),
) -> None:
    """Create the Kind cluster inside the VM (workspace is prepared first)."""
    cfg = resolve_config(vm_name=vm_name, cluster_name=cluster_name, workers=workers)
    paths = resolve_paths(cfg)
    if not paths.kind_config.exists():
        ensure_mount_dirs(cfg, paths)
        write_kind_config(cfg, paths)
    ensure_cluster(cfg, paths)


@app.command()
def kubeconfig(
    vm_name: str | None = vm_name_option(),
    cluster_name: str | None = cluster_name_option(),
) -> None:
    """Export the cluster kubeconfig and select its context."""
    cfg = resolve_config(vm_name=vm_name, cluster_name=cluster_name)
    export_kubeconfig(cfg, resolve_paths(cfg))
