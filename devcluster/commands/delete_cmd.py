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

"""Delete subcommands (workspace, vm, cluster, kubeconfig)."""

from __future__ import annotations

import typer

from devcluster.cluster import delete_cluster
from devcluster.commands import cluster_name_option, vm_name_option
from devcluster.config import resolve_config, resolve_paths
from devcluster.kubeconfig import remove_kubeconfig
from devcluster.vm import delete_vm
from devcluster.workspace import remove_kind_config

app = typer.Typer(help="Delete infrastructure resources.")


@app.command()
def workspace(cluster_name: str | None = cluster_name_option()) -> None:
    """Remove the Kind config (node mount directories are kept)."""
    cfg = resolve_config(cluster_name=cluster_name)
    remove_kind_config(resolve_paths(cfg))


@app.command()
def vm(
    vm_name: str | None = vm_name_option(),
    cluster_name: str | None = cluster_name_option(),
) -> None:
    """Delete the Lima VM and anything running in it."""
    cfg = resolve_config(vm_name=vm_name, cluster_name=cluster_name)
    delete_vm(cfg, resolve_paths(cfg))


@app.command()
def cluster(
    vm_name: str | None = vm_name_option(),
    cluster_name: str | None = cluster_name_option(),
) -> None:
    """Delete the Kind cluster."""
    cfg = resolve_config(vm_name=vm_name, cluster_name=cluster_name)
    delete_cluster(cfg, resolve_paths(cfg))


@app.command()
def kubeconfig(cluster_name: str | None = cluster_name_option()) -> None:
    """Remove the cluster kubeconfig, its context, and the default symlink we own."""
    cfg = resolve_config(cluster_name=cluster_name)
    remove_kubeconfig(cfg, resolve_paths(cfg))
