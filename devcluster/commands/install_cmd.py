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

"""Install subcommands (calico, shell-profiles, launch-agent, docker-context)."""

from __future__ import annotations

import typer

from devcluster.cni import install_calico, wait_for_calico
from devcluster.commands import cluster_name_option, vm_name_option
from devcluster.config import resolve_config, resolve_paths
from devcluster.host import install_launch_agent, setup_docker_context
from devcluster.profiles import register_shell_environment

app = typer.Typer(help="Install components and host integration.")


@app.command()
def calico(
    cluster_name: str | None = cluster_name_option(),
    wait: bool = typer.Option(True, "--wait/--no-wait", help="Wait for calico-node pods to be ready"),
) -> None:
    """Install Calico CNI into the cluster."""
    cfg = resolve_config(cluster_name=cluster_name)
    paths = resolve_paths(cfg)
    install_calico(cfg, paths)
    if wait:
        wait_for_calico(paths)


@app.command("shell-profiles")
def shell_profiles(cluster_name: str | None = cluster_name_option()) -> None:
    """Add ``export KUBECONFIG`` to ~/.zshrc and ~/.bashrc and write the helper script."""
    cfg = resolve_config(cluster_name=cluster_name)
    register_shell_environment(cfg, resolve_paths(cfg))


@app.command("launch-agent")
def launch_agent(vm_name: str | None = vm_name_option()) -> None:
    """Start the VM automatically at login."""
    cfg = resolve_config(vm_name=vm_name)
    install_launch_agent(cfg, resolve_paths(cfg))


@app.command("docker-context")
def docker_context(vm_name: str | None = vm_name_option()) -> None:
    """Create and select the Docker context for the VM."""
    cfg = resolve_config(vm_name=vm_name)
    setup_docker_context(cfg, resolve_paths(cfg))
