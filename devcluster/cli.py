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

"""
cli.py - Local Lima + Kind Kubernetes development environment.

Commands:
    up         Provision VM, Docker context, Kind cluster, kubeconfig, Calico; verify
    down       Tear everything down (best-effort)
    verify     Run the health checks against an existing environment
    outputs    Print the outputs of the last successful `up`
    create     Create individual resources (workspace, vm, cluster, kubeconfig)
    delete     Delete individual resources (workspace, vm, cluster, kubeconfig)
    install    Install components (calico, shell-profiles, launch-agent, docker-context)

Environment Variables:
    DEVCLUSTER_VM_NAME (default: myk8s-docker)
    DEVCLUSTER_CPUS (default: 8)
    DEVCLUSTER_MEMORY (default: 16, GiB)
    DEVCLUSTER_DISK (default: 500, GiB)
    DEVCLUSTER_CLUSTER_NAME (default: myk8s)
    DEVCLUSTER_WORKERS (default: 3)

Examples:
    # Full setup with defaults
    devcluster up

    # Smaller VM
    devcluster up --cpus 4 --memory 8 --disk 100

    # Re-check an existing environment
    devcluster verify

    # Remove everything
    devcluster down
"""

from __future__ import annotations

import json
import logging
import sys

import typer

from devcluster import console
from devcluster.commands import (
    cluster_name_option,
    cpus_option,
    create_cmd,
    delete_cmd,
    disk_option,
    install_cmd,
    memory_option,
    vm_name_option,
    workers_option,
)
from devcluster.config import resolve_config, resolve_paths
from devcluster.health import CheckStatus
from devcluster.pipeline import read_outputs, run_down, run_up, run_verify

app = typer.Typer(
    help="Local Lima + Kind Kubernetes development environment.",
    no_args_is_help=True,
)


@app.callback()
def _main_callback(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Initialize logging for all subcommands."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%H:%M:%S",
    )


@app.command()
def up(
    vm_name: str | None = vm_name_option(),
    cpus: int | None = cpus_option(),
    memory: int | None = memory_option(),
    disk: int | None = disk_option(),
    cluster_name: str | None = cluster_name_option(),
    workers: int | None = workers_option(),
    skip_launch_agent: bool = typer.Option(
        False, "--skip-launch-agent", help="Do not start the VM automatically at login"),
) -> None:
    """Provision the full environment. Safe to re-run."""
    cfg = resolve_config(
        vm_name=vm_name, cpus=cpus, memory=memory, disk=disk,
        cluster_name=cluster_name, workers=workers,
    )
    run_up(cfg, skip_launch_agent=skip_launch_agent)


@app.command()
def down(
    vm_name: str | None = vm_name_option(),
    cluster_name: str | None = cluster_name_option(),
) -> None:
    """Tear down everything `up` creates."""
    cfg = resolve_config(vm_name=vm_name, cluster_name=cluster_name)
    run_down(cfg)


@app.command()
def verify(
    vm_name: str | None = vm_name_option(),
    cluster_name: str | None = cluster_name_option(),
    workers: int | None = workers_option(),
    strict: bool = typer.Option(False, "--strict", help="Exit non-zero unless every check passes"),
) -> None:
    """Run the health checks and print a report."""
    cfg = resolve_config(vm_name=vm_name, cluster_name=cluster_name, workers=workers)
    results = run_verify(cfg)
    if strict and any(r.status is not CheckStatus.PASS for r in results):
        raise typer.Exit(code=1)


@app.command()
def outputs(cluster_name: str | None = cluster_name_option()) -> None:
    """Print the outputs of the last successful `up` as JSON."""
    cfg = resolve_config(cluster_name=cluster_name)
    data = read_outputs(resolve_paths(cfg))
    if data is None:
        console.print(f"[yellow]\u26a0\ufe0f  No outputs recorded for '{cfg.cluster_name}'[/yellow]")
        raise typer.Exit(code=1)
    typer.echo(json.dumps(data, indent=2))


app.add_typer(create_cmd.app, name="create")
app.add_typer(delete_cmd.app, name="delete")
app.add_typer(install_cmd.app, name="install")


def main() -> None:
    try:
        app()
    except Exception as e:
        console.print(f"[red]\u274c {e}[/red]")
        sys.exit(1)


if __name__ == "__main__":
    main()
