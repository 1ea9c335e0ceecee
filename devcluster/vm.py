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

"""Lima VM lifecycle: listing, idempotent create/start, readiness, teardown."""

from __future__ import annotations

import json
import shutil

import sh
from rich.panel import Panel

from devcluster import console, logger
from devcluster.config import ClusterConfig, ClusterPaths
from devcluster.constants import (
    LIMA_COMMAND_TIMEOUT,
    VM_READY_MAX_ATTEMPTS,
    VM_READY_POLL_INTERVAL_SECONDS,
    VM_STATUS_RUNNING,
    VM_STATUS_STOPPED,
)
from devcluster.errors import ProvisioningError
from devcluster.utils import docker_env, poll_until, run_command


# ============================================================================
# Queries
# ============================================================================

def parse_vm_listing(output: str) -> list[dict]:
    """Parse ``limactl list --json`` output.

    limactl prints one JSON document per instance; older releases print a
    single array instead. Lines that are not JSON objects are ignored.

    Args:
        output: Raw stdout of ``limactl list --json``.

    Returns:
        List of instance dictionaries (``name``, ``status``, ...).
    """
    text = output.strip()
    if not text:
        return []
    if text.startswith("["):
        try:
            return [item for item in json.loads(text) if isinstance(item, dict)]
        except json.JSONDecodeError:
            return []
    instances = []
    for line in text.splitlines():
        try:
            item = json.loads(line)
        except json.JSONDecodeError:
            logger.debug("Ignoring non-JSON limactl output: %s", line)
            continue
        if isinstance(item, dict):
            instances.append(item)
    return instances


def list_vms() -> list[dict]:
    """Return the Lima instances known to limactl (empty if the listing fails)."""
    ok, stdout, stderr = run_command(["limactl", "list", "--json"])
    if not ok:
        logger.debug("limactl list failed: %s", stderr.strip())
        return []
    return parse_vm_listing(stdout)


def vm_status(name: str) -> str | None:
    """Return the status of the named VM, or None if it does not exist."""
    for instance in list_vms():
        if instance.get("name") == name:
            return instance.get("status")
    return None


def wait_for_vm_status(name: str, status: str, fatal: bool = True) -> bool:
    """Poll the VM listing until *name* reports *status*.

    Bounded by VM_READY_MAX_ATTEMPTS calls spaced VM_READY_POLL_INTERVAL_SECONDS apart.

    Args:
        name: Lima instance name.
        status: Expected status (``Running`` or ``Stopped``).
        fatal: Raise instead of returning False when the bound is exceeded.

    Returns:
        True if the status was reached.

    Raises:
        ProvisioningError: If *fatal* and the status was not reached in time.
    """
    reached = poll_until(
        lambda: vm_status(name) == status,
        interval=VM_READY_POLL_INTERVAL_SECONDS,
        attempts=VM_READY_MAX_ATTEMPTS,
    )
    if not reached and fatal:
        ceiling = VM_READY_MAX_ATTEMPTS * VM_READY_POLL_INTERVAL_SECONDS
        raise ProvisioningError(f"Lima VM '{name}' did not reach {status} state within {ceiling}s")
    return reached


# ============================================================================
# Lifecycle
# ============================================================================

def ensure_vm(cfg: ClusterConfig) -> str:
    """Ensure exactly one VM named ``cfg.vm_name`` exists and is running.

    Args:
        cfg: Provisioning configuration with VM name and sizing.

    Returns:
        The action taken: ``"skipped"``, ``"started"`` or ``"created"``.

    Raises:
        ProvisioningError: If the VM is not running within the readiness bound.
        sh.ErrorReturnCode: If limactl fails to start or create the VM.
    """
    console.print(Panel.fit(f"Ensuring Lima VM '{cfg.vm_name}'", style="bold blue"))
    status = vm_status(cfg.vm_name)
    if status == VM_STATUS_RUNNING:
        console.print(f"[yellow]   VM '{cfg.vm_name}' is already running, skipping creation[/yellow]")
        action = "skipped"
    elif status is not None:
        console.print(f"[yellow]\u2139\ufe0f  VM '{cfg.vm_name}' exists ({status}), starting it...[/yellow]")
        sh.limactl("start", "--tty=false", cfg.vm_name, _timeout=LIMA_COMMAND_TIMEOUT)
        action = "started"
    else:
        console.print(
            f"[yellow]\u2139\ufe0f  Creating VM '{cfg.vm_name}' "
            f"({cfg.cpus} CPUs, {cfg.memory} GiB memory, {cfg.disk} GiB disk)...[/yellow]"
        )
        sh.limactl(
            "start", "--tty=false",
            "--name", cfg.vm_name,
            cfg.lima_template,
            "--cpus", str(cfg.cpus),
            "--memory", str(cfg.memory),
            "--disk", str(cfg.disk),
            "--vm-type", cfg.vm_type,
            _timeout=LIMA_COMMAND_TIMEOUT,
        )
        action = "created"

    wait_for_vm_status(cfg.vm_name, VM_STATUS_RUNNING)
    console.print(f"[green]\u2705 Lima VM '{cfg.vm_name}' is running[/green]")
    return action


def _remove_socket_files(paths: ClusterPaths) -> None:
    try:
        if not paths.vm_socket_dir.is_dir():
            return
        entries = list(paths.vm_socket_dir.iterdir())
    except OSError as exc:
        logger.warning("Could not list %s: %s", paths.vm_socket_dir, exc)
        return
    for entry in entries:
        try:
            if entry.is_dir() and not entry.is_symlink():
                shutil.rmtree(entry)
            else:
                entry.unlink()
        except OSError as exc:
            logger.warning("Could not remove %s: %s", entry, exc)


def delete_vm(cfg: ClusterConfig, paths: ClusterPaths) -> None:
    """Tear down the VM and everything running inside it. Never raises.

    Deletes any Kind cluster in the VM's runtime, stops the VM, waits for it
    to stop, force-deletes it and removes leftover socket files.

    Args:
        cfg: Provisioning configuration with VM and cluster names.
        paths: Derived on-disk locations.
    """
    console.print(f"[yellow]\u2139\ufe0f  Deleting Lima VM '{cfg.vm_name}'...[/yellow]")
    status = vm_status(cfg.vm_name)
    if status is None:
        console.print(f"[yellow]\u26a0\ufe0f  VM '{cfg.vm_name}' not found or already deleted[/yellow]")
    else:
        if status == VM_STATUS_RUNNING:
            ok, _, stderr = run_command(
                ["kind", "delete", "cluster", "--name", cfg.cluster_name],
                timeout=LIMA_COMMAND_TIMEOUT,
                env=docker_env(paths.docker_socket),
            )
            if not ok:
                logger.info("kind delete inside VM skipped: %s", stderr.strip())

            ok, _, stderr = run_command(["limactl", "stop", cfg.vm_name], timeout=LIMA_COMMAND_TIMEOUT)
            if not ok:
                logger.warning("limactl stop %s failed: %s", cfg.vm_name, stderr.strip())
            if not wait_for_vm_status(cfg.vm_name, VM_STATUS_STOPPED, fatal=False):
                console.print(f"[yellow]\u26a0\ufe0f  VM '{cfg.vm_name}' did not report Stopped, forcing deletion[/yellow]")

        ok, _, stderr = run_command(
            ["limactl", "delete", "--force", cfg.vm_name], timeout=LIMA_COMMAND_TIMEOUT
        )
        if not ok:
            logger.warning("limactl delete %s failed: %s", cfg.vm_name, stderr.strip())

    _remove_socket_files(paths)
    console.print(f"[green]\u2705 Lima VM '{cfg.vm_name}' cleanup completed[/green]")
