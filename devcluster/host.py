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

"""Host integration: boot-time launch entry and the Docker CLI context."""

from __future__ import annotations

import plistlib
import shutil
import sys

import sh
from rich.panel import Panel

from devcluster import console, logger
from devcluster.config import ClusterConfig, ClusterPaths
from devcluster.constants import DOCKER_DEFAULT_CONTEXT, LAUNCHD_LABEL_PREFIX, dep_value
from devcluster.utils import run_command


# ============================================================================
# Launch agent
# ============================================================================

def limactl_binary() -> str:
    """Absolute path of limactl for use in launch descriptors."""
    return shutil.which("limactl") or dep_value("lima", "fallback_binary", default="limactl")


def launchd_plist(cfg: ClusterConfig) -> bytes:
    """Render the launchd agent that starts the VM at login."""
    return plistlib.dumps({
        "Label": f"{LAUNCHD_LABEL_PREFIX}.{cfg.vm_name}",
        "ProgramArguments": [limactl_binary(), "start", cfg.vm_name],
        "RunAtLoad": True,
        "KeepAlive": False,
    })


def systemd_unit(cfg: ClusterConfig) -> str:
    """Render the systemd user unit that starts the VM at login."""
    limactl = limactl_binary()
    return (
        "[Unit]\n"
        f"Description=Lima VM {cfg.vm_name}\n"
        "\n"
        "[Service]\n"
        "Type=oneshot\n"
        "RemainAfterExit=yes\n"
        f"ExecStart={limactl} start {cfg.vm_name}\n"
        f"ExecStop={limactl} stop {cfg.vm_name}\n"
        "\n"
        "[Install]\n"
        "WantedBy=default.target\n"
    )


def install_launch_agent(cfg: ClusterConfig, paths: ClusterPaths) -> None:
    """Register a boot-time launch entry for the VM.

    launchd on macOS, a systemd user unit elsewhere.

    Args:
        cfg: Provisioning configuration with the VM name.
        paths: Derived on-disk locations.

    Raises:
        sh.ErrorReturnCode: If ``launchctl load`` fails.
    """
    console.print(Panel.fit("Registering VM launch agent", style="bold blue"))
    paths.launch_agent.parent.mkdir(parents=True, exist_ok=True)
    if sys.platform == "darwin":
        # launchctl refuses to load a label that is already loaded.
        run_command(["launchctl", "unload", str(paths.launch_agent)])
        paths.launch_agent.write_bytes(launchd_plist(cfg))
        sh.launchctl("load", str(paths.launch_agent))
    else:
        paths.launch_agent.write_text(systemd_unit(cfg))
        for args in (["daemon-reload"], ["enable", paths.launch_agent.name]):
            ok, _, stderr = run_command(["systemctl", "--user", *args])
            if not ok:
                console.print(f"[yellow]\u26a0\ufe0f  systemctl --user {' '.join(args)} failed: {stderr.strip()[:200]}[/yellow]")
    console.print(f"[green]\u2705 Launch agent written to {paths.launch_agent}[/green]")


def uninstall_launch_agent(paths: ClusterPaths) -> None:
    """Unload and remove the launch entry. Never raises."""
    if sys.platform == "darwin":
        run_command(["launchctl", "unload", str(paths.launch_agent)])
    else:
        run_command(["systemctl", "--user", "disable", paths.launch_agent.name])
    try:
        paths.launch_agent.unlink(missing_ok=True)
    except OSError as exc:
        logger.warning("Could not remove %s: %s", paths.launch_agent, exc)
    console.print("[green]\u2705 Launch agent removed[/green]")


# ============================================================================
# Docker context
# ============================================================================

def current_docker_context() -> str | None:
    ok, stdout, _ = run_command(["docker", "context", "show"])
    return stdout.strip() if ok else None


def setup_docker_context(cfg: ClusterConfig, paths: ClusterPaths) -> None:
    """Create the ``lima-<vm>`` Docker context and make it current.

    A stale context of the same name is replaced. Individual failures are
    reported as warnings.

    Args:
        cfg: Provisioning configuration with the VM name.
        paths: Derived on-disk locations with the socket and context name.
    """
    console.print(Panel.fit(f"Configuring Docker context '{paths.docker_context}'", style="bold blue"))
    run_command(["docker", "context", "rm", paths.docker_context])
    steps = [
        ["docker", "context", "create", paths.docker_context,
         "--docker", f"host=unix://{paths.docker_socket}"],
        ["docker", "context", "use", paths.docker_context],
    ]
    for args in steps:
        ok, _, stderr = run_command(args)
        if not ok:
            console.print(f"[yellow]\u26a0\ufe0f  {' '.join(args[:3])} failed: {stderr.strip()[:200]}[/yellow]")
    console.print(f"[green]\u2705 Current Docker context: {current_docker_context() or 'unknown'}[/green]")


def teardown_docker_context(paths: ClusterPaths) -> None:
    """Switch back to the default context and remove ours. Never raises."""
    run_command(["docker", "context", "use", DOCKER_DEFAULT_CONTEXT])
    ok, _, stderr = run_command(["docker", "context", "rm", paths.docker_context])
    if not ok:
        logger.info("docker context rm %s: %s", paths.docker_context, stderr.strip())
    console.print(f"[green]\u2705 Docker context '{paths.docker_context}' removed[/green]")
