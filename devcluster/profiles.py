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

"""Shell profile registration and the kubeconfig activation script."""

from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path

from rich.panel import Panel

from devcluster import console, logger
from devcluster.config import ClusterConfig, ClusterPaths
from devcluster.constants import KUBECONFIG_ENV


# Profiles may hold bytes in any encoding; surrogateescape round-trips them unchanged.
_TEXT_IO = {"encoding": "utf-8", "errors": "surrogateescape"}


class EnvironmentRegistry:
    """Idempotent line registration across a set of shell startup files.

    Attributes:
        files: Startup files managed by this registry.
    """

    def __init__(self, files: Iterable[Path]) -> None:
        self.files = tuple(files)

    @staticmethod
    def _contains(path: Path, line: str) -> bool:
        if not path.is_file():
            return False
        return any(line in existing for existing in path.read_text(**_TEXT_IO).splitlines())

    def ensure(self, line: str) -> list[Path]:
        """Append *line* to every file that does not already contain it.

        Missing files are created.

        Returns:
            The files that were modified.
        """
        changed = []
        for path in self.files:
            if self._contains(path, line):
                continue
            prefix = ""
            if path.is_file():
                content = path.read_text(**_TEXT_IO)
                if content and not content.endswith("\n"):
                    prefix = "\n"
            with open(path, "a", **_TEXT_IO) as f:
                f.write(f"{prefix}{line}\n")
            changed.append(path)
        return changed

    def remove(self, line: str) -> list[Path]:
        """Delete every line containing *line*; a missing file is skipped.

        Returns:
            The files that were modified.
        """
        changed = []
        for path in self.files:
            if not self._contains(path, line):
                continue
            lines = path.read_text(**_TEXT_IO).splitlines(keepends=True)
            path.write_text("".join(existing for existing in lines if line not in existing), **_TEXT_IO)
            changed.append(path)
        return changed


def export_line(paths: ClusterPaths) -> str:
    return f"export {KUBECONFIG_ENV}={paths.kubeconfig}"


def activation_script(cfg: ClusterConfig, paths: ClusterPaths) -> str:
    return (
        "#!/bin/bash\n"
        f"{export_line(paths)}\n"
        f'echo "Kubernetes context set to {cfg.cluster_name}"\n'
        "kubectl cluster-info\n"
    )


def write_activation_script(cfg: ClusterConfig, paths: ClusterPaths) -> None:
    paths.activation_script.parent.mkdir(parents=True, exist_ok=True)
    paths.activation_script.write_text(activation_script(cfg, paths))
    paths.activation_script.chmod(0o755)
    console.print(f"[green]  \u2713 Created activation script at {paths.activation_script}[/green]")


def remove_activation_script(paths: ClusterPaths) -> None:
    try:
        paths.activation_script.unlink(missing_ok=True)
    except OSError as exc:
        logger.warning("Could not remove %s: %s", paths.activation_script, exc)


def register_shell_environment(cfg: ClusterConfig, paths: ClusterPaths) -> None:
    """Persist ``export KUBECONFIG=...`` in the shell profiles and write the helper script.

    Args:
        cfg: Provisioning configuration with the cluster name.
        paths: Derived on-disk locations.
    """
    console.print(Panel.fit("Updating shell profiles", style="bold blue"))
    registry = EnvironmentRegistry(paths.shell_profiles)
    for path in registry.ensure(export_line(paths)):
        console.print(f"[green]  \u2713 Updated {path.name}[/green]")
    write_activation_script(cfg, paths)
    console.print("[green]\u2705 Shell environment registered[/green]")


def unregister_shell_environment(paths: ClusterPaths) -> None:
    """Undo :func:`register_shell_environment`. Never raises."""
    registry = EnvironmentRegistry(paths.shell_profiles)
    try:
        for path in registry.remove(export_line(paths)):
            console.print(f"[green]  \u2713 Cleaned {path.name}[/green]")
    except (OSError, ValueError) as exc:
        logger.warning("Could not clean shell profiles: %s", exc)
    remove_activation_script(paths)
    console.print("[green]\u2705 Shell environment unregistered[/green]")
