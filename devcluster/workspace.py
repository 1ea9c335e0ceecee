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

"""Node mount directories and the Kind cluster topology descriptor."""

from __future__ import annotations

import yaml

from devcluster import console, logger
from devcluster.config import ClusterConfig, ClusterPaths
from devcluster.constants import dep_value


def ensure_mount_dirs(cfg: ClusterConfig, paths: ClusterPaths) -> None:
    """Create the host directory mounted into each Kind node.

    Args:
        cfg: Provisioning configuration.
        paths: Derived on-disk locations.
    """
    for directory in paths.mount_dirs:
        directory.mkdir(parents=True, exist_ok=True)
    console.print(f"[green]\u2705 Prepared {len(paths.mount_dirs)} node mount directories under {cfg.mount_root}[/green]")


def kind_cluster_manifest(cfg: ClusterConfig, paths: ClusterPaths) -> dict:
    """Build the Kind cluster topology descriptor.

    One control-plane node plus ``cfg.workers`` workers, each with a single
    host-path mount. Kind's default CNI is disabled so Calico can be installed.

    Args:
        cfg: Provisioning configuration.
        paths: Derived on-disk locations.

    Returns:
        Kind ``Cluster`` resource as a dictionary ready for YAML serialization.
    """
    nodes = [
        {
            "role": role,
            "extraMounts": [
                {"hostPath": str(host_dir), "containerPath": cfg.container_mount_path},
            ],
        }
        for (role, _), host_dir in zip(cfg.node_roles, paths.mount_dirs)
    ]
    return {
        "kind": "Cluster",
        "apiVersion": dep_value("kind", "api_version", default="kind.x-k8s.io/v1alpha4"),
        "networking": {"disableDefaultCNI": True},
        "nodes": nodes,
    }


def write_kind_config(cfg: ClusterConfig, paths: ClusterPaths) -> None:
    """Materialize the topology descriptor at ``paths.kind_config``."""
    paths.kind_config.parent.mkdir(parents=True, exist_ok=True)
    paths.kind_config.write_text(
        yaml.safe_dump(kind_cluster_manifest(cfg, paths), default_flow_style=False, sort_keys=False)
    )
    console.print(f"[green]\u2705 Wrote Kind config to {paths.kind_config}[/green]")


def remove_kind_config(paths: ClusterPaths) -> None:
    """Remove the topology descriptor; a missing file is not an error."""
    try:
        paths.kind_config.unlink(missing_ok=True)
    except OSError as exc:
        logger.warning("Could not remove %s: %s", paths.kind_config, exc)
