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

"""Constants, dependency loading, and dep_value helper."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml


def load_dependencies() -> dict:
    """Load pinned artefact versions from dependencies.yaml.

    Returns:
        Parsed YAML content as a nested dictionary.
    """
    deps_file = Path(__file__).resolve().parent / "dependencies.yaml"
    with open(deps_file) as f:
        return yaml.safe_load(f)


DEPENDENCIES = load_dependencies()


def dep_value(*keys: str, default: Any = None) -> Any:
    """Safely traverse the DEPENDENCIES dict by key path.

    Args:
        *keys: Sequence of dictionary keys to traverse.
        default: Value to return if any key is missing.

    Returns:
        The value at the nested key path, or *default* if not found.
    """
    node = DEPENDENCIES
    for key in keys:
        if not isinstance(node, dict):
            return default
        node = node.get(key)
        if node is None:
            return default
    return node


# -- Configuration defaults --
ENV_PREFIX = "DEVCLUSTER_"
DEFAULT_VM_NAME = "myk8s-docker"
DEFAULT_CPUS = 8
DEFAULT_MEMORY_GIB = 16
DEFAULT_DISK_GIB = 500
DEFAULT_CLUSTER_NAME = "myk8s"
DEFAULT_WORKER_NODES = 3
DEFAULT_MOUNT_ROOT = "/tmp"
DEFAULT_CONTAINER_MOUNT_PATH = "/var/lib/disk1"
DEFAULT_LIMA_TEMPLATE = "template:docker"

# -- VM lifecycle --
VM_STATUS_RUNNING = "Running"
VM_STATUS_STOPPED = "Stopped"
VM_READY_MAX_ATTEMPTS = 30
VM_READY_POLL_INTERVAL_SECONDS = 2

# -- Docker --
DOCKER_CONTEXT_PREFIX = "lima"
DOCKER_DEFAULT_CONTEXT = "default"
DOCKER_PING_TIMEOUT_SECONDS = 5

# -- Kind / kubeconfig --
KIND_CONTEXT_PREFIX = "kind"
KUBECONFIG_ENV = "KUBECONFIG"
KUBECONFIG_MODE = 0o600
LOCALHOST_SERVER = "server: https://localhost:"
LOOPBACK_SERVER = "server: https://127.0.0.1:"
BACKUP_SUFFIX = ".bak"

# -- Calico --
NS_KUBE_SYSTEM = "kube-system"
CALICO_DAEMONSET = "ds/calico-node"
CALICO_SELECTOR = "k8s-app=calico-node"
CALICO_APPLY_MAX_RETRIES = 3
CALICO_APPLY_RETRY_WAIT_SECONDS = 5
CALICO_READY_TIMEOUT_SECONDS = 120
CALICO_READY_POLL_INTERVAL_SECONDS = 3
CALICO_WAIT_ATTEMPT_TIMEOUT = "3s"

# -- Health checks --
DNS_SELECTOR = "k8s-app=kube-dns"
LABEL_CONTROL_PLANE = "node-role.kubernetes.io/control-plane"
CONTROL_PLANE_TAINT = f"{LABEL_CONTROL_PLANE}:NoSchedule"

# -- Host integration --
LAUNCHD_LABEL_PREFIX = "dev.lima"
SYSTEMD_UNIT_PREFIX = "lima"
ACTIVATION_SCRIPT_NAME = "use-k8s.sh"
SHELL_PROFILES = (".zshrc", ".bashrc")

# -- State --
STATE_DIR_NAME = ".devcluster"
KIND_CONFIG_FILE = "kind-config.yaml"
OUTPUTS_FILE = "outputs.json"

# -- Prerequisites --
REQUIRED_COMMANDS = ("limactl", "docker", "kind", "kubectl")

# -- Timeouts for individual CLI invocations (seconds) --
COMMAND_TIMEOUT = 30
LIMA_COMMAND_TIMEOUT = 600
