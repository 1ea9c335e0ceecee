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

"""CLI sub-command groups and the option declarations they share."""

from __future__ import annotations

import typer


def vm_name_option():
    return typer.Option(None, "--vm-name", help="Lima VM name (overrides DEVCLUSTER_VM_NAME)")


def cpus_option():
    return typer.Option(None, "--cpus", help="VM CPU count (overrides DEVCLUSTER_CPUS)")


def memory_option():
    return typer.Option(None, "--memory", help="VM memory in GiB (overrides DEVCLUSTER_MEMORY)")


def disk_option():
    return typer.Option(None, "--disk", help="VM disk in GiB (overrides DEVCLUSTER_DISK)")


def cluster_name_option():
    return typer.Option(None, "--cluster-name", help="Kind cluster name (overrides DEVCLUSTER_CLUSTER_NAME)")


def workers_option():
    return typer.Option(None, "--workers", help="Kind worker nodes (overrides DEVCLUSTER_WORKERS)")
