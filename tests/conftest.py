"""Shared fixtures: a fake host that answers limactl, kind, kubectl and docker.

``FakeHost`` keeps the external state (VMs, clusters, Calico readiness) in
memory and is wired in two places: ``subprocess.run`` (used by
``run_command``) and the ``sh`` module reference of every domain module.
"""

from __future__ import annotations

import dataclasses
import functools
import json
import subprocess
from pathlib import Path

import pytest
import sh

from devcluster import cluster, cni, health, host, kubeconfig, utils, vm
from devcluster.config import ClusterConfig, ClusterPaths, resolve_paths

KUBECONFIG_TEMPLATE = """apiVersion: v1
kind: Config
clusters:
- cluster:
    server: https://localhost:6443
  name: kind-{name}
contexts:
- context:
    cluster: kind-{name}
    user: kind-{name}
  name: kind-{name}
current-context: kind-{name}
users:
- name: kind-{name}
"""


@dataclasses.dataclass
class FakeHost:
    """In-memory stand-in for the external CLIs."""

    vms: dict[str, str] = dataclasses.field(default_factory=dict)
    clusters: set[str] = dataclasses.field(default_factory=set)
    calls: list[tuple[str, ...]] = dataclasses.field(default_factory=list)
    envs: list[dict | None] = dataclasses.field(default_factory=list)
    workers: int = 3
    calico_installed: bool = False
    calico_ready: bool = True
    apply_failures: int = 0
    vm_boots: bool = True
    cluster_create_noop: bool = False
    docker_reachable: bool = True
    launch_agents: set[str] = dataclasses.field(default_factory=set)
    missing_commands: set[str] = dataclasses.field(default_factory=set)

    # ------------------------------------------------------------------
    def count(self, *prefix: str) -> int:
        return sum(1 for call in self.calls if call[: len(prefix)] == prefix)

    def _pods(self, selector: str | None) -> dict:
        nodes = self.workers + 1
        pods = []
        if selector in (None, "k8s-app=calico-node") and self.calico_installed:
            pods += [
                {"status": {"phase": "Running" if self.calico_ready else "Pending",
                            "containerStatuses": [{"ready": self.calico_ready}]}}
                for _ in range(nodes)
            ]
        if selector in (None, "k8s-app=kube-dns"):
            pods += [{"status": {"phase": "Running", "containerStatuses": [{"ready": True}]}}] * 2
        if selector is None:
            pods += [{"status": {"phase": "Running", "containerStatuses": [{"ready": True}]}}] * 4
        return {"items": pods}

    def _nodes(self) -> dict:
        return {"items": [
            {"status": {"conditions": [{"type": "Ready", "status": "True"}]}}
            for _ in range(self.workers + 1)
        ]}

    # ------------------------------------------------------------------
    def handle(self, args: list[str], env: dict | None = None) -> tuple[int, str, str]:
        args = [str(a) for a in args]
        self.calls.append(tuple(args))
        self.envs.append(env)
        program, rest = args[0], args[1:]
        if program in self.missing_commands:
            return 127, "", f"{program}: command not found"
        handler = getattr(self, f"_{program}", None)
        if handler is None:
            return 0, "", ""
        return handler(rest, env)

    def _which(self, rest, env):
        if rest[0] in self.missing_commands:
            return 1, "", ""
        return 0, f"/usr/bin/{rest[0]}\n", ""

    def _limactl(self, rest, env):
        if rest[:2] == ["list", "--json"]:
            lines = [json.dumps({"name": name, "status": status}) for name, status in self.vms.items()]
            return 0, "\n".join(lines) + ("\n" if lines else ""), ""
        if rest[0] == "start":
            if "--name" in rest:
                name = rest[rest.index("--name") + 1]
            else:
                name = rest[-1]
            self.vms[name] = "Running" if self.vm_boots else "Broken"
            return 0, "", ""
        if rest[0] == "stop":
            if rest[1] not in self.vms:
                return 1, "", "not found"
            self.vms[rest[1]] = "Stopped"
            return 0, "", ""
        if rest[0] == "delete":
            self.vms.pop(rest[-1], None)
            return 0, "", ""
        return 0, "", ""

    def _kind(self, rest, env):
        if rest[:2] == ["get", "clusters"]:
            if not self.clusters:
                return 0, "", "No kind clusters found.\n"
            return 0, "\n".join(sorted(self.clusters)) + "\n", ""
        name = rest[rest.index("--name") + 1] if "--name" in rest else "kind"
        if rest[:2] == ["create", "cluster"]:
            if not self.cluster_create_noop:
                self.clusters.add(name)
            return 0, "", ""
        if rest[:2] == ["delete", "cluster"]:
            self.clusters.discard(name)
            return 0, "", ""
        if rest[:2] == ["export", "kubeconfig"]:
            target = Path(rest[rest.index("--kubeconfig") + 1])
            target.write_text(KUBECONFIG_TEMPLATE.format(name=name))
            return 0, "", ""
        return 0, "", ""

    def _kubectl(self, rest, env):
        if rest[0] == "apply":
            if self.apply_failures > 0:
                self.apply_failures -= 1
                return 1, "", "connection refused"
            self.calico_installed = True
            return 0, "", ""
        if rest[0] == "delete" and "-f" in rest:
            self.calico_installed = False
            return 0, "", ""
        if rest[0] == "wait":
            ok = self.calico_installed and self.calico_ready
            return (0, "pod condition met\n", "") if ok else (1, "", "timed out")
        if rest[0] == "cluster-info":
            if not self.clusters:
                return 1, "", "connection refused"
            return 0, "Kubernetes control plane is running at https://127.0.0.1:6443\n", ""
        if "get" in rest and "-o" in rest and rest[rest.index("-o") + 1] == "json":
            if not self.clusters:
                return 1, "", "connection refused"
            if "nodes" in rest:
                return 0, json.dumps(self._nodes()), ""
            selector = rest[rest.index("-l") + 1] if "-l" in rest else None
            return 0, json.dumps(self._pods(selector)), ""
        return 0, "", ""

    def _launchctl(self, rest, env):
        if rest[0] == "load":
            if rest[1] in self.launch_agents:
                return 5, "", "Load failed: 5: Input/output error\n"
            self.launch_agents.add(rest[1])
            return 0, "", ""
        if rest[0] == "unload":
            if rest[1] not in self.launch_agents:
                return 1, "", "Could not find specified service\n"
            self.launch_agents.discard(rest[1])
            return 0, "", ""
        return 0, "", ""

    def _docker(self, rest, env):
        if rest[:2] == ["context", "show"]:
            return 0, "lima-test-vm\n", ""
        return 0, "", ""


class FakeSh:
    """Replacement for the ``sh`` module that routes commands to a FakeHost."""

    ErrorReturnCode = sh.ErrorReturnCode
    ErrorReturnCode_1 = sh.ErrorReturnCode_1

    def __init__(self, fake_host: FakeHost) -> None:
        self._host = fake_host

    def __getattr__(self, program: str):
        if program.startswith("_"):
            raise AttributeError(program)

        def _command(*args, _env=None, _timeout=None, _cwd=None):
            rc, out, err = self._host.handle([program, *args], _env)
            if rc != 0:
                raise sh.ErrorReturnCode_1(
                    " ".join([program, *map(str, args)]), out.encode(), err.encode()
                )
            return out

        return _command


class FakeDockerClient:
    """Stand-in for docker.DockerClient bound to a FakeHost."""

    def __init__(self, fake_host: FakeHost, base_url: str, timeout: int = 60) -> None:
        self._host = fake_host
        self.base_url = base_url

    def ping(self) -> bool:
        if not self._host.docker_reachable:
            raise ConnectionError("socket not found")
        return True

    def version(self) -> dict:
        return {"Version": "27.0.0"}

    def close(self) -> None:
        pass


@pytest.fixture
def fake_host(monkeypatch: pytest.MonkeyPatch) -> FakeHost:
    """Patch subprocess, sh, the Docker SDK and poll intervals."""
    fake = FakeHost()

    def _mock_run(args, **kwargs):
        rc, out, err = fake.handle(list(args), kwargs.get("env"))
        return subprocess.CompletedProcess(args=args, returncode=rc, stdout=out, stderr=err)

    monkeypatch.setattr("subprocess.run", _mock_run)
    fake_sh = FakeSh(fake)
    for module in (cluster, cni, host, kubeconfig, utils, vm):
        monkeypatch.setattr(module, "sh", fake_sh)

    monkeypatch.setattr(health.docker, "DockerClient", functools.partial(FakeDockerClient, fake))

    monkeypatch.setattr(vm, "VM_READY_POLL_INTERVAL_SECONDS", 0)
    monkeypatch.setattr(cni, "CALICO_READY_POLL_INTERVAL_SECONDS", 0)
    monkeypatch.setattr(cni, "CALICO_READY_TIMEOUT_SECONDS", 0.2)
    monkeypatch.setattr(cni._apply_manifest.retry, "sleep", lambda seconds: None)

    # export_kubeconfig sets KUBECONFIG; register it so teardown restores the original.
    monkeypatch.setenv("KUBECONFIG", "")
    monkeypatch.delenv("KUBECONFIG")
    monkeypatch.delenv("LIMA_HOME", raising=False)
    return fake


@pytest.fixture
def cfg(tmp_path: Path) -> ClusterConfig:
    return ClusterConfig(
        vm_name="test-vm",
        cluster_name="testk8s",
        mount_root=tmp_path / "mnt",
        vm_type="qemu",
    )


@pytest.fixture
def home(tmp_path: Path) -> Path:
    path = tmp_path / "home"
    path.mkdir()
    return path


@pytest.fixture
def paths(cfg: ClusterConfig, home: Path, monkeypatch: pytest.MonkeyPatch) -> ClusterPaths:
    monkeypatch.delenv("LIMA_HOME", raising=False)
    return resolve_paths(cfg, home=home)
