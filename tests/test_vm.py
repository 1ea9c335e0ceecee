"""Unit tests for the Lima VM lifecycle."""

from __future__ import annotations

import json
import pathlib

import pytest

from devcluster import vm
from devcluster.errors import ProvisioningError


class TestParseVmListing:
    """Tests for parse_vm_listing."""

    def test_parses_one_document_per_line(self) -> None:
        output = (
            json.dumps({"name": "a", "status": "Running"}) + "\n"
            + json.dumps({"name": "b", "status": "Stopped"}) + "\n"
        )
        assert [i["name"] for i in vm.parse_vm_listing(output)] == ["a", "b"]

    def test_parses_json_array(self) -> None:
        output = json.dumps([{"name": "a", "status": "Running"}])
        assert vm.parse_vm_listing(output) == [{"name": "a", "status": "Running"}]

    def test_ignores_noise(self) -> None:
        output = 'time="..." level=warning msg="x"\n' + json.dumps({"name": "a"})
        assert vm.parse_vm_listing(output) == [{"name": "a"}]

    def test_empty_output(self) -> None:
        assert vm.parse_vm_listing("  \n") == []


class TestEnsureVm:
    """Tests for ensure_vm idempotency and readiness polling."""

    def test_creates_missing_vm_with_sizing(self, fake_host, cfg) -> None:
        assert vm.ensure_vm(cfg) == "created"

        create = next(c for c in fake_host.calls if c[:2] == ("limactl", "start"))
        assert "--name" in create and "test-vm" in create
        assert create[create.index("--cpus") + 1] == str(cfg.cpus)
        assert create[create.index("--memory") + 1] == str(cfg.memory)
        assert create[create.index("--disk") + 1] == str(cfg.disk)
        assert fake_host.vms["test-vm"] == "Running"

    def test_second_call_is_a_noop(self, fake_host, cfg) -> None:
        vm.ensure_vm(cfg)
        assert vm.ensure_vm(cfg) == "skipped"
        assert fake_host.count("limactl", "start") == 1

    def test_starts_stopped_vm(self, fake_host, cfg) -> None:
        fake_host.vms["test-vm"] = "Stopped"

        assert vm.ensure_vm(cfg) == "started"
        assert ("limactl", "start", "--tty=false", "test-vm") in fake_host.calls

    def test_readiness_polling_is_bounded(self, fake_host, cfg, monkeypatch: pytest.MonkeyPatch) -> None:
        fake_host.vm_boots = False
        monkeypatch.setattr(vm, "VM_READY_MAX_ATTEMPTS", 5)

        with pytest.raises(ProvisioningError, match="did not reach Running"):
            vm.ensure_vm(cfg)
        # One lookup before creation plus one per poll.
        assert fake_host.count("limactl", "list", "--json") == 1 + 5


class TestDeleteVm:
    """Tests for delete_vm."""

    def test_missing_vm_is_not_an_error(self, fake_host, cfg, paths) -> None:
        vm.delete_vm(cfg, paths)
        assert fake_host.count("limactl", "delete") == 0

    def test_running_vm_is_drained_stopped_and_deleted(self, fake_host, cfg, paths) -> None:
        fake_host.vms["test-vm"] = "Running"
        fake_host.clusters.add("testk8s")
        paths.vm_socket_dir.mkdir(parents=True)
        paths.docker_socket.write_text("")

        vm.delete_vm(cfg, paths)

        assert "testk8s" not in fake_host.clusters
        assert fake_host.count("limactl", "stop", "test-vm") == 1
        assert fake_host.count("limactl", "delete", "--force", "test-vm") == 1
        assert "test-vm" not in fake_host.vms
        assert not paths.docker_socket.exists()

    def test_unreadable_socket_dir_is_not_an_error(
        self, fake_host, cfg, paths, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        fake_host.vms["test-vm"] = "Stopped"
        paths.vm_socket_dir.mkdir(parents=True)

        def _denied(self):
            raise PermissionError(13, "Permission denied", str(self))

        monkeypatch.setattr(pathlib.Path, "iterdir", _denied)

        vm.delete_vm(cfg, paths)

        assert "test-vm" not in fake_host.vms

    def test_stopped_vm_skips_drain(self, fake_host, cfg, paths) -> None:
        fake_host.vms["test-vm"] = "Stopped"

        vm.delete_vm(cfg, paths)

        assert fake_host.count("limactl", "stop") == 0
        assert fake_host.count("kind", "delete") == 0
        assert "test-vm" not in fake_host.vms
