"""Tests for the typer command-line surface."""

from __future__ import annotations

import json

import pytest
from typer.testing import CliRunner

from devcluster import cli
from devcluster.config import resolve_config, resolve_paths
from devcluster.health import CheckResult, CheckStatus
from devcluster.pipeline import write_outputs

runner = CliRunner()


@pytest.fixture(autouse=True)
def _isolated_home(home, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("HOME", str(home))
    for key in ("VM_NAME", "CPUS", "MEMORY", "DISK", "CLUSTER_NAME", "WORKERS"):
        monkeypatch.delenv(f"DEVCLUSTER_{key}", raising=False)


def test_up_passes_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    seen = {}

    def _run_up(cfg, skip_launch_agent=False):
        seen["cfg"] = cfg
        seen["skip"] = skip_launch_agent

    monkeypatch.setattr(cli, "run_up", _run_up)

    result = runner.invoke(cli.app, ["up", "--cpus", "4", "--cluster-name", "abc", "--skip-launch-agent"])

    assert result.exit_code == 0, result.output
    assert seen["cfg"].cpus == 4
    assert seen["cfg"].cluster_name == "abc"
    assert seen["cfg"].memory == 16
    assert seen["skip"] is True


def test_outputs_prints_recorded_json(home) -> None:
    cfg = resolve_config(cluster_name="abc")
    write_outputs({"clusterName": "abc", "kubeconfigPath": "/k"}, resolve_paths(cfg, home=home))

    result = runner.invoke(cli.app, ["outputs", "--cluster-name", "abc"])

    assert result.exit_code == 0
    assert json.loads(result.stdout) == {"clusterName": "abc", "kubeconfigPath": "/k"}


def test_outputs_missing() -> None:
    result = runner.invoke(cli.app, ["outputs", "--cluster-name", "nothing"])
    assert result.exit_code == 1


@pytest.mark.parametrize(("strict", "code"), [(False, 0), (True, 1)])
def test_verify_strict(monkeypatch: pytest.MonkeyPatch, strict: bool, code: int) -> None:
    monkeypatch.setattr(
        cli, "run_verify", lambda cfg: [CheckResult("nodes_ready", CheckStatus.WARN, "3/4")]
    )

    result = runner.invoke(cli.app, ["verify", "--strict"] if strict else ["verify"])

    assert result.exit_code == code
