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

"""Utility functions for command execution, polling, and command checks."""

from __future__ import annotations

import json
import os
import subprocess
from collections.abc import Callable
from pathlib import Path

import sh
from tenacity import RetryError, Retrying, retry_if_result, stop_after_attempt, stop_after_delay, wait_fixed

from devcluster import logger
from devcluster.constants import COMMAND_TIMEOUT, KUBECONFIG_ENV


def require_command(cmd: str) -> None:
    """Check if a command exists on the system PATH.

    Args:
        cmd: Name of the CLI command to check.

    Raises:
        RuntimeError: If the command is not found.
    """
    try:
        sh.which(cmd)
    except sh.ErrorReturnCode as err:
        raise RuntimeError(f"Required command '{cmd}' not found. Please install it first.") from err


def docker_env(socket: Path) -> dict[str, str]:
    """Return a copy of the environment with DOCKER_HOST pointing at *socket*."""
    env = dict(os.environ)
    env["DOCKER_HOST"] = f"unix://{socket}"
    return env


def kube_env(kubeconfig: Path) -> dict[str, str]:
    """Return a copy of the environment with KUBECONFIG set to *kubeconfig*."""
    env = dict(os.environ)
    env[KUBECONFIG_ENV] = str(kubeconfig)
    return env


def run_command(
    args: list[str],
    timeout: int = COMMAND_TIMEOUT,
    env: dict[str, str] | None = None,
) -> tuple[bool, str, str]:
    """Run a command via subprocess and return (success, stdout, stderr).

    Never raises: a missing binary or a timeout is reported as a failed run.

    Args:
        args: Full argv, program first.
        timeout: Maximum seconds to wait for the command to complete.
        env: Environment for the child process, or None to inherit.

    Returns:
        Tuple of (success, stdout, stderr).
    """
    logger.debug("exec: %s", " ".join(args))
    try:
        result = subprocess.run(
            args,
            capture_output=True,
            text=True,
            timeout=timeout,
            env=env,
        )
        return result.returncode == 0, result.stdout, result.stderr
    except (subprocess.SubprocessError, OSError) as exc:
        return False, "", str(exc)


def run_kubectl(
    args: list[str],
    kubeconfig: Path | None = None,
    timeout: int = COMMAND_TIMEOUT,
) -> tuple[bool, str, str]:
    """Run a kubectl command and return (success, stdout, stderr).

    Args:
        args: kubectl arguments (e.g. ``["get", "pods", "-n", "default"]``).
        kubeconfig: Kubeconfig to use, or None for kubectl's default resolution.
        timeout: Maximum seconds to wait for the command to complete.

    Returns:
        Tuple of (success, stdout, stderr).
    """
    env = kube_env(kubeconfig) if kubeconfig is not None else None
    return run_command(["kubectl", *args], timeout=timeout, env=env)


def kubectl_json(args: list[str], kubeconfig: Path | None = None) -> dict | None:
    """Run ``kubectl <args> -o json`` and parse the result.

    Returns:
        The parsed document, or None if the command failed or printed invalid JSON.
    """
    ok, stdout, stderr = run_kubectl([*args, "-o", "json"], kubeconfig=kubeconfig)
    if not ok:
        logger.debug("kubectl %s failed: %s", " ".join(args), stderr.strip())
        return None
    try:
        return json.loads(stdout)
    except json.JSONDecodeError:
        return None


def poll_until(
    predicate: Callable[[], bool],
    *,
    interval: float,
    attempts: int | None = None,
    timeout: float | None = None,
) -> bool:
    """Call *predicate* until it returns True or the bound is exhausted.

    Exactly one of *attempts* and *timeout* must be given.

    Args:
        predicate: Zero-argument check; must not raise.
        interval: Seconds to sleep between calls.
        attempts: Maximum number of calls.
        timeout: Maximum seconds since the first call.

    Returns:
        True if the predicate succeeded within the bound, False otherwise.
    """
    if (attempts is None) == (timeout is None):
        raise ValueError("exactly one of attempts or timeout is required")
    stop = stop_after_attempt(attempts) if attempts is not None else stop_after_delay(timeout)
    retryer = Retrying(
        stop=stop,
        wait=wait_fixed(interval),
        retry=retry_if_result(lambda ok: not ok),
    )
    try:
        return retryer(predicate)
    except RetryError:
        return False
