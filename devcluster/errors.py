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

"""Exception types raised by provisioning steps."""

from __future__ import annotations


class ProvisioningError(RuntimeError):
    """A provisioning step failed in a way that must stop its dependents."""


class StepGraphError(ProvisioningError):
    """One or more steps of a dependency graph failed.

    Attributes:
        failed: Mapping of step name to the exception it raised.
        skipped: Names of steps that never ran because a dependency failed.
    """

    def __init__(self, failed: dict[str, BaseException], skipped: list[str]) -> None:
        self.failed = failed
        self.skipped = skipped
        details = "; ".join(f"{name}: {err}" for name, err in failed.items())
        message = f"{len(failed)} step(s) failed ({details})"
        if skipped:
            message += f"; skipped: {', '.join(skipped)}"
        super().__init__(message)
