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

"""Dependency-graph scheduler for named create/delete steps.

Steps whose dependencies have all succeeded run concurrently on a thread
pool. When a step fails during ``create`` every transitive dependent is
skipped while unrelated branches keep going. ``destroy`` walks the graph in
reverse and treats every failure as non-fatal.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field

from devcluster import console, logger
from devcluster.errors import StepGraphError


@dataclass(frozen=True)
class Step:
    """A named unit of work with an optional teardown.

    Attributes:
        name: Unique step name.
        create: Action run by :meth:`StepGraph.create`.
        delete: Action run by :meth:`StepGraph.destroy`, or None if the step
            leaves nothing behind.
        depends_on: Names of steps that must succeed before this one runs.
    """

    name: str
    create: Callable[[], object]
    delete: Callable[[], object] | None = None
    depends_on: tuple[str, ...] = ()


@dataclass
class GraphRun:
    """Outcome of executing a graph.

    Attributes:
        succeeded: Steps that completed, in completion order.
        failed: Steps that raised, mapped to their exception.
        skipped: Steps never run because a dependency failed.
    """

    succeeded: list[str] = field(default_factory=list)
    failed: dict[str, BaseException] = field(default_factory=dict)
    skipped: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed and not self.skipped

    def raise_for_failures(self) -> None:
        """Raise StepGraphError if any step failed."""
        if self.failed:
            raise StepGraphError(dict(self.failed), list(self.skipped))


class StepGraph:
    """A directed acyclic graph of steps keyed by name."""

    def __init__(self) -> None:
        self._steps: dict[str, Step] = {}

    def __contains__(self, name: object) -> bool:
        return name in self._steps

    def __len__(self) -> int:
        return len(self._steps)

    @property
    def steps(self) -> list[Step]:
        return list(self._steps.values())

    def get(self, name: str) -> Step:
        return self._steps[name]

    def add(self, step: Step) -> Step:
        """Register *step*; its dependencies must already be registered.

        Raises:
            ValueError: On a duplicate name or an unknown dependency.
        """
        if step.name in self._steps:
            raise ValueError(f"duplicate step '{step.name}'")
        unknown = [dep for dep in step.depends_on if dep not in self._steps]
        if unknown:
            raise ValueError(f"step '{step.name}' depends on unknown step(s): {', '.join(unknown)}")
        self._steps[step.name] = step
        return step

    def dependents(self, name: str) -> list[str]:
        """Direct dependents of *name*, in insertion order."""
        return [step.name for step in self._steps.values() if name in step.depends_on]

    def topological_order(self) -> list[str]:
        """Kahn's algorithm, stable with respect to insertion order.

        Raises:
            ValueError: If the graph contains a cycle.
        """
        remaining = {name: set(step.depends_on) for name, step in self._steps.items()}
        order: list[str] = []
        while remaining:
            ready = [name for name, deps in remaining.items() if not deps]
            if not ready:
                raise ValueError(f"dependency cycle among: {', '.join(remaining)}")
            for name in ready:
                del remaining[name]
                order.append(name)
            for deps in remaining.values():
                deps.difference_update(ready)
        return order

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    def create(self, max_workers: int | None = None) -> GraphRun:
        """Run every step's ``create`` action in dependency order."""
        order = self.topological_order()
        prerequisites = {name: set(self._steps[name].depends_on) for name in order}
        actions = {name: self._steps[name].create for name in order}
        return self._execute(actions, prerequisites, best_effort=False, max_workers=max_workers)

    def destroy(self, max_workers: int | None = None) -> GraphRun:
        """Run every step's ``delete`` action, dependents before dependencies."""
        order = list(reversed(self.topological_order()))
        prerequisites = {name: set(self.dependents(name)) for name in order}
        actions = {name: self._steps[name].delete for name in order}
        return self._execute(actions, prerequisites, best_effort=True, max_workers=max_workers)

    @staticmethod
    def _run_step(name: str, action: Callable[[], object]) -> tuple[str, BaseException | None, float]:
        started = time.monotonic()
        error: BaseException | None = None
        with console.buffered() as buf:
            try:
                action()
            except Exception as e:
                error = e
                logger.debug("Step %s raised", name, exc_info=True)
        return buf.getvalue(), error, time.monotonic() - started

    def _execute(
        self,
        actions: dict[str, Callable[[], object] | None],
        prerequisites: dict[str, set[str]],
        *,
        best_effort: bool,
        max_workers: int | None,
    ) -> GraphRun:
        run = GraphRun()
        pending = dict(prerequisites)
        done: set[str] = set()
        blocked: set[str] = set()
        running: dict[Future, str] = {}

        with ThreadPoolExecutor(max_workers=max_workers or max(1, len(pending))) as executor:
            while pending or running:
                # pending is in topological order, so skips cascade in one pass.
                for name in list(pending):
                    prereqs = pending[name]
                    if prereqs & blocked:
                        del pending[name]
                        blocked.add(name)
                        run.skipped.append(name)
                        logger.warning("Skipping step %s: dependency failed", name)
                        continue
                    if not prereqs <= done:
                        continue
                    del pending[name]
                    action = actions[name]
                    if action is None:
                        done.add(name)
                        run.succeeded.append(name)
                        continue
                    logger.info("Starting step %s", name)
                    running[executor.submit(self._run_step, name, action)] = name

                if not running:
                    if pending:
                        # Newly completed no-op steps may have unblocked others.
                        continue
                    break

                finished, _ = wait(running, return_when=FIRST_COMPLETED)
                for future in finished:
                    name = running.pop(future)
                    output, error, elapsed = future.result()
                    if output:
                        console.print(output, end="", markup=False, highlight=False)
                    if error is None:
                        logger.info("Step %s completed in %.1fs", name, elapsed)
                        done.add(name)
                        run.succeeded.append(name)
                        continue
                    run.failed[name] = error
                    if best_effort:
                        logger.warning("Step %s failed (ignored): %s", name, error)
                        done.add(name)
                    else:
                        console.print(f"[red]\u274c Step '{name}' failed: {error}[/red]")
                        blocked.add(name)
        return run
