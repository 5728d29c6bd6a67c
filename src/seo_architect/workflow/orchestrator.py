"""Dependency-driven stage orchestrator.

Runs a declared stage graph on the asyncio event loop: every stage whose
dependencies are all completed starts immediately, independent stages run
concurrently, and a failed stage only blocks its own descendants.

    pipeline = Pipeline([
        StageDefinition("strategic", run_strategic),
        StageDefinition("cluster", run_cluster, {"strategic"}),
    ])
    report = await pipeline.run(brief)
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Iterable, Mapping
from types import MappingProxyType
from typing import Any

from seo_architect.errors import (
    DependencyFailed,
    MissingDependencyOutput,
    StageTimeout,
    UnknownStage,
)
from seo_architect.utils.logging import BOLD, GREEN, RESET, YELLOW, get_logger, stage_line
from seo_architect.workflow.graph import StageDefinition, ancestors, topological_order, validate_graph
from seo_architect.workflow.result import ConsolidatedReport, StageFailure
from seo_architect.workflow.state import Run, RunStatus, StageResult, StageStatus

log = get_logger()

UpdateCallback = Callable[[str, StageResult], None]


class Pipeline:
    """A validated stage graph that can be executed many times.

    Args:
        stages: Stage definitions. Registration fails with ``CyclicDependency``
            or ``UnknownStage`` before anything runs.
        stage_timeout: Seconds allowed per producer call. ``None`` or 0 = no limit.
    """

    def __init__(self, stages: Iterable[StageDefinition], stage_timeout: float | None = None):
        self._stages = validate_graph(stages)
        self._order = topological_order(self._stages)
        self.stage_timeout = stage_timeout or None

    @property
    def stage_names(self) -> list[str]:
        return list(self._stages)

    @property
    def order(self) -> list[str]:
        return list(self._order)

    def __getitem__(self, name: str) -> StageDefinition:
        try:
            return self._stages[name]
        except KeyError:
            raise UnknownStage(name) from None

    def new_run(self) -> Run:
        return Run(self._stages)

    async def run(
        self,
        brief: str,
        run: Run | None = None,
        on_update: UpdateCallback | None = None,
    ) -> ConsolidatedReport:
        """Run every stage to a terminal state (or until blocked) and consolidate.

        Stage errors never propagate: they are recorded on the stage and the
        dependents of a failed stage stay pending.
        """
        run = run or self.new_run()
        missing = [name for name in self._stages if name not in run]
        if missing:
            raise ValueError(f"run does not track stage(s): {', '.join(missing)}")

        run.status = RunStatus.RUNNING
        in_flight: dict[asyncio.Task, str] = {}
        log.info(f"{BOLD}PIPELINE{RESET}: {len(self._stages)} stages")

        try:
            while True:
                if not run.aborted:
                    for name in self._ready(run):
                        result = run.mark_running(name)
                        _notify(on_update, name, result)
                        log.info(stage_line(name, StageStatus.RUNNING, "started"))
                        deps = self._resolve(name, run.completed_outputs())
                        task = asyncio.create_task(self._invoke(name, brief, deps))
                        in_flight[task] = name

                if not in_flight:
                    break

                done, _ = await asyncio.wait(in_flight, return_when=asyncio.FIRST_COMPLETED)
                for task in done:
                    name = in_flight.pop(task)
                    error = task.exception()
                    if error is None:
                        result = run.mark_completed(name, task.result())
                        log.info(stage_line(name, StageStatus.COMPLETED, f"({result.duration:.1f}s)"))
                    else:
                        result = run.mark_failed(name, error)
                        log.error(stage_line(name, StageStatus.FAILED, f"failed: {error}"))
                    _notify(on_update, name, result)
        finally:
            # Only reached with tasks left if the caller cancelled run() itself
            for task in in_flight:
                task.cancel()

        report = self._consolidate(brief, run)
        run.status = report.status
        color = GREEN if report.is_complete else YELLOW
        log.info(
            f"{BOLD}PIPELINE{RESET}: {color}{report.status.value}{RESET} "
            f"({len(report.outputs)}/{len(self._stages)} completed)"
        )
        return report

    async def run_stage(self, name: str, brief: str, outputs: Mapping[str, Any]) -> Any:
        """Run one stage in isolation from already-completed dependency outputs.

        A dependency is available when its name is a key of ``outputs``, even
        if its output is ``None``. Generation errors propagate to the caller.
        """
        return await self._invoke(name, brief, self._resolve(name, outputs))

    def _ready(self, run: Run) -> list[str]:
        return [
            name
            for name in self._order
            if run.status_of(name) is StageStatus.PENDING
            and all(run.status_of(dep) is StageStatus.COMPLETED for dep in self._stages[name].depends_on)
        ]

    def _resolve(self, name: str, outputs: Mapping[str, Any]) -> Mapping[str, Any]:
        stage = self[name]
        missing = sorted(dep for dep in stage.depends_on if dep not in outputs)
        if missing:
            raise MissingDependencyOutput(name, missing)
        return MappingProxyType({dep: outputs[dep] for dep in stage.depends_on})

    async def _invoke(self, name: str, brief: str, deps: Mapping[str, Any]) -> Any:
        producer = self._stages[name].producer
        if self.stage_timeout is None:
            return await producer(brief, deps)
        try:
            return await asyncio.wait_for(producer(brief, deps), timeout=self.stage_timeout)
        except asyncio.TimeoutError:
            raise StageTimeout(name, self.stage_timeout) from None

    def _consolidate(self, brief: str, run: Run) -> ConsolidatedReport:
        failed = set(run.names_with(StageStatus.FAILED))
        failures: list[StageFailure] = []
        for name in self._order:
            result = run[name]
            if result.status is StageStatus.FAILED:
                failures.append(StageFailure(name, result.error))
            elif result.status is StageStatus.PENDING:
                blocked_by = sorted(ancestors(self._stages, name) & failed)
                if blocked_by:
                    failures.append(StageFailure(name, DependencyFailed(name, blocked_by)))

        pending = run.names_with(StageStatus.PENDING)
        if run.aborted and pending:
            status = RunStatus.ABORTED
        elif failures:
            status = RunStatus.PARTIALLY_FAILED
        else:
            status = RunStatus.ALL_COMPLETED

        durations = {name: r.duration for name, r in run.items() if r.duration is not None}
        return ConsolidatedReport(
            brief=brief,
            status=status,
            outputs=run.completed_outputs(),
            failures=failures,
            durations=durations,
        )


def _notify(callback: UpdateCallback | None, name: str, result: StageResult) -> None:
    if callback is None:
        return
    try:
        callback(name, result)
    except Exception as e:
        log.warning(f"  {YELLOW}progress callback failed for {name}: {e}{RESET}")
