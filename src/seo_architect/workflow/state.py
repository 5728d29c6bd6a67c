"""Per-run stage state.

A ``Run`` is owned by a single orchestrator invocation. Only the orchestrator
writes to it; stage producers receive read-only views of completed outputs.
"""

from __future__ import annotations

import time
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from enum import Enum
from typing import Any


class StageStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class RunStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    ALL_COMPLETED = "all_completed"
    PARTIALLY_FAILED = "partially_failed"
    ABORTED = "aborted"


@dataclass
class StageResult:
    status: StageStatus = StageStatus.PENDING
    output: Any = None
    error: BaseException | None = None
    started_at: float | None = None
    completed_at: float | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status in (StageStatus.COMPLETED, StageStatus.FAILED)

    @property
    def duration(self) -> float | None:
        if self.started_at is None or self.completed_at is None:
            return None
        return self.completed_at - self.started_at


class Run:
    """Stage name -> StageResult mapping for one pipeline execution."""

    def __init__(self, stage_names: Iterable[str]):
        self._results: dict[str, StageResult] = {name: StageResult() for name in stage_names}
        self.status = RunStatus.PENDING
        self._aborted = False

    def __getitem__(self, name: str) -> StageResult:
        return self._results[name]

    def __contains__(self, name: object) -> bool:
        return name in self._results

    def __iter__(self) -> Iterator[str]:
        return iter(self._results)

    def __len__(self) -> int:
        return len(self._results)

    def items(self):
        return self._results.items()

    @property
    def aborted(self) -> bool:
        return self._aborted

    def abort(self) -> None:
        """Stop un-started stages from starting. In-flight stages still finish."""
        self._aborted = True

    def status_of(self, name: str) -> StageStatus:
        return self._results[name].status

    def names_with(self, status: StageStatus) -> list[str]:
        return [name for name, result in self._results.items() if result.status is status]

    def completed_outputs(self) -> dict[str, Any]:
        return {
            name: result.output
            for name, result in self._results.items()
            if result.status is StageStatus.COMPLETED
        }

    # Transitions, called by the orchestrator only

    def mark_running(self, name: str) -> StageResult:
        result = self._results[name]
        if result.status is not StageStatus.PENDING:
            raise RuntimeError(f"stage '{name}' cannot start from {result.status.value}")
        result.status = StageStatus.RUNNING
        result.started_at = time.monotonic()
        return result

    def mark_completed(self, name: str, output: Any) -> StageResult:
        result = self._require_running(name)
        result.status = StageStatus.COMPLETED
        result.output = output
        result.completed_at = time.monotonic()
        return result

    def mark_failed(self, name: str, error: BaseException) -> StageResult:
        result = self._require_running(name)
        result.status = StageStatus.FAILED
        result.error = error
        result.completed_at = time.monotonic()
        return result

    def _require_running(self, name: str) -> StageResult:
        result = self._results[name]
        if result.status is not StageStatus.RUNNING:
            raise RuntimeError(f"stage '{name}' is not running ({result.status.value})")
        return result
