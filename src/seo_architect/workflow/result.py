"""Consolidated, read-only view of a finished run."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

from pydantic import BaseModel

from seo_architect.workflow.state import RunStatus


@dataclass(frozen=True)
class StageFailure:
    stage: str
    error: BaseException

    @property
    def blocked(self) -> bool:
        """True when the stage never ran because an upstream stage failed."""
        from seo_architect.errors import DependencyFailed

        return isinstance(self.error, DependencyFailed)


@dataclass(frozen=True)
class ConsolidatedReport:
    brief: str
    status: RunStatus
    outputs: Mapping[str, Any] = field(default_factory=dict)
    failures: tuple[StageFailure, ...] = ()
    durations: Mapping[str, float] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "outputs", MappingProxyType(dict(self.outputs)))
        object.__setattr__(self, "durations", MappingProxyType(dict(self.durations)))
        object.__setattr__(self, "failures", tuple(self.failures))

    @property
    def is_complete(self) -> bool:
        return self.status is RunStatus.ALL_COMPLETED

    @property
    def failed_stages(self) -> list[str]:
        return [f.stage for f in self.failures]

    def get(self, stage: str, default: Any = None) -> Any:
        return self.outputs.get(stage, default)

    def to_dict(self) -> dict:
        """JSON-safe dict: outputs serialized with their wire (camelCase) keys."""
        return {
            "brief": self.brief,
            "status": self.status.value,
            "outputs": {name: _dump(value) for name, value in self.outputs.items()},
            "failures": [
                {
                    "stage": f.stage,
                    "error": str(f.error),
                    "type": type(f.error).__name__,
                }
                for f in self.failures
            ],
            "durations": {name: round(d, 3) for name, d in self.durations.items()},
        }


def _dump(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json", by_alias=True)
    return value
