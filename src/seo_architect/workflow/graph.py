"""Stage definitions and dependency graph validation."""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from seo_architect.errors import CyclicDependency, UnknownStage

# (brief, completed dependency outputs) -> stage output
Producer = Callable[[str, Mapping[str, Any]], Awaitable[Any]]


@dataclass(frozen=True)
class StageDefinition:
    """One named unit of work in a pipeline."""

    name: str
    producer: Producer
    depends_on: frozenset[str] = field(default_factory=frozenset)

    def __post_init__(self) -> None:
        # Accept any iterable of names
        object.__setattr__(self, "depends_on", frozenset(self.depends_on))


def validate_graph(stages: Iterable[StageDefinition]) -> dict[str, StageDefinition]:
    """Check names are unique, dependencies exist and the graph is acyclic.

    Returns the stages keyed by name, in declaration order.
    """
    by_name: dict[str, StageDefinition] = {}
    for stage in stages:
        if stage.name in by_name:
            raise ValueError(f"duplicate stage name: {stage.name}")
        by_name[stage.name] = stage

    for stage in by_name.values():
        for dep in sorted(stage.depends_on):
            if dep not in by_name:
                raise UnknownStage(dep, referenced_by=stage.name)

    cycle = find_cycle(by_name)
    if cycle:
        raise CyclicDependency(cycle)
    return by_name


def find_cycle(stages: Mapping[str, StageDefinition]) -> list[str] | None:
    """Return one dependency cycle as a closed path (first == last), or None."""
    WHITE, GREY, BLACK = 0, 1, 2
    color = {name: WHITE for name in stages}
    path: list[str] = []

    def visit(name: str) -> list[str] | None:
        color[name] = GREY
        path.append(name)
        for dep in sorted(stages[name].depends_on):
            if color[dep] == GREY:
                return path[path.index(dep):] + [dep]
            if color[dep] == WHITE:
                found = visit(dep)
                if found:
                    return found
        path.pop()
        color[name] = BLACK
        return None

    for name in stages:
        if color[name] == WHITE:
            found = visit(name)
            if found:
                return found
    return None


def topological_order(stages: Mapping[str, StageDefinition]) -> list[str]:
    """Dependencies-first ordering, stable with respect to declaration order."""
    ordered: list[str] = []
    placed: set[str] = set()
    remaining = list(stages)
    while remaining:
        progressed = False
        for name in list(remaining):
            if stages[name].depends_on <= placed:
                ordered.append(name)
                placed.add(name)
                remaining.remove(name)
                progressed = True
        if not progressed:
            raise CyclicDependency(find_cycle(stages) or remaining)
    return ordered


def ancestors(stages: Mapping[str, StageDefinition], name: str) -> set[str]:
    """All stages ``name`` depends on, directly or transitively."""
    seen: set[str] = set()
    stack = list(stages[name].depends_on)
    while stack:
        dep = stack.pop()
        if dep not in seen:
            seen.add(dep)
            stack.extend(stages[dep].depends_on)
    return seen
