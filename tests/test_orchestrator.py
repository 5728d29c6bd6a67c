import asyncio

import pytest

from seo_architect.errors import (
    CyclicDependency,
    DependencyFailed,
    MissingDependencyOutput,
    StageTimeout,
    TransportError,
    UnknownStage,
)
from seo_architect.workflow.graph import StageDefinition, topological_order, validate_graph
from seo_architect.workflow.orchestrator import Pipeline
from seo_architect.workflow.state import RunStatus, StageStatus


def _stage(name, depends_on=(), calls=None, output=None, error=None, delay=0):
    async def produce(brief, deps):
        if calls is not None:
            calls.append(name)
        if delay:
            await asyncio.sleep(delay)
        if error is not None:
            raise error
        return output if output is not None else {"stage": name, "deps": sorted(deps)}

    return StageDefinition(name, produce, depends_on)


def test_topological_order_follows_declaration_order():
    stages = validate_graph([
        _stage("b", {"a"}),
        _stage("a"),
        _stage("c", {"a"}),
        _stage("d", {"b", "c"}),
    ])
    assert topological_order(stages) == ["a", "b", "c", "d"]


def test_cycle_rejected_before_any_producer_runs():
    calls = []
    with pytest.raises(CyclicDependency) as exc:
        Pipeline([
            _stage("a", {"c"}, calls),
            _stage("b", {"a"}, calls),
            _stage("c", {"b"}, calls),
            _stage("free", (), calls),
        ])
    assert calls == []
    assert exc.value.cycle[0] == exc.value.cycle[-1]
    assert set(exc.value.cycle) == {"a", "b", "c"}


def test_unknown_dependency_rejected():
    with pytest.raises(UnknownStage) as exc:
        Pipeline([_stage("a"), _stage("b", {"missing"})])
    assert exc.value.name == "missing"
    assert exc.value.referenced_by == "b"


def test_duplicate_stage_name_rejected():
    with pytest.raises(ValueError):
        Pipeline([_stage("a"), _stage("a")])


async def test_every_stage_runs_once_after_its_dependencies():
    calls = []
    pipeline = Pipeline([
        _stage("strategic", (), calls),
        _stage("cluster", {"strategic"}, calls),
        _stage("content", {"strategic", "cluster"}, calls),
        _stage("coordinator", {"content", "cluster"}, calls),
    ])

    report = await pipeline.run("brief")

    assert report.status is RunStatus.ALL_COMPLETED
    assert report.is_complete
    assert sorted(calls) == sorted(set(calls))
    assert calls == ["strategic", "cluster", "content", "coordinator"]
    assert report.outputs["content"] == {"stage": "content", "deps": ["cluster", "strategic"]}
    assert report.failures == ()


async def test_independent_stages_run_concurrently():
    started = {"technical": asyncio.Event(), "authority": asyncio.Event()}

    def waits_for(name, other):
        async def produce(brief, deps):
            started[name].set()
            # Deadlocks (and times out) if the two stages ran one after the other
            await asyncio.wait_for(started[other].wait(), timeout=1)
            return name

        return produce

    pipeline = Pipeline([
        _stage("strategic"),
        StageDefinition("technical", waits_for("technical", "authority"), {"strategic"}),
        StageDefinition("authority", waits_for("authority", "technical"), {"strategic"}),
    ])

    report = await pipeline.run("brief")

    assert report.status is RunStatus.ALL_COMPLETED
    assert report.outputs["technical"] == "technical"
    assert report.outputs["authority"] == "authority"


async def test_failure_blocks_only_descendants():
    calls = []
    pipeline = Pipeline([
        _stage("strategic", (), calls),
        _stage("cluster", {"strategic"}, calls),
        _stage("content", {"strategic", "cluster"}, calls, error=TransportError("content", "NetworkTimeout")),
        _stage("technical", {"strategic", "cluster"}, calls),
        _stage("authority", {"strategic"}, calls),
        _stage("snippet", {"content"}, calls),
        _stage("coordinator", {"content", "technical", "snippet", "authority"}, calls),
    ])

    report = await pipeline.run("brief")

    assert report.status is RunStatus.PARTIALLY_FAILED
    assert set(report.outputs) == {"strategic", "cluster", "technical", "authority"}
    assert "snippet" not in calls
    assert "coordinator" not in calls

    failures = {f.stage: f for f in report.failures}
    assert set(failures) == {"content", "snippet", "coordinator"}
    assert isinstance(failures["content"].error, TransportError)
    assert not failures["content"].blocked
    assert failures["snippet"].blocked
    assert isinstance(failures["coordinator"].error, DependencyFailed)
    assert failures["coordinator"].error.failed == ["content"]


async def test_run_state_is_explicit_and_reported():
    updates = []
    pipeline = Pipeline([_stage("a"), _stage("b", {"a"}, error=RuntimeError("boom"))])
    run = pipeline.new_run()

    report = await pipeline.run("brief", run=run, on_update=lambda name, r: updates.append((name, r.status)))

    assert run.status is RunStatus.PARTIALLY_FAILED
    assert run.status_of("a") is StageStatus.COMPLETED
    assert run.status_of("b") is StageStatus.FAILED
    assert isinstance(run["b"].error, RuntimeError)
    assert updates == [
        ("a", StageStatus.RUNNING),
        ("a", StageStatus.COMPLETED),
        ("b", StageStatus.RUNNING),
        ("b", StageStatus.FAILED),
    ]
    assert report.durations.keys() == {"a", "b"}


async def test_separate_runs_do_not_share_state():
    pipeline = Pipeline([_stage("a"), _stage("b", {"a"})])
    first = await pipeline.run("one")
    second = await pipeline.run("two")
    assert first.brief == "one"
    assert second.brief == "two"
    assert first.outputs is not second.outputs


async def test_stage_timeout_fails_the_stage():
    pipeline = Pipeline([_stage("slow", delay=5), _stage("fast")], stage_timeout=0.05)

    report = await pipeline.run("brief")

    assert report.status is RunStatus.PARTIALLY_FAILED
    assert "fast" in report.outputs
    error = report.failures[0].error
    assert isinstance(error, StageTimeout)
    assert error.stage == "slow"


async def test_abort_keeps_in_flight_stages_and_skips_the_rest():
    run_holder = {}

    async def first(brief, deps):
        run_holder["run"].abort()
        return "done"

    pipeline = Pipeline([StageDefinition("first", first), _stage("second", {"first"})])
    run = pipeline.new_run()
    run_holder["run"] = run

    report = await pipeline.run("brief", run=run)

    assert report.status is RunStatus.ABORTED
    assert report.outputs == {"first": "done"}
    assert run.status_of("second") is StageStatus.PENDING


async def test_run_stage_in_isolation():
    pipeline = Pipeline([_stage("a"), _stage("b", {"a"})])

    output = await pipeline.run_stage("b", "brief", {"a": {"saved": True}})
    assert output == {"stage": "b", "deps": ["a"]}

    with pytest.raises(MissingDependencyOutput) as exc:
        await pipeline.run_stage("b", "brief", {})
    assert exc.value.missing == ["a"]

    with pytest.raises(UnknownStage):
        await pipeline.run_stage("nope", "brief", {})


async def test_none_output_counts_as_available_dependency():
    seen = []

    async def nothing(brief, deps):
        return None

    async def record(brief, deps):
        seen.append(dict(deps))
        return "ok"

    pipeline = Pipeline([StageDefinition("a", nothing), StageDefinition("b", record, {"a"})])

    assert await pipeline.run_stage("b", "brief", {"a": None}) == "ok"
    report = await pipeline.run("brief")

    assert report.status is RunStatus.ALL_COMPLETED
    assert report.outputs == {"a": None, "b": "ok"}
    assert seen == [{"a": None}, {"a": None}]


async def test_run_stage_propagates_generation_errors():
    pipeline = Pipeline([_stage("a", error=TransportError("a", "connection reset"))])
    with pytest.raises(TransportError):
        await pipeline.run_stage("a", "brief", {})


async def test_dependency_outputs_are_read_only():
    async def mutate(brief, deps):
        deps["strategic"] = "tampered"

    pipeline = Pipeline([_stage("strategic"), StageDefinition("cluster", mutate, {"strategic"})])

    report = await pipeline.run("brief")

    assert isinstance(report.failures[0].error, TypeError)
    assert report.outputs["strategic"] == {"stage": "strategic", "deps": []}
