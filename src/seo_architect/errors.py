"""Exception taxonomy for stage generation and pipeline orchestration.

Stage-level errors (``GenerationFailed`` and its subclasses) are caught by the
orchestrator and recorded on the failing stage. Graph errors are raised when a
pipeline is registered, before any stage runs.
"""

from __future__ import annotations


class SeoArchitectError(Exception):
    """Base class for all errors raised by this package."""


class GenerationFailed(SeoArchitectError):
    """A stage could not produce its output."""

    def __init__(self, stage: str, message: str):
        self.stage = stage
        super().__init__(f"[{stage}] {message}")


class TransportError(GenerationFailed):
    """The text generator failed (network, API, rate limit exhausted)."""


class MalformedResponse(GenerationFailed):
    """The generator returned text that is not a usable JSON object."""

    def __init__(self, stage: str, raw: str, message: str = "response is not valid JSON"):
        self.raw = raw
        super().__init__(stage, message)


class SchemaViolation(MalformedResponse):
    """Strict parsing found a required collection field missing or mis-shaped."""

    def __init__(self, stage: str, raw: str, field: str):
        self.field = field
        super().__init__(stage, raw, f"field '{field}' is missing or has the wrong shape")


class StageTimeout(GenerationFailed):
    """A stage producer did not finish within the configured timeout."""

    def __init__(self, stage: str, timeout: float):
        self.timeout = timeout
        super().__init__(stage, f"timed out after {timeout:g}s")


class DependencyFailed(SeoArchitectError):
    """Recorded for a stage that never started because an upstream stage failed."""

    def __init__(self, stage: str, failed: list[str]):
        self.stage = stage
        self.failed = failed
        super().__init__(f"[{stage}] not started: upstream stage(s) failed: {', '.join(failed)}")


class CyclicDependency(SeoArchitectError):
    def __init__(self, cycle: list[str]):
        self.cycle = cycle
        super().__init__(f"cyclic stage dependency: {' -> '.join(cycle)}")


class UnknownStage(SeoArchitectError):
    def __init__(self, name: str, referenced_by: str | None = None):
        self.name = name
        self.referenced_by = referenced_by
        if referenced_by:
            msg = f"stage '{referenced_by}' depends on unknown stage '{name}'"
        else:
            msg = f"unknown stage '{name}'"
        super().__init__(msg)


class MissingDependencyOutput(SeoArchitectError):
    def __init__(self, stage: str, missing: list[str]):
        self.stage = stage
        self.missing = missing
        super().__init__(f"[{stage}] missing completed output for: {', '.join(missing)}")


class ScrapeFailed(SeoArchitectError):
    def __init__(self, url: str, attempts: int, last_error: str | None = None):
        self.url = url
        self.attempts = attempts
        msg = f"could not fetch {url} after {attempts} attempt(s)"
        if last_error:
            msg += f": {last_error}"
        super().__init__(msg)
