"""Output directory storage for stage results.

Each stage output is written as pretty-printed JSON under a fixed numbered
file name, so single stages can be re-run later from the outputs of earlier
ones:

    outputs/
        01-strategic-analysis.json
        02-cluster-architecture.json
        ...
        report.json
        full-report.md
"""

from __future__ import annotations

import json
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any

from pydantic import BaseModel

from seo_architect.agents.stages import SEO_STAGES
from seo_architect.config import settings
from seo_architect.utils.logging import get_logger, GREEN, DIM, RESET
from seo_architect.workflow.result import ConsolidatedReport

log = get_logger()

STAGE_FILES: dict[str, str] = {
    "strategic": "01-strategic-analysis.json",
    "cluster": "02-cluster-architecture.json",
    "content": "03-content-table.json",
    "technical": "04-technical-optimization.json",
    "snippet": "05-snippet-strategy.json",
    "authority": "06-authority-strategy.json",
    "sge": "07-sge-optimization.json",
    "competitor": "08-competitor-analysis.json",
    "coordinator": "09-coordinator-summary.json",
    "serp": "10-serp-analysis.json",
    "roi": "11-roi-predictions.json",
    "compintel": "12-competitive-intel.json",
}
REPORT_FILE = "report.json"
MARKDOWN_FILE = "full-report.md"

_MODELS: dict[str, type[BaseModel]] = {stage.name: stage.output_model for stage in SEO_STAGES}


def output_dir(path: str | Path | None = None) -> Path:
    directory = Path(path or settings.output_dir)
    directory.mkdir(parents=True, exist_ok=True)
    return directory


def _write_json(path: Path, data: Any) -> None:
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, ensure_ascii=False, indent=2)


def save_output(stage: str, output: Any, directory: str | Path | None = None) -> Path:
    """Write one stage output to its numbered file."""
    path = output_dir(directory) / STAGE_FILES[stage]
    if isinstance(output, BaseModel):
        output = output.model_dump(mode="json", by_alias=True)
    _write_json(path, output)
    log.info(f"  {GREEN}✓{RESET} saved {path}")
    return path


def save_outputs(outputs: Mapping[str, Any], directory: str | Path | None = None) -> list[Path]:
    return [save_output(stage, output, directory) for stage, output in outputs.items() if stage in STAGE_FILES]


def load_output(stage: str, directory: str | Path | None = None) -> Any:
    """Load a stage output back into its model. ``None`` when the file is missing."""
    path = Path(directory or settings.output_dir) / STAGE_FILES[stage]
    if not path.exists():
        log.debug(f"  {DIM}no saved output for {stage} ({path}){RESET}")
        return None
    with open(path, encoding="utf-8") as f:
        data = json.load(f)
    model = _MODELS.get(stage)
    return model.model_validate(data) if model else data


def load_outputs(stages: Iterable[str], directory: str | Path | None = None) -> dict[str, Any]:
    """Saved outputs for ``stages``; stages without a file are left out."""
    outputs = {}
    for stage in stages:
        output = load_output(stage, directory)
        if output is not None:
            outputs[stage] = output
    return outputs


def save_report(
    report: ConsolidatedReport,
    directory: str | Path | None = None,
    markdown: str | None = None,
) -> Path:
    """Write every stage output, ``report.json`` and optionally ``full-report.md``."""
    directory = output_dir(directory)
    save_outputs(report.outputs, directory)
    path = directory / REPORT_FILE
    _write_json(path, report.to_dict())
    if markdown is not None:
        (directory / MARKDOWN_FILE).write_text(markdown, encoding="utf-8")
    log.info(f"  {GREEN}✓{RESET} report saved to {directory}")
    return path
