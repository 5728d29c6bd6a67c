"""Click CLI entry point.

Usage:
    seo-architect run brief.txt --out outputs
    seo-architect run brief.txt --strict --timeout 120
    seo-architect stage snippet brief.txt --out outputs
    seo-architect audit https://example.fr/blog/article --keyword "plombier paris"
    seo-architect transform https://news.example/article --secteur plomberie --expertise "chauffe-eau"
    seo-architect vocabulary plomberie
"""

from __future__ import annotations

import asyncio
import json

import click

from seo_architect.errors import GenerationFailed, ScrapeFailed, SeoArchitectError, UnknownStage
from seo_architect.utils.logging import GREEN, RED, YELLOW, BOLD, DIM, RESET, get_logger, stage_line
from seo_architect.workflow.state import StageStatus

log = get_logger()


def make_generator():
    """Production text generator (OpenRouter chat model + SearXNG)."""
    from seo_architect.agents.generator import ChatTextGenerator

    return ChatTextGenerator()


def _policy(strict: bool) -> str | None:
    return "strict" if strict else None


def _dump(model) -> str:
    return json.dumps(model.model_dump(mode="json", by_alias=True), ensure_ascii=False, indent=2)


@click.group()
def cli() -> None:
    """SEO strategy generator CLI."""
    pass


@cli.command()
@click.argument("brief_file", type=click.File("r", encoding="utf-8"))
@click.option("--out", "out_dir", default=None, help="Output directory (default: settings.output_dir)")
@click.option("--strict", is_flag=True, help="Fail a stage when its JSON is missing required collections")
@click.option("--timeout", default=None, type=float, help="Per-stage timeout in seconds (0 = none)")
def run(brief_file, out_dir: str | None, strict: bool, timeout: float | None) -> None:
    """Run the full strategy pipeline on a business brief."""
    brief = brief_file.read().strip()
    if not brief:
        raise click.UsageError("brief is empty")
    asyncio.run(_run(brief, out_dir, strict, timeout))


async def _run(brief: str, out_dir: str | None, strict: bool, timeout: float | None) -> None:
    from seo_architect.agents.stages import build_seo_pipeline
    from seo_architect.report import render_report
    from seo_architect.storage import output_dir, save_report

    pipeline = build_seo_pipeline(make_generator(), policy=_policy(strict), stage_timeout=timeout)
    report = await pipeline.run(brief)
    directory = output_dir(out_dir)
    save_report(report, directory, markdown=render_report(report))

    click.echo(f"\n{BOLD}SEO Architect: {report.status.value}{RESET}\n")
    for name in pipeline.order:
        duration = report.durations.get(name)
        if name in report.outputs:
            click.echo(stage_line(name, StageStatus.COMPLETED, f"{duration:.1f}s", width=12))
        else:
            failure = next((f for f in report.failures if f.stage == name), None)
            blocked = failure is None or failure.blocked
            reason = failure.error if failure else "not started"
            click.echo(stage_line(name, StageStatus.FAILED, str(reason), blocked=blocked, width=12))
    click.echo(f"\n  Outputs: {directory}\n")
    if not report.is_complete:
        raise SystemExit(1)


@cli.command()
@click.argument("name")
@click.argument("brief_file", type=click.File("r", encoding="utf-8"))
@click.option("--out", "out_dir", default=None, help="Directory holding earlier stage outputs")
@click.option("--strict", is_flag=True, help="Fail when the JSON is missing required collections")
def stage(name: str, brief_file, out_dir: str | None, strict: bool) -> None:
    """Run a single stage from the saved outputs of its dependencies."""
    asyncio.run(_stage(name, brief_file.read().strip(), out_dir, strict))


async def _stage(name: str, brief: str, out_dir: str | None, strict: bool) -> None:
    from seo_architect.agents.stages import build_seo_pipeline
    from seo_architect.storage import load_outputs, save_output

    pipeline = build_seo_pipeline(make_generator(), policy=_policy(strict))
    try:
        definition = pipeline[name]
        outputs = load_outputs(definition.depends_on, out_dir)
        output = await pipeline.run_stage(name, brief, outputs)
    except UnknownStage as e:
        raise click.ClickException(f"{e} (available: {', '.join(pipeline.stage_names)})") from e
    except SeoArchitectError as e:
        raise click.ClickException(str(e)) from e

    path = save_output(name, output, out_dir)
    click.echo(f"\n{stage_line(name, StageStatus.COMPLETED, f'saved to {path}')}\n")


@cli.command()
@click.argument("url")
@click.option("--keyword", default=None, help="Target keyword for the page")
@click.option("--json", "as_json", is_flag=True, help="Print the full audit as JSON")
def audit(url: str, keyword: str | None, as_json: bool) -> None:
    """Audit the SEO content of a web page."""
    asyncio.run(_audit(url, keyword, as_json))


async def _audit(url: str, keyword: str | None, as_json: bool) -> None:
    from seo_architect.audit import run_content_audit
    from seo_architect.scraper.page import is_valid_url

    if not is_valid_url(url):
        raise click.BadParameter(f"not an http(s) URL: {url}", param_hint="URL")
    try:
        result = await run_content_audit(url, make_generator(), keyword=keyword)
    except (ScrapeFailed, GenerationFailed) as e:
        raise click.ClickException(str(e)) from e

    if as_json:
        click.echo(_dump(result))
        return

    scores = result.scores
    click.echo(f"\n{BOLD}Audit: {result.url}{RESET}\n")
    click.echo(
        f"  Global {scores.global_score}  Structure {scores.structure}  Sémantique {scores.semantique}  "
        f"Technique {scores.technique}  E-E-A-T {scores.eeat}  Lisibilité {scores.lisibilite}"
    )
    if result.resume_executif:
        click.echo(f"\n  {result.resume_executif}")
    for rec in result.recommandations:
        click.echo(f"  {YELLOW}▸{RESET} [{rec.priority}] {rec.titre}")
    click.echo("")


@cli.command()
@click.argument("url")
@click.option("--secteur", required=True, help="Your business sector")
@click.option("--expertise", required=True, help="Your main expertise")
@click.option("--mot-cle", default="", help="Keyword you target")
@click.option("--type-contenu", multiple=True, help="Desired content type (repeatable)")
@click.option("--audience", default="", help="Target audience")
@click.option("--technicite", default="intermediaire", help="Expected technical level")
@click.option("--objectif", default="", help="Main objective")
@click.option("--contraintes", default="", help="Specific constraints")
@click.option("--articles-existants", default="", help="Existing articles to link to")
def transform(url: str, **options) -> None:
    """Turn a news article into SEO content opportunities."""
    from seo_architect.agents.models import NewsTransformerInput

    options["type_contenu"] = list(options["type_contenu"])
    data = NewsTransformerInput(url=url, **options)
    asyncio.run(_transform(data))


async def _transform(data) -> None:
    from seo_architect.agents.stages import run_news_transformer

    try:
        result = await run_news_transformer(data, make_generator())
    except GenerationFailed as e:
        raise click.ClickException(str(e)) from e

    click.echo(f"\n{BOLD}Rentabilité: {result.score_rentabilite}{RESET} {result.justification_score}\n")
    if not result.is_profitable and result.non_rentable:
        for reason in result.non_rentable.raisons:
            click.echo(f"  {RED}✗{RESET} {reason}")
        if result.non_rentable.recommandation_alternative:
            click.echo(f"\n  {result.non_rentable.recommandation_alternative}")
    for angle in result.angles:
        click.echo(f"  {GREEN}{angle.numero}.{RESET} {angle.titre} {DIM}[{angle.mot_cle_cible}]{RESET}")
    if result.sources:
        click.echo(f"\n  {DIM}{len(result.sources)} sources web{RESET}")
    click.echo("")


@cli.command()
@click.argument("sector")
@click.option("--term", "terms", multiple=True, help="Customer term to keep (repeatable)")
def vocabulary(sector: str, terms: tuple[str, ...]) -> None:
    """Sector vocabulary from the Google Knowledge Graph."""
    from seo_architect.agents.knowledge import enrich_sector_vocabulary

    result = asyncio.run(enrich_sector_vocabulary(sector, list(terms)))
    click.echo(_dump(result))


if __name__ == "__main__":
    cli()
