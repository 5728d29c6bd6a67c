"""Content audit: fetch a page, summarise its SEO structure, ask the LLM for an audit."""

from __future__ import annotations

import httpx

from seo_architect.agents.generator import TextGenerator
from seo_architect.agents.models import ContentAuditResult, ScrapedPage
from seo_architect.agents.parser import ParsePolicy
from seo_architect.agents.stages import AUDIT
from seo_architect.scraper.page import scrape_url
from seo_architect.utils.logging import get_logger, BOLD, GREEN, RESET

log = get_logger()

# Body text sent to the LLM
BODY_EXCERPT_CHARS = 2000
HEADINGS_SHOWN = 10


def _headings(items: list[str]) -> str:
    shown = ", ".join(items[:HEADINGS_SHOWN])
    return shown + ("..." if len(items) > HEADINGS_SHOWN else "")


def audit_prompt(page: ScrapedPage, keyword: str | None = None) -> str:
    with_alt = sum(1 for img in page.images if img.has_alt)
    keyword_line = f"MOT-CLÉ CIBLE: {keyword}" if keyword else ""
    return f"""AUDIT DE CONTENU SEO À RÉALISER:

URL ANALYSÉE: {page.url}

TITRE: {page.title}
META DESCRIPTION: {page.meta_description}

STRUCTURE DES TITRES:
- H1 ({len(page.h1)}): {", ".join(page.h1) or "Aucun"}
- H2 ({len(page.h2)}): {_headings(page.h2)}
- H3 ({len(page.h3)}): {_headings(page.h3)}

MÉTRIQUES:
- Nombre de mots: {page.word_count}
- Images: {len(page.images)} ({with_alt} avec alt)
- Liens internes: {len(page.internal_links)}
- Liens externes: {len(page.external_links)}
- Données structurées: {"Oui" if page.structured_data else "Non"}

CONTENU (extrait des premiers {BODY_EXCERPT_CHARS} caractères):
{page.body_text[:BODY_EXCERPT_CHARS]}...

{keyword_line}

Analyse cette page et génère:
1. Les scores SEO détaillés (0-100)
2. Un résumé exécutif
3. Les points forts et faibles
4. Des recommandations priorisées (minimum 5)
5. Les content gaps détectés (minimum 3)
6. Des suggestions d'articles complémentaires (minimum 3) au format tableau de contenu

Sois précis, actionnable et orienté résultats."""


async def audit_page(
    page: ScrapedPage,
    generator: TextGenerator,
    keyword: str | None = None,
    policy: ParsePolicy | None = None,
) -> ContentAuditResult:
    """Run the audit stage on an already scraped page."""
    result = await AUDIT.generate(generator, audit_prompt(page, keyword), policy=policy)
    result.url = page.url
    result.scraped_content = page
    return result


async def run_content_audit(
    url: str,
    generator: TextGenerator,
    keyword: str | None = None,
    client: httpx.AsyncClient | None = None,
    policy: ParsePolicy | None = None,
) -> ContentAuditResult:
    """Scrape ``url`` and audit it.

    Raises:
        ScrapeFailed: no fetch strategy returned usable content.
        GenerationFailed: the audit stage failed.
    """
    log.info(f"{BOLD}Content audit{RESET} {url}")
    page = await scrape_url(url, client=client)
    log.info(f"  {page.word_count} words, {len(page.h2)} H2, {len(page.images)} images")
    result = await audit_page(page, generator, keyword=keyword, policy=policy)
    log.info(f"  {GREEN}✓{RESET} audit done, global score {result.scores.global_score}")
    return result
