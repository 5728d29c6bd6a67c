"""Competition stages: competitor scraping, SERP reading, article ROI, market intel.

Prompt builders and the signal-based estimates that do not need the
generator live here. ``agents.stages`` wires them into the strategy graph.
"""

from __future__ import annotations

import re
from collections import Counter
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any
from urllib.parse import urlparse

from seo_architect.agents.models import (
    ArticleRoi,
    ClusterArchitecture,
    CompetitiveIntel,
    CompetitorAnalysis,
    CompetitorProfile,
    ContentDesign,
    ContentRow,
    RoiCosts,
    RoiMetrics,
    RoiSummary,
    RoiValue,
    ScrapedPage,
    SerpAnalysis,
    StrategicAnalysis,
    SyntheseConcurrence,
)
from seo_architect.config import settings
from seo_architect.errors import ScrapeFailed
from seo_architect.scraper.page import is_valid_url, scrape_url
from seo_architect.utils.logging import get_logger, GREEN, YELLOW, RESET

log = get_logger()

_URL_RE = re.compile(r"https?://\S+")

UNREACHABLE = "Impossible d'analyser - URL inaccessible"


def competitor_urls(brief: str, limit: int | None = None) -> list[str]:
    """Competitor URLs named in the brief, first ``limit`` distinct ones."""
    limit = settings.max_competitor_urls if limit is None else limit
    urls: list[str] = []
    for match in _URL_RE.findall(brief):
        url = match.rstrip(".,;:)]}\"'")
        if url not in urls:
            urls.append(url)
    return urls[:limit]


def domain_of(url: str) -> str:
    return urlparse(url).hostname or url


# --- Competitor analyzer ---


@dataclass
class ScrapedCompetitor:
    url: str
    page: ScrapedPage | None = None
    error: str | None = None


async def scrape_competitors(urls: Iterable[str]) -> list[ScrapedCompetitor]:
    """Scrape each URL in turn; a failed page is kept with its error."""
    results = []
    for url in urls:
        url = url.strip()
        if not is_valid_url(url):
            results.append(ScrapedCompetitor(url, error="URL invalide - doit commencer par http:// ou https://"))
            continue
        try:
            page = await scrape_url(url)
        except ScrapeFailed as e:
            log.warning(f"  {YELLOW}✗ competitor {url}: {e}{RESET}")
            results.append(ScrapedCompetitor(url, error=str(e)))
            continue
        log.info(f"  {GREEN}✓{RESET} competitor {url}: {page.title or 'sans titre'} ({page.word_count} mots)")
        results.append(ScrapedCompetitor(url, page=page))
    return results


def estimate_da(page: ScrapedPage) -> int:
    """Rough domain authority (10-60) from on-page SEO signals."""
    score = 10
    if page.word_count > 2000:
        score += 10
    elif page.word_count > 1000:
        score += 5
    if len(page.h2) >= 5:
        score += 5
    if len(page.h1) == 1:
        score += 3
    if len(page.internal_links) > 20:
        score += 5
    if len(page.external_links) > 5:
        score += 3
    if page.structured_data:
        score += 5
    if page.images and sum(1 for img in page.images if img.has_alt) / len(page.images) > 0.8:
        score += 3
    # Page signals cannot tell a strong domain from a dominant one
    return min(score, 60)


def extract_keywords(page: ScrapedPage, limit: int = 5) -> list[str]:
    """Most frequent words longer than 4 characters in the title and headings."""
    text = " ".join([page.title, *page.h1, *page.h2]).lower()
    counts = Counter(word for word in text.split() if len(word) > 4)
    return [word for word, _ in counts.most_common(limit)]


def empty_profile(url: str, error: str | None = None) -> CompetitorProfile:
    return CompetitorProfile(url=url, domain=domain_of(url), faiblesses=[UNREACHABLE], scrape_error=error)


def empty_competitor_analysis(scraped: list[ScrapedCompetitor]) -> CompetitorAnalysis:
    """Result when no competitor could be scraped (or none was given)."""
    return CompetitorAnalysis(
        competitors=[empty_profile(c.url, c.error) for c in scraped],
        synthese_globale=SyntheseConcurrence(
            concurrent_le_plus_fort="N/A",
            concurrent_le_plus_faible="N/A",
            niveau_concurrence="faible",
            opportunites_prioritaires=["Aucun concurrent analysé - vérifiez les URLs"],
        ),
        recommandations=["Fournissez des URLs de concurrents valides et accessibles"],
    )


def competitor_prompt(brief: str, deps: Mapping[str, Any]) -> str:
    """``deps`` carries the scraped pages under ``competitors``."""
    s: StrategicAnalysis = deps["strategic"]
    scraped: list[ScrapedCompetitor] = deps["competitors"]
    blocks = []
    for i, c in enumerate(scraped, 1):
        if c.page is None:
            blocks.append(f"❌ CONCURRENT {i}: {c.url}\n   Erreur: {c.error or 'Impossible de scraper'}")
            continue
        p = c.page
        with_alt = sum(1 for img in p.images if img.has_alt)
        blocks.append(
            f"📊 CONCURRENT {i}: {c.url}\n"
            f"   - Titre: {p.title or 'Non trouvé'}\n"
            f"   - H1: {' | '.join(p.h1) or 'Aucun'}\n"
            f"   - Nombre de H2: {len(p.h2)}\n"
            f"   - H2 principaux: {' | '.join(p.h2[:5])}\n"
            f"   - Nombre de mots: {p.word_count}\n"
            f"   - Liens internes: {len(p.internal_links)}\n"
            f"   - Liens externes: {len(p.external_links)}\n"
            f"   - Images: {len(p.images)} (avec alt: {with_alt})\n"
            f"   - Données structurées: {len(p.structured_data)} schema(s)\n"
            f"   - Extrait du contenu: {p.body_text[:500]}..."
        )
    summary = "\n\n".join(blocks)
    return f"""NOTRE BUSINESS:
{brief}

SECTEUR: {s.contexte_business.secteur or "Non défini"}

DONNÉES SCRAPÉES DES CONCURRENTS (DONNÉES RÉELLES):

{summary}

OBJECTIF: Analyse chaque concurrent et identifie son niveau SEO estimé (DA),
ses forces et faiblesses, les opportunités pour le surpasser et une synthèse
comparative globale. Génère le JSON d'analyse."""


def enrich_competitors(analysis: CompetitorAnalysis, scraped: list[ScrapedCompetitor]) -> CompetitorAnalysis:
    """One profile per scraped URL: generated judgement plus measured page data.

    Generated profiles are matched by URL, then by position.
    """
    by_url = {c.url: c for c in analysis.competitors}
    profiles = []
    for index, s in enumerate(scraped):
        generated = by_url.get(s.url)
        if generated is None and index < len(analysis.competitors):
            generated = analysis.competitors[index]

        if s.page is None:
            profile = empty_profile(s.url, s.error)
            if generated is not None:
                profile = profile.model_copy(update={
                    "da_estime": generated.da_estime,
                    "forces": generated.forces,
                    "faiblesses": generated.faiblesses or profile.faiblesses,
                    "content_gaps_identifies": generated.content_gaps_identifies,
                    "backlinks_a_recuperer": generated.backlinks_a_recuperer,
                    "strategie_surclassement": generated.strategie_surclassement,
                })
            profiles.append(profile)
            continue

        page = s.page
        base = generated or CompetitorProfile()
        profiles.append(base.model_copy(update={
            "url": s.url,
            "domain": domain_of(s.url),
            "da_estime": base.da_estime or estimate_da(page),
            "titre_h1": page.h1[0] if page.h1 else page.title,
            "nombre_h2": len(page.h2),
            "word_count": page.word_count,
            "nombre_liens_internes": len(page.internal_links),
            "nombre_liens_externes": len(page.external_links),
            "mots_cles_principaux": base.mots_cles_principaux or extract_keywords(page),
        }))

    analysis.competitors = profiles
    synthese = analysis.synthese_globale
    if profiles and not synthese.concurrent_le_plus_fort:
        synthese.concurrent_le_plus_fort = max(profiles, key=lambda p: p.da_estime).domain
        synthese.concurrent_le_plus_faible = min(profiles, key=lambda p: p.da_estime).domain
    return analysis


# --- SERP analyzer ---


def serp_keywords(clusters: ClusterArchitecture, per_cluster: int = 3, limit: int | None = None) -> list[str]:
    """Top keywords of each cluster, capped to keep the search count bounded."""
    limit = settings.serp_max_keywords if limit is None else limit
    keywords = [kw for cluster in clusters.clusters for kw in cluster.mots_cles[:per_cluster] if kw]
    return keywords[:limit]


def serp_queries(brief: str, deps: Mapping[str, Any]) -> list[str]:
    return serp_keywords(deps["cluster"])


def serp_prompt(brief: str, deps: Mapping[str, Any]) -> str:
    keywords = serp_keywords(deps["cluster"])
    listed = "\n".join(f"{i}. {kw}" for i, kw in enumerate(keywords, 1))
    return f"""CONTEXTE BUSINESS:
{brief}

MOTS-CLÉS À ANALYSER ({len(keywords)}):
{listed or "Aucun"}

INSTRUCTIONS:
1. Pour CHAQUE mot-clé, appuie-toi sur les résultats de recherche fournis
2. Analyse les 10 premiers résultats organiques
3. Identifie les SERP features présentes
4. Évalue la difficulté et les opportunités
5. Propose des actions prioritaires pour chaque mot-clé"""


def serp_recommendations(result: SerpAnalysis) -> list[str]:
    """Quick wins, Position 0 openings, length benchmark and hard battles."""
    analyses = result.serp_analysis
    recommendations = []
    easy = [a.keyword for a in analyses if a.win_probability.score >= 70]
    if easy:
        recommendations.append(
            f"🎯 Quick Wins identifiés: {', '.join(easy)} (probabilité de ranking > 70%)"
        )
    open_snippets = [a for a in analyses if not a.serp_features.featured_snippet.present]
    if open_snippets:
        recommendations.append(
            f"📌 Opportunités Position 0: {len(open_snippets)} mots-clés sans featured snippet actuel"
        )
    average = result.global_insights.content_length_benchmark.average
    recommendations.append(f"📝 Benchmark contenu: Viser {average + 500} mots (moyenne concurrence: {average})")
    hard = [a.keyword for a in analyses if a.win_probability.score < 40]
    if hard:
        recommendations.append(f"⚠️ Batailles difficiles: {', '.join(hard)} - prévoir une stratégie long terme")
    return recommendations


# --- ROI predictor ---

CTR_BY_POSITION = {1: 0.28, 2: 0.15, 3: 0.11, 4: 0.08, 5: 0.07, 6: 0.05, 7: 0.04, 8: 0.035, 9: 0.03, 10: 0.025}
CONVERSION_BY_INTENT = {"BOFU": 0.04, "MOFU": 0.015, "TOFU": 0.007}
VISUALS_COST = 50


def roi_priority(roi: int) -> str:
    if roi > 500:
        return "critique"
    if roi > 200:
        return "haute"
    if roi > 100:
        return "normale"
    if roi > 50:
        return "basse"
    return "a-valider"


def payback_period(roi: int) -> str:
    if roi > 100:
        return "1 mois"
    if roi > 50:
        return "2-3 mois"
    return "6+ mois"


def article_roi(row: ContentRow, conversion_value: float, hourly_rate: float) -> ArticleRoi:
    """ROI of one planned article from its 1-10 volume and difficulty scores."""
    volume = round(100 * 2 ** (row.score.volume - 1))
    position = min(10, max(1, round(row.score.difficulte)))
    ctr = CTR_BY_POSITION.get(position, 0.02)
    traffic = round(volume * ctr)
    conversion_rate = CONVERSION_BY_INTENT.get(row.intent, 0.01)
    conversions = traffic * conversion_rate
    revenue = conversions * conversion_value

    words = 2500 if row.intent == "BOFU" else 2000 if row.intent == "MOFU" else 1500
    hours = 3.5 if words <= 1500 else 5.5 if words <= 2500 else 9
    cost = hours * hourly_rate + VISUALS_COST
    roi = round((revenue - cost) / cost * 100) if revenue > 0 else 0

    return ArticleRoi(
        article=row.titre_h1,
        cluster=row.cluster,
        intent=row.intent,
        metrics=RoiMetrics(
            search_volume=volume,
            target_position=position,
            estimated_ctr=ctr,
            estimated_traffic=traffic,
            conversion_rate=conversion_rate,
            estimated_conversions=conversions,
            conversion_value=conversion_value,
            estimated_revenue=round(revenue),
        ),
        costs=RoiCosts(
            writing_hours=hours, hourly_rate=hourly_rate, visuals_cost=VISUALS_COST, total_cost=round(cost)
        ),
        roi=RoiValue(value=roi, percentage=f"{roi}%", priority=roi_priority(roi), payback_period=payback_period(roi)),
    )


def calculate_local_roi(
    rows: Iterable[ContentRow],
    conversion_value: float | None = None,
    hourly_rate: float | None = None,
) -> list[ArticleRoi]:
    """ROI predictions computed without the generator."""
    conversion_value = settings.roi_conversion_value if conversion_value is None else conversion_value
    hourly_rate = settings.roi_hourly_rate if hourly_rate is None else hourly_rate
    return [article_roi(row, conversion_value, hourly_rate) for row in rows]


def roi_summary(predictions: list[ArticleRoi]) -> RoiSummary:
    if not predictions:
        return RoiSummary()
    ranked = sorted(predictions, key=lambda p: p.roi.value, reverse=True)
    revenue = sum(p.metrics.estimated_revenue for p in predictions)
    cost = sum(p.costs.total_cost for p in predictions)
    overall = round((revenue - cost) / cost * 100) if cost else 0
    return RoiSummary(
        total_articles=len(predictions),
        average_roi=round(sum(p.roi.value for p in predictions) / len(predictions)),
        top_roi_articles=[f"{p.article} ({p.roi.percentage})" for p in ranked[:5]],
        low_roi_articles=[f"{p.article} ({p.roi.percentage})" for p in ranked[-3:] if p.roi.value < 50],
        total_estimated_revenue=revenue,
        total_estimated_cost=cost,
        overall_roi=f"{overall}%",
    )


def roi_prompt(brief: str, deps: Mapping[str, Any]) -> str:
    s: StrategicAnalysis = deps["strategic"]
    d: ContentDesign = deps["content"]
    value = settings.roi_conversion_value
    articles = "\n".join(
        f"{i}. **{row.titre_h1}**\n"
        f"   - Cluster: {row.cluster}\n"
        f"   - Intent: {row.intent}\n"
        f"   - Volume estimé: {row.score.volume}/10\n"
        f"   - Difficulté: {row.score.difficulte}/10\n"
        f"   - Impact: {row.score.impact}/10"
        for i, row in enumerate(d.tableau_contenu, 1)
    )
    return f"""CONTEXTE BUSINESS:
Secteur: {s.contexte_business.secteur or "Non défini"}
Valeur par conversion: {value:g}€

ARTICLES À ÉVALUER ({len(d.tableau_contenu)}):
{articles or "Aucun"}

PARAMÈTRES ROI:
- Taux horaire rédaction: {settings.roi_hourly_rate:g}€
- Conversion BOFU: 4%, MOFU: 1.5%, TOFU: 0.7%
- Valeur conversion: {value:g}€

Calcule le ROI de chaque article et fournis des recommandations de priorisation."""


# --- Competitive intelligence ---


def compintel_queries(brief: str, deps: Mapping[str, Any]) -> list[str]:
    s: StrategicAnalysis = deps["strategic"]
    queries = [domain_of(url) for url in competitor_urls(brief)]
    if not queries and s.contexte_business.secteur:
        queries.append(f"{s.contexte_business.secteur} leaders SEO")
    return queries


def compintel_prompt(brief: str, deps: Mapping[str, Any]) -> str:
    s: StrategicAnalysis = deps["strategic"]
    lever = s.levier_differentiation
    urls = "\n".join(f"{i}. {url}" for i, url in enumerate(competitor_urls(brief), 1))
    niches = "\n".join(f"- {m.niche}" for m in s.micro_niches)
    gaps = "\n".join(f"- {g.sujet}: {g.opportunite}" for g in s.content_gaps)
    return f"""CONTEXTE BUSINESS:
Secteur: {s.contexte_business.secteur or "Non défini"}
Positionnement: {s.contexte_business.positionnement or "N/A"}

NOS FORCES ACTUELLES:
- Super-pouvoir: {lever.super_pouvoir or "N/A"}
- Angle différenciant: {lever.angle or "N/A"}

CONCURRENTS À ANALYSER:
{urls or "Aucun fourni: identifie les 3 à 5 concurrents qui dominent ce secteur"}

MICRO-NICHES IDENTIFIÉES:
{niches or "Aucune"}

CONTENT GAPS DÉJÀ IDENTIFIÉS:
{gaps or "Aucun"}

INSTRUCTIONS:
1. Analyse CHAQUE concurrent à partir des résultats de recherche fournis
2. Identifie leurs pages qui rankent le mieux
3. Compare leur stratégie à la nôtre
4. Trouve des opportunités de backlinks
5. Propose une stratégie pour les dépasser"""


def competitive_score(intel: CompetitiveIntel) -> tuple[int, str, str]:
    """``(score 0-100, interpretation, top priority)`` for a market."""
    das = [c.profile.estimated_da for c in intel.competitors]
    high_gaps = sum(1 for g in intel.content_gaps.they_have_we_not if g.opportunity == "high")
    easy_untapped = sum(1 for u in intel.content_gaps.untapped if u.difficulty == "low")
    backlinks = len(intel.backlink_opportunities)

    score = 50
    # Without profiled competitors the authority term is left out
    if das:
        average_da = sum(das) / len(das)
        if average_da < 30:
            score += 20
        elif average_da < 50:
            score += 10
        else:
            score -= 10
    score += min(high_gaps * 5, 15)
    score += min(easy_untapped * 5, 15)
    score += min(backlinks * 2, 10)
    score = max(0, min(100, score))

    if score >= 70:
        interpretation = "🟢 Marché accessible - Forte probabilité de succès rapide"
    elif score >= 50:
        interpretation = "🟡 Marché compétitif - Succès possible avec stratégie solide"
    else:
        interpretation = "🔴 Marché difficile - Stratégie long terme nécessaire"

    if easy_untapped:
        priority = f"Exploiter les {easy_untapped} niches non couvertes (faible difficulté)"
    elif high_gaps:
        priority = f"Combler les {high_gaps} content gaps à haute opportunité"
    elif backlinks:
        priority = f"Récupérer les {backlinks} opportunités de backlinks"
    else:
        priority = "Développer un angle différenciant unique"
    return score, interpretation, priority


# --- Post-processing ---


def settle_serp_result(result: SerpAnalysis) -> SerpAnalysis:
    result.recommendations = serp_recommendations(result)
    return result


def settle_competitive_intel(result: CompetitiveIntel) -> CompetitiveIntel:
    result.score, result.interpretation, result.top_priority = competitive_score(result)
    return result
