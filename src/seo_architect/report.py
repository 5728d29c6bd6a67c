"""Markdown rendering of a consolidated SEO report."""

from __future__ import annotations

from seo_architect.agents.models import (
    AuthorityStrategy,
    ClusterArchitecture,
    CompetitiveIntel,
    CompetitorAnalysis,
    ContentDesign,
    CoordinatorSummary,
    RoiPredictions,
    SerpAnalysis,
    SGEOptimizationResult,
    SnippetStrategy,
    StrategicAnalysis,
    TechnicalOptimization,
)
from seo_architect.agents.stages import enrich_articles_with_sge
from seo_architect.workflow.result import ConsolidatedReport


def _cell(value) -> str:
    return str(value).replace("|", "/").replace("\n", " ").strip()


def _table(headers: list[str], rows: list[list]) -> list[str]:
    lines = [
        "| " + " | ".join(headers) + " |",
        "|" + "|".join("---" for _ in headers) + "|",
    ]
    lines += ["| " + " | ".join(_cell(v) for v in row) + " |" for row in rows]
    return lines


def _summary_section(summary: CoordinatorSummary) -> list[str]:
    arch = summary.resume_architecture
    lines = [
        "## Résumé exécutif",
        "",
        f"- Clusters: {arch.nombre_clusters} "
        f"(BOFU {arch.repartition.bofu} / MOFU {arch.repartition.mofu} / TOFU {arch.repartition.tofu})",
        f"- Articles: {arch.nombre_articles}",
    ]
    if arch.priorite_absolue.cluster:
        lines.append(f"- Priorité absolue: {arch.priorite_absolue.cluster} ({arch.priorite_absolue.raison})")
    if summary.synthese:
        lines += ["", summary.synthese]
    if summary.conseil_prioritaire:
        lines += ["", f"> {summary.conseil_prioritaire}"]

    if summary.quick_wins:
        lines += ["", "### Quick wins", ""]
        lines += _table(
            ["#", "Action", "Impact", "Effort", "Délai"],
            [[w.rang or i, w.titre or w.requete, w.impact, w.effort, w.delai]
             for i, w in enumerate(summary.quick_wins, 1)],
        )
    if summary.validation_croisee:
        lines += ["", "### Validation croisée", ""]
        lines += [f"- {v.agent}: {v.statut} {v.notes}".rstrip() for v in summary.validation_croisee]
    return lines


def _strategic_section(analysis: StrategicAnalysis) -> list[str]:
    lines = [
        "## Analyse stratégique",
        "",
        f"- Avatar: {analysis.avatar.segment}",
        f"- Niveau E-E-A-T requis: {analysis.niveau_eeat.requis}",
        f"- Super-pouvoir: {analysis.levier_differentiation.angle}",
    ]
    if analysis.douleurs_top5:
        lines += ["", "### Douleurs principales", ""]
        lines += [f"{i}. {d.douleur}" for i, d in enumerate(analysis.douleurs_top5, 1)]
    vocab = analysis.vocabulaire_sectoriel
    if vocab.termes_metier or vocab.entites_google:
        lines += ["", "### Vocabulaire sectoriel", ""]
        lines.append(f"- Termes métier: {', '.join(vocab.termes_metier)}")
        lines.append(f"- Termes clients: {', '.join(vocab.termes_clients)}")
        lines.append(f"- Entités Google: {', '.join(vocab.entites_google)}")
    return lines


def _cluster_section(architecture: ClusterArchitecture) -> list[str]:
    lines = ["## Clusters", ""]
    lines += _table(
        ["Cluster", "Funnel", "Mots-clés", "Pages piliers"],
        [[c.nom, c.funnel, ", ".join(c.mots_cles), ", ".join(c.pages_piliers)] for c in architecture.clusters],
    )
    if architecture.roadmap90_jours:
        lines += ["", "### Roadmap 90 jours", ""]
        lines += [
            f"- Semaine {item.semaine}: {item.focus or item.cluster}"
            for item in architecture.roadmap90_jours
        ]
    return lines


def _content_section(design: ContentDesign, sge: SGEOptimizationResult | None) -> list[str]:
    rows = design.tableau_contenu
    if sge is not None:
        rows = enrich_articles_with_sge(rows, sge)
    lines = ["## Tableau de contenu", ""]
    lines += _table(
        ["Cluster", "Titre H1", "Intent", "Snippet", "Schema", "Appât SXO", "Citabilité IA"],
        [
            [
                row.cluster,
                row.titre_h1,
                row.intent,
                row.snippet_format,
                row.schema_markup,
                row.appat_sxo,
                row.sge_optimization.citability_score if row.sge_optimization else "-",
            ]
            for row in rows
        ],
    )
    return lines


def _technical_section(technical: TechnicalOptimization) -> list[str]:
    lines = ["## Optimisation technique", ""]
    lines += [f"- [ ] {item.item}" for item in technical.core_web_vitals.checklist]
    if technical.maillage_schema.schema_ascii:
        lines += ["", "```", technical.maillage_schema.schema_ascii, "```"]
    return lines


def _snippet_section(snippets: SnippetStrategy) -> list[str]:
    lines = ["## Featured snippets", ""]
    lines += _table(
        ["Article", "Format", "Difficulté"],
        [[s.article, s.format_choisi, s.difficulte_position0] for s in snippets.snippets_par_article],
    )
    return lines


def _authority_section(authority: AuthorityStrategy) -> list[str]:
    lines = ["## Autorité et netlinking", ""]
    lines += _table(
        ["Cible", "Type", "DA", "Chances"],
        [[t.site or t.url, t.type, t.da, t.chances_succes] for t in authority.cibles_backlinks],
    )
    return lines


def _competitor_section(analysis: CompetitorAnalysis) -> list[str]:
    synthese = analysis.synthese_globale
    lines = [
        "## Concurrence",
        "",
        f"- Niveau de concurrence: {synthese.niveau_concurrence}",
        f"- Plus fort: {synthese.concurrent_le_plus_fort or '-'} / plus faible: {synthese.concurrent_le_plus_faible or '-'}",
    ]
    if analysis.competitors:
        lines += [""]
        lines += _table(
            ["Domaine", "DA estimé", "Mots", "H2", "Mots-clés"],
            [[c.domain or c.url, c.da_estime, c.word_count, c.nombre_h2, ", ".join(c.mots_cles_principaux)]
             for c in analysis.competitors],
        )
    opportunities = synthese.opportunites_prioritaires + analysis.recommandations
    if opportunities:
        lines += ["", "### Opportunités", ""]
        lines += [f"- {o}" for o in opportunities]
    return lines


def _serp_section(serp: SerpAnalysis) -> list[str]:
    lines = ["## Analyse SERP", ""]
    lines += _table(
        ["Mot-clé", "Intention", "Difficulté", "Probabilité", "Délai"],
        [
            [a.keyword, a.intent.primary, a.competitive_gap.difficulty, a.win_probability.score,
             a.win_probability.time_to_rank]
            for a in serp.serp_analysis
        ],
    )
    if serp.recommendations:
        lines += [""]
        lines += [f"- {r}" for r in serp.recommendations]
    return lines


def _roi_section(roi: RoiPredictions) -> list[str]:
    summary = roi.summary
    lines = [
        "## ROI prévisionnel",
        "",
        f"- ROI global: {summary.overall_roi} (moyenne {summary.average_roi}%)",
        f"- Revenu estimé: {summary.total_estimated_revenue}€ pour {summary.total_estimated_cost}€ de production",
        "",
    ]
    lines += _table(
        ["Article", "Intent", "Trafic", "Revenu", "Coût", "ROI", "Priorité"],
        [
            [p.article, p.intent, p.metrics.estimated_traffic, p.metrics.estimated_revenue, p.costs.total_cost,
             p.roi.percentage, p.roi.priority]
            for p in roi.roi_predictions
        ],
    )
    return lines


def _compintel_section(intel: CompetitiveIntel) -> list[str]:
    lines = [
        "## Intelligence concurrentielle",
        "",
        f"- Score de compétitivité: {intel.score}/100 {intel.interpretation}",
        f"- Priorité: {intel.top_priority}",
    ]
    strategy = intel.win_strategy
    if strategy.quick_wins:
        lines += ["", "### Quick wins", ""]
        lines += [f"- {w}" for w in strategy.quick_wins]
    if intel.backlink_opportunities:
        lines += ["", "### Backlinks", ""]
        lines += _table(
            ["Source", "Type", "Approche"],
            [[b.source, b.type, b.approach_suggestion] for b in intel.backlink_opportunities],
        )
    return lines


def _failures_section(report: ConsolidatedReport) -> list[str]:
    lines = ["## Étapes en échec", ""]
    for failure in report.failures:
        kind = "bloquée" if failure.blocked else "échec"
        lines.append(f"- **{failure.stage}** ({kind}): {failure.error}")
    return lines


def render_report(report: ConsolidatedReport) -> str:
    """Full Markdown report. Sections are only rendered for completed stages."""
    lines = ["# Architecture SEO", "", f"Statut: `{report.status.value}`", ""]
    sections = [
        ("coordinator", _summary_section),
        ("strategic", _strategic_section),
        ("cluster", _cluster_section),
        ("technical", _technical_section),
        ("snippet", _snippet_section),
        ("authority", _authority_section),
        ("competitor", _competitor_section),
        ("serp", _serp_section),
        ("roi", _roi_section),
        ("compintel", _compintel_section),
    ]
    for stage, render in sections:
        output = report.get(stage)
        if output is not None:
            lines += render(output) + [""]
        if stage == "cluster" and report.get("content") is not None:
            lines += _content_section(report.get("content"), report.get("sge")) + [""]

    if report.failures:
        lines += _failures_section(report) + [""]
    return "\n".join(lines).rstrip() + "\n"
