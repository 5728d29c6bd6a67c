"""LLM-backed stages and the default SEO strategy graph.

Each ``LLMStage`` pairs a system prompt (``prompts/<name>.yaml``) with a
user-prompt builder, an output model and an optional post-processing step.
``bind`` turns it into a ``StageDefinition`` for the orchestrator. A stage
with ``build_queries`` is grounded on web search results; stages with extra
steps (competitor scraping, local ROI estimates) override ``produce``.

    pipeline = build_seo_pipeline(ChatTextGenerator())
    report = await pipeline.run(brief)
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from types import MappingProxyType
from typing import Any

import yaml

from seo_architect.agents.competition import (
    calculate_local_roi,
    compintel_prompt,
    compintel_queries,
    competitor_prompt,
    competitor_urls,
    empty_competitor_analysis,
    enrich_competitors,
    roi_prompt,
    roi_summary,
    scrape_competitors,
    serp_prompt,
    serp_queries,
    settle_competitive_intel,
    settle_serp_result,
)
from seo_architect.agents.generator import GroundedText, TextGenerator
from seo_architect.agents.models import (
    AuthorityStrategy,
    ClusterArchitecture,
    CompetitiveIntel,
    CompetitorAnalysis,
    ContentAuditResult,
    ContentDesign,
    ContentRow,
    CoordinatorSummary,
    GroundingSource,
    NewsTransformerInput,
    NewsTransformerResult,
    NOT_PROFITABLE,
    RoiPredictions,
    SerpAnalysis,
    SGEOptimizationResult,
    SnippetStrategy,
    StrategicAnalysis,
    TechnicalOptimization,
    WireModel,
    default_options,
)
from seo_architect.agents.parser import ParsePolicy, parse_response
from seo_architect.config import settings
from seo_architect.errors import GenerationFailed, TransportError
from seo_architect.utils.logging import get_logger, DIM, YELLOW, RESET
from seo_architect.workflow.graph import StageDefinition
from seo_architect.workflow.orchestrator import Pipeline

log = get_logger()

_PROMPTS_DIR = Path(__file__).parent / "prompts"

UserPromptBuilder = Callable[[str, Mapping[str, Any]], str]
QueryBuilder = Callable[[str, Mapping[str, Any]], list[str]]


@lru_cache(maxsize=None)
def load_prompt(name: str) -> str:
    """Load a stage's system prompt from its YAML file."""
    path = _PROMPTS_DIR / f"{name}.yaml"
    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f)
    return data["system"]


@dataclass(frozen=True)
class LLMStage:
    name: str
    output_model: type[WireModel]
    build_user_prompt: UserPromptBuilder
    depends_on: frozenset[str] = field(default_factory=frozenset)
    postprocess: Callable[[Any], Any] | None = None
    # Web search queries; when set and non-empty, generation is grounded
    build_queries: QueryBuilder | None = None

    @property
    def system_prompt(self) -> str:
        return load_prompt(self.name)

    def bind(
        self,
        generator: TextGenerator,
        policy: ParsePolicy | None = None,
        repair: bool | None = None,
    ) -> StageDefinition:
        async def produce(brief: str, deps: Mapping[str, Any]) -> Any:
            return await self.produce(generator, brief, deps, policy=policy, repair=repair)

        return StageDefinition(self.name, produce, self.depends_on)

    async def produce(
        self,
        generator: TextGenerator,
        brief: str,
        deps: Mapping[str, Any],
        policy: ParsePolicy | None = None,
        repair: bool | None = None,
    ) -> Any:
        """One stage invocation: build the prompt, generate, parse."""
        user_prompt = self.build_user_prompt(brief, deps)
        queries = self.build_queries(brief, deps) if self.build_queries else None
        if not queries:
            return await self.generate(generator, user_prompt, policy=policy, repair=repair)
        output, grounded = await self.generate(
            generator, user_prompt, queries=queries, policy=policy, repair=repair
        )
        return with_sources(output, grounded)

    async def generate(
        self,
        generator: TextGenerator,
        user_prompt: str,
        queries: list[str] | None = None,
        policy: ParsePolicy | None = None,
        repair: bool | None = None,
    ) -> Any:
        """Call the generator once and parse its text into ``output_model``.

        With ``queries`` the grounded variant is used and the web sources are
        returned alongside the parsed output.

        Raises:
            TransportError: the generator call failed.
            MalformedResponse: the text could not be parsed.
        """
        grounded: GroundedText | None = None
        try:
            if queries:
                grounded = await generator.generate_grounded(
                    self.system_prompt, user_prompt, queries, label=self.name
                )
                raw = grounded.text
            else:
                raw = await generator.generate(self.system_prompt, user_prompt, label=self.name)
        except GenerationFailed:
            raise
        except Exception as e:
            raise TransportError(self.name, f"{type(e).__name__}: {e}") from e

        log.debug(f"  {DIM}[{self.name}] {len(raw)} chars received{RESET}")
        output = parse_response(
            self.name,
            raw,
            self.output_model,
            policy=policy or settings.parse_policy,
            repair=settings.repair_json if repair is None else repair,
        )
        if self.postprocess is not None:
            output = self.postprocess(output)
        if grounded is not None:
            return output, grounded
        return output


def with_sources(output: Any, grounded: GroundedText) -> Any:
    """Attach the web sources and queries a grounded generation used."""
    output.sources = [GroundingSource(title=s.title, uri=s.uri) for s in grounded.sources]
    output.search_queries = list(grounded.search_queries)
    return output


def _lines(items, fmt: Callable[[Any], str]) -> str:
    return "\n".join(fmt(item) for item in items)


def _join(values, empty: str = "Aucun") -> str:
    values = [v for v in values if v]
    return ", ".join(values) if values else empty


# --- User prompts ---


def strategic_prompt(brief: str, deps: Mapping[str, Any]) -> str:
    return f"""BUSINESS À ANALYSER:
{brief}

Génère une analyse stratégique SEO complète selon les 6 dimensions du marché,
ainsi que le vocabulaire sectoriel (termes métier, termes clients, entités Google).
Sois précis, chiffré et actionnable. Zéro généralité."""


def cluster_prompt(brief: str, deps: Mapping[str, Any]) -> str:
    s: StrategicAnalysis = deps["strategic"]
    return f"""BUSINESS:
{brief}

DIAGNOSTIC STRATÉGIQUE:
- Avatar: {s.avatar.segment}
- Douleurs principales: {_join(d.douleur for d in s.douleurs_top5)}
- Niveau E-E-A-T requis: {s.niveau_eeat.requis}
- Content gaps identifiés: {_join(g.sujet for g in s.content_gaps)}
- Micro-niches: {_join(m.niche for m in s.micro_niches)}
- Super-pouvoir: {s.levier_differentiation.angle}
- Termes métier: {_join(s.vocabulaire_sectoriel.termes_metier)}

OBJECTIF: Créer une architecture de 4-7 clusters thématiques avec roadmap 90 jours.
Répartition: 2-3 BOFU + 2-3 MOFU + 1-2 TOFU"""


def content_prompt(brief: str, deps: Mapping[str, Any]) -> str:
    s: StrategicAnalysis = deps["strategic"]
    c: ClusterArchitecture = deps["cluster"]
    clusters = _lines(
        c.clusters,
        lambda cl: (
            f"📦 {cl.nom} [{cl.funnel}]\n"
            f"- Objectif: {cl.description}\n"
            f"- Pages piliers: {_join(cl.pages_piliers)}\n"
            f"- Mots-clés: {_join(cl.mots_cles)}"
        ),
    )
    pains = _lines(s.douleurs_top5, lambda d: f"- {d.douleur} ({d.intensite})")
    gaps = _lines(s.content_gaps, lambda g: f"- {g.sujet}: {g.opportunite}")
    return f"""BUSINESS:
{brief}

CLUSTERS:
{clusters}

DOULEURS À ADRESSER:
{pains}

CONTENT GAPS À COMBLER:
{gaps}

OBJECTIF: Générer un tableau de contenu COMPLET avec toutes les colonnes pour chaque article.
Génère 2-4 articles par cluster minimum."""


def technical_prompt(brief: str, deps: Mapping[str, Any]) -> str:
    s: StrategicAnalysis = deps["strategic"]
    c: ClusterArchitecture = deps["cluster"]
    silos = _lines(
        c.clusters,
        lambda cl: f"SILO: {cl.nom} [{cl.funnel}]\n- Pages piliers: {_join(cl.pages_piliers)}\n- Mots-clés: {_join(cl.mots_cles)}",
    )
    links = _lines(c.maillage_interne[:10], lambda m: f"- {m.de} → {m.vers} ({m.type_de_link})")
    return f"""BUSINESS:
{brief}

TYPE DE SITE DÉTECTÉ: {s.contexte_business.type_site or "À déterminer"}

ARCHITECTURE DE CLUSTERS:
{silos}

MAILLAGE PRÉVU:
{links or "Aucun"}

OBJECTIF: Générer un kit technique SEO complet: checklist Core Web Vitals
(LCP, FID, CLS), schéma de maillage en silo (ASCII), robots.txt optimisé,
JSON-LD complet pour 3 articles clés."""


def snippet_prompt(brief: str, deps: Mapping[str, Any]) -> str:
    d: ContentDesign = deps["content"]
    articles = "\n".join(
        f"{i}. 📝 {row.titre_h1}\n"
        f"   - Cluster: {row.cluster}\n"
        f"   - PAA: {row.paa}\n"
        f"   - Intent: {row.intent}\n"
        f"   - Format suggéré initial: {row.snippet_format}"
        for i, row in enumerate(d.tableau_contenu, 1)
    )
    return f"""BUSINESS:
{brief}

📊 ARTICLES À ANALYSER:
{articles}

🎯 OBJECTIF: déterminer pour CHAQUE article le format de snippet optimal
(définition/liste/tableau) avec un template prêt à copier-coller, le top 5 des
opportunités Position 0, 3 questions voice search et une synthèse."""


def authority_prompt(brief: str, deps: Mapping[str, Any]) -> str:
    s: StrategicAnalysis = deps["strategic"]
    eeat = s.niveau_eeat
    lever = s.levier_differentiation
    return f"""BUSINESS:
{brief}

ANALYSE STRATÉGIQUE:
- Niveau E-E-A-T requis: {eeat.requis}
- Justification: {eeat.justification}
- Normes sectorielles: {_join(eeat.normes, "À identifier")}
- Actions prioritaires: {_join(eeat.actions_prioritaires)}

POSITIONNEMENT DIFFÉRENCIANT:
- Super-pouvoir: {lever.super_pouvoir or lever.angle}
- Message unique: {lever.message_unique}

AVATAR CLIENT:
- Segment: {s.avatar.segment}

OBJECTIF: Construire une stratégie E-E-A-T complète: signaux d'autorité par
dimension, plan freshness, 10 cibles backlinks avec templates email
personnalisés, calendrier netlinking 90 jours."""


def sge_prompt(brief: str, deps: Mapping[str, Any]) -> str:
    s: StrategicAnalysis = deps["strategic"]
    d: ContentDesign = deps["content"]
    articles = "\n".join(
        f"{i}. **{row.titre_h1}**\n"
        f"   - Cluster: {row.cluster}\n"
        f"   - Intent: {row.intent}\n"
        f"   - PAA: {row.paa}\n"
        f"   - Angle: {row.angle}\n"
        f"   - Format Snippet actuel: {row.snippet_format}\n"
        f"   - Carburant: {row.carburant.terme_autoritaire or 'N/A'}, {row.carburant.entite_google or 'N/A'}"
        for i, row in enumerate(d.tableau_contenu, 1)
    )
    return f"""BUSINESS:
{brief}

AVATAR CLIENT:
- Segment: {s.avatar.segment}
- Douleurs: {_join(p.douleur for p in s.douleurs_top5)}

ARTICLES À OPTIMISER POUR SGE/AI OVERVIEWS:
{articles}

OBJECTIF: Génère une optimisation SGE complète pour CHAQUE article listé,
en reprenant son titre exact dans "articleTitle"."""


def coordinator_prompt(brief: str, deps: Mapping[str, Any]) -> str:
    s: StrategicAnalysis = deps["strategic"]
    c: ClusterArchitecture = deps["cluster"]
    d: ContentDesign = deps["content"]
    t: TechnicalOptimization = deps["technical"]
    sn: SnippetStrategy = deps["snippet"]
    a: AuthorityStrategy = deps["authority"]
    comp: CompetitorAnalysis = deps["competitor"]

    def funnel_count(items, attr: str, stage: str) -> int:
        return sum(1 for item in items if getattr(item, attr) == stage)

    return f"""BUSINESS:
{brief}

=== RÉSUMÉ DES LIVRABLES ===

📊 STRATEGIC ANALYZER:
- Avatar: {s.avatar.segment or "Non défini"}
- Top 3 douleurs: {_join([p.douleur for p in s.douleurs_top5[:3]], "Aucune")}
- Super-pouvoir: {s.levier_differentiation.angle or "Non défini"}
- Niveau E-E-A-T: {s.niveau_eeat.requis}

🏗️ CLUSTER ARCHITECT:
- Nombre de clusters: {len(c.clusters)}
- Répartition: BOFU({funnel_count(c.clusters, "funnel", "BOFU")}) / MOFU({funnel_count(c.clusters, "funnel", "MOFU")}) / TOFU({funnel_count(c.clusters, "funnel", "TOFU")})
- Semaines de roadmap: {len(c.roadmap90_jours)}

✍️ CONTENT DESIGNER:
- Articles planifiés: {len(d.tableau_contenu)}
- BOFU: {funnel_count(d.tableau_contenu, "intent", "BOFU")} / MOFU: {funnel_count(d.tableau_contenu, "intent", "MOFU")} / TOFU: {funnel_count(d.tableau_contenu, "intent", "TOFU")}

⚙️ TECHNICAL OPTIMIZER:
- Items Core Web Vitals: {len(t.core_web_vitals.checklist)}
- Silos créés: {len(t.maillage_schema.silos)}
- Exemples JSON-LD: {len(t.json_ld_exemples)}

🎯 SNIPPET MASTER:
- Templates créés: {len(sn.snippets_par_article)}
- Questions voice: {len(sn.questions_voice)}
- Opportunités Position 0: {len(sn.opportunites_top5)}

🏆 AUTHORITY BUILDER:
- Certifications: {len(a.certifications)}
- Cibles backlinks: {len(a.cibles_backlinks)}

🔍 COMPETITOR ANALYZER:
- Concurrents analysés: {len(comp.competitors)}
- Niveau de concurrence: {comp.synthese_globale.niveau_concurrence}
- Opportunités prioritaires: {_join(comp.synthese_globale.opportunites_prioritaires[:3])}

OBJECTIF: Consolider, valider la cohérence et générer le résumé de
l'architecture, la synthèse, 3 quick wins, la validation croisée, la checklist
de validation finale et les 6 options interactives."""


# --- Post-processing ---


def flatten_vitals(result: TechnicalOptimization) -> TechnicalOptimization:
    """Merge the LCP, FID and CLS checklists into ``core_web_vitals.checklist``."""
    vitals = result.core_web_vitals
    if not vitals.checklist:
        vitals.checklist = [*vitals.lcp.checklist, *vitals.fid.checklist, *vitals.cls.checklist]
    return result


def lift_eeat_signals(result: AuthorityStrategy) -> AuthorityStrategy:
    """Expose the nested E-E-A-T lists at the top level of the strategy."""
    signals = result.signaux_eeat
    if not result.certifications:
        result.certifications = list(signals.expertise.certifications)
    if not result.organismes_reference:
        result.organismes_reference = list(signals.authoritativeness.organismes_reference)
    if not result.sources_officielles:
        result.sources_officielles = list(signals.trustworthiness.sources_officielles)
    return result


def ensure_options(result: CoordinatorSummary) -> CoordinatorSummary:
    if not result.options_interactives:
        result.options_interactives = default_options()
    return result


def settle_news_result(result: NewsTransformerResult) -> NewsTransformerResult:
    """Number angles and clear the action plan of an unprofitable article."""
    if result.score_rentabilite == NOT_PROFITABLE:
        result.angles = []
        result.plan_action = None
        result.maillage_interne = None
        result.quick_win = None
        return result

    result.non_rentable = None
    for index, angle in enumerate(result.angles, 1):
        if not angle.numero:
            angle.numero = index
    if result.plan_action is not None:
        for index, priority in enumerate(
            (result.plan_action.priorite1, result.plan_action.priorite2, result.plan_action.priorite3), 1
        ):
            if not priority.angle:
                priority.angle = index
    return result


def settle_audit_result(result: ContentAuditResult) -> ContentAuditResult:
    for row in result.suggested_articles:
        row.cluster = row.cluster or "Non classé"
        row.intent = row.intent or "TOFU"
        row.validated = False
    return result


# --- Stages with extra steps ---


@dataclass(frozen=True)
class CompetitorStage(LLMStage):
    """Scrapes the competitor URLs of the brief before asking for an analysis.

    When no page could be scraped the generator is not called.
    """

    async def produce(self, generator, brief, deps, policy=None, repair=None) -> CompetitorAnalysis:
        scraped = await scrape_competitors(competitor_urls(brief))
        if not any(c.page is not None for c in scraped):
            log.warning(f"  {YELLOW}[{self.name}] no competitor page scraped, skipping analysis{RESET}")
            return empty_competitor_analysis(scraped)
        user_prompt = self.build_user_prompt(brief, MappingProxyType({**deps, "competitors": scraped}))
        analysis = await self.generate(generator, user_prompt, policy=policy, repair=repair)
        return enrich_competitors(analysis, scraped)


@dataclass(frozen=True)
class RoiStage(LLMStage):
    """ROI per planned article, computed locally when the generator gives none."""

    async def produce(self, generator, brief, deps, policy=None, repair=None) -> RoiPredictions:
        result = await super().produce(generator, brief, deps, policy=policy, repair=repair)
        if not result.roi_predictions:
            result.roi_predictions = calculate_local_roi(deps["content"].tableau_contenu)
            log.info(f"  {DIM}[{self.name}] no predictions generated, using local estimates{RESET}")
        if not result.summary.total_articles:
            result.summary = roi_summary(result.roi_predictions)
        return result


# --- Stage table ---

STRATEGIC = LLMStage("strategic", StrategicAnalysis, strategic_prompt)
CLUSTER = LLMStage("cluster", ClusterArchitecture, cluster_prompt, frozenset({"strategic"}))
CONTENT = LLMStage("content", ContentDesign, content_prompt, frozenset({"strategic", "cluster"}))
TECHNICAL = LLMStage(
    "technical", TechnicalOptimization, technical_prompt, frozenset({"strategic", "cluster"}), flatten_vitals
)
AUTHORITY = LLMStage(
    "authority", AuthorityStrategy, authority_prompt, frozenset({"strategic"}), lift_eeat_signals
)
SNIPPET = LLMStage("snippet", SnippetStrategy, snippet_prompt, frozenset({"content"}))
SGE = LLMStage("sge", SGEOptimizationResult, sge_prompt, frozenset({"strategic", "content"}))
COMPETITOR = CompetitorStage("competitor", CompetitorAnalysis, competitor_prompt, frozenset({"strategic"}))
SERP = LLMStage(
    "serp", SerpAnalysis, serp_prompt, frozenset({"cluster"}), settle_serp_result, build_queries=serp_queries
)
ROI = RoiStage("roi", RoiPredictions, roi_prompt, frozenset({"strategic", "content"}))
COMPINTEL = LLMStage(
    "compintel",
    CompetitiveIntel,
    compintel_prompt,
    frozenset({"strategic"}),
    settle_competitive_intel,
    build_queries=compintel_queries,
)
COORDINATOR = LLMStage(
    "coordinator",
    CoordinatorSummary,
    coordinator_prompt,
    frozenset({"strategic", "cluster", "content", "technical", "snippet", "authority", "competitor"}),
    ensure_options,
)

SEO_STAGES: tuple[LLMStage, ...] = (
    STRATEGIC, CLUSTER, CONTENT, TECHNICAL, AUTHORITY, SNIPPET, SGE,
    COMPETITOR, SERP, ROI, COMPINTEL, COORDINATOR,
)

# Standalone stages, not part of the strategy graph
AUDIT = LLMStage("audit", ContentAuditResult, lambda brief, deps: brief, postprocess=settle_audit_result)
NEWS_TRANSFORMER = LLMStage(
    "news_transformer", NewsTransformerResult, lambda brief, deps: brief, postprocess=settle_news_result
)


def build_seo_pipeline(
    generator: TextGenerator,
    policy: ParsePolicy | None = None,
    stage_timeout: float | None = None,
    stages: tuple[LLMStage, ...] = SEO_STAGES,
) -> Pipeline:
    """The default strategy graph, bound to ``generator``."""
    timeout = settings.stage_timeout_s if stage_timeout is None else stage_timeout
    return Pipeline([stage.bind(generator, policy=policy) for stage in stages], stage_timeout=timeout)


def enrich_articles_with_sge(rows: list[ContentRow], sge: SGEOptimizationResult) -> list[ContentRow]:
    """Copies of ``rows`` with the SGE optimisation whose title matches ``titre_h1``."""
    by_title = {opt.article_title: opt.optimization() for opt in sge.articles_optimized}
    return [
        row.model_copy(update={"sge_optimization": by_title[row.titre_h1]}) if row.titre_h1 in by_title else row
        for row in rows
    ]


# --- News transformer ---


def news_transformer_prompt(data: NewsTransformerInput) -> str:
    return f"""Transforme cet article en opportunités SEO :

**URL de l'article source :**
{data.url}

**Mon secteur d'activité :**
{data.secteur}

**Mon expertise principale :**
{data.expertise}

**Mot-clé que je cible :**
{data.mot_cle or "Non spécifié"}

**Type de contenu souhaité :**
{_join(data.type_contenu, "Article de blog informatif")}

**Audience cible :**
{data.audience or "Non spécifiée"}

**Niveau de technicité attendu :**
{data.technicite}

**Objectif principal :**
{data.objectif or "Générer du trafic organique"}

**Contraintes spécifiques :**
{data.contraintes or "Aucune"}

**Articles existants à lier :**
{data.articles_existants or "Aucun"}

Analyse cette actualité et génère les 5 angles SEO stratégiques selon le format JSON défini."""


async def run_news_transformer(
    data: NewsTransformerInput,
    generator: TextGenerator,
    policy: ParsePolicy | None = None,
) -> NewsTransformerResult:
    """Profitability score and SEO angles for a news article.

    Generation is grounded on web results for the article URL and the
    target keyword.
    """
    queries = [data.url]
    if data.mot_cle:
        queries.append(f"{data.mot_cle} {data.secteur}".strip())
    result, grounded = await NEWS_TRANSFORMER.generate(
        generator, news_transformer_prompt(data), queries=queries, policy=policy
    )
    return with_sources(result, grounded)
