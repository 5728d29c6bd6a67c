import json

import pytest

from seo_architect.agents.models import (
    ContentRow,
    CoordinatorSummary,
    NewsTransformerInput,
    SGEOptimizationResult,
    StrategicAnalysis,
)
from seo_architect.agents.parser import parse_response
from seo_architect.agents.stages import (
    AUTHORITY,
    SEO_STAGES,
    STRATEGIC,
    TECHNICAL,
    build_seo_pipeline,
    enrich_articles_with_sge,
    ensure_options,
    load_prompt,
    run_news_transformer,
)
from seo_architect.errors import DependencyFailed, MalformedResponse, SchemaViolation, TransportError
from seo_architect.workflow.graph import StageDefinition
from seo_architect.workflow.orchestrator import Pipeline
from seo_architect.workflow.state import RunStatus


def test_every_stage_has_a_system_prompt():
    for stage in SEO_STAGES:
        assert load_prompt(stage.name).strip()
    assert "vocabulaireSectoriel" in STRATEGIC.system_prompt


def test_default_graph_shape(fake_generator):
    pipeline = build_seo_pipeline(fake_generator)
    assert pipeline.order == [
        "strategic", "cluster", "content", "technical", "authority", "snippet", "sge",
        "competitor", "serp", "roi", "compintel", "coordinator",
    ]
    assert pipeline["coordinator"].depends_on == {
        "strategic", "cluster", "content", "technical", "snippet", "authority", "competitor",
    }
    assert "sge" not in pipeline["coordinator"].depends_on
    assert pipeline["serp"].depends_on == {"cluster"}
    assert pipeline["roi"].depends_on == {"strategic", "content"}
    assert pipeline["compintel"].depends_on == {"strategic"}


async def test_full_run_with_plumbing_brief(fake_generator, plumbing_brief):
    report = await build_seo_pipeline(fake_generator).run(plumbing_brief)

    assert report.status is RunStatus.ALL_COMPLETED
    strategic = report.outputs["strategic"]
    assert isinstance(strategic, StrategicAnalysis)
    assert strategic.vocabulaire_sectoriel.termes_metier == ["siphon", "clapet anti-retour", "groupe de sécurité"]
    assert plumbing_brief in fake_generator.prompts_for("strategic")[0]
    # Trade vocabulary reaches the next stage's prompt
    assert "siphon, clapet anti-retour" in fake_generator.prompts_for("cluster")[0]
    # No competitor URL in the brief: nothing to scrape, no generation
    assert sorted(fake_generator.labels) == sorted(stage.name for stage in SEO_STAGES if stage.name != "competitor")
    assert report.outputs["competitor"].recommandations == ["Fournissez des URLs de concurrents valides et accessibles"]
    assert "Concurrents analysés: 0" in fake_generator.prompts_for("coordinator")[0]


async def test_cluster_receives_the_completed_strategic_output(fake_generator, plumbing_brief):
    seen = {}

    async def cluster(brief, deps):
        seen["strategic"] = deps["strategic"]
        return "clusters"

    pipeline = Pipeline([STRATEGIC.bind(fake_generator), StageDefinition("cluster", cluster, {"strategic"})])

    report = await pipeline.run(plumbing_brief)

    assert seen["strategic"] is report.outputs["strategic"]
    assert seen["strategic"].vocabulaire_sectoriel.termes_metier[0] == "siphon"


async def test_network_timeout_in_content_blocks_its_dependents(fake_generator, plumbing_brief):
    fake_generator.errors["content"] = TimeoutError("NetworkTimeout")

    report = await build_seo_pipeline(fake_generator).run(plumbing_brief)

    assert report.status is RunStatus.PARTIALLY_FAILED
    assert set(report.outputs) == {"strategic", "cluster", "technical", "authority", "competitor", "serp", "compintel"}
    failures = {f.stage: f.error for f in report.failures}
    assert isinstance(failures["content"], TransportError)
    assert "NetworkTimeout" in str(failures["content"])
    for blocked in ("snippet", "sge", "roi", "coordinator"):
        assert isinstance(failures[blocked], DependencyFailed)
    assert "snippet" not in fake_generator.labels
    assert "coordinator" not in fake_generator.labels


async def test_malformed_stage_output_fails_only_that_stage(fake_generator, plumbing_brief):
    fake_generator.responses["authority"] = "Je ne peux pas produire de JSON."

    report = await build_seo_pipeline(fake_generator).run(plumbing_brief)

    failures = {f.stage: f.error for f in report.failures}
    assert isinstance(failures["authority"], MalformedResponse)
    assert failures["authority"].raw == "Je ne peux pas produire de JSON."
    assert isinstance(failures["coordinator"], DependencyFailed)
    assert "snippet" in report.outputs


async def test_strict_policy_fails_stage_with_missing_collections(fake_generator, plumbing_brief):
    report = await build_seo_pipeline(fake_generator, policy="strict").run(plumbing_brief)

    failures = {f.stage: f.error for f in report.failures}
    assert isinstance(failures["strategic"], SchemaViolation)
    assert report.outputs == {}


def test_flatten_vitals_merges_per_metric_checklists(seo_responses):
    result = TECHNICAL.postprocess(
        parse_response("technical", json.dumps(seo_responses["technical"]), TECHNICAL.output_model)
    )
    assert [item.item for item in result.core_web_vitals.checklist] == [
        "Compresser les images hero",
        "Réserver la hauteur des bannières",
    ]


def test_authority_signals_are_lifted(seo_responses):
    result = AUTHORITY.postprocess(
        parse_response("authority", json.dumps(seo_responses["authority"]), AUTHORITY.output_model)
    )
    assert [c.nom for c in result.certifications] == ["Qualibat"]
    assert result.sources_officielles[0].url == "https://www.service-public.fr"


def test_coordinator_gets_default_options():
    summary = CoordinatorSummary.model_validate({"optionsInteractives": []})
    assert summary.options_interactives == []
    assert len(ensure_options(summary).options_interactives) == 6


def test_enrich_articles_with_sge_matches_titles():
    rows = [ContentRow(titre_h1="A"), ContentRow(titre_h1="B")]
    sge = SGEOptimizationResult.model_validate({
        "articlesOptimized": [{"articleTitle": "B", "citabilityScore": 70}]
    })

    enriched = enrich_articles_with_sge(rows, sge)

    assert enriched[0].sge_optimization is None
    assert enriched[1].sge_optimization.citability_score == 70
    assert rows[1].sge_optimization is None


@pytest.fixture
def news_input():
    return NewsTransformerInput(
        url="https://actu.example/loi-chauffe-eau-2026",
        secteur="Plomberie",
        expertise="Chauffe-eau thermodynamique",
        mot_cle="chauffe-eau thermodynamique",
    )


async def test_news_transformer_numbers_angles_and_keeps_sources(fake_generator, news_input):
    fake_generator.responses["news_transformer"] = {
        "scoreRentabilite": "🟢",
        "angles": [{"titre": "Guide des aides 2026"}, {"titre": "Comparatif"}],
        "planAction": {"priorite1": {"titre": "Guide"}},
        "nonRentable": {"raisons": ["ignoré"]},
    }

    result = await run_news_transformer(news_input, fake_generator)

    assert [a.numero for a in result.angles] == [1, 2]
    assert result.plan_action.priorite1.angle == 1
    assert result.non_rentable is None
    assert fake_generator.grounded_queries == [
        ["https://actu.example/loi-chauffe-eau-2026", "chauffe-eau thermodynamique Plomberie"]
    ]
    assert len(result.sources) == 2
    assert result.search_queries[0] == news_input.url
    assert "Chauffe-eau thermodynamique" in fake_generator.prompts_for("news_transformer")[0]


async def test_unprofitable_news_clears_the_action_plan(fake_generator, news_input):
    fake_generator.responses["news_transformer"] = {
        "scoreRentabilite": "🔴",
        "angles": [{"titre": "Angle faible"}],
        "planAction": {"priorite1": {"titre": "x"}},
        "quickWin": "Tweeter",
        "nonRentable": {"raisons": ["Actualité trop éphémère"], "typesAPrilegier": ["Guide evergreen"]},
    }

    result = await run_news_transformer(news_input, fake_generator)

    assert not result.is_profitable
    assert result.angles == []
    assert result.plan_action is None
    assert result.quick_win is None
    assert result.non_rentable.types_a_privilegier == ["Guide evergreen"]
