import json

import pytest

from seo_architect.agents import competition
from seo_architect.agents.competition import (
    UNREACHABLE,
    calculate_local_roi,
    compintel_queries,
    competitive_score,
    competitor_urls,
    estimate_da,
    extract_keywords,
    roi_summary,
    serp_keywords,
    serp_recommendations,
)
from seo_architect.agents.models import (
    ClusterArchitecture,
    CompetitiveIntel,
    ContentDesign,
    ContentRow,
    PageImage,
    ScrapedPage,
    SerpAnalysis,
    StrategicAnalysis,
)
from seo_architect.agents.stages import COMPETITOR, COMPINTEL, ROI, SERP
from seo_architect.errors import ScrapeFailed

RIVAL_BRIEF = (
    "Plombier à Paris. Concurrents : https://rival-plomberie.fr, https://down.example. "
    "Et encore https://rival-plomberie.fr pour mémoire."
)


def _rival_page(url="https://rival-plomberie.fr"):
    return ScrapedPage(
        url=url,
        title="Plombier urgence Paris",
        h1=["Plombier urgence 24h/24"],
        h2=["Tarifs plombier", "Zones", "Avis", "Contact", "Urgence nuit"],
        word_count=2400,
        body_text="Intervention rapide dans tout Paris.",
        images=[PageImage(src="a.jpg", alt="camion", has_alt=True)],
        internal_links=[f"{url}/page-{i}" for i in range(25)],
        external_links=[f"https://ref{i}.example" for i in range(6)],
        structured_data=[{"@type": "LocalBusiness"}],
    )


@pytest.fixture
def strategic(seo_responses):
    return StrategicAnalysis.model_validate(seo_responses["strategic"])


@pytest.fixture
def scrape_rival_only(monkeypatch):
    scraped = []

    async def fake_scrape(url, client=None):
        scraped.append(url)
        if "rival" not in url:
            raise ScrapeFailed(url, 4, "HTTPStatusError: 503")
        return _rival_page(url)

    monkeypatch.setattr(competition, "scrape_url", fake_scrape)
    return scraped


def test_competitor_urls_are_distinct_and_capped():
    assert competitor_urls(RIVAL_BRIEF) == ["https://rival-plomberie.fr", "https://down.example"]
    many = " ".join(f"https://c{i}.example" for i in range(8))
    assert len(competitor_urls(many)) == 5
    assert competitor_urls("Aucun site concurrent connu.") == []


def test_estimate_da_from_page_signals():
    assert estimate_da(_rival_page()) == 44
    assert estimate_da(ScrapedPage(url="https://tiny.example")) == 10


def test_extract_keywords_ranks_heading_words():
    keywords = extract_keywords(_rival_page())
    assert keywords[:2] == ["plombier", "urgence"]
    assert len(keywords) == 5
    assert all(len(k) > 4 for k in keywords)


async def test_competitor_stage_scrapes_then_enriches(fake_generator, strategic, scrape_rival_only):
    fake_generator.responses["competitor"] = {
        "competitors": [{"url": "https://rival-plomberie.fr", "daEstime": 32, "forces": ["Avis clients"]}],
        "syntheseGlobale": {"niveauConcurrence": "moyenne"},
        "recommandations": ["Publier les tarifs"],
    }

    result = await COMPETITOR.produce(fake_generator, RIVAL_BRIEF, {"strategic": strategic})

    assert scrape_rival_only == ["https://rival-plomberie.fr", "https://down.example"]
    prompt = fake_generator.prompts_for("competitor")[0]
    assert "CONCURRENT 1: https://rival-plomberie.fr" in prompt
    assert "- Nombre de mots: 2400" in prompt
    assert "❌ CONCURRENT 2: https://down.example" in prompt
    assert "SECTEUR: Plomberie" in prompt

    rival, down = result.competitors
    assert rival.da_estime == 32
    assert rival.domain == "rival-plomberie.fr"
    assert rival.word_count == 2400
    assert rival.nombre_liens_internes == 25
    assert rival.titre_h1 == "Plombier urgence 24h/24"
    assert rival.mots_cles_principaux[0] == "plombier"
    assert rival.forces == ["Avis clients"]
    assert down.faiblesses == [UNREACHABLE]
    assert "503" in down.scrape_error
    assert result.synthese_globale.concurrent_le_plus_fort == "rival-plomberie.fr"
    assert result.synthese_globale.concurrent_le_plus_faible == "down.example"
    assert result.recommandations == ["Publier les tarifs"]


async def test_competitor_da_falls_back_to_page_estimate(fake_generator, strategic, scrape_rival_only):
    fake_generator.responses["competitor"] = {"competitors": [{"url": "https://rival-plomberie.fr"}]}

    result = await COMPETITOR.produce(fake_generator, "Voir https://rival-plomberie.fr", {"strategic": strategic})

    assert result.competitors[0].da_estime == 44


async def test_no_reachable_competitor_skips_generation(fake_generator, strategic, monkeypatch):
    async def unreachable(url, client=None):
        raise ScrapeFailed(url, 4, "ConnectError")

    monkeypatch.setattr(competition, "scrape_url", unreachable)

    result = await COMPETITOR.produce(fake_generator, RIVAL_BRIEF, {"strategic": strategic})

    assert fake_generator.calls == []
    assert [c.url for c in result.competitors] == ["https://rival-plomberie.fr", "https://down.example"]
    assert all(c.faiblesses == [UNREACHABLE] for c in result.competitors)
    assert result.synthese_globale.niveau_concurrence == "faible"
    assert result.synthese_globale.opportunites_prioritaires == ["Aucun concurrent analysé - vérifiez les URLs"]


def test_serp_keywords_take_top_three_per_cluster():
    clusters = ClusterArchitecture.model_validate({
        "clusters": [{"motsCles": [f"kw{c}-{k}" for k in range(5)]} for c in range(6)]
    })
    keywords = serp_keywords(clusters)
    assert len(keywords) == 15
    assert keywords[:4] == ["kw0-0", "kw0-1", "kw0-2", "kw1-0"]


async def test_serp_stage_is_grounded_on_cluster_keywords(fake_generator, seo_responses, plumbing_brief):
    deps = {"cluster": ClusterArchitecture.model_validate(seo_responses["cluster"])}

    result = await SERP.produce(fake_generator, plumbing_brief, deps)

    assert fake_generator.grounded_queries == [["plombier urgence paris", "remplacement chauffe-eau"]]
    assert "1. plombier urgence paris" in fake_generator.prompts_for("serp")[0]
    assert [s.uri for s in result.sources] == ["https://search.example/0", "https://search.example/1"]
    assert result.search_queries == ["plombier urgence paris", "remplacement chauffe-eau"]
    assert result.serp_analysis[0].serp_features.local_pack is True
    assert result.recommendations[0].startswith("🎯 Quick Wins identifiés: remplacement chauffe-eau")


def test_serp_recommendations(seo_responses):
    serp = SerpAnalysis.model_validate(seo_responses["serp"])

    assert serp_recommendations(serp) == [
        "🎯 Quick Wins identifiés: remplacement chauffe-eau (probabilité de ranking > 70%)",
        "📌 Opportunités Position 0: 1 mots-clés sans featured snippet actuel",
        "📝 Benchmark contenu: Viser 2100 mots (moyenne concurrence: 1600)",
        "⚠️ Batailles difficiles: plombier urgence paris - prévoir une stratégie long terme",
    ]


def test_serp_recommendations_always_give_a_length_benchmark():
    assert serp_recommendations(SerpAnalysis()) == ["📝 Benchmark contenu: Viser 500 mots (moyenne concurrence: 0)"]


@pytest.fixture
def planned_rows():
    return [
        ContentRow.model_validate({
            "titreH1": "Plombier urgence Paris", "cluster": "Dépannage", "intent": "BOFU",
            "score": {"volume": 5, "difficulte": 3},
        }),
        ContentRow.model_validate({
            "titreH1": "Histoire du siphon", "cluster": "Culture", "intent": "TOFU",
            "score": {"volume": 1, "difficulte": 0},
        }),
    ]


def test_local_roi_per_article(planned_rows):
    urgent, history = calculate_local_roi(planned_rows, conversion_value=500, hourly_rate=50)

    assert urgent.metrics.search_volume == 1600
    assert urgent.metrics.target_position == 3
    assert urgent.metrics.estimated_ctr == 0.11
    assert urgent.metrics.estimated_traffic == 176
    assert urgent.metrics.estimated_revenue == 3520
    assert urgent.costs.writing_hours == 5.5
    assert urgent.costs.total_cost == 325
    assert urgent.roi.value == 983
    assert urgent.roi.priority == "critique"
    assert urgent.roi.payback_period == "1 mois"

    assert history.metrics.target_position == 1
    assert history.costs.total_cost == 225
    assert history.roi.value == -56
    assert history.roi.priority == "a-valider"
    assert history.roi.payback_period == "6+ mois"


def test_roi_summary(planned_rows):
    summary = roi_summary(calculate_local_roi(planned_rows, conversion_value=500, hourly_rate=50))

    assert summary.total_articles == 2
    assert summary.top_roi_articles == ["Plombier urgence Paris (983%)", "Histoire du siphon (-56%)"]
    assert summary.low_roi_articles == ["Histoire du siphon (-56%)"]
    assert summary.total_estimated_revenue == 3618
    assert summary.total_estimated_cost == 550
    assert summary.overall_roi == "558%"
    assert roi_summary([]).total_articles == 0


async def test_roi_stage_computes_locally_without_predictions(fake_generator, strategic, planned_rows):
    fake_generator.responses["roi"] = {"recommendations": ["Commencer par le BOFU"]}
    deps = {"strategic": strategic, "content": ContentDesign(tableau_contenu=planned_rows)}

    result = await ROI.produce(fake_generator, "brief", deps)

    assert [p.article for p in result.roi_predictions] == ["Plombier urgence Paris", "Histoire du siphon"]
    assert result.summary.total_articles == 2
    assert result.recommendations == ["Commencer par le BOFU"]
    prompt = fake_generator.prompts_for("roi")[0]
    assert "Valeur par conversion: 500€" in prompt
    assert "Volume estimé: 5/10" in prompt


async def test_roi_stage_keeps_generated_predictions(fake_generator, seo_responses, strategic):
    deps = {"strategic": strategic, "content": ContentDesign.model_validate(seo_responses["content"])}

    result = await ROI.produce(fake_generator, "brief", deps)

    assert len(result.roi_predictions) == 1
    assert result.roi_predictions[0].roi.value == 638
    assert result.summary.top_roi_articles == ["Plombier urgence Paris : intervention en 30 min (638%)"]
    saved = json.loads(result.model_dump_json(by_alias=True))
    assert saved["summary"]["averageROI"] == 638
    assert saved["roiPredictions"][0]["metrics"]["estimatedCTR"] == 0


def test_competitive_score(seo_responses):
    intel = CompetitiveIntel.model_validate(seo_responses["compintel"])
    assert competitive_score(intel) == (
        82,
        "🟢 Marché accessible - Forte probabilité de succès rapide",
        "Exploiter les 1 niches non couvertes (faible difficulté)",
    )

    crowded = CompetitiveIntel.model_validate({"competitors": [{"profile": {"estimatedDA": 70}}]})
    assert competitive_score(crowded) == (
        40,
        "🔴 Marché difficile - Stratégie long terme nécessaire",
        "Développer un angle différenciant unique",
    )


def test_compintel_queries(strategic):
    assert compintel_queries(RIVAL_BRIEF, {"strategic": strategic}) == ["rival-plomberie.fr", "down.example"]
    assert compintel_queries("Pas d'URL.", {"strategic": strategic}) == ["Plomberie leaders SEO"]


async def test_compintel_stage_scores_the_market(fake_generator, strategic):
    result = await COMPINTEL.produce(fake_generator, RIVAL_BRIEF, {"strategic": strategic})

    assert fake_generator.grounded_queries == [["rival-plomberie.fr", "down.example"]]
    prompt = fake_generator.prompts_for("compintel")[0]
    assert "1. https://rival-plomberie.fr" in prompt
    assert "- Plombier syndic Paris 15" in prompt
    assert result.score == 82
    assert result.interpretation.startswith("🟢")
    assert len(result.sources) == 2
