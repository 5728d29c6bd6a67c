import asyncio
import json

import pytest

from seo_architect.agents.generator import GroundedText, Source


class FakeGenerator:
    """Scripted text generator: one response per stage label.

    ``errors`` maps a label to the exception raised instead of responding,
    ``delays`` to seconds slept before responding.
    """

    def __init__(self, responses=None, errors=None, delays=None):
        self.responses = dict(responses or {})
        self.errors = dict(errors or {})
        self.delays = dict(delays or {})
        self.calls: list[tuple[str, str, str]] = []
        self.grounded_queries: list[list[str]] = []

    def prompts_for(self, label: str) -> list[str]:
        return [user for name, _, user in self.calls if name == label]

    @property
    def labels(self) -> list[str]:
        return [name for name, _, _ in self.calls]

    async def generate(self, system_prompt, user_prompt, label=""):
        self.calls.append((label, system_prompt, user_prompt))
        if label in self.delays:
            await asyncio.sleep(self.delays[label])
        if label in self.errors:
            raise self.errors[label]
        response = self.responses.get(label, "{}")
        return response if isinstance(response, str) else json.dumps(response, ensure_ascii=False)

    async def generate_grounded(self, system_prompt, user_prompt, queries, label=""):
        self.grounded_queries.append(list(queries))
        text = await self.generate(system_prompt, user_prompt, label=label)
        sources = [Source(title=f"Résultat pour {q}", uri=f"https://search.example/{i}") for i, q in enumerate(queries)]
        return GroundedText(text=text, sources=sources, search_queries=list(queries))


PLUMBING_BRIEF = (
    "Plombier chauffagiste à Paris (75). Dépannage urgent 24h/24, remplacement "
    "de chauffe-eau et débouchage de canalisations pour particuliers et syndics."
)


@pytest.fixture
def plumbing_brief():
    return PLUMBING_BRIEF


@pytest.fixture
def seo_responses():
    """Minimal but realistic JSON for every stage of the strategy graph.

    ``competitor`` has none: the brief names no competitor URL, so that stage
    never calls the generator.
    """
    return {
        "strategic": {
            "contexteBusiness": {"typeSite": "Site vitrine local", "secteur": "Plomberie"},
            "avatar": {"segment": "Propriétaires parisiens en urgence"},
            "douleursTop5": [
                {"douleur": "Fuite d'eau un dimanche", "intensite": "critique"},
                {"douleur": "Devis opaques", "intensite": "forte"},
            ],
            "niveauEEAT": {"requis": "élevé", "normes": ["RGE", "Qualibat"]},
            "contentGaps": [{"sujet": "Prix d'un débouchage", "opportunite": "Aucun tarif public"}],
            "microNiches": [{"niche": "Plombier syndic Paris 15"}],
            "levierDifferentiation": {"angle": "Intervention en 30 minutes"},
            "vocabulaireSectoriel": {
                "termesMetier": ["siphon", "clapet anti-retour", "groupe de sécurité"],
                "termesClients": ["fuite", "évier bouché"],
                "entitesGoogle": ["Qualibat"],
            },
        },
        "cluster": {
            "clusters": [
                {"id": "c1", "nom": "Dépannage urgent", "funnel": "BOFU", "motsCles": ["plombier urgence paris"]},
                {"id": "c2", "nom": "Chauffe-eau", "funnel": "MOFU", "motsCles": ["remplacement chauffe-eau"]},
            ],
            "roadmap90Jours": [{"semaine": 1, "cluster": "Dépannage urgent", "focus": "Pages piliers"}],
            "maillageInterne": [{"de": "Dépannage urgent", "vers": "Chauffe-eau", "typeDeLink": "contextuel"}],
        },
        "content": {
            "tableauContenu": [
                {
                    "cluster": "Dépannage urgent",
                    "titreH1": "Plombier urgence Paris : intervention en 30 min",
                    "paa": ["Combien coûte un plombier le dimanche ?"],
                    "intent": "BOFU",
                    "schema": "LocalBusiness",
                    "appatSXO": "Simulateur de devis",
                },
                {
                    "cluster": "Chauffe-eau",
                    "titreH1": "Quand changer son chauffe-eau ?",
                    "intent": "MOFU",
                },
            ]
        },
        "technical": {
            "coreWebVitals": {
                "lcp": {"objectif": "< 2.5s", "checklist": [{"item": "Compresser les images hero"}]},
                "cls": {"checklist": [{"item": "Réserver la hauteur des bannières"}]},
            },
            "maillageSchema": {"schemaASCII": "[Accueil] -> [Dépannage]", "silos": [{"nom": "Dépannage"}]},
        },
        "authority": {
            "signauxEEAT": {
                "expertise": {"certifications": [{"nom": "Qualibat", "organisme": "Qualibat"}]},
                "trustworthiness": {"sourcesOfficielles": [{"url": "https://www.service-public.fr"}]},
            },
            "ciblesBacklinks": [{"site": "annuaire-artisans.fr", "da": 35, "type": "annuaire"}],
        },
        "snippet": {
            "snippetsParArticle": [
                {"article": "Plombier urgence Paris : intervention en 30 min", "formatChoisi": "liste"}
            ],
            "questionsVoice": [{"question": "Quel plombier appeler la nuit ?"}],
        },
        "sge": {
            "articlesOptimized": [
                {
                    "articleTitle": "Quand changer son chauffe-eau ?",
                    "citabilityScore": 82,
                    "entityCoverage": ["ballon d'eau chaude"],
                }
            ]
        },
        "serp": {
            "serpAnalysis": [
                {
                    "keyword": "plombier urgence paris",
                    "intent": {"primary": "transactional"},
                    "serpFeatures": {"featuredSnippet": {"present": True, "format": "list"}, "localPack": True},
                    "competitiveGap": {"difficulty": "high"},
                    "winProbability": {"score": 35, "timeToRank": "6-12 mois"},
                },
                {
                    "keyword": "remplacement chauffe-eau",
                    "serpFeatures": {"featuredSnippet": {"present": False}},
                    "competitiveGap": {"difficulty": "low"},
                    "winProbability": {"score": 75, "timeToRank": "1-3 mois"},
                },
            ],
            "globalInsights": {"contentLengthBenchmark": {"average": 1600, "min": 800, "max": 2900}},
        },
        "roi": {
            "roiPredictions": [
                {
                    "article": "Plombier urgence Paris : intervention en 30 min",
                    "intent": "BOFU",
                    "metrics": {"estimatedRevenue": 2400},
                    "costs": {"totalCost": 325},
                    "roi": {"value": 638, "percentage": "638%", "priority": "critique"},
                }
            ]
        },
        "compintel": {
            "competitors": [{"domain": "plombier-express.fr", "profile": {"estimatedDA": 28}}],
            "contentGaps": {
                "theyHaveWeNot": [{"topic": "Tarifs débouchage", "opportunity": "high"}],
                "untapped": [{"topic": "Plombier syndic", "difficulty": "low"}],
            },
            "backlinkOpportunities": [{"source": "annuaire-artisans.fr", "type": "directory"}],
            "winStrategy": {"quickWins": ["Page tarifs en ligne"]},
        },
        "coordinator": {
            "resumeArchitecture": {"nombreClusters": 2, "repartition": {"bofu": 1, "mofu": 1}, "nombreArticles": 2},
            "synthese": "Miser sur l'urgence locale.",
            "quickWins": [{"rang": 1, "titre": "Fiche Google Business Profile", "impact": "fort"}],
        },
    }


@pytest.fixture
def fake_generator(seo_responses):
    return FakeGenerator(seo_responses)
