"""Google Knowledge Graph lookups for sector vocabulary.

Feeds the strategic analysis with real entity names (organisations, trade
concepts, standards bodies) for a sector. Lookups are best-effort: without an
API key, or when the API errors, they return nothing and the pipeline
continues with the LLM's own vocabulary.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field

import httpx

from seo_architect.agents.models import VocabulaireSectoriel
from seo_architect.config import settings
from seo_architect.utils.logging import get_logger, GREEN, YELLOW, DIM, RESET

log = get_logger()

KNOWLEDGE_GRAPH_API_URL = "https://kgsearch.googleapis.com/v1/entities:search"

MAX_TRADE_TERMS = 15
MAX_ENTITIES = 10

_CERTIFICATION_WORDS = ("certification", "norme", "label", "qualification")


@dataclass
class KnowledgeGraphEntity:
    id: str
    name: str
    types: list[str] = field(default_factory=list)
    description: str | None = None
    article_body: str | None = None
    url: str | None = None


def _entity(item: dict) -> KnowledgeGraphEntity:
    result = item.get("result") or {}
    types = result.get("@type") or []
    detailed = result.get("detailedDescription") or {}
    return KnowledgeGraphEntity(
        id=result.get("@id", ""),
        name=result.get("name", ""),
        types=types if isinstance(types, list) else [types],
        description=result.get("description"),
        article_body=detailed.get("articleBody"),
        url=result.get("url"),
    )


async def search_knowledge_graph(
    query: str,
    types: list[str] | None = None,
    limit: int = 10,
    client: httpx.AsyncClient | None = None,
) -> list[KnowledgeGraphEntity]:
    """Entities matching ``query``, optionally filtered by schema.org ``types``.

    Returns an empty list when no API key is configured or the request fails.
    """
    if not settings.knowledge_graph_api_key:
        log.info(f"  {DIM}Knowledge Graph API key not configured (skipping '{query}'){RESET}")
        return []

    params = {
        "key": settings.knowledge_graph_api_key,
        "query": query,
        "limit": str(limit),
        "languages": settings.knowledge_graph_language,
        "indent": "true",
    }
    if types:
        params["types"] = ",".join(types)

    own_client = client is None
    client = client or httpx.AsyncClient(timeout=30.0)
    try:
        response = await client.get(KNOWLEDGE_GRAPH_API_URL, params=params)
        response.raise_for_status()
        data = response.json()
    except (httpx.HTTPError, ValueError) as e:
        log.warning(f"  {YELLOW}Knowledge Graph search failed for '{query}': {e}{RESET}")
        return []
    finally:
        if own_client:
            await client.aclose()

    return [_entity(item) for item in data.get("itemListElement") or []]


def _unique_names(*groups: list[KnowledgeGraphEntity]) -> list[str]:
    names: dict[str, None] = {}
    for group in groups:
        for entity in group:
            if entity.name:
                names[entity.name] = None
    return list(names)


async def enrich_sector_vocabulary(
    sector: str,
    user_terms: list[str] | None = None,
    client: httpx.AsyncClient | None = None,
) -> VocabulaireSectoriel:
    """Trade terms and Google entities for ``sector``.

    Organisations and standards bodies become ``entites_google``; trade
    concepts become ``termes_metier``. ``user_terms`` are passed through as
    the customers' own vocabulary.
    """
    orgs, concepts, norms = await asyncio.gather(
        search_knowledge_graph(f"{sector} entreprise france", ["Organization"], 5, client=client),
        search_knowledge_graph(f"{sector} métier technique", None, 10, client=client),
        search_knowledge_graph(f"{sector} norme certification", ["Organization", "Thing"], 5, client=client),
    )
    vocabulary = VocabulaireSectoriel(
        termes_metier=_unique_names(concepts)[:MAX_TRADE_TERMS],
        termes_clients=list(user_terms or []),
        entites_google=_unique_names(orgs, norms)[:MAX_ENTITIES],
    )
    log.info(
        f"  {GREEN}✓{RESET} vocabulary for '{sector}': "
        f"{len(vocabulary.termes_metier)} trade terms, {len(vocabulary.entites_google)} entities"
    )
    return vocabulary


async def find_sector_competitors(
    sector: str,
    location: str | None = None,
    client: httpx.AsyncClient | None = None,
) -> list[KnowledgeGraphEntity]:
    query = f"{sector} entreprise {location}" if location else f"{sector} leader france"
    return await search_knowledge_graph(
        query, ["Organization", "Corporation", "LocalBusiness"], 10, client=client
    )


async def find_sector_certifications(sector: str, client: httpx.AsyncClient | None = None) -> list[str]:
    """Names of certifications, labels and standards bodies for ``sector``."""
    results = await search_knowledge_graph(
        f"{sector} certification norme qualification", ["Organization", "Thing"], 10, client=client
    )
    return [
        r.name
        for r in results
        if r.name and (
            any(word in r.name.lower() for word in _CERTIFICATION_WORDS)
            or any("organization" in t.lower() for t in r.types)
        )
    ]
