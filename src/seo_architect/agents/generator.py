"""Text generation backends for the SEO stages.

A stage only needs something with ``generate`` (plain completion) and
``generate_grounded`` (completion backed by live web search results).
``ChatTextGenerator`` implements both on top of an OpenAI-compatible chat
model (OpenRouter by default) and a SearXNG instance.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import date
from typing import Protocol

from langchain_core.prompts import ChatPromptTemplate
from langchain_openai import ChatOpenAI

from seo_architect.agents.tracing import tracing_config
from seo_architect.config import settings
from seo_architect.utils.logging import get_logger, YELLOW, DIM, RESET

log = get_logger()

_RETRY_BASE_S = 2.0  # exponential: 2s, 4s, 8s

_MONTHS_FR = [
    "janvier", "février", "mars", "avril", "mai", "juin",
    "juillet", "août", "septembre", "octobre", "novembre", "décembre",
]

JSON_ONLY_SUFFIX = (
    "\n\nIMPORTANT: Réponds UNIQUEMENT avec un JSON valide, sans texte avant ou après, "
    "sans balises markdown. Le JSON doit être complet et bien formé."
)


@dataclass
class Source:
    title: str
    uri: str


@dataclass
class GroundedText:
    """Generator output plus the web sources it was grounded on."""

    text: str
    sources: list[Source] = field(default_factory=list)
    search_queries: list[str] = field(default_factory=list)


class TextGenerator(Protocol):
    async def generate(self, system_prompt: str, user_prompt: str, label: str = "") -> str:
        ...

    async def generate_grounded(
        self,
        system_prompt: str,
        user_prompt: str,
        queries: list[str],
        label: str = "",
    ) -> GroundedText:
        ...


def date_context(today: date | None = None) -> str:
    """Temporal context prepended to every prompt so "this year" is right."""
    today = today or date.today()
    return (
        f"📅 CONTEXTE TEMPOREL: Nous sommes le {today.day} {_MONTHS_FR[today.month - 1]} "
        f"{today.year}. Toutes les recommandations, tendances et données doivent être "
        f"actuelles pour {today.year}. Ne fais pas référence à des années passées comme "
        f"si elles étaient actuelles.\n\n"
    )


def is_rate_limit_error(exc: Exception) -> bool:
    """Check if an exception is a rate-limit (429) error."""
    msg = str(exc)
    return "429" in msg or "rate limit" in msg.lower()


def _build_prompt() -> ChatPromptTemplate:
    # Prompt text goes in as variables so JSON braces need no escaping
    return ChatPromptTemplate.from_messages([
        ("system", "{system}"),
        ("human", "{user}"),
    ])


class ChatTextGenerator:
    """OpenAI-compatible chat model with 429 backoff and optional Langfuse tracing."""

    def __init__(self, llm: ChatOpenAI | None = None, search=None, max_retries: int | None = None):
        self.llm = llm or ChatOpenAI(
            model=settings.active_model,
            api_key=settings.active_api_key,
            base_url=settings.llm_base_url,
            temperature=settings.llm_temperature,
            max_tokens=settings.llm_max_tokens,
        )
        self.chain = _build_prompt() | self.llm
        self._search = search
        self.max_retries = settings.llm_max_retries if max_retries is None else max_retries

    @property
    def search(self):
        if self._search is None:
            from langchain_community.utilities import SearxSearchWrapper

            self._search = SearxSearchWrapper(
                searx_host=settings.searxng_url,
                k=settings.search_results_per_query,
            )
        return self._search

    async def generate(self, system_prompt: str, user_prompt: str, label: str = "") -> str:
        input_data = {
            "system": date_context() + system_prompt,
            "user": user_prompt + JSON_ONLY_SUFFIX,
        }
        response = await self._invoke_with_retry(input_data, label or "generation")
        return response.content if hasattr(response, "content") else str(response)

    async def generate_grounded(
        self,
        system_prompt: str,
        user_prompt: str,
        queries: list[str],
        label: str = "",
    ) -> GroundedText:
        sources: list[Source] = []
        lines: list[str] = []
        for query in queries:
            try:
                results = await self.search.aresults(query, num_results=settings.search_results_per_query)
            except Exception as e:
                log.warning(f"  {YELLOW}search failed for '{query}': {e}{RESET}")
                continue
            for r in results:
                uri = r.get("link", "")
                if not uri or any(s.uri == uri for s in sources):
                    continue
                sources.append(Source(title=r.get("title", ""), uri=uri))
                snippet = r.get("snippet", "")[:300]
                lines.append(f"- {r.get('title', '')} ({uri}): {snippet}")

        log.info(f"  {DIM}{label or 'grounded'}: {len(sources)} web sources for {len(queries)} queries{RESET}")
        if lines:
            user_prompt = (
                f"{user_prompt}\n\nRÉSULTATS DE RECHERCHE WEB (à utiliser comme sources):\n"
                + "\n".join(lines)
            )
        text = await self.generate(system_prompt, user_prompt, label=label)
        return GroundedText(text=text, sources=sources, search_queries=list(queries))

    async def _invoke_with_retry(self, input_data: dict, label: str):
        """Invoke the chain with exponential backoff retry on rate-limit errors."""
        for attempt in range(self.max_retries + 1):
            try:
                return await self.chain.ainvoke(input_data, config=tracing_config(label))
            except Exception as e:
                if is_rate_limit_error(e) and attempt < self.max_retries:
                    wait = _RETRY_BASE_S * (2 ** attempt)
                    log.warning(
                        f"  {YELLOW}↻{RESET} {label} rate-limited, "
                        f"retry {attempt + 1}/{self.max_retries} in {wait:.0f}s"
                    )
                    await asyncio.sleep(wait)
                    continue
                raise
