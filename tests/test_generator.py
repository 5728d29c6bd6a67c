from datetime import date

import pytest
from langchain_core.messages import AIMessage
from langchain_core.runnables import RunnableLambda

from seo_architect.agents import generator as generator_module
from seo_architect.agents.generator import (
    JSON_ONLY_SUFFIX,
    ChatTextGenerator,
    date_context,
    is_rate_limit_error,
)


class FakeSearch:
    def __init__(self, results, failing=()):
        self.results = results
        self.failing = set(failing)
        self.queries = []

    async def aresults(self, query, num_results=5):
        self.queries.append(query)
        if query in self.failing:
            raise ConnectionError("searx down")
        return self.results.get(query, [])


def _chat(replies, seen=None):
    replies = list(replies)

    def reply(prompt_value):
        if seen is not None:
            seen.append(prompt_value.to_messages())
        item = replies.pop(0)
        if isinstance(item, Exception):
            raise item
        return AIMessage(content=item)

    return RunnableLambda(reply)


def test_date_context_is_french():
    assert date_context(date(2026, 3, 5)).startswith("📅 CONTEXTE TEMPOREL: Nous sommes le 5 mars 2026.")
    assert "actuelles pour 2026" in date_context(date(2026, 3, 5))


def test_is_rate_limit_error():
    assert is_rate_limit_error(RuntimeError("Error code: 429 - Too Many Requests"))
    assert is_rate_limit_error(RuntimeError("Rate limit reached for requests"))
    assert not is_rate_limit_error(RuntimeError("Error code: 401 - invalid key"))


async def test_generate_adds_date_and_json_instructions():
    seen = []
    generator = ChatTextGenerator(llm=_chat(['{"ok": true}'], seen), max_retries=0)

    text = await generator.generate("Tu es un expert SEO.", "Analyse ce business", label="strategic")

    assert text == '{"ok": true}'
    system, human = seen[0]
    assert system.content.startswith("📅 CONTEXTE TEMPOREL")
    assert system.content.endswith("Tu es un expert SEO.")
    assert human.content == "Analyse ce business" + JSON_ONLY_SUFFIX


async def test_prompt_braces_are_not_template_variables():
    seen = []
    generator = ChatTextGenerator(llm=_chat(["{}"], seen), max_retries=0)

    await generator.generate('Format: {"clusters": []}', 'Données: {"a": 1}')

    assert 'Format: {"clusters": []}' in seen[0][0].content


async def test_rate_limit_is_retried_with_backoff(monkeypatch):
    monkeypatch.setattr(generator_module, "_RETRY_BASE_S", 0)
    replies = [RuntimeError("Error code: 429"), RuntimeError("Error code: 429"), "{}"]
    generator = ChatTextGenerator(llm=_chat(replies), max_retries=3)

    assert await generator.generate("s", "u", label="cluster") == "{}"


async def test_rate_limit_retries_are_bounded(monkeypatch):
    monkeypatch.setattr(generator_module, "_RETRY_BASE_S", 0)
    replies = [RuntimeError("Error code: 429")] * 3
    generator = ChatTextGenerator(llm=_chat(replies), max_retries=2)

    with pytest.raises(RuntimeError, match="429"):
        await generator.generate("s", "u")


async def test_other_errors_are_not_retried():
    replies = [ValueError("bad request"), "{}"]
    generator = ChatTextGenerator(llm=_chat(replies), max_retries=3)

    with pytest.raises(ValueError):
        await generator.generate("s", "u")


async def test_generate_grounded_injects_and_returns_sources():
    search = FakeSearch(
        {
            "https://actu.example/a": [
                {"title": "Nouvelle aide", "link": "https://actu.example/a", "snippet": "MaPrimeRénov' 2026"},
            ],
            "chauffe-eau plomberie": [
                {"title": "Nouvelle aide", "link": "https://actu.example/a", "snippet": "doublon"},
                {"title": "Guide ADEME", "link": "https://ademe.example/guide", "snippet": "Rendement"},
            ],
        },
        failing={"cassé"},
    )
    seen = []
    generator = ChatTextGenerator(llm=_chat(["{}"], seen), search=search, max_retries=0)

    grounded = await generator.generate_grounded(
        "system", "Analyse", ["https://actu.example/a", "cassé", "chauffe-eau plomberie"], label="news"
    )

    assert grounded.text == "{}"
    assert [s.uri for s in grounded.sources] == ["https://actu.example/a", "https://ademe.example/guide"]
    assert grounded.search_queries == ["https://actu.example/a", "cassé", "chauffe-eau plomberie"]
    human = seen[0][1].content
    assert "RÉSULTATS DE RECHERCHE WEB" in human
    assert "Guide ADEME (https://ademe.example/guide): Rendement" in human
