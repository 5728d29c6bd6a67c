from typing import Literal

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # OpenRouter LLM config for the generation stages
    openrouter_api_key: str = ""
    openrouter_model: str = "google/gemini-2.5-flash"
    # LLM base URL: change to switch provider (Ollama, LM Studio, etc.)
    llm_base_url: str = "https://openrouter.ai/api/v1"
    llm_temperature: float = 0.7
    llm_max_tokens: int = 65536
    # Retries on 429 only, inside the generator
    llm_max_retries: int = 3
    log_level: str = "info"
    # "lenient" fills missing collections with empty defaults, "strict" fails the stage
    parse_policy: Literal["lenient", "strict"] = "lenient"
    repair_json: bool = True
    # Per-stage timeout in seconds. 0 = no timeout.
    stage_timeout_s: float = 0
    # SearXNG for grounded generation
    searxng_url: str = "http://localhost:8888"
    search_results_per_query: int = 5
    # Langfuse Cloud observability
    langfuse_public_key: str = ""
    langfuse_secret_key: str = ""
    langfuse_base_url: str = "https://cloud.langfuse.com"
    # Google Knowledge Graph Search API (sector vocabulary)
    knowledge_graph_api_key: str = ""
    knowledge_graph_language: str = "fr"
    # Page fetch strategies for content audits, tried in order. "{url}" is the
    # raw target, "{quoted}" the URL-encoded target.
    scrape_proxies: list[str] = [
        "{url}",
        "https://corsproxy.io/?{quoted}",
        "https://api.allorigins.win/raw?url={quoted}",
        "https://proxy.cors.sh/{url}",
    ]
    scrape_timeout_s: float = 30.0
    user_agent: str = (
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) "
        "AppleWebKit/537.36 (KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36"
    )
    # Competitor, SERP and ROI stages
    max_competitor_urls: int = 5
    serp_max_keywords: int = 15
    roi_conversion_value: float = 500
    roi_hourly_rate: float = 50
    output_dir: str = "outputs"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}

    @property
    def active_model(self) -> str:
        return self.openrouter_model

    @property
    def active_api_key(self) -> str:
        return self.openrouter_api_key


settings = Settings()
