"""FastAPI application: REST API for the SEO strategy generator.

Endpoints:
    GET  /health            Health check (configuration summary)
    POST /runs              Run the full strategy pipeline on a brief
    POST /stages/{name}     Run one stage from supplied dependency outputs
    POST /audits            Scrape a URL and audit its SEO content
    POST /news-transforms   Turn a news article into SEO angles
"""

from __future__ import annotations

from typing import Any

from fastapi import Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from seo_architect.agents.generator import TextGenerator
from seo_architect.agents.models import NewsTransformerInput
from seo_architect.agents.parser import ParsePolicy
from seo_architect.config import settings
from seo_architect.errors import (
    GenerationFailed,
    MissingDependencyOutput,
    ScrapeFailed,
    UnknownStage,
)
from seo_architect.utils.logging import get_logger

log = get_logger()

app = FastAPI(
    title="SEO Architect API",
    description="Multi-stage SEO strategy generator",
    version="0.1.0",
)

# CORS: allow the local frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://localhost:5173"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def get_generator() -> TextGenerator:
    """Text generator used by every endpoint. Overridden in tests."""
    from seo_architect.agents.generator import ChatTextGenerator

    return ChatTextGenerator()


class RunRequest(BaseModel):
    brief: str = Field(..., min_length=1)
    policy: ParsePolicy | None = None
    stage_timeout: float | None = None


class StageRequest(BaseModel):
    brief: str = Field(..., min_length=1)
    # Dependency outputs keyed by stage name, in their JSON (camelCase) form
    outputs: dict[str, Any] = Field(default_factory=dict)
    policy: ParsePolicy | None = None


class AuditRequest(BaseModel):
    url: str
    keyword: str | None = None


def _dump(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json", by_alias=True)
    return value


@app.get("/health")
async def health():
    """Health check: reports which optional integrations are configured."""
    return {
        "status": "ok",
        "model": settings.active_model,
        "llm_configured": bool(settings.active_api_key),
        "parse_policy": settings.parse_policy,
        "tracing": bool(settings.langfuse_public_key and settings.langfuse_secret_key),
        "knowledge_graph": bool(settings.knowledge_graph_api_key),
    }


@app.post("/runs")
async def create_run(request: RunRequest, generator: TextGenerator = Depends(get_generator)):
    """Run every stage; failed stages are reported, never raised."""
    from seo_architect.agents.stages import build_seo_pipeline

    pipeline = build_seo_pipeline(generator, policy=request.policy, stage_timeout=request.stage_timeout)
    report = await pipeline.run(request.brief.strip())
    return report.to_dict()


@app.post("/stages/{name}")
async def run_stage(name: str, request: StageRequest, generator: TextGenerator = Depends(get_generator)):
    """Run one stage in isolation."""
    from seo_architect.agents.stages import build_seo_pipeline

    pipeline = build_seo_pipeline(generator, policy=request.policy)
    try:
        definition = pipeline[name]
    except UnknownStage as e:
        raise HTTPException(status_code=404, detail=str(e))

    outputs = {}
    for dep in definition.depends_on:
        if dep in request.outputs:
            model = _stage_model(dep)
            outputs[dep] = model.model_validate(request.outputs[dep]) if model else request.outputs[dep]

    try:
        output = await pipeline.run_stage(name, request.brief.strip(), outputs)
    except MissingDependencyOutput as e:
        raise HTTPException(status_code=422, detail=str(e))
    except GenerationFailed as e:
        log.error(f"stage {name} failed: {e}")
        raise HTTPException(status_code=502, detail=str(e))
    return {"stage": name, "output": _dump(output)}


def _stage_model(name: str):
    from seo_architect.agents.stages import SEO_STAGES

    return next((stage.output_model for stage in SEO_STAGES if stage.name == name), None)


@app.post("/audits")
async def create_audit(request: AuditRequest, generator: TextGenerator = Depends(get_generator)):
    """Scrape ``url`` and return its content audit."""
    from seo_architect.audit import run_content_audit
    from seo_architect.scraper.page import is_valid_url

    if not is_valid_url(request.url):
        raise HTTPException(status_code=422, detail=f"not an http(s) URL: {request.url}")
    try:
        result = await run_content_audit(request.url, generator, keyword=request.keyword)
    except ScrapeFailed as e:
        raise HTTPException(status_code=502, detail=str(e))
    except GenerationFailed as e:
        raise HTTPException(status_code=502, detail=str(e))
    return _dump(result)


@app.post("/news-transforms")
async def create_news_transform(
    request: NewsTransformerInput,
    generator: TextGenerator = Depends(get_generator),
):
    """Profitability score and SEO angles for a news article."""
    from seo_architect.agents.stages import run_news_transformer

    try:
        result = await run_news_transformer(request, generator)
    except GenerationFailed as e:
        raise HTTPException(status_code=502, detail=str(e))
    return _dump(result)
