"""Langfuse tracing for generation calls."""

from __future__ import annotations

import os
from functools import lru_cache

from seo_architect.config import settings
from seo_architect.utils.logging import get_logger, YELLOW, DIM, RESET

log = get_logger()


@lru_cache(maxsize=1)
def _langfuse_handler():
    if not settings.langfuse_public_key or not settings.langfuse_secret_key:
        log.debug(f"  {DIM}Langfuse not configured, generation is untraced{RESET}")
        return None

    try:
        from langfuse.langchain import CallbackHandler

        # Langfuse v3 reads its credentials from the environment
        os.environ.setdefault("LANGFUSE_PUBLIC_KEY", settings.langfuse_public_key)
        os.environ.setdefault("LANGFUSE_SECRET_KEY", settings.langfuse_secret_key)
        os.environ.setdefault("LANGFUSE_HOST", settings.langfuse_base_url)
        handler = CallbackHandler()
    except Exception as e:
        log.warning(f"  {YELLOW}Langfuse init failed: {e}{RESET}")
        return None

    log.info(f"  {DIM}Langfuse tracing enabled for {settings.active_model}{RESET}")
    return handler


def tracing_config(label: str) -> dict:
    """LangChain invoke config for one generation call.

    Tags the call with its stage label; attaches the Langfuse callback only
    when credentials are configured.
    """
    config: dict = {"run_name": label, "metadata": {"stage": label}}
    handler = _langfuse_handler()
    if handler is not None:
        config["callbacks"] = [handler]
    return config
