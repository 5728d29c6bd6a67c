"""Web page fetching and SEO-relevant content extraction.

Pages are fetched directly first, then through each configured CORS proxy
template. HTML is parsed with BeautifulSoup; Markdown (as returned by reader
services) is parsed line by line.
"""

from __future__ import annotations

import json
import re
from urllib.parse import quote, urljoin, urlparse

import httpx
from bs4 import BeautifulSoup

from seo_architect.agents.models import PageImage, ScrapedPage
from seo_architect.config import settings
from seo_architect.errors import ScrapeFailed
from seo_architect.text.normalize import normalize_text, word_count
from seo_architect.utils.logging import get_logger, GREEN, YELLOW, DIM, RESET

log = get_logger()

# Shorter bodies are proxy error pages, not content
MIN_CONTENT_LENGTH = 100
MAX_LINKS = 50

_STRIPPED_TAGS = ["script", "style", "nav", "footer", "header", "aside", "iframe", "noscript"]
_SKIPPED_HREF_PREFIXES = ("#", "javascript:", "mailto:")
_MD_LINK_RE = re.compile(r"(?<!!)\[([^\]]+)\]\(([^)]+)\)")
_MD_IMAGE_RE = re.compile(r"!\[([^\]]*)\]\(([^)]+)\)")
_MD_HEADING_RE = re.compile(r"^(#{1,6})\s+(.+)$")

_ACCEPT = "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8"


def clean_url(url: str) -> str:
    """Drop the fragment (``#:~:text=`` highlights and anchors)."""
    return url.split("#", 1)[0]


def is_valid_url(url: str) -> bool:
    parsed = urlparse(url)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def fetch_targets(url: str, templates: list[str] | None = None) -> list[str]:
    """Concrete URLs to try for ``url``, in order."""
    templates = settings.scrape_proxies if templates is None else templates
    quoted = quote(url, safe="")
    return [t.format(url=url, quoted=quoted) for t in templates]


async def fetch_page(
    url: str,
    client: httpx.AsyncClient | None = None,
    templates: list[str] | None = None,
) -> str:
    """Return the raw page body from the first strategy that yields content.

    Raises:
        ScrapeFailed: every strategy failed or returned too little content.
    """
    url = clean_url(url)
    targets = fetch_targets(url, templates)
    own_client = client is None
    client = client or httpx.AsyncClient(
        timeout=settings.scrape_timeout_s,
        follow_redirects=True,
        headers={"User-Agent": settings.user_agent, "Accept": _ACCEPT},
    )

    last_error: str | None = None
    try:
        for i, target in enumerate(targets, 1):
            log.info(f"  {DIM}↻ fetch {i}/{len(targets)}: {target[:80]}{RESET}")
            try:
                resp = await client.get(target)
                resp.raise_for_status()
            except httpx.HTTPError as e:
                last_error = f"{type(e).__name__}: {e}"
                log.warning(f"  {YELLOW}✗ strategy {i} failed: {last_error}{RESET}")
                continue

            body = resp.text
            if len(body) < MIN_CONTENT_LENGTH:
                last_error = f"insufficient content ({len(body)} chars)"
                log.warning(f"  {YELLOW}✗ strategy {i} failed: {last_error}{RESET}")
                continue

            log.info(f"  {GREEN}✓{RESET} fetched {url} via strategy {i} ({len(body)} chars)")
            return body
    finally:
        if own_client:
            await client.aclose()

    raise ScrapeFailed(url, len(targets), last_error)


async def scrape_url(url: str, client: httpx.AsyncClient | None = None) -> ScrapedPage:
    """Fetch ``url`` and extract its SEO content."""
    url = clean_url(url)
    body = await fetch_page(url, client=client)
    return parse_content(body, url)


def is_markdown(content: str) -> bool:
    return content.startswith("Title:") or "\n# " in content


def parse_content(content: str, url: str) -> ScrapedPage:
    if is_markdown(content):
        return parse_markdown(content, url)
    return parse_html(content, url)


def _split_links(hrefs, url: str) -> tuple[list[str], list[str]]:
    """Resolve hrefs against ``url``; dedupe, cap and split internal vs external."""
    host = urlparse(url).hostname
    internal: dict[str, None] = {}
    external: dict[str, None] = {}
    for href in hrefs:
        href = (href or "").strip()
        if not href or href.startswith(_SKIPPED_HREF_PREFIXES):
            continue
        try:
            resolved = urljoin(url, href)
            parsed = urlparse(resolved)
        except ValueError:
            continue
        if parsed.hostname == host:
            internal[resolved] = None
        elif parsed.scheme in ("http", "https"):
            external[resolved] = None
    return list(internal)[:MAX_LINKS], list(external)[:MAX_LINKS]


def _meta(soup: BeautifulSoup, **attrs) -> str | None:
    tag = soup.find("meta", attrs=attrs)
    if tag and tag.get("content"):
        return tag["content"].strip()
    return None


def parse_html(html: str, url: str) -> ScrapedPage:
    soup = BeautifulSoup(html, "html.parser")

    title = normalize_text(soup.title.get_text()) if soup.title else ""
    headings = {
        f"h{level}": [text for text in (normalize_text(h.get_text(" ")) for h in soup.find_all(f"h{level}")) if text]
        for level in range(1, 7)
    }

    images = [
        PageImage(src=img.get("src", ""), alt=img.get("alt", ""), has_alt=bool(img.get("alt")))
        for img in soup.find_all("img")
    ]
    internal, external = _split_links((a.get("href") for a in soup.find_all("a", href=True)), url)

    structured_data = []
    for script in soup.find_all("script", type="application/ld+json"):
        try:
            data = json.loads(script.string or "")
        except json.JSONDecodeError:
            continue
        structured_data.extend(data if isinstance(data, list) else [data])

    canonical = soup.find("link", rel="canonical")

    body = soup.body or soup
    for tag in body.find_all(_STRIPPED_TAGS):
        tag.decompose()
    body_text = normalize_text(body.get_text(" "))

    return ScrapedPage(
        url=url,
        title=title,
        meta_description=_meta(soup, name="description") or "",
        **headings,
        body_text=body_text,
        word_count=word_count(body_text),
        images=images,
        internal_links=internal,
        external_links=external,
        canonical_url=canonical.get("href") if canonical else None,
        og_title=_meta(soup, property="og:title"),
        og_description=_meta(soup, property="og:description"),
        structured_data=[d for d in structured_data if isinstance(d, dict)],
    )


def parse_markdown(content: str, url: str) -> ScrapedPage:
    lines = content.split("\n")
    title_match = re.search(r"^Title:\s*(.+)$", content, re.MULTILINE)

    headings: dict[str, list[str]] = {f"h{level}": [] for level in range(1, 7)}
    for line in lines:
        match = _MD_HEADING_RE.match(line.strip())
        if match:
            headings[f"h{len(match.group(1))}"].append(match.group(2).strip())

    text = " ".join(
        line for line in lines
        if not line.startswith(("#", "Title:", "URL Source:"))
    )
    text = _MD_IMAGE_RE.sub("", text)
    text = _MD_LINK_RE.sub(r"\1", text)
    body_text = normalize_text(re.sub(r"[*_`]", "", text))

    internal, external = _split_links((m.group(2) for m in _MD_LINK_RE.finditer(content)), url)
    images = [
        PageImage(src=m.group(2), alt=m.group(1), has_alt=bool(m.group(1)))
        for m in _MD_IMAGE_RE.finditer(content)
    ]

    return ScrapedPage(
        url=url,
        title=title_match.group(1).strip() if title_match else "",
        **headings,
        body_text=body_text,
        word_count=word_count(body_text),
        images=images,
        internal_links=internal,
        external_links=external,
    )
