"""Text clean-up for scraped page content."""

import html
import re
import unicodedata

# Double-encoded UTF-8 (mojibake) left by some CMS exports and proxies
_MOJIBAKE_REPLACEMENTS = {
    "Ã©": "é",
    "Ã¨": "è",
    "Ãª": "ê",
    "Ã\xa0": "à",
    "Ã§": "ç",
    "Ã´": "ô",
    "â€™": "’",
    "â€œ": "“",
    "â€\x9d": "”",
    "â€¦": "…",
}

_ZERO_WIDTH_RE = re.compile("[\u200b\u200c\u200d\ufeff]")


def normalize_text(text: str) -> str:
    """Normalize extracted text before it is measured or sent to the LLM.

    Steps:
    1. NFC normalization (accented French text arrives decomposed from some sites)
    2. HTML entity decoding (&amp; → &, &#8217; → ', &nbsp; → space)
    3. Mojibake fix (double-encoded UTF-8)
    4. Zero-width characters removed, whitespace collapsed
    """
    text = unicodedata.normalize("NFC", text)
    text = html.unescape(text)

    for bad, good in _MOJIBAKE_REPLACEMENTS.items():
        text = text.replace(bad, good)

    text = _ZERO_WIDTH_RE.sub("", text)
    # \s covers the non-breaking space produced by &nbsp;
    return re.sub(r"\s+", " ", text).strip()


def word_count(text: str) -> int:
    return len(normalize_text(text).split())
