"""Turn raw generator text into validated stage output models."""

from __future__ import annotations

import json
import re
from typing import Collection, Literal, TypeVar

from pydantic import BaseModel, ValidationError

from seo_architect.errors import MalformedResponse, SchemaViolation
from seo_architect.utils.logging import get_logger, YELLOW, RESET

log = get_logger()

M = TypeVar("M", bound=BaseModel)

ParsePolicy = Literal["lenient", "strict"]


_LEADING_FENCE_RE = re.compile(r"^```[A-Za-z]*[ \t]*\n?")


def strip_code_fences(text: str) -> str:
    """Drop a fence opening and closing the whole response.

    Fences inside the text (e.g. in a JSON string value) are left alone.
    """
    text = text.strip()
    if text.startswith("```"):
        text = _LEADING_FENCE_RE.sub("", text, count=1)
        if text.rstrip().endswith("```"):
            text = text.rstrip()[:-3]
    return text.strip()


def extract_object(text: str) -> str:
    """Cut the text down to the outermost ``{...}`` span."""
    start = text.find("{")
    end = text.rfind("}")
    if start == -1:
        return text
    if end < start:
        return text[start:]
    return text[start:end + 1]


def repair_json(text: str) -> str:
    """Best-effort fix for truncated or sloppy JSON.

    Drops trailing commas and closes any string, array or object left open
    (usually because the generator hit its token limit).
    """
    out: list[str] = []
    stack: list[str] = []
    in_string = False
    escaped = False

    for ch in text:
        if in_string:
            out.append(ch)
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue

        if ch == '"':
            in_string = True
        elif ch in "{[":
            stack.append("}" if ch == "{" else "]")
        elif ch in "}]":
            _drop_trailing_comma(out)
            if stack and stack[-1] == ch:
                stack.pop()
            else:
                # Unbalanced closer
                continue
        out.append(ch)

    if in_string:
        if escaped:
            out.pop()
        out.append('"')
    _drop_trailing_comma(out)
    # A dangling key ("key": or "key") cannot be completed, cut it
    tail = "".join(out).rstrip()
    if tail.endswith(":"):
        tail = tail[: tail.rfind(",")] if "," in tail else tail
    out = [tail]
    _drop_trailing_comma(out)
    return "".join(out) + "".join(reversed(stack))


def _drop_trailing_comma(out: list[str]) -> None:
    text = "".join(out).rstrip()
    if text.endswith(","):
        text = text[:-1]
    out[:] = [text]


def load_object(
    stage: str,
    raw: str,
    repair: bool = True,
    expected_keys: Collection[str] | None = None,
) -> dict:
    """Parse raw generator text into a JSON object.

    A repaired object must keep at least one key, and one of
    ``expected_keys`` when given; a bare ``{`` is truncation, not an answer.

    Raises:
        MalformedResponse: not valid JSON (even after repair), not an object,
            or a repair that recovered nothing usable.
    """
    text = strip_code_fences(raw)
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        if not repair:
            raise MalformedResponse(stage, raw, f"response is not valid JSON: {e}") from e
        try:
            data = json.loads(repair_json(extract_object(text)))
        except json.JSONDecodeError:
            raise MalformedResponse(stage, raw, f"response is not valid JSON: {e}") from e
        if isinstance(data, dict) and not _has_usable_field(data, expected_keys):
            raise MalformedResponse(stage, raw, "truncated response: repair recovered no usable field") from e
        log.warning(f"  {YELLOW}↻{RESET} [{stage}] repaired malformed JSON response")

    if not isinstance(data, dict):
        raise MalformedResponse(stage, raw, f"expected a JSON object, got {type(data).__name__}")
    return data


def _has_usable_field(data: dict, expected_keys: Collection[str] | None) -> bool:
    if not data:
        return False
    if expected_keys is None:
        return True
    return any(key in expected_keys for key in data)


def model_keys(model_class: type[BaseModel]) -> frozenset[str]:
    """Field names of ``model_class`` plus their wire aliases."""
    keys = set()
    for name, info in model_class.model_fields.items():
        keys.add(name)
        if info.alias:
            keys.add(info.alias)
    return frozenset(keys)


def parse_response(
    stage: str,
    raw: str,
    model_class: type[M],
    policy: ParsePolicy = "lenient",
    repair: bool = True,
) -> M:
    """Parse ``raw`` into ``model_class``.

    ``lenient`` substitutes empty defaults for missing or mis-shaped
    collection fields. ``strict`` raises ``SchemaViolation`` naming the
    first such field.
    """
    data = load_object(stage, raw, repair=repair, expected_keys=model_keys(model_class))
    try:
        return model_class.model_validate(data, context={"strict": policy == "strict"})
    except ValidationError as e:
        err = e.errors()[0]
        if err["type"] == "shape":
            path = [str(p) for p in err["loc"]] + [err["ctx"]["field"]]
            raise SchemaViolation(stage, raw, ".".join(path)) from e
        loc = ".".join(str(p) for p in err["loc"]) or "<root>"
        raise MalformedResponse(stage, raw, f"response does not match schema at {loc}: {err['msg']}") from e
