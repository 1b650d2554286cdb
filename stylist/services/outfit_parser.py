from __future__ import annotations

import json
import logging
import random
import re
from typing import Any, Callable

from stylist.core.errors import ParseError
from stylist.services.domain import (
    GeneratedOutfit,
    OutfitItemSpec,
    OutfitRequest,
    calculate_total_price,
    new_outfit_id,
)

logger = logging.getLogger(__name__)

CONFIDENCE_STRICT = 0.95
CONFIDENCE_REPAIRED = 0.9
CONFIDENCE_EXTRACTED = 0.85

DEFAULT_NAME = "Персональный образ"
DEFAULT_DESCRIPTION = "Создан специально для вас"
DEFAULT_STYLE_NOTES = "Стильный и комфортный образ"
PLACEHOLDER_CATEGORY = "clothing"
PLACEHOLDER_PRICE = "1000-3000"
PLACEHOLDER_COLOR = "серый"

_FENCE_RE = re.compile(r"```\s*json\s*(.*?)(?:```|$)", re.DOTALL | re.IGNORECASE)
_ARRAY_FIELD_RE = re.compile(r"""(["']?(?:colors|colorPalette)["']?\s*:\s*)\[([^\]]*)\]""")
_DUP_OPEN_QUOTE_RE = re.compile(r'([:\[,]\s*)"{2,}(?=[^"\s,}\]:])')
_DUP_CLOSE_QUOTE_RE = re.compile(r'(?<=[^"\s:\[,{])"{2,}(\s*[,}\]:])')
_BARE_KEY_RE = re.compile(r"([{,]\s*)([A-Za-z_][A-Za-z0-9_]*)\s*:")
_SINGLE_QUOTED_KEY_RE = re.compile(r"([{,]\s*)'([^'\n]+)'\s*:")
_TRAILING_COMMA_RE = re.compile(r",\s*([}\]])")
_SMART_OPEN_RE = re.compile(r"([{\[,:]\s*)[“”„]")
_SMART_CLOSE_RE = re.compile(r"[“”„](\s*[:,}\]])")
_ITEMS_KEY_RE = re.compile(r"""["']?items["']?\s*:\s*\[""")
_ITEM_OBJECT_RE = re.compile(r"\{([^{}]*)\}?")

OutfitFallback = Callable[[OutfitRequest], GeneratedOutfit]


def extract_json_candidate(text: str) -> str | None:
    """Pull the JSON-looking part out of a chat answer (fenced block first, then outer braces)."""
    fenced = _FENCE_RE.search(text)
    if fenced and "{" in fenced.group(1):
        text = fenced.group(1)

    start = text.find("{")
    if start == -1:
        return None
    end = text.rfind("}")
    if end > start:
        return text[start : end + 1]
    # Truncated answer without a single closing brace.
    return text[start:]


def parse_outfit_response(
    text: str,
    request: OutfitRequest,
    *,
    fallback: OutfitFallback,
    rng: random.Random | None = None,
    epoch_ms: int = 0,
) -> GeneratedOutfit:
    """Turn raw chat output into a GeneratedOutfit; never raises."""
    rng = rng or random.Random()
    try:
        return _parse(text or "", request, fallback, rng, epoch_ms)
    except Exception:
        logger.exception("outfit_parse_crashed_using_synthetic")
        return fallback(request)


def _parse(
    text: str,
    request: OutfitRequest,
    fallback: OutfitFallback,
    rng: random.Random,
    epoch_ms: int,
) -> GeneratedOutfit:
    candidate = extract_json_candidate(text)
    if candidate is not None:
        tiers = (
            ("model", CONFIDENCE_STRICT, load_strict),
            ("repaired", CONFIDENCE_REPAIRED, load_repaired),
        )
        for source, confidence, loader in tiers:
            try:
                data = loader(candidate)
                return _outfit_from_mapping(data, request, confidence, source, rng, epoch_ms)
            except ParseError as exc:
                logger.info("outfit_parse_tier_failed tier=%s reason=%s", source, exc)

    try:
        outfit = _outfit_from_regex(candidate or text, request, rng, epoch_ms)
        logger.warning("outfit_parsed_by_field_extraction items=%d", len(outfit.items))
        return outfit
    except ParseError as exc:
        logger.warning("outfit_parse_failed_using_synthetic reason=%s", exc)
    return fallback(request)


def load_strict(candidate: str) -> dict[str, Any]:
    try:
        data = json.loads(candidate)
    except json.JSONDecodeError as exc:
        raise ParseError(f"invalid json: {exc.msg} at {exc.pos}") from exc
    if not isinstance(data, dict):
        raise ParseError(f"expected an object, got {type(data).__name__}")
    return data


def load_repaired(candidate: str) -> dict[str, Any]:
    repaired = repair_json_text(candidate)
    try:
        return load_strict(repaired)
    except ParseError:
        pass

    # Only a truncated answer may lose its tail; a balanced one goes on to field extraction.
    if not is_truncated_json(candidate):
        raise ParseError("repairs did not produce valid json")

    text = repaired
    for _ in range(20):
        try:
            return load_strict(close_truncated_json(text))
        except ParseError:
            cut = text.rfind(",")
            if cut <= 0:
                break
            text = text[:cut]
    raise ParseError("repairs did not produce valid json")


def repair_json_text(text: str) -> str:
    text = _SMART_OPEN_RE.sub(r'\1"', text)
    text = _SMART_CLOSE_RE.sub(r'"\1', text)
    text = _ARRAY_FIELD_RE.sub(_requote_array, text)
    text = _DUP_OPEN_QUOTE_RE.sub(r'\1"', text)
    text = _DUP_CLOSE_QUOTE_RE.sub(r'"\1', text)
    text = _SINGLE_QUOTED_KEY_RE.sub(r'\1"\2":', text)
    text = _BARE_KEY_RE.sub(r'\1"\2":', text)
    text = _TRAILING_COMMA_RE.sub(r"\1", text)
    return text


def _requote_array(match: re.Match[str]) -> str:
    values = _split_loose_list(match.group(2))
    return f"{match.group(1)}{json.dumps(values, ensure_ascii=False)}"


def _split_loose_list(raw: str) -> list[str]:
    values = []
    for part in raw.split(","):
        value = part.strip().strip("\"'“”").strip()
        if value:
            values.append(value)
    return values


def is_truncated_json(text: str) -> bool:
    stack, in_string = _open_structures(text)
    return bool(stack) or in_string


def close_truncated_json(text: str) -> str:
    stack, in_string = _open_structures(text)
    closed = text
    if in_string:
        closed += '"'
    closed = closed.rstrip()
    if closed.endswith(","):
        closed = closed[:-1]
    elif closed.endswith(":"):
        closed += " null"
    return closed + "".join(reversed(stack))


def _open_structures(text: str) -> tuple[list[str], bool]:
    """Closers still owed at the end of text, and whether a string is left open."""
    stack: list[str] = []
    in_string = False
    escaped = False
    for ch in text:
        if in_string:
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
        elif ch in "}]" and stack:
            stack.pop()
    return stack, in_string


def _outfit_from_mapping(
    data: dict[str, Any],
    request: OutfitRequest,
    confidence: float,
    source: str,
    rng: random.Random,
    epoch_ms: int,
) -> GeneratedOutfit:
    raw_items = data.get("items")
    items = [_item_from_mapping(raw) for raw in raw_items] if isinstance(raw_items, list) else []
    items = [item for item in items if item is not None]
    if not items:
        raise ParseError("no usable items in parsed object")

    return _build_outfit(
        request,
        items,
        name=_as_text(data.get("name")),
        description=_as_text(data.get("description")),
        total_price=_as_text(data.get("totalPrice")),
        style_notes=_as_text(data.get("styleNotes")),
        color_palette=_as_list(data.get("colorPalette")),
        why_it_works=_as_text(data.get("whyItWorks")),
        confidence=confidence,
        source=source,
        rng=rng,
        epoch_ms=epoch_ms,
    )


def _item_from_mapping(raw: Any) -> OutfitItemSpec | None:
    if not isinstance(raw, dict):
        return None
    return _make_item(
        category=_as_text(raw.get("category")),
        name=_as_text(raw.get("name")),
        description=_as_text(raw.get("description")),
        colors=_as_list(raw.get("colors")),
        style=_as_text(raw.get("style")),
        fit=_as_text(raw.get("fit")),
        price=_as_text(raw.get("price")),
    )


def _make_item(
    *,
    category: str,
    name: str,
    description: str,
    colors: list[str],
    style: str,
    fit: str,
    price: str,
) -> OutfitItemSpec | None:
    if not (name or description):
        return None
    return OutfitItemSpec(
        category=category or PLACEHOLDER_CATEGORY,
        name=name or description[:60],
        description=description,
        colors=tuple(colors) or (PLACEHOLDER_COLOR,),
        style=style,
        fit=fit,
        price=price or PLACEHOLDER_PRICE,
    )


def _outfit_from_regex(text: str, request: OutfitRequest, rng: random.Random, epoch_ms: int) -> GeneratedOutfit:
    head, items_text, tail = _split_on_items(text)
    items = []
    for match in _ITEM_OBJECT_RE.finditer(items_text):
        blob = match.group(1)
        item = _make_item(
            category=_extract_field(blob, "category"),
            name=_extract_field(blob, "name"),
            description=_extract_field(blob, "description"),
            colors=_extract_list(blob, "colors"),
            style=_extract_field(blob, "style"),
            fit=_extract_field(blob, "fit"),
            price=_extract_field(blob, "price"),
        )
        if item is not None:
            items.append(item)
    if not items:
        raise ParseError("field extraction found no items")

    outer = f"{head}\n{tail}"
    return _build_outfit(
        request,
        items,
        name=_extract_field(outer, "name"),
        description=_extract_field(outer, "description"),
        total_price=_extract_field(outer, "totalPrice"),
        style_notes=_extract_field(outer, "styleNotes"),
        color_palette=_extract_list(outer, "colorPalette"),
        why_it_works=_extract_field(outer, "whyItWorks"),
        confidence=CONFIDENCE_EXTRACTED,
        source="extracted",
        rng=rng,
        epoch_ms=epoch_ms,
    )


def _split_on_items(text: str) -> tuple[str, str, str]:
    match = _ITEMS_KEY_RE.search(text)
    if match is None:
        return text, "", ""
    depth = 1
    in_string = False
    for pos in range(match.end(), len(text)):
        ch = text[pos]
        if ch == '"' and text[pos - 1] != "\\":
            in_string = not in_string
        elif in_string:
            continue
        elif ch == "[":
            depth += 1
        elif ch == "]":
            depth -= 1
            if depth == 0:
                return text[: match.start()], text[match.end() : pos], text[pos + 1 :]
    return text[: match.start()], text[match.end() :], ""


def _extract_field(blob: str, key: str) -> str:
    pattern = re.compile(
        rf"""["']?{key}["']?\s*:\s*(?:"((?:[^"\\]|\\.)*)"?|'([^']*)'?|([^,}}\]\n]+))"""
    )
    match = pattern.search(blob)
    if match is None:
        return ""
    value = next((g for g in match.groups() if g is not None), "")
    return _clean(value.replace('\\"', '"'))


def _extract_list(blob: str, key: str) -> list[str]:
    match = re.search(rf"""["']?{key}["']?\s*:\s*\[([^\]]*)\]?""", blob)
    if match is None:
        return []
    return _split_loose_list(match.group(1))


def _build_outfit(
    request: OutfitRequest,
    items: list[OutfitItemSpec],
    *,
    name: str,
    description: str,
    total_price: str,
    style_notes: str,
    color_palette: list[str],
    why_it_works: str,
    confidence: float,
    source: str,
    rng: random.Random,
    epoch_ms: int,
) -> GeneratedOutfit:
    if not color_palette:
        color_palette = list(request.color_preferences) or _unique(c for item in items for c in item.colors)[:5]
    return GeneratedOutfit(
        id=new_outfit_id(rng, epoch_ms),
        name=name or DEFAULT_NAME,
        description=description or DEFAULT_DESCRIPTION,
        occasion=request.occasion,
        season=request.season,
        items=tuple(items),
        total_price=total_price or calculate_total_price(items),
        style_notes=style_notes or DEFAULT_STYLE_NOTES,
        color_palette=tuple(color_palette),
        confidence=confidence,
        source=source,
        why_it_works=why_it_works,
    )


def _as_text(value: Any) -> str:
    if value is None or isinstance(value, (dict, list)):
        return ""
    return _clean(str(value))


def _as_list(value: Any) -> list[str]:
    if isinstance(value, str):
        return _split_loose_list(value)
    if isinstance(value, list):
        return [text for text in (_as_text(v) for v in value) if text]
    return []


def _clean(value: str) -> str:
    return re.sub(r"\s+", " ", value).strip()


def _unique(values) -> list[str]:
    seen: set[str] = set()
    out = []
    for value in values:
        key = value.lower()
        if key not in seen:
            seen.add(key)
            out.append(value)
    return out
