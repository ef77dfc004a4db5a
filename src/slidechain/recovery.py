"""Best-effort structural repair of slide payloads that failed validation.

``recover`` is deterministic and idempotent: running it on its own output
returns an equal object. It never fabricates content beyond the generic
``Untitled Slide`` title; malformed structures are dropped rather than
guessed at.
"""

from __future__ import annotations

import copy
import json
import re
from typing import Any, Dict, List, Optional

from .models import Layout

PLACEHOLDER_TITLE = "Untitled Slide"

_TEXT_FIELDS = ("paragraph", "imagePrompt", "notes", "quote", "author")
_LIST_FIELDS = ("bullets", "sources")
_KNOWN_KEYS = (
    "title",
    "layout",
    "bullets",
    "paragraph",
    "left",
    "right",
    "contentItems",
    "imagePrompt",
    "notes",
    "sources",
    "chart",
    "timeline",
    "comparisonTable",
    "processSteps",
    "quote",
    "author",
    "design",
)
_LAYOUT_VALUES = {layout.value for layout in Layout}
_CHART_TYPES = {"bar", "line", "pie", "column", "area"}
_ITEM_TYPES = {"text", "bullet", "number", "icon", "metric"}
_EMPHASIS = {"normal", "bold", "italic", "highlight"}
_IMAGE_STYLES = {"photo", "illustration", "isometric"}
_HEX_RE = re.compile(r"^#[0-9a-fA-F]{6}$")
_BULLET_MARKER_RE = re.compile(r"^\s*(?:[-*•]|\d+[.)])\s+")


def _camel(key: str) -> str:
    if "_" not in key.strip("_"):
        return key
    head, *rest = key.strip("_").split("_")
    return head + "".join(part[:1].upper() + part[1:] for part in rest if part)


def _camel_keys(data: Dict[str, Any]) -> Dict[str, Any]:
    # camelCase keys win over their snake_case twins
    out: Dict[str, Any] = {}
    for key, value in data.items():
        if not isinstance(key, str):
            continue
        camel = _camel(key)
        if camel in out and camel != key:
            continue
        out[camel] = value
    return out


def _scalar_text(value: Any) -> Optional[str]:
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    return None


def _text(value: Any) -> str:
    text = _scalar_text(value)
    if text is not None:
        return text
    if isinstance(value, list):
        parts = [t for t in (_scalar_text(v) for v in value) if t]
        return " ".join(parts)
    return ""


def _item_text(item: Any) -> str:
    text = _scalar_text(item)
    if text is not None:
        return text
    if isinstance(item, dict):
        for key in ("text", "content", "point", "item", "title"):
            candidate = _scalar_text(item.get(key))
            if candidate:
                return candidate
        values = [v for v in item.values() if isinstance(v, str)]
        if len(values) == 1:
            return values[0].strip()
        return json.dumps(item, sort_keys=True, ensure_ascii=False)
    return ""


def _string_list(value: Any) -> List[str]:
    if isinstance(value, str):
        lines = [_BULLET_MARKER_RE.sub("", line).strip() for line in value.splitlines()]
        return [line for line in lines if line]
    if not isinstance(value, list):
        return []
    items = [_item_text(item) for item in value if item is not None]
    return [item for item in items if item]


def _side(value: Any) -> Optional[Dict[str, Any]]:
    if not isinstance(value, dict):
        return None
    value = _camel_keys(value)
    side: Dict[str, Any] = {
        "bullets": _string_list(value.get("bullets")),
        "paragraph": _text(value.get("paragraph")),
    }
    title = _text(value.get("title") if "title" in value else value.get("heading"))
    if title:
        side["title"] = title
    return side


def _boolish(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in {"true", "yes", "1"}
    return bool(value)


def _content_items(value: Any) -> List[Dict[str, Any]]:
    if not isinstance(value, list):
        return []
    items: List[Dict[str, Any]] = []
    for raw in value:
        if not isinstance(raw, dict):
            continue
        raw = _camel_keys(raw)
        content = ""
        for key in ("content", "text", "bullet", "point", "value", "number", "metric"):
            content = _text(raw.get(key))
            if content:
                break
        if not content:
            continue
        item_type = raw.get("type")
        if item_type not in _ITEM_TYPES:
            item_type = "text"
        item: Dict[str, Any] = {"type": item_type, "content": content}
        if raw.get("emphasis") in _EMPHASIS:
            item["emphasis"] = raw["emphasis"]
        color = raw.get("color")
        if isinstance(color, str) and _HEX_RE.match(color):
            item["color"] = color
        if isinstance(raw.get("iconName"), str):
            item["iconName"] = raw["iconName"]
        items.append(item)
    return items


def _number(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, str):
        try:
            return float(value.replace(",", "").strip())
        except ValueError:
            return None
    return None


def _chart(value: Any) -> Optional[Dict[str, Any]]:
    if not isinstance(value, dict):
        return None
    chart_type = value.get("type")
    chart_type = chart_type.strip().lower() if isinstance(chart_type, str) else None
    if chart_type not in _CHART_TYPES:
        return None
    raw_categories = value.get("categories", value.get("labels"))
    categories: List[str] = []
    if isinstance(raw_categories, list):
        categories = [c for c in (_scalar_text(v) for v in raw_categories) if c]
    series: List[Dict[str, Any]] = []
    for raw in value.get("series") or []:
        if not isinstance(raw, dict):
            continue
        name = _text(raw.get("name"))
        raw_data = raw.get("data", raw.get("values"))
        if not isinstance(raw_data, list):
            continue
        data = [n for n in (_number(v) for v in raw_data) if n is not None]
        if name and data:
            series.append({"name": name, "data": data})
    if not categories or not series:
        return None
    return {"type": chart_type, "categories": categories, "series": series}


def _timeline(value: Any) -> List[Dict[str, Any]]:
    if not isinstance(value, list):
        return []
    items: List[Dict[str, Any]] = []
    for raw in value:
        if not isinstance(raw, dict):
            continue
        date = _text(raw.get("date"))
        title = _text(raw.get("title"))
        if not date or not title:
            continue
        item: Dict[str, Any] = {"date": date, "title": title, "milestone": _boolish(raw.get("milestone"))}
        description = _text(raw.get("description"))
        if description:
            item["description"] = description
        items.append(item)
    return items


def _table(value: Any) -> Optional[Dict[str, Any]]:
    if not isinstance(value, dict):
        return None
    raw_columns = value.get("columns", value.get("headers"))
    if not isinstance(raw_columns, list):
        return None
    columns = [c for c in (_scalar_text(v) for v in raw_columns) if c]
    width = len(columns)
    rows: List[List[str]] = []
    for raw_row in value.get("rows") or []:
        if not isinstance(raw_row, list):
            continue
        cells = [_scalar_text(cell) or "" for cell in raw_row][:width]
        cells.extend([""] * (width - len(cells)))
        rows.append(cells)
    if not columns or not rows:
        return None
    return {"columns": columns, "rows": rows}


def _process_steps(value: Any) -> List[Dict[str, Any]]:
    if not isinstance(value, list):
        return []
    steps: List[Dict[str, Any]] = []
    for raw in value:
        if isinstance(raw, str):
            raw = {"title": raw}
        if not isinstance(raw, dict):
            continue
        title = _text(raw.get("title"))
        if not title:
            continue
        step: Dict[str, Any] = {"title": title}
        description = _text(raw.get("description"))
        if description:
            step["description"] = description
        steps.append(step)
    return steps


def _design(value: Any) -> Optional[Dict[str, Any]]:
    if not isinstance(value, dict):
        return None
    value = _camel_keys(value)
    design: Dict[str, Any] = {}
    for key in ("theme", "backgroundStyle"):
        text = _text(value.get(key))
        if text:
            design[key] = text
    accent = value.get("accentColor")
    if isinstance(accent, str) and _HEX_RE.match(accent):
        design["accentColor"] = accent
    if value.get("imageStyle") in _IMAGE_STYLES:
        design["imageStyle"] = value["imageStyle"]
    return design or None


def _title(value: Any) -> str:
    text = _text(value) if not isinstance(value, list) else ""
    return text or PLACEHOLDER_TITLE


def _layout(value: Any, repaired: Dict[str, Any]) -> str:
    if isinstance(value, str):
        normalised = value.strip().lower().replace("_", "-").replace(" ", "-")
        if normalised in _LAYOUT_VALUES:
            return normalised
    if repaired.get("bullets"):
        return Layout.TITLE_BULLETS.value
    if repaired.get("paragraph"):
        return Layout.TITLE_PARAGRAPH.value
    if repaired.get("chart"):
        return Layout.CHART.value
    if repaired.get("comparisonTable"):
        return Layout.COMPARISON_TABLE.value
    if repaired.get("quote"):
        return Layout.QUOTE.value
    if repaired.get("left") or repaired.get("right"):
        return Layout.TWO_COLUMN.value
    if repaired.get("timeline"):
        return Layout.TIMELINE.value
    if repaired.get("processSteps"):
        return Layout.PROCESS_FLOW.value
    return Layout.TITLE_PARAGRAPH.value


def recover(raw: Any) -> Any:
    """Return a repaired copy of ``raw`` for another validation pass."""

    data = raw
    if isinstance(data, list) and len(data) == 1 and isinstance(data[0], dict):
        data = data[0]
    if not isinstance(data, dict):
        return copy.deepcopy(raw)

    src = _camel_keys(data)
    repaired: Dict[str, Any] = {"title": _title(src.get("title"))}
    for key in _LIST_FIELDS:
        repaired[key] = _string_list(src.get(key))
    for key in _TEXT_FIELDS:
        repaired[key] = _text(src.get(key))
    repaired["left"] = _side(src.get("left"))
    repaired["right"] = _side(src.get("right"))
    repaired["contentItems"] = _content_items(src.get("contentItems"))
    repaired["chart"] = _chart(src.get("chart"))
    repaired["timeline"] = _timeline(src.get("timeline"))
    repaired["comparisonTable"] = _table(src.get("comparisonTable"))
    repaired["processSteps"] = _process_steps(src.get("processSteps"))
    repaired["design"] = _design(src.get("design"))
    repaired["layout"] = _layout(src.get("layout"), repaired)

    return {key: repaired[key] for key in _KNOWN_KEYS if repaired.get(key) is not None}


__all__ = ["PLACEHOLDER_TITLE", "recover"]
