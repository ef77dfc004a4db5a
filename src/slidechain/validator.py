from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from .models import Layout, SlideSpec


@dataclass
class ValidationResult:
    ok: bool
    spec: Optional[SlideSpec] = None
    errors: List[str] = field(default_factory=list)


def _format_error(err: Dict[str, Any]) -> str:
    loc = err.get("loc") or ()
    path = ""
    for part in loc:
        if isinstance(part, int):
            path += f"[{part}]"
        else:
            path += f".{part}" if path else str(part)
    message = err.get("msg", "invalid value")
    if err.get("type") == "enum" and loc and loc[-1] == "layout":
        message = "layout must be one of: " + ", ".join(layout.value for layout in Layout)
    if err.get("type") == "extra_forbidden":
        message = "unexpected property"
    return f"{path or '<root>'}: {message}"


def validate(raw: Any) -> ValidationResult:
    """Validate an untyped object against the slide schema.

    Every violation is reported, not just the first, so recovery and logs can
    see the whole picture.
    """

    if not isinstance(raw, dict):
        return ValidationResult(ok=False, errors=[f"<root>: slide spec must be an object, got {type(raw).__name__}"])
    try:
        spec = SlideSpec.model_validate(raw)
    except ValidationError as exc:
        return ValidationResult(ok=False, errors=[_format_error(e) for e in exc.errors()])
    return ValidationResult(ok=True, spec=spec)


_ERROR_CATEGORIES = [
    (
        ("title",),
        "Missing Title",
        "The slide is missing a usable title.",
        "Ask for a 5-10 word title that summarises the slide.",
    ),
    (
        ("layout",),
        "Invalid Layout",
        "The layout is not one of the supported layout identifiers.",
        "Use one of the predefined layouts, e.g. title-bullets or title-paragraph.",
    ),
    (
        ("bullets",),
        "Invalid Bullets Format",
        "Bullets must be an array of strings, not a text block or objects.",
        'Format bullets as ["First point", "Second point"].',
    ),
    (
        ("paragraph",),
        "Invalid Paragraph Format",
        "Paragraph content must be a single string.",
        "Return the paragraph as one string.",
    ),
    (
        ("chart",),
        "Invalid Chart Data",
        "Chart data is malformed.",
        "Provide chart.type, chart.categories and chart.series[{name, data}].",
    ),
    (
        ("comparisonTable", "comparison_table"),
        "Invalid Table Data",
        "Comparison table is malformed.",
        "Provide columns and rows with one cell per column.",
    ),
]


def analyze_validation_errors(errors: List[str]) -> Dict[str, str]:
    """Map raw validation messages to a category with a suggested fix."""

    for prefixes, category, helpful, fix in _ERROR_CATEGORIES:
        for error in errors:
            if error.startswith(prefixes):
                return {"category": category, "helpfulMessage": helpful, "suggestedFix": fix}
    return {
        "category": "General Validation Error",
        "helpfulMessage": "The slide specification does not match the schema.",
        "suggestedFix": "Check required fields and value types against the SlideSpec schema.",
    }


__all__ = ["ValidationResult", "analyze_validation_errors", "validate"]
