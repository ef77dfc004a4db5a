"""Pydantic models for generation parameters and slide specifications."""

from __future__ import annotations

import json
from dataclasses import dataclass
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional

from pydantic import (
    AfterValidator,
    BaseModel,
    ConfigDict,
    Field,
    StringConstraints,
    model_validator,
)
from pydantic.alias_generators import to_camel


def _not_blank(value: str) -> str:
    if not value.strip():
        raise ValueError("must be a non-empty string")
    return value


NonBlankStr = Annotated[str, AfterValidator(_not_blank)]
HexColor = Annotated[str, StringConstraints(pattern=r"^#[0-9a-fA-F]{6}$")]


class Layout(str, Enum):
    TITLE = "title"
    TITLE_BULLETS = "title-bullets"
    TITLE_PARAGRAPH = "title-paragraph"
    TWO_COLUMN = "two-column"
    IMAGE_RIGHT = "image-right"
    IMAGE_LEFT = "image-left"
    QUOTE = "quote"
    CHART = "chart"
    TIMELINE = "timeline"
    PROCESS_FLOW = "process-flow"
    COMPARISON_TABLE = "comparison-table"
    BEFORE_AFTER = "before-after"
    PROBLEM_SOLUTION = "problem-solution"
    MIXED_CONTENT = "mixed-content"
    METRICS_DASHBOARD = "metrics-dashboard"
    THANK_YOU = "thank-you"


class ContentType(str, Enum):
    """The five mutually exclusive content shapes a final slide can carry."""

    BULLETS = "bullets"
    PARAGRAPH = "paragraph"
    CHART = "chart"
    TABLE = "table"
    QUOTE = "quote"


ChartType = Literal["bar", "line", "pie", "column", "area"]
Tone = Literal["professional", "casual", "friendly", "executive", "technical", "persuasive", "inspiring"]
ContentLength = Literal["short", "medium", "long"]


class WireModel(BaseModel):
    """Base for schema types: camelCase on the wire, unknown keys rejected."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="forbid",
    )


class SlideSide(WireModel):
    title: Optional[str] = None
    bullets: List[str] = Field(default_factory=list)
    paragraph: str = ""


class ContentItem(WireModel):
    type: Literal["text", "bullet", "number", "icon", "metric"]
    content: NonBlankStr
    emphasis: Optional[Literal["normal", "bold", "italic", "highlight"]] = None
    color: Optional[HexColor] = None
    icon_name: Optional[str] = None


class ChartSeries(WireModel):
    name: NonBlankStr
    data: List[float] = Field(min_length=1)


class ChartSpec(WireModel):
    type: ChartType
    categories: List[NonBlankStr] = Field(min_length=1)
    series: List[ChartSeries] = Field(min_length=1)


class TimelineItem(WireModel):
    date: NonBlankStr
    title: NonBlankStr
    description: Optional[str] = None
    milestone: bool = False


class ComparisonTable(WireModel):
    columns: List[NonBlankStr] = Field(min_length=1)
    rows: List[List[str]] = Field(min_length=1)

    @model_validator(mode="after")
    def _rows_match_columns(self) -> "ComparisonTable":
        width = len(self.columns)
        for idx, row in enumerate(self.rows):
            if len(row) != width:
                raise ValueError(f"rows[{idx}] has {len(row)} cells, expected {width} to match columns")
        return self


class ProcessStep(WireModel):
    title: NonBlankStr
    description: Optional[str] = None


class DesignHints(WireModel):
    theme: Optional[str] = None
    accent_color: Optional[HexColor] = None
    background_style: Optional[str] = None
    image_style: Optional[Literal["photo", "illustration", "isometric"]] = None


class SlideSpec(WireModel):
    """A (possibly partial) slide specification returned by one stage."""

    title: NonBlankStr
    layout: Layout
    bullets: List[str] = Field(default_factory=list)
    paragraph: str = ""
    left: Optional[SlideSide] = None
    right: Optional[SlideSide] = None
    content_items: List[ContentItem] = Field(default_factory=list)
    image_prompt: str = ""
    notes: str = ""
    sources: List[str] = Field(default_factory=list)
    chart: Optional[ChartSpec] = None
    timeline: List[TimelineItem] = Field(default_factory=list)
    comparison_table: Optional[ComparisonTable] = None
    process_steps: List[ProcessStep] = Field(default_factory=list)
    quote: str = ""
    author: str = ""
    design: Optional[DesignHints] = None

    def populated_shapes(self) -> List[ContentType]:
        shapes: List[ContentType] = []
        if self.bullets:
            shapes.append(ContentType.BULLETS)
        if self.paragraph.strip():
            shapes.append(ContentType.PARAGRAPH)
        if self.chart is not None:
            shapes.append(ContentType.CHART)
        if self.comparison_table is not None:
            shapes.append(ContentType.TABLE)
        if self.quote.strip():
            shapes.append(ContentType.QUOTE)
        return shapes

    def to_payload(self) -> Dict[str, Any]:
        """Camel-cased JSON-able dict with empty optional fields dropped."""

        return self.model_dump(mode="json", by_alias=True, exclude_defaults=True)

    def to_prompt_json(self) -> str:
        return json.dumps(self.to_payload(), indent=2, ensure_ascii=False)


class FinalSpec(SlideSpec):
    """A slide specification carrying exactly one content shape."""

    @model_validator(mode="after")
    def _exactly_one_shape(self) -> "FinalSpec":
        shapes = self.populated_shapes()
        if len(shapes) != 1:
            found = ", ".join(s.value for s in shapes) or "none"
            raise ValueError(f"exactly one content shape must be populated (found: {found})")
        return self


class Brand(WireModel):
    primary_color: Optional[HexColor] = None
    secondary_color: Optional[HexColor] = None
    font: Optional[str] = None


_COMPONENT_ALIASES = {
    "bulletList": ContentType.BULLETS,
    "bullets": ContentType.BULLETS,
    "paragraph": ContentType.PARAGRAPH,
    "chart": ContentType.CHART,
    "table": ContentType.TABLE,
    "quote": ContentType.QUOTE,
}


class GenerationParams(WireModel):
    """Caller intent for one pipeline run."""

    model_config = ConfigDict(frozen=True)

    prompt: Annotated[str, StringConstraints(strip_whitespace=True, min_length=3, max_length=2000)]
    audience: Optional[Annotated[str, StringConstraints(max_length=200)]] = None
    tone: Optional[Tone] = None
    content_length: Optional[ContentLength] = None
    content_type: Optional[ContentType] = None
    with_image: bool = False
    language: Optional[str] = None
    brand: Optional[Brand] = None
    design: Optional[DesignHints] = None

    @model_validator(mode="before")
    @classmethod
    def _components_to_content_type(cls, data: Any) -> Any:
        # Older clients send {"components": {"chart": true, ...}}
        if not isinstance(data, dict) or "components" not in data:
            return data
        data = dict(data)
        components = data.pop("components") or {}
        if not isinstance(components, dict):
            raise ValueError("components must be an object of booleans")
        enabled = [name for name, flag in components.items() if flag]
        if len(enabled) > 1:
            raise ValueError(f"at most one content component may be selected, got {enabled}")
        if enabled:
            name = enabled[0]
            if name not in _COMPONENT_ALIASES:
                raise ValueError(f"unknown content component {name!r}")
            if data.get("content_type") or data.get("contentType"):
                raise ValueError("pass either components or content_type, not both")
            data["content_type"] = _COMPONENT_ALIASES[name]
        return data


class AttemptRole(str, Enum):
    PRIMARY = "primary"
    FALLBACK = "fallback"


@dataclass(frozen=True)
class StageAttempt:
    """One execution of a stage against one model; logged then discarded."""

    stage: str
    attempt: int
    model: str
    role: AttemptRole
    duration_s: float
    outcome: str


__all__ = [
    "AttemptRole",
    "Brand",
    "ChartSeries",
    "ChartSpec",
    "ComparisonTable",
    "ContentItem",
    "ContentType",
    "DesignHints",
    "FinalSpec",
    "GenerationParams",
    "Layout",
    "ProcessStep",
    "SlideSide",
    "SlideSpec",
    "StageAttempt",
    "TimelineItem",
    "WireModel",
]
