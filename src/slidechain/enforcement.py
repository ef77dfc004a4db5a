"""Force a finished slide into exactly one content shape."""

from __future__ import annotations

from typing import Annotated, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter

from .models import ChartSpec, ComparisonTable, ContentType, FinalSpec, GenerationParams, Layout, SlideSpec


class BulletsShape(BaseModel):
    kind: Literal["bullets"] = "bullets"
    bullets: List[str] = Field(min_length=1)


class ParagraphShape(BaseModel):
    kind: Literal["paragraph"] = "paragraph"
    paragraph: str = Field(min_length=1)


class ChartShape(BaseModel):
    kind: Literal["chart"] = "chart"
    chart: ChartSpec


class TableShape(BaseModel):
    kind: Literal["table"] = "table"
    table: ComparisonTable


class QuoteShape(BaseModel):
    kind: Literal["quote"] = "quote"
    quote: str = Field(min_length=1)
    author: str = ""


ContentShape = Annotated[
    Union[BulletsShape, ParagraphShape, ChartShape, TableShape, QuoteShape],
    Field(discriminator="kind"),
]
_SHAPE_ADAPTER: TypeAdapter[ContentShape] = TypeAdapter(ContentShape)

_LAYOUT_FOR_SHAPE = {
    ContentType.BULLETS: Layout.TITLE_BULLETS,
    ContentType.PARAGRAPH: Layout.TITLE_PARAGRAPH,
    ContentType.CHART: Layout.CHART,
    ContentType.TABLE: Layout.COMPARISON_TABLE,
    ContentType.QUOTE: Layout.QUOTE,
}

_PLACEHOLDERS: Dict[ContentType, dict] = {
    ContentType.BULLETS: {
        "kind": "bullets",
        "bullets": [
            "Key point addressing the main topic with specific metrics",
            "Supporting evidence demonstrating measurable business impact",
            "Strategic initiative driving growth and operational efficiency",
        ],
    },
    ContentType.PARAGRAPH: {
        "kind": "paragraph",
        "paragraph": (
            "Our analysis highlights clear opportunities for growth through stronger customer "
            "engagement and data-driven decisions. These insights provide a foundation for "
            "sustainable advantage and measurable business impact."
        ),
    },
    ContentType.CHART: {
        "kind": "chart",
        "chart": {
            "type": "column",
            "categories": ["Q1", "Q2", "Q3", "Q4"],
            "series": [{"name": "Revenue", "data": [2.4, 3.1, 3.8, 4.5]}],
        },
    },
    ContentType.TABLE: {
        "kind": "table",
        "table": {
            "columns": ["Metric", "Q3", "Q4", "Growth"],
            "rows": [
                ["Revenue", "$2.1M", "$2.8M", "33%"],
                ["Customers", "1,200", "1,560", "30%"],
                ["Satisfaction", "87%", "94%", "8%"],
            ],
        },
    },
    ContentType.QUOTE: {
        "kind": "quote",
        "quote": "Innovation distinguishes between a leader and a follower.",
        "author": "Steve Jobs",
    },
}


def extract_shape(spec: SlideSpec, content_type: ContentType) -> Optional[ContentShape]:
    """Return the spec's content for ``content_type``, or None when it is empty."""

    if content_type is ContentType.BULLETS:
        bullets = [b for b in spec.bullets if b.strip()]
        return BulletsShape(bullets=bullets) if bullets else None
    if content_type is ContentType.PARAGRAPH:
        return ParagraphShape(paragraph=spec.paragraph) if spec.paragraph.strip() else None
    if content_type is ContentType.CHART:
        return ChartShape(chart=spec.chart) if spec.chart is not None else None
    if content_type is ContentType.TABLE:
        return TableShape(table=spec.comparison_table) if spec.comparison_table is not None else None
    if spec.quote.strip():
        return QuoteShape(quote=spec.quote, author=spec.author)
    return None


def placeholder_shape(content_type: ContentType) -> ContentShape:
    return _SHAPE_ADAPTER.validate_python(_PLACEHOLDERS[content_type])


def _shape_fields(shape: ContentShape) -> dict:
    cleared = {
        "bullets": [],
        "paragraph": "",
        "chart": None,
        "comparison_table": None,
        "quote": "",
        "author": "",
    }
    if isinstance(shape, BulletsShape):
        cleared["bullets"] = list(shape.bullets)
    elif isinstance(shape, ParagraphShape):
        cleared["paragraph"] = shape.paragraph
    elif isinstance(shape, ChartShape):
        cleared["chart"] = shape.chart.model_dump()
    elif isinstance(shape, TableShape):
        cleared["comparison_table"] = shape.table.model_dump()
    else:
        cleared["quote"] = shape.quote
        cleared["author"] = shape.author
    return cleared


def enforce(spec: SlideSpec, params: GenerationParams) -> FinalSpec:
    """Keep only the requested content shape (bullets by default).

    The chosen shape is filled with placeholder content when the spec has
    none, every other shape is cleared and the layout is set to match.
    """

    content_type = params.content_type or ContentType.BULLETS
    shape = extract_shape(spec, content_type) or placeholder_shape(content_type)

    data = spec.model_dump()
    data.update(_shape_fields(shape))
    data["layout"] = _LAYOUT_FOR_SHAPE[content_type]
    return FinalSpec.model_validate(data)


__all__ = [
    "BulletsShape",
    "ChartShape",
    "ContentShape",
    "ParagraphShape",
    "QuoteShape",
    "TableShape",
    "enforce",
    "extract_shape",
    "placeholder_shape",
]
