"""Prompt text for the four generation stages and batch image prompts."""

from __future__ import annotations

from typing import List, Sequence

from .models import ContentType, GenerationParams, Layout, SlideSpec

SYSTEM_PROMPT: str = """
You are an expert presentation architect. You turn rough ideas into clear,
outcome-focused slide content for business audiences.

## Quality bar
- Titles: 15-60 characters, specific, outcome-focused.
- Bullets: 3-5 bullets, 12-20 words each, active voice, concrete metrics.
- Prefer realistic ranges and timeframes over invented precision.
- Every word must earn its place; no filler.

## Output contract
- Respond with a single JSON object and nothing else (no Markdown, no prose).
- Use only the fields of the SlideSpec schema described below.
- When you are given a previous version of the slide, improve it; never drop
  content the user asked for.
""".strip()

SCHEMA_HINT: str = """
SlideSpec fields (camelCase):
  title (string, required, non-empty)
  layout (one of: {layouts})
  bullets (array of strings)
  paragraph (string)
  left / right ({{"title", "bullets", "paragraph"}} for two-column layouts)
  contentItems (array of {{"type": text|bullet|number|icon|metric, "content"}})
  imagePrompt (string)
  notes (string, speaker notes)
  sources (array of strings)
  chart ({{"type": bar|line|pie|column|area, "categories": [...], "series": [{{"name", "data": [numbers]}}]}})
  timeline (array of {{"date", "title", "description", "milestone"}})
  comparisonTable ({{"columns": [...], "rows": [[cell per column], ...]}})
  processSteps (array of {{"title", "description"}})
  quote (string), author (string)
  design ({{"theme", "accentColor": "#RRGGBB", "backgroundStyle", "imageStyle": photo|illustration|isometric}})
""".strip().format(layouts=", ".join(layout.value for layout in Layout))

_LENGTH_GUIDANCE = {
    "short": "Keep it tight: 2-3 bullets or a 50-100 word paragraph.",
    "medium": "Aim for 3-5 bullets or a 100-200 word paragraph.",
    "long": "Go deeper: 5-6 bullets or a 200-300 word paragraph, plus thorough notes.",
}

_SHAPE_GUIDANCE = {
    ContentType.BULLETS: 'Put the main content in "bullets".',
    ContentType.PARAGRAPH: 'Put the main content in a single "paragraph".',
    ContentType.CHART: 'Put the main content in "chart" with realistic categories and numeric series.',
    ContentType.TABLE: 'Put the main content in "comparisonTable"; every row needs one cell per column.',
    ContentType.QUOTE: 'Put the main content in "quote" with its "author".',
}


def _context(params: GenerationParams) -> str:
    lines = [f'Topic: "{params.prompt}"']
    lines.append(f"Audience: {params.audience or 'general business audience'}")
    lines.append(f"Tone: {params.tone or 'professional'}")
    lines.append(f"Length: {_LENGTH_GUIDANCE[params.content_length or 'medium']}")
    if params.language:
        lines.append(f"Write all slide text in {params.language}.")
    if params.content_type is not None:
        lines.append(_SHAPE_GUIDANCE[params.content_type])
    if params.brand is not None and params.brand.font:
        lines.append(f"Brand font: {params.brand.font}")
    return "\n".join(lines)


def content_prompt(params: GenerationParams) -> str:
    return f"""
## CONTENT GENERATION
Write the content for one slide.

{_context(params)}

Return a JSON object with at least "title", "layout" (use "title-bullets" or
"title-paragraph"; the layout is refined in the next step), the main content,
"notes" with speaker guidance, and "sources" when facts need attribution.

{SCHEMA_HINT}
""".strip()


def layout_prompt(params: GenerationParams) -> str:
    image = "An image will accompany this slide; prefer image-left or image-right when it helps." if params.with_image else "No image; choose a text or data layout."
    return f"""
## LAYOUT REFINEMENT
The previous message holds the current slide JSON. Choose the layout that
best fits its content and restructure the fields to match (for example move
paired content into "left"/"right" for two-column, or data into "chart").

{_context(params)}
{image}

Return the complete updated slide as one JSON object.

{SCHEMA_HINT}
""".strip()


def image_prompt(params: GenerationParams) -> str:
    style = "professional photography"
    if params.design is not None and params.design.image_style:
        style = params.design.image_style
    return f"""
## IMAGE PROMPT GENERATION
The previous message holds the current slide JSON. Write "imagePrompt": a
20-200 character description of one image that reinforces the slide's key
message. Style: {style}. No text, logos or watermarks in the image.

{_context(params)}

Return the complete slide JSON with "imagePrompt" filled in; keep every
other field unchanged.
""".strip()


def refinement_prompt(params: GenerationParams) -> str:
    return f"""
## FINAL REFINEMENT
The previous message holds the current slide JSON. Polish it: tighten the
title, make bullets parallel and specific, fix grammar, and make sure the
notes help the speaker. Do not change the layout unless it is clearly wrong.

{_context(params)}

Return the complete final slide as one JSON object.

{SCHEMA_HINT}
""".strip()


def batch_image_prompt(params: GenerationParams, specs: Sequence[SlideSpec]) -> str:
    summaries: List[str] = [
        f'Slide {idx + 1}: "{spec.title}" ({spec.layout.value})' for idx, spec in enumerate(specs)
    ]
    slides = "\n".join(summaries)
    return f"""
## BATCH IMAGE PROMPT GENERATION
Write cohesive image prompts for {len(specs)} slides of one presentation.
The images must share one visual style and suit the audience.

Topic: "{params.prompt}"
Audience: {params.audience or 'general business audience'}
Tone: {params.tone or 'professional'}

Slides:
{slides}

Return a JSON object {{"imagePrompts": ["...", ...]}} with exactly
{len(specs)} strings, one per slide in order, each 20-200 characters.
""".strip()


__all__ = [
    "SCHEMA_HINT",
    "SYSTEM_PROMPT",
    "batch_image_prompt",
    "content_prompt",
    "image_prompt",
    "layout_prompt",
    "refinement_prompt",
]
