"""Deterministic stand-in content used when the model cannot deliver."""

from __future__ import annotations

import re
from typing import List, Optional, Tuple

from .models import DesignHints, Layout, SlideSpec

FALLBACK_SOURCES = ["Structured fallback content generation"]

_KEY_TERMS_RE = re.compile(
    r"\b(?:revenue|growth|performance|results|analysis|strategy|improvement|increase|decrease)\b|\d+%|\$[\d,]+",
    re.IGNORECASE,
)

# (keywords, bullets, paragraph); first match wins
_TOPIC_CONTENT: List[Tuple[Tuple[str, ...], List[str], str]] = [
    (
        ("revenue", "sales", "growth"),
        ["Revenue performance & key metrics", "Growth trends & opportunities", "Strategic recommendations"],
        "This slide focuses on revenue and growth analysis: performance metrics, market trends, and strategic opportunities.",
    ),
    (
        ("team", "people", "organization"),
        ["Team structure & roles", "Core responsibilities", "Collaboration strategies"],
        "This slide outlines team structure, roles, and collaboration patterns to achieve objectives efficiently.",
    ),
    (
        ("data", "analytics", "metrics"),
        ["KPIs & analysis", "Insights and trends", "Data-informed next steps"],
        "This slide presents KPIs and insights that inform strategic decision-making and prioritization.",
    ),
    (
        ("strategy", "plan", "roadmap"),
        ["Objectives & initiatives", "Timeline & milestones", "Success metrics"],
        "This slide frames strategic objectives, implementation approach, milestones, and success measurement criteria.",
    ),
    (
        ("problem", "challenge", "issue"),
        ["Root-cause analysis", "Impact assessment", "Mitigation strategies"],
        "This slide identifies key challenges, explores root causes, and proposes practical mitigation strategies.",
    ),
]

_DEFAULT_CONTENT = (
    ["Key points & objectives", "Current status updates", "Next steps & owners"],
    "This slide summarizes key points, current status, and actionable next steps to maintain momentum.",
)

_IMAGE_SCENES: List[Tuple[Tuple[str, ...], str]] = [
    (("team", "people", "collaboration"), "diverse team collaborating in a modern office, natural lighting, candid perspective"),
    (("data", "analytics", "chart"), "clean data dashboard aesthetics, subtle graphs, depth-of-field, neutral palette"),
    (("growth", "success", "increase"), "symbolic upward momentum, abstract ascending lines and arrows, optimistic composition"),
    (("technology", "digital", "innovation"), "sleek technology interface visuals, soft bokeh lights, futuristic yet business-credible"),
    (("strategy", "plan", "roadmap"), "strategic planning ambience, table with documents, subtle roadmap iconography"),
]
_DEFAULT_SCENE = "clean corporate environment, minimalist modern office, balanced negative space"


def fallback_title(prompt: str) -> str:
    title = " ".join(prompt.split())
    if len(title) > 60:
        terms = [m.group(0) for m in _KEY_TERMS_RE.finditer(title)]
        title = f"{' '.join(terms[:3])} Overview" if terms else title[:57].rstrip() + "..."
    if not title:
        return "Untitled Slide"
    return title[0].upper() + title[1:]


def fallback_content(prompt: str) -> Tuple[List[str], str]:
    lowered = prompt.lower()
    for keywords, bullets, paragraph in _TOPIC_CONTENT:
        if any(word in lowered for word in keywords):
            return list(bullets), paragraph
    bullets, paragraph = _DEFAULT_CONTENT
    return list(bullets), paragraph


def fallback_notes(prompt: str) -> str:
    return (
        "FALLBACK CONTENT: this slide was generated from a template because the model "
        "could not produce a usable answer.\n\n"
        f'Original request: "{prompt}"\n\n'
        "- Use the bullets as a scaffold and add domain examples\n"
        "- Add data or proof points where possible\n"
        "- Re-run generation once the model is available"
    )


def placeholder_spec(prompt: str, design: Optional[DesignHints] = None) -> SlideSpec:
    """Build a minimal, schema-valid slide from the raw prompt text."""

    bullets, paragraph = fallback_content(prompt)
    return SlideSpec(
        title=fallback_title(prompt),
        layout=Layout.TITLE_BULLETS,
        bullets=bullets,
        paragraph=paragraph,
        notes=fallback_notes(prompt),
        sources=list(FALLBACK_SOURCES),
        design=design,
    )


def fallback_image_prompt(spec: SlideSpec) -> str:
    content = spec.paragraph or " ".join(spec.bullets)
    haystack = f"{spec.title} {content} {spec.layout.value}".lower()
    scene = _DEFAULT_SCENE
    for keywords, candidate in _IMAGE_SCENES:
        if any(word in haystack for word in keywords):
            scene = candidate
            break
    accent = ""
    if spec.design is not None and spec.design.accent_color:
        accent = f", hint of {spec.design.accent_color}"
    return f"Professional business slide background, {scene}{accent}, high resolution, editorial style, no text in image"


__all__ = [
    "FALLBACK_SOURCES",
    "fallback_content",
    "fallback_image_prompt",
    "fallback_notes",
    "fallback_title",
    "placeholder_spec",
]
