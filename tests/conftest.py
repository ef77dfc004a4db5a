"""Shared fixtures: a scripted chat client and a sleep that only records."""

import asyncio
import json
import re
from dataclasses import dataclass
from typing import Any, Dict, List

import pytest

from slidechain.clients import ChatCompletion
from slidechain.config import ModelSettings
from slidechain.pipeline import SlidePipeline

HANG = object()

VALID_CONTENT = {
    "title": "Launch Plan Drives 20% Pipeline Growth",
    "layout": "title-bullets",
    "bullets": [
        "Beta customers report 30% faster onboarding",
        "Pricing tiers align with enterprise budgets",
        "Launch campaign targets three key verticals",
    ],
    "notes": "Open with the customer story.",
}

_STAGE_MARKERS = [
    ("batch", "## BATCH IMAGE PROMPT GENERATION"),
    ("content", "## CONTENT GENERATION"),
    ("layout", "## LAYOUT REFINEMENT"),
    ("image", "## IMAGE PROMPT GENERATION"),
    ("refinement", "## FINAL REFINEMENT"),
]


def stage_of(messages: List[Dict[str, str]]) -> str:
    prompt = messages[-1]["content"]
    for stage, marker in _STAGE_MARKERS:
        if marker in prompt:
            return stage
    return "unknown"


@dataclass
class Call:
    stage: str
    model: str
    messages: List[Dict[str, str]]


class FakeChatClient:
    """Answers per stage from scripted steps, then falls back to sane defaults.

    A step is a dict/list (sent as JSON), a str (sent verbatim), an exception
    instance (raised) or ``HANG`` (never answers).
    """

    provider = "fake"

    def __init__(self, **scripts: List[Any]):
        self.scripts = {stage: list(steps) for stage, steps in scripts.items()}
        self.calls: List[Call] = []
        self.closed = False

    def calls_for(self, stage: str) -> List[Call]:
        return [call for call in self.calls if call.stage == stage]

    def _default(self, stage: str, messages: List[Dict[str, str]]) -> Any:
        if stage == "content":
            return VALID_CONTENT
        if stage == "batch":
            count = int(re.search(r"for (\d+) slides", messages[-1]["content"]).group(1))
            return {"imagePrompts": [f"Minimal office scene number {i + 1}" for i in range(count)]}
        prior = [m for m in messages if m["role"] == "assistant"]
        return prior[-1]["content"] if prior else VALID_CONTENT

    async def complete(self, messages, *, model, temperature, max_tokens):
        stage = stage_of(messages)
        self.calls.append(Call(stage, model, messages))
        queue = self.scripts.get(stage)
        step = queue.pop(0) if queue else self._default(stage, messages)
        if step is HANG:
            await asyncio.sleep(3600)
        if isinstance(step, BaseException):
            raise step
        text = step if isinstance(step, str) else json.dumps(step)
        return ChatCompletion(
            text=text,
            usage={"prompt_tokens": 100, "completion_tokens": 50, "total_tokens": 150},
            finish_reason="stop",
        )

    async def close(self):
        self.closed = True


class RecordingSleep:
    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture
def settings():
    return ModelSettings(
        primary_model="primary-model",
        fallback_model="fallback-model",
        max_retries=3,
        base_delay_s=0.4,
        max_backoff_s=8.0,
        timeout_s=0.05,
    )


@pytest.fixture
def sleep():
    return RecordingSleep()


@pytest.fixture
def make_pipeline(settings, sleep):
    def factory(client, **overrides):
        attempts = []
        pipeline = SlidePipeline(
            client,
            settings.with_overrides(**overrides) if overrides else settings,
            sleep=sleep,
            attempt_listener=attempts.append,
        )
        pipeline.attempts = attempts
        return pipeline

    return factory
