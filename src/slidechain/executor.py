"""One model call for one stage: prompt, timeout, parse, validate, recover."""

from __future__ import annotations

import asyncio
import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, List, Optional

from .clients import ChatModelClient, Message
from .config import ModelSettings
from .errors import ClassifiedError, ResponseFormatError, SpecValidationError, classify
from .models import DesignHints, SlideSpec
from .prompts import SYSTEM_PROMPT
from .recovery import recover
from .validator import analyze_validation_errors, validate

logger = logging.getLogger(__name__)


@dataclass
class StageResult:
    """Outcome of a stage: a validated spec or a classified error, never both."""

    spec: Optional[SlideSpec] = None
    error: Optional[ClassifiedError] = None
    model: str = ""
    attempt: int = 0
    duration_s: float = 0.0
    recovered: bool = False
    degraded: bool = False

    @property
    def ok(self) -> bool:
        return self.spec is not None and self.error is None


def extract_json_payload(text: str) -> str:
    """Strip Markdown fences or surrounding prose to leave the raw JSON."""

    cleaned = text.strip()
    if cleaned.startswith("```"):
        cleaned = cleaned[3:]
        if cleaned.lower().startswith("json"):
            cleaned = cleaned[4:]
        cleaned = cleaned.rsplit("```", 1)[0]
    cleaned = cleaned.strip()
    if cleaned and cleaned[0] not in "{[":
        start, end = cleaned.find("{"), cleaned.rfind("}")
        if start != -1 and end > start:
            cleaned = cleaned[start : end + 1]
    return cleaned


def merge_design(spec: SlideSpec, overrides: Optional[DesignHints]) -> SlideSpec:
    if overrides is None:
        return spec
    merged = spec.design.model_dump(exclude_none=True) if spec.design is not None else {}
    merged.update(overrides.model_dump(exclude_none=True))
    return spec.model_copy(update={"design": DesignHints(**merged)})


class StageExecutor:
    def __init__(
        self,
        client: ChatModelClient,
        settings: ModelSettings,
        *,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._client = client
        self._settings = settings
        self._clock = clock

    def build_messages(self, prompt: str, prior: Optional[SlideSpec]) -> List[Message]:
        messages: List[Message] = [{"role": "system", "content": SYSTEM_PROMPT}]
        if prior is not None:
            messages.append({"role": "assistant", "content": prior.to_prompt_json()})
        messages.append({"role": "user", "content": prompt})
        return messages

    async def complete_json(self, messages: List[Message], *, model: str, timeout_s: float, label: str = "") -> Any:
        """Call the model under ``timeout_s`` and parse its answer as JSON.

        Raises ``asyncio.TimeoutError``, provider exceptions or
        ``ResponseFormatError``; callers classify them.
        """

        started = self._clock()
        completion = await asyncio.wait_for(
            self._client.complete(
                messages,
                model=model,
                temperature=self._settings.temperature,
                max_tokens=self._settings.max_tokens,
            ),
            timeout=timeout_s,
        )
        logger.info(
            "%s call to %s finished in %.2fs (prompt_tokens=%s completion_tokens=%s finish_reason=%s)",
            label or "Model",
            model,
            self._clock() - started,
            completion.usage.get("prompt_tokens", "?"),
            completion.usage.get("completion_tokens", "?"),
            completion.finish_reason,
        )

        text = (completion.text or "").strip()
        if not text:
            raise ResponseFormatError(f"{model} returned an empty response")
        payload = extract_json_payload(text)
        try:
            return json.loads(payload)
        except json.JSONDecodeError as exc:
            raise ResponseFormatError(f"{model} returned invalid JSON: {exc.msg} at position {exc.pos}") from exc

    def _validate_or_recover(self, stage: str, data: Any) -> tuple[SlideSpec, bool]:
        result = validate(data)
        if result.ok and result.spec is not None:
            return result.spec, False

        analysis = analyze_validation_errors(result.errors)
        logger.warning(
            "%s: response failed validation (%s, %d error(s): %s); attempting recovery. %s",
            stage,
            analysis["category"],
            len(result.errors),
            "; ".join(result.errors[:3]),
            analysis["suggestedFix"],
        )
        result = validate(recover(data))
        if not result.ok or result.spec is None:
            raise SpecValidationError(result.errors)
        logger.info("%s: recovered a schema-valid spec", stage)
        return result.spec, True

    async def execute(
        self,
        stage: str,
        prompt: str,
        prior: Optional[SlideSpec],
        *,
        model: str,
        timeout_s: float,
        attempt: int,
        design: Optional[DesignHints] = None,
    ) -> StageResult:
        """Run one attempt of ``stage`` and return its result as a value."""

        started = self._clock()
        messages = self.build_messages(prompt, prior)
        try:
            data = await self.complete_json(messages, model=model, timeout_s=timeout_s, label=stage)
            spec, recovered = self._validate_or_recover(stage, data)
        except Exception as exc:
            error = classify(exc, stage=stage, attempt=attempt, timeout_s=timeout_s)
            return StageResult(
                error=error,
                model=model,
                attempt=attempt,
                duration_s=self._clock() - started,
            )

        return StageResult(
            spec=merge_design(spec, design),
            model=model,
            attempt=attempt,
            duration_s=self._clock() - started,
            recovered=recovered,
        )


__all__ = ["StageExecutor", "StageResult", "extract_json_payload", "merge_design"]
