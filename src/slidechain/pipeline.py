"""Chained four-stage slide generation."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, List, Optional, Sequence, Union

from .clients import ChatModelClient, build_client
from .config import ModelSettings
from .controller import AttemptListener, RetryController, Sleep, Stage
from .enforcement import enforce
from .errors import ClassifiedError, classify
from .executor import StageExecutor
from .fallbacks import fallback_image_prompt
from .models import DesignHints, FinalSpec, GenerationParams
from .prompts import SYSTEM_PROMPT, batch_image_prompt, content_prompt, image_prompt, layout_prompt, refinement_prompt

logger = logging.getLogger(__name__)

PromptBuilder = Callable[[GenerationParams], str]

STAGES: Sequence[tuple[Stage, PromptBuilder]] = (
    (Stage.CONTENT, content_prompt),
    (Stage.LAYOUT, layout_prompt),
    (Stage.IMAGE, image_prompt),
    (Stage.REFINEMENT, refinement_prompt),
)

BATCH_IMAGE_LABEL = "Batch Image Prompts"


def design_overrides(params: GenerationParams) -> Optional[DesignHints]:
    """Caller design hints, with the brand colour as accent when none is given."""

    hints = params.design.model_dump(exclude_none=True) if params.design is not None else {}
    if params.brand is not None and params.brand.primary_color and "accent_color" not in hints:
        hints["accent_color"] = params.brand.primary_color
    return DesignHints(**hints) if hints else None


def _parse_image_prompts(data: Any, count: int) -> List[Optional[str]]:
    items: Any = data.get("imagePrompts") if isinstance(data, dict) else data
    prompts: List[Optional[str]] = [None] * count
    if not isinstance(items, list):
        return prompts
    for idx, item in enumerate(items[:count]):
        if isinstance(item, dict):
            item = item.get("imagePrompt")
        if isinstance(item, str) and item.strip():
            prompts[idx] = item.strip()
    return prompts


class SlidePipeline:
    """Runs content, layout, image-prompt and refinement stages in order.

    Each stage sees only the previous stage's spec. The first stage that
    fails terminally aborts the run; earlier results are discarded.
    """

    def __init__(
        self,
        client: ChatModelClient,
        settings: ModelSettings,
        *,
        sleep: Sleep = asyncio.sleep,
        attempt_listener: Optional[AttemptListener] = None,
    ):
        self.settings = settings
        self._client = client
        self._executor = StageExecutor(client, settings)
        self._controller = RetryController(
            self._executor,
            settings,
            sleep=sleep,
            attempt_listener=attempt_listener,
        )

    @classmethod
    def from_env(cls) -> "SlidePipeline":
        settings = ModelSettings.from_env()
        return cls(build_client(settings), settings)

    async def close(self) -> None:
        await self._client.close()

    async def run(self, params: GenerationParams) -> Union[FinalSpec, ClassifiedError]:
        """Like ``generate`` but returns the terminal error instead of raising it."""

        design = design_overrides(params)
        spec = None
        degraded = False
        for stage, build_prompt in STAGES:
            if stage is Stage.IMAGE and not params.with_image:
                logger.debug("Skipping %s: images disabled", stage.label)
                continue
            result = await self._controller.run_stage(stage, build_prompt(params), spec, params, design=design)
            if not result.ok:
                return result.error
            spec = result.spec
            degraded = degraded or result.degraded

        final = enforce(spec, params)
        logger.info(
            "Generated slide %r (layout=%s, content=%s%s)",
            final.title,
            final.layout.value,
            final.populated_shapes()[0].value,
            ", degraded" if degraded else "",
        )
        return final

    async def generate(self, params: GenerationParams) -> FinalSpec:
        result = await self.run(params)
        if isinstance(result, ClassifiedError):
            raise result
        return result

    async def generate_batch(self, params: GenerationParams, slide_count: int) -> List[FinalSpec]:
        """Generate ``slide_count`` slides concurrently for one topic.

        Any slide failure cancels the remaining runs and raises its error.
        When images are requested they are written in one cohesive batch call.
        """

        if slide_count < 1:
            raise ValueError("slide_count must be at least 1")
        semaphore = asyncio.Semaphore(self.settings.batch_concurrency)

        async def one(index: int) -> FinalSpec:
            slide_params = params.model_copy(
                update={"prompt": f"{params.prompt} - Slide {index} of {slide_count}", "with_image": False}
            )
            async with semaphore:
                return await self.generate(slide_params)

        tasks = [asyncio.create_task(one(i)) for i in range(1, slide_count + 1)]
        try:
            await asyncio.wait(tasks, return_when=asyncio.FIRST_EXCEPTION)
        finally:
            pending = [task for task in tasks if not task.done()]
            for task in pending:
                task.cancel()
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)

        failures = [task.exception() for task in tasks if not task.cancelled() and task.exception() is not None]
        if failures:
            logger.error("Batch of %d slides aborted: %s", slide_count, failures[0])
            raise failures[0]
        specs = [task.result() for task in tasks]

        if params.with_image:
            specs = await self._attach_image_prompts(params, specs)
        return specs

    async def _attach_image_prompts(self, params: GenerationParams, specs: List[FinalSpec]) -> List[FinalSpec]:
        messages = [
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": batch_image_prompt(params, specs)},
        ]
        prompts: List[Optional[str]] = [None] * len(specs)
        try:
            data = await self._executor.complete_json(
                messages,
                model=self.settings.primary_model,
                timeout_s=self.settings.timeout_s,
                label=BATCH_IMAGE_LABEL,
            )
            prompts = _parse_image_prompts(data, len(specs))
        except Exception as exc:
            error = classify(exc, stage=BATCH_IMAGE_LABEL, attempt=1, timeout_s=self.settings.timeout_s)
            logger.warning("%s; using fallback image prompts", error)

        missing = sum(1 for prompt in prompts if prompt is None)
        if missing:
            logger.info("Using fallback image prompts for %d of %d slides", missing, len(specs))
        return [
            spec.model_copy(update={"image_prompt": prompt or fallback_image_prompt(spec)})
            for spec, prompt in zip(specs, prompts)
        ]


__all__ = ["STAGES", "SlidePipeline", "design_overrides"]
