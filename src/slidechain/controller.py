"""Per-stage retry, backoff and fallback-model escalation."""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Awaitable, Callable, Optional

from .config import ModelSettings
from .errors import ClassifiedError, ErrorKind
from .executor import StageExecutor, StageResult, merge_design
from .fallbacks import placeholder_spec
from .models import AttemptRole, DesignHints, GenerationParams, SlideSpec, StageAttempt

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]
AttemptListener = Callable[[StageAttempt], None]


class Stage(str, Enum):
    CONTENT = "content"
    LAYOUT = "layout"
    IMAGE = "image"
    REFINEMENT = "refinement"

    @property
    def label(self) -> str:
        return _STAGE_LABELS[self]


_STAGE_LABELS = {
    Stage.CONTENT: "Content Generation",
    Stage.LAYOUT: "Layout Refinement",
    Stage.IMAGE: "Image Prompt Generation",
    Stage.REFINEMENT: "Final Refinement",
}


def backoff(attempt: int, settings: ModelSettings) -> float:
    """Delay before retrying after failed ``attempt`` (1-based), capped."""

    if attempt < 1:
        raise ValueError("attempt numbers start at 1")
    return min(settings.base_delay_s * 2 ** (attempt - 1), settings.max_backoff_s)


class RetryController:
    """Drives one stage through primary retries and a single fallback attempt.

    Validation and content-policy failures skip primary retries; Unknown
    failures are retried once. When every model fails, the content stage
    degrades to a placeholder built from the prompt (unless the failure was a
    content-policy rejection); other stages return the terminal error.
    """

    def __init__(
        self,
        executor: StageExecutor,
        settings: ModelSettings,
        *,
        sleep: Sleep = asyncio.sleep,
        attempt_listener: Optional[AttemptListener] = None,
    ):
        self._executor = executor
        self._settings = settings
        self._sleep = sleep
        self._attempt_listener = attempt_listener

    def _retry_delay(self, error: ClassifiedError, attempt: int) -> float:
        if error.kind is ErrorKind.RATE_LIMIT and error.retry_after is not None:
            return min(error.retry_after, self._settings.max_backoff_s)
        return backoff(attempt, self._settings)

    async def _attempt(
        self,
        stage: Stage,
        prompt: str,
        prior: Optional[SlideSpec],
        model: str,
        attempt: int,
        role: AttemptRole,
        design: Optional[DesignHints],
    ) -> StageResult:
        result = await self._executor.execute(
            stage.label,
            prompt,
            prior,
            model=model,
            timeout_s=self._settings.timeout_s,
            attempt=attempt,
            design=design,
        )
        record = StageAttempt(
            stage=stage.value,
            attempt=attempt,
            model=model,
            role=role,
            duration_s=result.duration_s,
            outcome="success" if result.ok else result.error.kind.value,
        )
        logger.debug("Stage attempt: %s", record)
        if self._attempt_listener is not None:
            self._attempt_listener(record)
        return result

    async def run_stage(
        self,
        stage: Stage,
        prompt: str,
        prior: Optional[SlideSpec],
        params: GenerationParams,
        *,
        design: Optional[DesignHints] = None,
    ) -> StageResult:
        settings = self._settings
        last: Optional[StageResult] = None
        unknown_retried = False
        escalation_delay: Optional[float] = None

        for attempt in range(1, settings.max_retries + 1):
            result = await self._attempt(
                stage, prompt, prior, settings.primary_model, attempt, AttemptRole.PRIMARY, design
            )
            if result.ok:
                return result
            last = result
            error = result.error
            if not error.retryable:
                logger.warning("%s: %s failure is not retryable, skipping primary retries", stage.label, error.kind.value)
                break
            delay = self._retry_delay(error, attempt)
            exhausted = attempt == settings.max_retries or (error.kind is ErrorKind.UNKNOWN and unknown_retried)
            if error.kind is ErrorKind.UNKNOWN:
                unknown_retried = True
            if exhausted:
                # transient failures also back off before the fallback attempt
                escalation_delay = delay
                break
            logger.warning(
                "%s attempt %d/%d on %s failed (%s): %s; retrying in %.2fs",
                stage.label,
                attempt,
                settings.max_retries,
                settings.primary_model,
                error.kind.value,
                error.message,
                delay,
            )
            await self._sleep(delay)

        if settings.has_fallback:
            logger.warning(
                "%s: escalating to fallback model %s after %s on %s",
                stage.label,
                settings.fallback_model,
                last.error.kind.value,
                settings.primary_model,
            )
            if escalation_delay is not None:
                await self._sleep(escalation_delay)
            result = await self._attempt(
                stage, prompt, prior, settings.fallback_model, last.attempt + 1, AttemptRole.FALLBACK, design
            )
            if result.ok:
                logger.info("%s succeeded on fallback model %s", stage.label, settings.fallback_model)
                return result
            last = result

        error = last.error
        if stage is Stage.CONTENT and error.kind is not ErrorKind.CONTENT_FILTERED:
            logger.error(
                "%s failed on every model (%s after %d attempt(s)); using placeholder content",
                stage.label,
                error.kind.value,
                error.attempt,
            )
            return StageResult(
                spec=merge_design(placeholder_spec(params.prompt), design),
                model="placeholder",
                attempt=error.attempt,
                degraded=True,
            )

        logger.error("%s failed after %d attempt(s): %s", stage.label, error.attempt, error)
        return last


__all__ = ["AttemptListener", "RetryController", "Stage", "backoff"]
