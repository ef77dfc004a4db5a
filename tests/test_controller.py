"""Tests for retry, backoff and fallback escalation."""

import httpx
import openai
import pytest

from conftest import VALID_CONTENT, FakeChatClient
from slidechain.config import ModelSettings
from slidechain.controller import RetryController, Stage, backoff
from slidechain.errors import ContentFilteredResponse, ErrorKind
from slidechain.executor import StageExecutor
from slidechain.fallbacks import FALLBACK_SOURCES
from slidechain.models import AttemptRole, GenerationParams, SlideSpec
from slidechain.prompts import content_prompt, layout_prompt

PARAMS = GenerationParams(prompt="Launch a new product")
PRIOR = SlideSpec.model_validate(VALID_CONTENT)


def _controller(client, settings, sleep, attempts=None):
    return RetryController(
        StageExecutor(client, settings),
        settings,
        sleep=sleep,
        attempt_listener=attempts.append if attempts is not None else None,
    )


async def _run_layout(controller):
    return await controller.run_stage(Stage.LAYOUT, layout_prompt(PARAMS), PRIOR, PARAMS)


async def _run_content(controller):
    return await controller.run_stage(Stage.CONTENT, content_prompt(PARAMS), None, PARAMS)


def _rate_limited(retry_after):
    request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
    response = httpx.Response(429, request=request, headers={"retry-after": retry_after})
    return openai.RateLimitError("slow down", response=response, body=None)


class TestBackoff:
    """Tests for backoff()."""

    def test_exponential_then_capped(self, settings):
        delays = [backoff(n, settings) for n in range(1, 8)]
        assert delays[:4] == [0.4, 0.8, 1.6, 3.2]
        assert delays[-1] == settings.max_backoff_s

    def test_non_decreasing_and_bounded(self):
        settings = ModelSettings(base_delay_s=0.25, max_backoff_s=5.0)
        delays = [backoff(n, settings) for n in range(1, 20)]
        assert delays == sorted(delays)
        assert max(delays) <= 5.0

    def test_attempt_must_be_positive(self, settings):
        with pytest.raises(ValueError):
            backoff(0, settings)


class TestRetryController:
    """Tests for RetryController.run_stage()."""

    @pytest.mark.asyncio
    async def test_success_on_first_attempt(self, settings, sleep):
        client = FakeChatClient()
        result = await _run_layout(_controller(client, settings, sleep))
        assert result.ok
        assert len(client.calls) == 1
        assert sleep.delays == []

    @pytest.mark.asyncio
    async def test_retryable_failures_exhaust_primary_then_one_fallback(self, settings, sleep):
        failures = [ConnectionResetError("reset")] * 4
        client = FakeChatClient(layout=failures)
        attempts = []
        result = await _run_layout(_controller(client, settings, sleep, attempts))

        assert not result.ok
        assert result.error.kind is ErrorKind.NETWORK
        assert result.error.stage == "Layout Refinement"
        assert result.error.attempt == settings.max_retries + 1
        assert [call.model for call in client.calls] == ["primary-model"] * 3 + ["fallback-model"]
        assert sleep.delays == [0.4, 0.8, 1.6]
        assert [a.role for a in attempts] == [AttemptRole.PRIMARY] * 3 + [AttemptRole.FALLBACK]
        assert [a.attempt for a in attempts] == [1, 2, 3, 4]
        assert all(a.outcome == "network" for a in attempts)

    @pytest.mark.asyncio
    async def test_recovers_on_retry(self, settings, sleep):
        client = FakeChatClient(layout=[ConnectionResetError("reset")])
        result = await _run_layout(_controller(client, settings, sleep))
        assert result.ok
        assert result.attempt == 2
        assert result.model == "primary-model"
        assert sleep.delays == [0.4]

    @pytest.mark.asyncio
    async def test_validation_skips_primary_retries(self, settings, sleep):
        client = FakeChatClient(layout=["not json at all"])
        result = await _run_layout(_controller(client, settings, sleep))
        assert result.ok
        assert [call.model for call in client.calls] == ["primary-model", "fallback-model"]
        assert result.attempt == 2
        assert sleep.delays == []

    @pytest.mark.asyncio
    async def test_content_filtered_skips_primary_retries(self, settings, sleep):
        client = FakeChatClient(layout=[ContentFilteredResponse("blocked"), ContentFilteredResponse("blocked")])
        result = await _run_layout(_controller(client, settings, sleep))
        assert result.error.kind is ErrorKind.CONTENT_FILTERED
        assert [call.model for call in client.calls] == ["primary-model", "fallback-model"]
        assert sleep.delays == []

    @pytest.mark.asyncio
    async def test_unknown_is_retried_once(self, settings, sleep):
        client = FakeChatClient(layout=[RuntimeError("odd"), RuntimeError("odd"), RuntimeError("odd")])
        result = await _run_layout(_controller(client, settings, sleep))
        assert result.error.kind is ErrorKind.UNKNOWN
        assert [call.model for call in client.calls] == ["primary-model", "primary-model", "fallback-model"]
        assert sleep.delays == [0.4, 0.8]

    @pytest.mark.asyncio
    async def test_rate_limit_honours_retry_after(self, settings, sleep):
        client = FakeChatClient(layout=[_rate_limited("2"), _rate_limited("60")])
        result = await _run_layout(_controller(client, settings, sleep))
        assert result.ok
        assert sleep.delays == [2.0, settings.max_backoff_s]

    @pytest.mark.asyncio
    async def test_no_fallback_configured(self, settings, sleep):
        settings = settings.with_overrides(fallback_model=None)
        client = FakeChatClient(layout=[ConnectionResetError("reset")] * 3)
        result = await _run_layout(_controller(client, settings, sleep))
        assert result.error.attempt == 3
        assert [call.model for call in client.calls] == ["primary-model"] * 3

    @pytest.mark.asyncio
    async def test_fallback_equal_to_primary_is_skipped(self, settings, sleep):
        settings = settings.with_overrides(fallback_model="primary-model")
        client = FakeChatClient(layout=["{bad"])
        result = await _run_layout(_controller(client, settings, sleep))
        assert result.error.kind is ErrorKind.VALIDATION
        assert len(client.calls) == 1

    @pytest.mark.asyncio
    async def test_content_stage_degrades_to_placeholder(self, settings, sleep):
        client = FakeChatClient(content=["{bad", "{still bad"])
        result = await _run_content(_controller(client, settings, sleep))
        assert result.ok
        assert result.degraded
        assert result.spec.title == "Launch a new product"
        assert result.spec.paragraph
        assert result.spec.sources == FALLBACK_SOURCES
        assert len(client.calls) == 2

    @pytest.mark.asyncio
    async def test_content_stage_does_not_degrade_on_content_filter(self, settings, sleep):
        client = FakeChatClient(content=[ContentFilteredResponse("no"), ContentFilteredResponse("no")])
        result = await _run_content(_controller(client, settings, sleep))
        assert not result.ok
        assert result.error.kind is ErrorKind.CONTENT_FILTERED
        assert result.error.stage == "Content Generation"

    @pytest.mark.asyncio
    async def test_non_content_stage_does_not_degrade(self, settings, sleep):
        client = FakeChatClient(refinement=["{bad", "{bad"])
        controller = _controller(client, settings, sleep)
        result = await controller.run_stage(Stage.REFINEMENT, "## FINAL REFINEMENT\npolish", PRIOR, PARAMS)
        assert not result.ok
        assert not result.degraded
        assert result.error.kind is ErrorKind.VALIDATION
