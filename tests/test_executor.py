"""Tests for the stage executor."""

import json

import pytest

from conftest import HANG, VALID_CONTENT, FakeChatClient
from slidechain.errors import ErrorKind
from slidechain.executor import StageExecutor, extract_json_payload, merge_design
from slidechain.models import DesignHints, GenerationParams, SlideSpec
from slidechain.prompts import SYSTEM_PROMPT, content_prompt

PARAMS = GenerationParams(prompt="Launch a new product")
PROMPT = content_prompt(PARAMS)


async def _execute(client, settings, prior=None, design=None, attempt=1):
    executor = StageExecutor(client, settings)
    return await executor.execute(
        "Content Generation",
        PROMPT,
        prior,
        model="primary-model",
        timeout_s=settings.timeout_s,
        attempt=attempt,
        design=design,
    )


class TestExtractJsonPayload:
    """Tests for fence and prose stripping."""

    def test_plain_json_is_untouched(self):
        assert extract_json_payload('{"a": 1}') == '{"a": 1}'

    def test_markdown_fence_is_removed(self):
        assert extract_json_payload('```json\n{"a": 1}\n```') == '{"a": 1}'

    def test_single_line_fence_keeps_payload(self):
        assert extract_json_payload('```json {"title": "x"}```') == '{"title": "x"}'
        assert extract_json_payload('```{"title": "x"}```') == '{"title": "x"}'

    def test_surrounding_prose_is_removed(self):
        assert extract_json_payload('Here you go: {"a": 1} Enjoy!') == '{"a": 1}'


class TestStageExecutor:
    """Tests for StageExecutor.execute()."""

    @pytest.mark.asyncio
    async def test_valid_response(self, settings):
        client = FakeChatClient(content=[VALID_CONTENT])
        result = await _execute(client, settings)
        assert result.ok
        assert result.spec.title == VALID_CONTENT["title"]
        assert not result.recovered
        assert result.model == "primary-model"

    @pytest.mark.asyncio
    async def test_messages_without_prior(self, settings):
        client = FakeChatClient()
        await _execute(client, settings)
        messages = client.calls[0].messages
        assert [m["role"] for m in messages] == ["system", "user"]
        assert messages[0]["content"] == SYSTEM_PROMPT
        assert messages[1]["content"] == PROMPT

    @pytest.mark.asyncio
    async def test_prior_spec_is_sent_as_context_and_not_mutated(self, settings):
        prior = SlideSpec.model_validate(VALID_CONTENT)
        snapshot = prior.model_dump()
        client = FakeChatClient(content=[{**VALID_CONTENT, "title": "Changed Title"}])
        result = await _execute(client, settings, prior=prior)
        messages = client.calls[0].messages
        assert [m["role"] for m in messages] == ["system", "assistant", "user"]
        assert json.loads(messages[1]["content"])["title"] == VALID_CONTENT["title"]
        assert result.spec.title == "Changed Title"
        assert prior.model_dump() == snapshot

    @pytest.mark.asyncio
    async def test_fenced_response_is_parsed(self, settings):
        client = FakeChatClient(content=["```json\n" + json.dumps(VALID_CONTENT) + "\n```"])
        assert (await _execute(client, settings)).ok

    @pytest.mark.asyncio
    async def test_empty_response_is_validation_error(self, settings):
        client = FakeChatClient(content=["   "])
        result = await _execute(client, settings)
        assert not result.ok
        assert result.error.kind is ErrorKind.VALIDATION
        assert result.error.stage == "Content Generation"

    @pytest.mark.asyncio
    async def test_unparsable_response_is_validation_error(self, settings):
        client = FakeChatClient(content=["{not json"])
        result = await _execute(client, settings, attempt=2)
        assert result.error.kind is ErrorKind.VALIDATION
        assert result.error.attempt == 2

    @pytest.mark.asyncio
    async def test_recoverable_response_is_repaired(self, settings):
        client = FakeChatClient(content=[{"title": "Growth", "layout": "grid", "bullets": "a\nb", "extra": True}])
        result = await _execute(client, settings)
        assert result.ok
        assert result.recovered
        assert result.spec.bullets == ["a", "b"]
        assert result.spec.layout.value == "title-bullets"

    @pytest.mark.asyncio
    async def test_unrecoverable_response_is_validation_error(self, settings):
        client = FakeChatClient(content=['"just a string"'])
        result = await _execute(client, settings)
        assert result.error.kind is ErrorKind.VALIDATION
        assert result.error.details

    @pytest.mark.asyncio
    async def test_timeout_is_classified(self, settings):
        client = FakeChatClient(content=[HANG])
        result = await _execute(client, settings)
        assert result.error.kind is ErrorKind.TIMEOUT

    @pytest.mark.asyncio
    async def test_provider_exception_is_returned_not_raised(self, settings):
        client = FakeChatClient(content=[ConnectionRefusedError("refused")])
        result = await _execute(client, settings)
        assert result.error.kind is ErrorKind.NETWORK
        assert isinstance(result.error.cause, ConnectionRefusedError)

    @pytest.mark.asyncio
    async def test_design_overrides_win(self, settings):
        response = {**VALID_CONTENT, "design": {"theme": "dark", "accentColor": "#000000"}}
        client = FakeChatClient(content=[response])
        result = await _execute(client, settings, design=DesignHints(accent_color="#FF5500"))
        assert result.spec.design.accent_color == "#FF5500"
        assert result.spec.design.theme == "dark"


class TestMergeDesign:
    """Tests for merge_design()."""

    def test_no_overrides_returns_same_spec(self):
        spec = SlideSpec.model_validate(VALID_CONTENT)
        assert merge_design(spec, None) is spec

    def test_overrides_fill_missing_design(self):
        spec = SlideSpec.model_validate(VALID_CONTENT)
        merged = merge_design(spec, DesignHints(image_style="photo"))
        assert merged.design.image_style == "photo"
        assert spec.design is None
