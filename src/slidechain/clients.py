"""Thin async chat clients for the supported model providers.

Both clients make exactly one request per call: the SDK-level retry loops are
disabled because ``RetryController`` owns retries and escalation.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol

import google.generativeai as genai
from openai import AsyncOpenAI

from .config import ModelSettings
from .errors import ContentFilteredResponse

logger = logging.getLogger(__name__)

Message = Dict[str, str]


@dataclass
class ChatCompletion:
    text: str
    usage: Dict[str, int] = field(default_factory=dict)
    finish_reason: Optional[str] = None


class ChatModelClient(Protocol):
    provider: str

    async def complete(
        self,
        messages: List[Message],
        *,
        model: str,
        temperature: float,
        max_tokens: int,
    ) -> ChatCompletion:
        ...

    async def close(self) -> None:
        ...


class OpenAIChatClient:
    provider = "openai"

    def __init__(self, client: AsyncOpenAI):
        self._client = client

    @classmethod
    def from_env(cls, api_key: Optional[str] = None) -> "OpenAIChatClient":
        key = api_key or os.environ.get("OPENAI_API_KEY")
        if not key:
            raise RuntimeError("OPENAI_API_KEY must be set to call OpenAI models.")
        return cls(AsyncOpenAI(api_key=key, max_retries=0))

    async def complete(
        self,
        messages: List[Message],
        *,
        model: str,
        temperature: float,
        max_tokens: int,
    ) -> ChatCompletion:
        response = await self._client.chat.completions.create(
            model=model,
            messages=messages,
            temperature=temperature,
            max_tokens=max_tokens,
            response_format={"type": "json_object"},
        )
        if not response.choices:
            return ChatCompletion(text="")
        choice = response.choices[0]
        if choice.finish_reason == "content_filter":
            raise ContentFilteredResponse(f"{model} stopped with finish_reason=content_filter")
        message = choice.message
        content = message.content
        if isinstance(content, list):
            text = "".join(getattr(part, "text", "") for part in content)
        else:
            text = content or ""
        refusal = getattr(message, "refusal", None)
        if refusal and not text.strip():
            raise ContentFilteredResponse(f"{model} refused: {refusal}")

        usage: Dict[str, int] = {}
        if response.usage is not None:
            usage = {
                "prompt_tokens": response.usage.prompt_tokens,
                "completion_tokens": response.usage.completion_tokens,
                "total_tokens": response.usage.total_tokens,
            }
        return ChatCompletion(text=text, usage=usage, finish_reason=choice.finish_reason)

    async def close(self) -> None:
        await self._client.close()


def _to_gemini_contents(messages: List[Message]) -> tuple[Optional[str], List[Dict[str, Any]]]:
    system_parts: List[str] = []
    contents: List[Dict[str, Any]] = []
    for message in messages:
        role = message["role"]
        if role == "system":
            system_parts.append(message["content"])
            continue
        contents.append({"role": "model" if role == "assistant" else "user", "parts": [message["content"]]})
    # Gemini expects the conversation to open with a user turn
    if contents and contents[0]["role"] == "model":
        contents.insert(0, {"role": "user", "parts": ["Here is the current slide."]})
    system = "\n\n".join(system_parts) or None
    return system, contents


def _enum_name(value: Any) -> Optional[str]:
    if value is None:
        return None
    return getattr(value, "name", str(value))


class GeminiChatClient:
    provider = "gemini"

    def __init__(self, api_key: str):
        genai.configure(api_key=api_key)

    @classmethod
    def from_env(cls, api_key: Optional[str] = None) -> "GeminiChatClient":
        key = api_key or os.environ.get("GOOGLE_API_KEY")
        if not key:
            raise RuntimeError("GOOGLE_API_KEY must be set to call Gemini.")
        return cls(key)

    async def complete(
        self,
        messages: List[Message],
        *,
        model: str,
        temperature: float,
        max_tokens: int,
    ) -> ChatCompletion:
        system, contents = _to_gemini_contents(messages)
        generative_model = genai.GenerativeModel(model_name=model, system_instruction=system)
        response = await generative_model.generate_content_async(
            contents,
            generation_config=genai.GenerationConfig(
                temperature=temperature,
                max_output_tokens=max_tokens,
                response_mime_type="application/json",
            ),
        )

        feedback = getattr(response, "prompt_feedback", None)
        block_reason = _enum_name(getattr(feedback, "block_reason", None))
        if block_reason and block_reason != "BLOCK_REASON_UNSPECIFIED":
            raise ContentFilteredResponse(f"{model} blocked the prompt: {block_reason}")
        if not response.candidates:
            return ChatCompletion(text="")

        candidate = response.candidates[0]
        finish_reason = _enum_name(candidate.finish_reason)
        if finish_reason in ("SAFETY", "PROHIBITED_CONTENT", "BLOCKLIST", "SPII"):
            raise ContentFilteredResponse(f"{model} stopped with finish_reason={finish_reason}")
        parts = getattr(candidate.content, "parts", None) or []
        text = "".join(getattr(part, "text", "") for part in parts)

        usage: Dict[str, int] = {}
        metadata = getattr(response, "usage_metadata", None)
        if metadata is not None:
            usage = {
                "prompt_tokens": metadata.prompt_token_count,
                "completion_tokens": metadata.candidates_token_count,
                "total_tokens": metadata.total_token_count,
            }
        return ChatCompletion(text=text, usage=usage, finish_reason=finish_reason)

    async def close(self) -> None:
        return None


def build_client(settings: ModelSettings) -> ChatModelClient:
    """Create the provider client named by ``settings.provider``."""

    if settings.provider == "gemini":
        client: ChatModelClient = GeminiChatClient.from_env()
    else:
        client = OpenAIChatClient.from_env()
    logger.info(
        "Initialised %s client (primary=%s, fallback=%s)",
        settings.provider,
        settings.primary_model,
        settings.fallback_model if settings.has_fallback else "none",
    )
    return client


__all__ = [
    "ChatCompletion",
    "ChatModelClient",
    "GeminiChatClient",
    "Message",
    "OpenAIChatClient",
    "build_client",
]
