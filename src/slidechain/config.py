"""Environment-driven settings for the generation pipeline."""

from __future__ import annotations

import os
from dataclasses import dataclass, replace
from typing import Optional

from dotenv import load_dotenv

_PROVIDER_DEFAULTS = {
    "openai": ("gpt-4o-mini", "gpt-4o"),
    "gemini": ("gemini-2.5-flash", "gemini-2.5-pro"),
}


class ConfigError(ValueError):
    """Raised when an environment value cannot be used."""


def _get_env(name: str, default: Optional[str] = None) -> Optional[str]:
    val = os.environ.get(name, default)
    if val is not None and not val.strip():
        return default
    return val


def _get_int(name: str, default: int, minimum: int = 0) -> int:
    raw = _get_env(name)
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from exc
    if value < minimum:
        raise ConfigError(f"{name} must be >= {minimum}, got {value}")
    return value


def _get_float(name: str, default: float) -> float:
    raw = _get_env(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ConfigError(f"{name} must be a number, got {raw!r}") from exc


@dataclass(frozen=True)
class ModelSettings:
    """Model choice, sampling and resilience knobs for one pipeline.

    Delays and timeouts are stored in seconds; the environment supplies them
    in milliseconds to match the provider dashboards.
    """

    provider: str = "openai"
    primary_model: str = "gpt-4o-mini"
    fallback_model: Optional[str] = "gpt-4o"
    temperature: float = 0.7
    max_tokens: int = 1400
    max_retries: int = 3
    base_delay_s: float = 0.4
    max_backoff_s: float = 8.0
    timeout_s: float = 30.0
    batch_concurrency: int = 3

    def __post_init__(self) -> None:
        if self.provider not in _PROVIDER_DEFAULTS:
            supported = ", ".join(sorted(_PROVIDER_DEFAULTS))
            raise ConfigError(f"Unsupported provider {self.provider!r} (supported: {supported})")
        if self.max_retries < 1:
            raise ConfigError("max_retries must be at least 1")
        if self.timeout_s <= 0:
            raise ConfigError("timeout_s must be positive")
        if self.base_delay_s < 0 or self.max_backoff_s < 0:
            raise ConfigError("backoff delays must not be negative")
        if self.batch_concurrency < 1:
            raise ConfigError("batch_concurrency must be at least 1")

    @property
    def has_fallback(self) -> bool:
        return bool(self.fallback_model) and self.fallback_model != self.primary_model

    def with_overrides(self, **changes) -> "ModelSettings":
        return replace(self, **changes)

    @classmethod
    def from_env(cls) -> "ModelSettings":
        """Build settings from ``AI_*`` environment variables (and ``.env``)."""

        load_dotenv()
        provider = (_get_env("AI_PROVIDER", "openai") or "openai").lower()
        if provider not in _PROVIDER_DEFAULTS:
            supported = ", ".join(sorted(_PROVIDER_DEFAULTS))
            raise ConfigError(f"AI_PROVIDER must be one of: {supported}")
        default_primary, default_fallback = _PROVIDER_DEFAULTS[provider]

        fallback = _get_env("AI_FALLBACK_MODEL", default_fallback)
        if fallback and fallback.lower() in {"none", "off", "disabled"}:
            fallback = None

        return cls(
            provider=provider,
            primary_model=_get_env("AI_TEXT_MODEL", default_primary) or default_primary,
            fallback_model=fallback,
            temperature=_get_float("AI_TEMPERATURE", 0.7),
            max_tokens=_get_int("AI_MAX_TOKENS", 1400, minimum=1),
            max_retries=_get_int("AI_MAX_RETRIES", 3, minimum=1),
            base_delay_s=_get_int("AI_RETRY_DELAY_MS", 400) / 1000.0,
            max_backoff_s=_get_int("AI_MAX_BACKOFF_MS", 8000) / 1000.0,
            timeout_s=_get_int("AI_TIMEOUT_MS", 30000, minimum=1) / 1000.0,
            batch_concurrency=_get_int("AI_BATCH_CONCURRENCY", 3, minimum=1),
        )


__all__ = ["ConfigError", "ModelSettings"]
