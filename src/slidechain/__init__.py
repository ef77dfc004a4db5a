"""Chained LLM slide-spec generation with retries, fallback models and recovery."""

from .config import ConfigError, ModelSettings
from .controller import RetryController, Stage, backoff
from .enforcement import enforce
from .errors import ClassifiedError, ErrorKind, classify
from .executor import StageExecutor, StageResult
from .models import ContentType, FinalSpec, GenerationParams, Layout, SlideSpec
from .pipeline import SlidePipeline
from .recovery import recover
from .validator import ValidationResult, validate

__all__ = [
    "ClassifiedError",
    "ConfigError",
    "ContentType",
    "ErrorKind",
    "FinalSpec",
    "GenerationParams",
    "Layout",
    "ModelSettings",
    "RetryController",
    "SlidePipeline",
    "SlideSpec",
    "Stage",
    "StageExecutor",
    "StageResult",
    "ValidationResult",
    "backoff",
    "classify",
    "enforce",
    "recover",
    "validate",
]
