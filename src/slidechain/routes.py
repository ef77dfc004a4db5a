"""Flask blueprint exposing slide generation over HTTP."""

from __future__ import annotations

import concurrent.futures
import logging
from typing import Any, Dict, List, Tuple

from flask import Blueprint, current_app, jsonify, request
from pydantic import ValidationError

from .errors import ClassifiedError, ErrorKind
from .models import GenerationParams

logger = logging.getLogger(__name__)

MAX_BATCH_SLIDES = 10
EXTENSION_KEY = "slidechain"

slides_bp = Blueprint("slides", __name__, url_prefix="/slides")


def _runtime() -> Dict[str, Any]:
    return current_app.extensions[EXTENSION_KEY]


def _error(kind: str, message: str, status: int, details: Any = None):
    body: Dict[str, Any] = {"error": {"kind": kind, "message": message}}
    if details is not None:
        body["error"]["details"] = details
    return jsonify(body), status


def _pydantic_messages(exc: ValidationError) -> List[str]:
    messages = []
    for err in exc.errors():
        path = ".".join(str(part) for part in err.get("loc", ())) or "<body>"
        messages.append(f"{path}: {err.get('msg', 'invalid value')}")
    return messages


def _read_body() -> Tuple[Dict[str, Any], Any]:
    body = request.get_json(silent=True)
    if not isinstance(body, dict):
        return {}, _error("invalid_request", "Request body must be a JSON object", 400)
    return body, None


def _run(coro):
    runtime = _runtime()
    timeout = current_app.config.get("SLIDECHAIN_REQUEST_TIMEOUT")
    return runtime["loop"].run(coro, timeout=timeout)


def _failure(exc: Exception):
    if isinstance(exc, ClassifiedError):
        logger.warning("Slide generation failed: %s", exc)
        payload = exc.to_dict()
        return _error(payload["kind"], payload["message"], exc.kind.http_status, payload)
    if isinstance(exc, concurrent.futures.TimeoutError):
        logger.warning("Slide generation exceeded the request timeout")
        return _error(ErrorKind.TIMEOUT.value, "Request timed out", ErrorKind.TIMEOUT.http_status)
    logger.exception("Unexpected error during slide generation")
    return _error(ErrorKind.UNKNOWN.value, "Internal error", ErrorKind.UNKNOWN.http_status)


@slides_bp.route("/generate", methods=["POST"])
def generate_slide():
    body, error = _read_body()
    if error is not None:
        return error
    try:
        params = GenerationParams.model_validate(body)
    except ValidationError as exc:
        return _error("invalid_request", "Invalid generation parameters", 400, _pydantic_messages(exc))

    pipeline = _runtime()["pipeline"]
    try:
        spec = _run(pipeline.generate(params))
    except Exception as exc:
        return _failure(exc)
    return jsonify({"spec": spec.to_payload()})


@slides_bp.route("/batch", methods=["POST"])
def generate_batch():
    body, error = _read_body()
    if error is not None:
        return error
    body = dict(body)
    slide_count = body.pop("slideCount", body.pop("slide_count", None))
    if isinstance(slide_count, bool) or not isinstance(slide_count, int) or not 1 <= slide_count <= MAX_BATCH_SLIDES:
        return _error("invalid_request", f"slideCount must be an integer between 1 and {MAX_BATCH_SLIDES}", 400)
    try:
        params = GenerationParams.model_validate(body)
    except ValidationError as exc:
        return _error("invalid_request", "Invalid generation parameters", 400, _pydantic_messages(exc))

    pipeline = _runtime()["pipeline"]
    try:
        specs = _run(pipeline.generate_batch(params, slide_count))
    except Exception as exc:
        return _failure(exc)
    return jsonify({"slides": [spec.to_payload() for spec in specs]})


@slides_bp.route("/health", methods=["GET"])
def health():
    settings = _runtime()["pipeline"].settings
    return jsonify(
        {
            "status": "ok",
            "provider": settings.provider,
            "primaryModel": settings.primary_model,
            "fallbackModel": settings.fallback_model if settings.has_fallback else None,
        }
    )


__all__ = ["EXTENSION_KEY", "slides_bp"]
