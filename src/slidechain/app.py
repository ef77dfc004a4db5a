"""Application factory: the one place that builds the client and pipeline."""

from __future__ import annotations

import atexit
import logging
import os
from typing import Optional

from dotenv import load_dotenv
from flask import Flask

from .logging_config import configure_logging
from .pipeline import SlidePipeline
from .routes import EXTENSION_KEY, slides_bp
from .runtime import BackgroundLoop

logger = logging.getLogger(__name__)


def _shutdown(pipeline: SlidePipeline, loop: BackgroundLoop) -> None:
    if loop.loop.is_closed():
        return
    loop.run(pipeline.close(), timeout=5)
    loop.stop()


def create_app(
    pipeline: Optional[SlidePipeline] = None,
    *,
    loop: Optional[BackgroundLoop] = None,
) -> Flask:
    load_dotenv()
    configure_logging()

    app = Flask(__name__)
    timeout = os.environ.get("SLIDECHAIN_REQUEST_TIMEOUT")
    app.config["SLIDECHAIN_REQUEST_TIMEOUT"] = float(timeout) if timeout else None

    owns_runtime = loop is None
    loop = loop or BackgroundLoop()
    if pipeline is None:
        pipeline = SlidePipeline.from_env()
    app.extensions[EXTENSION_KEY] = {"pipeline": pipeline, "loop": loop}
    app.register_blueprint(slides_bp)

    if owns_runtime:
        atexit.register(_shutdown, pipeline, loop)
    logger.info("Slide service ready (provider=%s, model=%s)", pipeline.settings.provider, pipeline.settings.primary_model)
    return app


__all__ = ["create_app"]
