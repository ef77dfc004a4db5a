#!/usr/bin/env python3
"""Generate one slide (or a small batch) from the command line and print JSON."""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
import time
from pathlib import Path
from typing import List

SRC_ROOT = Path(__file__).resolve().parent.parent / "src"
if str(SRC_ROOT) not in sys.path:
    sys.path.insert(0, str(SRC_ROOT))

from pydantic import ValidationError

from slidechain import ClassifiedError, ContentType, GenerationParams, SlidePipeline
from slidechain.logging_config import configure_logging


async def _run(params: GenerationParams, batch: int) -> List[dict]:
    pipeline = SlidePipeline.from_env()
    try:
        if batch > 1:
            specs = await pipeline.generate_batch(params, batch)
        else:
            specs = [await pipeline.generate(params)]
    finally:
        await pipeline.close()
    return [spec.to_payload() for spec in specs]


def main() -> int:
    parser = argparse.ArgumentParser(description="Generate a slide specification with the chained pipeline.")
    parser.add_argument("prompt", help="What the slide should be about.")
    parser.add_argument(
        "--content-type",
        choices=[c.value for c in ContentType],
        help="Content shape of the final slide (default: bullets).",
    )
    parser.add_argument("--audience", help="Target audience, e.g. 'executives'.")
    parser.add_argument("--tone", help="Tone, e.g. professional, casual, technical.")
    parser.add_argument("--length", choices=["short", "medium", "long"], help="Content length bucket.")
    parser.add_argument("--with-image", action="store_true", help="Also generate an image prompt.")
    parser.add_argument("--batch", type=int, default=1, help="Number of slides to generate for the topic.")
    args = parser.parse_args()

    configure_logging()
    try:
        params = GenerationParams(
            prompt=args.prompt,
            audience=args.audience,
            tone=args.tone,
            content_length=args.length,
            content_type=args.content_type,
            with_image=args.with_image,
        )
    except ValidationError as exc:
        print(f"Invalid parameters:\n{exc}", file=sys.stderr)
        return 2

    start = time.perf_counter()
    try:
        slides = asyncio.run(_run(params, max(args.batch, 1)))
    except ClassifiedError as exc:
        print(f"Generation failed [{exc.kind.value}]: {exc}", file=sys.stderr)
        return 1
    elapsed = time.perf_counter() - start

    print(f"Elapsed: {elapsed:.2f}s", file=sys.stderr)
    output = slides[0] if len(slides) == 1 else slides
    print(json.dumps(output, indent=2, ensure_ascii=False))
    return 0


if __name__ == "__main__":
    sys.exit(main())
