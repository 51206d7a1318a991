"""Size-targeting compression: any raster image in, grayscale WebP ≤ budget out.

Pipeline
--------
1. Quality ladder — grayscale, then WebP at each quality (high → low) with
                    maximum encoder effort.  First output within budget wins.

2. Resize ladder  — only when even the lowest quality is too big.  Shrinks
                    the original by each factor (large → small) with a
                    Lanczos filter, regrays and encodes at the fallback
                    quality.  First fit wins; otherwise the smallest size
                    tried is accepted as best effort.

At most ``len(quality_ladder) + len(resize_ladder)`` encodes per call.
"""

import logging
import math
import time
from typing import Optional

from compress_image.codec.base import ImageBuffer, ImageCodec
from compress_image.codec.pillow import PillowCodec
from compress_image.errors import EmptyInputError
from compress_image.ladder import run_ladder
from compress_image.models import CompressionResult, SearchBudget

logger = logging.getLogger(__name__)

# WebP "method": 0 = fastest, 6 = smallest output.
MAX_EFFORT = 6


def scaled_size(buf: ImageBuffer, factor: float) -> tuple[int, int]:
    """Floor both dimensions by *factor*, never dropping below one pixel."""
    return (
        max(1, math.floor(buf.width * factor)),
        max(1, math.floor(buf.height * factor)),
    )


def resize_label(factor: float) -> str:
    return f"resize {round(factor * 100)}%"


def compress(
    data: bytes,
    budget: SearchBudget,
    codec: Optional[ImageCodec] = None,
) -> CompressionResult:
    """Compress *data* to a grayscale WebP no larger than ``budget.target_size`` if possible.

    Raises:
        EmptyInputError: *data* is empty; nothing is decoded.
        DecodeError:     *data* is not a readable image.
        EncodeError:     the codec rejected a ladder parameter.
    """
    if not data:
        raise EmptyInputError()
    codec = codec or PillowCodec()
    started = time.perf_counter()

    source = codec.decode(data)
    logger.info(
        "Compressing %dx%d %s image (%d bytes, budget %d)",
        source.width, source.height, source.format or "unknown", len(data), budget.target_size,
    )

    gray = codec.grayscale(source)
    outcome = run_ladder(
        budget.quality_ladder,
        lambda quality: codec.encode_lossy(gray, quality, MAX_EFFORT),
        budget.target_size,
    )
    label = str(outcome.param)
    result_data, attempts, out_size = outcome.data, outcome.attempt_count, gray.size

    if outcome.size > budget.target_size:
        logger.info(
            "Still %d bytes at quality %s, trying with resize", outcome.size, outcome.param
        )

        def shrink_and_encode(factor: float) -> bytes:
            resized = codec.resize(source, *scaled_size(source, factor), no_enlarge=True)
            return codec.encode_lossy(codec.grayscale(resized), budget.fallback_quality, MAX_EFFORT)

        resized_outcome = run_ladder(budget.resize_ladder, shrink_and_encode, budget.target_size)
        label = f"{budget.fallback_quality}% + {resize_label(resized_outcome.param)}"
        result_data = resized_outcome.data
        attempts += resized_outcome.attempt_count
        out_size = scaled_size(source, resized_outcome.param)

    elapsed_ms = round((time.perf_counter() - started) * 1000)
    fits = len(result_data) <= budget.target_size
    if fits:
        logger.info("Target size achieved with %s: %d bytes", label, len(result_data))
    else:
        logger.warning(
            "Target size %d not reached, best effort %s: %d bytes",
            budget.target_size, label, len(result_data),
        )

    return CompressionResult(
        data=result_data,
        original_size=len(data),
        final_size=len(result_data),
        elapsed_ms=elapsed_ms,
        label=label,
        width=min(out_size[0], source.width),
        height=min(out_size[1], source.height),
        source_format=source.format,
        attempts=attempts,
        fits=fits,
    )
