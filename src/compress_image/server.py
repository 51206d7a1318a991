"""FastAPI service exposing the compression and OCR enhancement pipelines.

Pipelines are CPU-bound, so each runs in a worker thread and the event loop
keeps accepting connections while a large image works through its ladders.
"""

import asyncio
import logging
import platform
import time
from collections.abc import Awaitable, Callable
from contextlib import asynccontextmanager
from typing import Optional

import PIL
from fastapi import APIRouter, FastAPI, File, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse, Response
from PIL import features
from starlette.middleware.base import BaseHTTPMiddleware

from compress_image.compressor import compress
from compress_image.config import Config
from compress_image.enhancement import enhance
from compress_image.errors import (
    DecodeError,
    EmptyInputError,
    ImageProcessingError,
    PayloadTooLargeError,
)
from compress_image.models import CompressionResult, EnhancementResult
from compress_image.stats import StatsRegistry

logger = logging.getLogger(__name__)

SERVICE_NAME = "compress-image-api"
SERVICE_VERSION = "1.0.0"
CACHE_CONTROL = "public, max-age=31536000"

ENDPOINTS = [
    {"method": "GET", "path": "/", "description": "Health check"},
    {"method": "POST", "path": "/", "description": "Compress image (send raw binary)"},
    {"method": "POST", "path": "/upload", "description": "Compress image (multipart form)"},
    {"method": "POST", "path": "/upload-enhance", "description": "Enhance image for OCR/text recognition"},
    {"method": "GET", "path": "/stats", "description": "Service statistics"},
]

ERROR_STATUS = {
    EmptyInputError: 400,
    DecodeError: 400,
    PayloadTooLargeError: 413,
}

router = APIRouter()


class JSONGZipMiddleware(GZipMiddleware):
    """Gzip the JSON routes only. POST routes answer with WebP or PNG, which are already compressed."""

    async def __call__(self, scope, receive, send):
        if scope["type"] == "http" and scope["method"] == "POST":
            await self.app(scope, receive, send)
            return
        await super().__call__(scope, receive, send)


class LogRequestMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        started = time.perf_counter()
        response = await call_next(request)
        duration_ms = round((time.perf_counter() - started) * 1000)
        level = logging.WARNING if response.status_code >= 400 else logging.INFO
        logger.log(
            level,
            "%s %s -> %d (%dms)",
            request.method, request.url.path, response.status_code, duration_ms,
            extra={
                "method": request.method,
                "path": request.url.path,
                "status_code": response.status_code,
                "duration_ms": duration_ms,
            },
        )
        return response


@asynccontextmanager
async def lifespan(app: FastAPI):
    config: Config = app.state.config
    logger.info(
        "%s %s ready (Pillow %s, budget %d bytes, OCR budget %d bytes, max upload %d bytes)",
        SERVICE_NAME, SERVICE_VERSION, PIL.__version__,
        config.target_size, config.enhance_target_size, config.max_upload_size,
    )
    yield
    logger.info("%s shutting down", SERVICE_NAME)


def create_app(config: Optional[Config] = None) -> FastAPI:
    config = config or Config.from_env()
    app = FastAPI(title=SERVICE_NAME, version=SERVICE_VERSION, lifespan=lifespan)
    app.state.config = config
    app.state.stats = StatsRegistry()

    app.add_middleware(JSONGZipMiddleware, minimum_size=1000)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(config.cors_origins),
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["*"],
    )
    app.add_middleware(LogRequestMiddleware)
    app.include_router(router)
    return app


# ── Helpers ────────────────────────────────────────────────────────────────


async def read_limited_body(request: Request, limit: int) -> bytes:
    """Read the raw request body, refusing anything over *limit* bytes."""
    declared = request.headers.get("content-length", "")
    if declared.isdigit() and int(declared) > limit:
        raise PayloadTooLargeError(f"Upload of {declared} bytes exceeds limit of {limit} bytes")

    chunks: list[bytes] = []
    total = 0
    async for chunk in request.stream():
        total += len(chunk)
        if total > limit:
            raise PayloadTooLargeError(f"Upload exceeds limit of {limit} bytes")
        chunks.append(chunk)
    return b"".join(chunks)


def _error_response(exc: Exception, context: str) -> JSONResponse:
    status = next((code for kind, code in ERROR_STATUS.items() if isinstance(exc, kind)), 500)
    return JSONResponse(status_code=status, content={"success": False, "error": f"{context}: {exc}"})


async def _run_pipeline(
    request: Request,
    load: Callable[[], Awaitable[bytes]],
    pipeline: Callable,
    budget_name: str,
    context: str,
):
    stats: StatsRegistry = request.app.state.stats
    config: Config = request.app.state.config
    stats.record_request()
    try:
        data = await load()
        budget = getattr(config, budget_name)()
        result = await asyncio.to_thread(pipeline, data, budget)
    except ImageProcessingError as e:
        stats.record_error()
        logger.warning("%s: %s", context, e)
        return None, _error_response(e, context)
    except Exception as e:
        stats.record_error()
        logger.exception("%s unexpectedly", context)
        return None, _error_response(e, context)

    stats.record_success(result.original_size, result.final_size)
    return result, None


def _common_headers(result: CompressionResult) -> dict[str, str]:
    return {
        "X-Original-Size": str(result.original_size),
        "X-Processing-Time": f"{result.elapsed_ms}ms",
        "X-Original-Format": (result.source_format or "unknown").lower(),
        "Cache-Control": CACHE_CONTROL,
    }


def _compressed_response(result: CompressionResult) -> Response:
    headers = _common_headers(result)
    headers.update({
        "X-Compressed-Size": str(result.final_size),
        "X-Compression-Ratio": f"{result.compression_ratio:.3f}",
        "X-Final-Quality": result.label,
    })
    return Response(content=result.data, media_type="image/webp", headers=headers)


def _enhanced_response(result: EnhancementResult) -> Response:
    headers = _common_headers(result)
    headers.update({
        "X-Enhanced-Size": str(result.final_size),
        "X-Enhancement-Applied": ", ".join(result.applied_steps),
    })
    return Response(content=result.data, media_type="image/png", headers=headers)


# ── Routes ─────────────────────────────────────────────────────────────────


@router.get("/")
async def health():
    return {
        "status": "ok",
        "service": SERVICE_NAME,
        "version": SERVICE_VERSION,
        "endpoints": ENDPOINTS,
        "tech": {
            "engine": f"Python {platform.python_version()}",
            "imageProcessor": f"Pillow {PIL.__version__}",
            "libwebp": features.version("webp"),
        },
    }


@router.get("/stats")
async def service_stats(request: Request):
    return request.app.state.stats.snapshot()


@router.post("/")
async def compress_raw(request: Request):
    limit = request.app.state.config.max_upload_size
    result, error = await _run_pipeline(
        request,
        lambda: read_limited_body(request, limit),
        compress,
        "compress_budget",
        "Compression failed",
    )
    return error or _compressed_response(result)


@router.post("/upload")
async def compress_upload(request: Request, file: Optional[UploadFile] = File(None)):
    limit = request.app.state.config.max_upload_size

    async def load() -> bytes:
        if file is None:
            raise EmptyInputError("No file field in multipart upload")
        if file.size is not None and file.size > limit:
            raise PayloadTooLargeError(f"Upload of {file.size} bytes exceeds limit of {limit} bytes")
        data = await file.read()
        if len(data) > limit:
            raise PayloadTooLargeError(f"Upload of {len(data)} bytes exceeds limit of {limit} bytes")
        return data

    result, error = await _run_pipeline(request, load, compress, "compress_budget", "Compression failed")
    return error or _compressed_response(result)


@router.post("/upload-enhance")
async def enhance_raw(request: Request):
    limit = request.app.state.config.max_upload_size
    result, error = await _run_pipeline(
        request,
        lambda: read_limited_body(request, limit),
        enhance,
        "enhance_budget",
        "OCR Enhancement failed",
    )
    return error or _enhanced_response(result)
