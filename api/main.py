"""FastAPI REST API for html-press."""

from __future__ import annotations

import hashlib
import json
import logging
import os
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

import redis.asyncio as aioredis
from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field
from redis.exceptions import RedisError

from html_press import (
    CompressorError,
    PressOptions,
    PressResult,
    build_options,
    press,
    press_with_stats,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Redis Cache
# ---------------------------------------------------------------------------

redis_client: aioredis.Redis | None = None

# Cache TTL in seconds (default: 1 hour)
CACHE_TTL = int(os.getenv("CACHE_TTL", "3600"))

# Redis connection URL
REDIS_URL = os.getenv("REDIS_URL", "redis://redis:6379")

# On-disk cache shared by the script/style minifiers (disabled when unset)
MINIFIER_CACHE_DIR = os.getenv("HTML_PRESS_CACHE_DIR") or None


def _generate_cache_key(prefix: str, data: dict) -> str:
    """Generate a cache key from request data."""
    # Sort dict keys for consistent hashing
    sorted_data = json.dumps(data, sort_keys=True)
    hash_value = hashlib.sha256(sorted_data.encode()).hexdigest()[:16]
    return f"{prefix}:{hash_value}"


# ---------------------------------------------------------------------------
# Request / Response models
# ---------------------------------------------------------------------------


class PressRequest(BaseModel):
    """Request body for press endpoints."""

    html: str = Field(..., description="Markup to press")
    strip_line_breaks: bool = Field(
        default=False, description="Join lines with spaces instead of keeping line breaks"
    )
    minify_scripts: bool = Field(default=True, description="Minify multi-line <script> bodies")
    minify_styles: bool = Field(default=True, description="Minify multi-line <style> bodies")
    script_options: dict[str, Any] | None = Field(
        default=None, description="Keyword options forwarded to the script minifier"
    )

    model_config = {"json_schema_extra": {
        "examples": [
            {
                "html": "<div>\n  <p>Hello   world</p>\n  <br>\n</div>",
                "strip_line_breaks": False,
            }
        ]
    }}


class PressResponse(BaseModel):
    """Response body for the /press endpoint."""

    html: str = Field(..., description="Pressed markup")


class EmbeddedBlockResponse(BaseModel):
    """A minified script or style body."""

    kind: str
    original_length: int
    compressed_length: int


class PressStatsResponse(BaseModel):
    """Response body for the /press/stats endpoint."""

    html: str = Field(..., description="Pressed markup")
    original_length: int = Field(..., description="Original markup length")
    compressed_length: int = Field(..., description="Pressed markup length")
    ratio: float = Field(..., description="Compression ratio (0.0-1.0)")
    savings_pct: float = Field(..., description="Percentage of characters saved")
    embedded_blocks: list[EmbeddedBlockResponse] = Field(
        default_factory=list, description="Script and style bodies that were minified"
    )


class BatchItem(BaseModel):
    """A single document in a batch press request."""

    id: str = Field(..., description="Unique identifier for this item")
    html: str = Field(..., description="Markup to press")


class BatchRequest(BaseModel):
    """Request body for batch pressing."""

    items: list[BatchItem] = Field(..., description="Documents to press")
    strip_line_breaks: bool = Field(default=False)
    minify_scripts: bool = Field(default=True)
    minify_styles: bool = Field(default=True)
    script_options: dict[str, Any] | None = Field(default=None)


class BatchItemResponse(BaseModel):
    """A single result in a batch press response."""

    id: str
    html: str
    original_length: int
    compressed_length: int
    ratio: float
    savings_pct: float


class BatchResponse(BaseModel):
    """Response body for batch pressing."""

    items: list[BatchItemResponse]
    total_original_length: int
    total_compressed_length: int
    overall_ratio: float
    overall_savings_pct: float


class HealthResponse(BaseModel):
    """Response body for health check."""

    status: str = "ok"
    version: str
    cache_enabled: bool = False
    redis_connected: bool = False


class CacheStatsResponse(BaseModel):
    """Response body for cache statistics."""

    enabled: bool
    connected: bool
    ttl_seconds: int
    redis_url: str
    keys_count: int | None = None
    memory_used: str | None = None


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _build_options(req: PressRequest | BatchRequest) -> PressOptions:
    """Build press options from a request model."""
    kwargs: dict[str, Any] = {
        "strip_line_breaks": req.strip_line_breaks,
        "script_options": req.script_options,
        "cache_dir": MINIFIER_CACHE_DIR,
    }
    if not req.minify_scripts:
        kwargs["script_minifier"] = None
    if not req.minify_styles:
        kwargs["style_minifier"] = None
    return build_options(**kwargs)


def _result_to_stats_response(result: PressResult) -> PressStatsResponse:
    """Convert a PressResult to the API response model."""
    return PressStatsResponse(
        html=result.text,
        original_length=result.original_length,
        compressed_length=result.compressed_length,
        ratio=result.ratio,
        savings_pct=result.savings_pct,
        embedded_blocks=[
            EmbeddedBlockResponse(
                kind=block.kind,
                original_length=block.original_length,
                compressed_length=block.compressed_length,
            )
            for block in result.embedded_blocks
        ],
    )


# ---------------------------------------------------------------------------
# Application
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage application lifespan - setup Redis connection."""
    global redis_client
    try:
        redis_client = await aioredis.from_url(
            REDIS_URL,
            encoding="utf-8",
            decode_responses=True,
        )
        await redis_client.ping()
        logger.info("Connected to Redis at %s", REDIS_URL)
    except (RedisError, OSError) as e:
        logger.warning("Redis unavailable: %s. Caching disabled.", e)
        redis_client = None

    yield

    if redis_client:
        await redis_client.close()


app = FastAPI(
    title="html-press API",
    description=(
        "REST API for compacting HTML. Collapses redundant whitespace, drops "
        "empty comments, tidies attributes, self-closes void elements, minifies "
        "embedded scripts and styles and re-indents the result."
    ),
    version="0.1.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@app.get("/health", response_model=HealthResponse, tags=["Health"])
async def health_check() -> HealthResponse:
    """Check API health, version, and cache status."""
    redis_connected = False
    if redis_client:
        try:
            await redis_client.ping()
            redis_connected = True
        except (RedisError, OSError) as e:
            logger.warning("Redis ping failed: %s", e)

    return HealthResponse(
        status="ok",
        version="0.1.0",
        cache_enabled=redis_client is not None,
        redis_connected=redis_connected,
    )


@app.get("/cache/stats", response_model=CacheStatsResponse, tags=["Cache"])
async def cache_stats() -> CacheStatsResponse:
    """Get cache statistics and Redis connection info."""
    keys_count = None
    memory_used = None
    connected = False

    if redis_client:
        try:
            await redis_client.ping()
            connected = True
            keys_count = 0
            for pattern in ["press:*", "press_stats:*"]:
                keys_count += len(await redis_client.keys(pattern))

            info = await redis_client.info("memory")
            memory_used = info.get("used_memory_human", "unknown")
        except (RedisError, OSError) as e:
            logger.warning("Redis stats unavailable: %s", e)

    return CacheStatsResponse(
        enabled=redis_client is not None,
        connected=connected,
        ttl_seconds=CACHE_TTL,
        redis_url=REDIS_URL.split("@")[-1] if "@" in REDIS_URL else REDIS_URL,
        keys_count=keys_count,
        memory_used=memory_used,
    )


@app.post("/press", response_model=PressResponse, tags=["Press"])
async def press_html(req: PressRequest) -> PressResponse:
    """Press a markup document.

    Results are cached in Redis for improved performance.
    """
    try:
        cache_key = _generate_cache_key("press", req.model_dump())

        if redis_client:
            cached = await redis_client.get(cache_key)
            if cached:
                return PressResponse(html=cached)

        result = press(req.html, _build_options(req))

        if redis_client:
            await redis_client.setex(cache_key, CACHE_TTL, result)

        return PressResponse(html=result)
    except CompressorError as e:
        raise HTTPException(status_code=422, detail=f"{e.kind} block could not be minified: {e}") from e
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e)) from e


@app.post("/press/stats", response_model=PressStatsResponse, tags=["Press"])
async def press_html_with_stats(req: PressRequest) -> PressStatsResponse:
    """Press a markup document and return size statistics.

    Results are cached in Redis for improved performance.
    """
    try:
        cache_key = _generate_cache_key("press_stats", req.model_dump())

        if redis_client:
            cached = await redis_client.get(cache_key)
            if cached:
                return PressStatsResponse(**json.loads(cached))

        result = press_with_stats(req.html, _build_options(req))
        response = _result_to_stats_response(result)

        if redis_client:
            await redis_client.setex(cache_key, CACHE_TTL, response.model_dump_json())

        return response
    except CompressorError as e:
        raise HTTPException(status_code=422, detail=f"{e.kind} block could not be minified: {e}") from e
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e)) from e


@app.post("/press/batch", response_model=BatchResponse, tags=["Press"])
async def press_batch(req: BatchRequest) -> BatchResponse:
    """Press several documents with the same settings.

    Returns per-item results and aggregate statistics.
    """
    try:
        options = _build_options(req)
        items: list[BatchItemResponse] = []
        total_orig = 0
        total_comp = 0

        for item in req.items:
            result = press_with_stats(item.html, options)
            items.append(BatchItemResponse(
                id=item.id,
                html=result.text,
                original_length=result.original_length,
                compressed_length=result.compressed_length,
                ratio=result.ratio,
                savings_pct=result.savings_pct,
            ))
            total_orig += result.original_length
            total_comp += result.compressed_length

        overall_ratio = total_comp / total_orig if total_orig > 0 else 1.0
        return BatchResponse(
            items=items,
            total_original_length=total_orig,
            total_compressed_length=total_comp,
            overall_ratio=overall_ratio,
            overall_savings_pct=(1.0 - overall_ratio) * 100,
        )
    except CompressorError as e:
        raise HTTPException(status_code=422, detail=f"{e.kind} block could not be minified: {e}") from e
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e)) from e
