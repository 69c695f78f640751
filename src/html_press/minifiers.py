"""Script and style minifiers used for embedded blocks.

Both minifiers are pure functions of their input. When a cache directory is
given, results are stored under ``<cache_dir>/js`` or ``<cache_dir>/css`` in
files named by a SHA-256 digest of the input text and options, so several
processes can share one directory.
"""

from __future__ import annotations

import hashlib
import json
import logging
import os
import re
import tempfile
from collections.abc import Callable, Mapping
from pathlib import Path
from typing import Any

import rcssmin
import rjsmin

from html_press.errors import CompressorError

logger = logging.getLogger(__name__)

_TRAILING_SEMICOLON_RE = re.compile(r";\s*$")

_DEFAULT_SCRIPT_OPTIONS: dict[str, Any] = {"keep_bang_comments": False}


def _cache_file(cache_dir: str | os.PathLike[str], subdir: str, text: str, options: Mapping[str, Any]) -> Path:
    """Content-addressed location for a cached result."""
    key = json.dumps({"text": text, "options": dict(options)}, sort_keys=True, default=str)
    digest = hashlib.sha256(key.encode("utf-8")).hexdigest()
    return Path(cache_dir) / subdir / digest


def _read_cache(path: Path) -> str | None:
    try:
        return path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return None


def _write_cache(path: Path, value: str) -> None:
    # Write to a sibling temp file and rename, so readers never see a partial entry.
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=".tmp-")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(value)
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


def _run_cached(
    kind: str,
    subdir: str,
    text: str,
    options: Mapping[str, Any],
    cache_dir: str | os.PathLike[str] | None,
    minify: Callable[[str], str],
) -> str:
    cache_hit = None
    if cache_dir is not None:
        cache_hit = _cache_file(cache_dir, subdir, text, options)
        cached = _read_cache(cache_hit)
        if cached is not None:
            logger.debug("%s cache hit: %s", kind, cache_hit.name)
            return cached

    try:
        result = minify(text)
    except Exception as e:
        raise CompressorError(kind, text, str(e)) from e

    if cache_hit is not None:
        _write_cache(cache_hit, result)
        logger.debug("%s cache store: %s", kind, cache_hit.name)
    return result


def minify_script(
    text: str,
    options: Mapping[str, Any] | None = None,
    cache_dir: str | os.PathLike[str] | None = None,
) -> str:
    """Minify JavaScript with rjsmin.

    Args:
        text: Script source.
        options: Keyword arguments forwarded to ``rjsmin.jsmin``.
        cache_dir: Optional directory for the on-disk result cache.

    Returns:
        Minified script with a single trailing semicolon removed.

    Raises:
        CompressorError: If rjsmin rejects the source or the options.
    """
    effective = {**_DEFAULT_SCRIPT_OPTIONS, **(options or {})}

    def run(source: str) -> str:
        return _TRAILING_SEMICOLON_RE.sub("", rjsmin.jsmin(source, **effective))

    return _run_cached("script", "js", text, effective, cache_dir, run)


def minify_style(text: str, cache_dir: str | os.PathLike[str] | None = None) -> str:
    """Minify CSS with rcssmin, optionally through the on-disk cache."""

    def run(source: str) -> str:
        return rcssmin.cssmin(source, keep_bang_comments=False)

    return _run_cached("style", "css", text, {}, cache_dir, run)
