#!/usr/bin/env python3
"""
Benchmark html-press over a corpus of HTML pages.

For every page and press mode, reports the pressed size, how much of the
saving came from script and style bodies, and the mean press time.

Usage:
    python benchmarks/run_benchmark.py
    python benchmarks/run_benchmark.py --tokens            # requires tiktoken
    python benchmarks/run_benchmark.py --cache-dir /tmp/press-cache -o results.json
"""

from __future__ import annotations

import argparse
import json
import statistics
import sys
import time
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any

_PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(_PROJECT_ROOT / "src"))

from html_press import PressResult, build_options, press_with_stats  # noqa: E402

MODES: dict[str, dict[str, Any]] = {
    "default": {},
    "oneline": {"strip_line_breaks": True},
    "markup": {"script_minifier": None, "style_minifier": None},
}

_tokenizer = None


@dataclass(slots=True)
class PageRun:
    """One page pressed in one mode."""

    page: str
    mode: str
    original_chars: int
    pressed_chars: int
    savings_pct: float
    scripts: int
    styles: int
    embedded_saved_chars: int   # saved inside script/style bodies
    markup_saved_chars: int     # saved everywhere else
    mean_ms: float
    original_tokens: int | None = None
    pressed_tokens: int | None = None


def _load_tokenizer() -> bool:
    global _tokenizer  # noqa: PLW0603
    try:
        import tiktoken  # type: ignore[import-untyped]
    except ImportError:
        return False
    _tokenizer = tiktoken.get_encoding("cl100k_base")
    return True


def _tokens(text: str) -> int | None:
    return None if _tokenizer is None else len(_tokenizer.encode(text))


def summarize(page: str, mode: str, result: PressResult, timings: list[float]) -> PageRun:
    """Split a press result's savings between embedded bodies and markup."""
    embedded_saved = sum(b.original_length - b.compressed_length for b in result.embedded_blocks)
    total_saved = result.original_length - result.compressed_length
    return PageRun(
        page=page,
        mode=mode,
        original_chars=result.original_length,
        pressed_chars=result.compressed_length,
        savings_pct=result.savings_pct,
        scripts=sum(1 for b in result.embedded_blocks if b.kind == "script"),
        styles=sum(1 for b in result.embedded_blocks if b.kind == "style"),
        embedded_saved_chars=embedded_saved,
        markup_saved_chars=total_saved - embedded_saved,
        mean_ms=statistics.mean(timings),
    )


def press_page(
    page: str,
    html: str,
    *,
    iterations: int = 10,
    cache_dir: str | None = None,
) -> list[PageRun]:
    """Press one page in every mode."""
    runs = []
    for mode, overrides in MODES.items():
        options = build_options(cache_dir=cache_dir, **overrides)
        timings = []
        for _ in range(iterations):
            start = time.perf_counter()
            result = press_with_stats(html, options)
            timings.append((time.perf_counter() - start) * 1000)

        run = summarize(page, mode, result, timings)
        run.original_tokens = _tokens(html)
        run.pressed_tokens = _tokens(result.text)
        runs.append(run)
    return runs


def _print_runs(runs: list[PageRun]) -> None:
    print(f"{'page':<22} {'mode':<8} {'chars':>13} {'saved':>7} {'js/css':>6} "
          f"{'in bodies':>9} {'in markup':>9} {'ms':>7} {'tokens':>13}")
    for r in runs:
        tokens = "" if r.original_tokens is None else f"{r.original_tokens}->{r.pressed_tokens}"
        print(f"{r.page:<22} {r.mode:<8} {r.original_chars:>6}->{r.pressed_chars:<6} "
              f"{r.savings_pct:>6.1f}% {r.scripts:>3}/{r.styles:<2} "
              f"{r.embedded_saved_chars:>9} {r.markup_saved_chars:>9} {r.mean_ms:>7.2f} {tokens:>13}")


def run_benchmark(
    corpus_dir: Path,
    *,
    iterations: int = 10,
    cache_dir: str | None = None,
    output_path: Path | None = None,
) -> list[PageRun]:
    """Press every ``*.html`` page under *corpus_dir*, print a table and return the runs."""
    pages = sorted(corpus_dir.glob("*.html"))
    if not pages:
        raise SystemExit(f"No .html files found in {corpus_dir}")

    runs = []
    for path in pages:
        runs.extend(press_page(
            path.name,
            path.read_text(encoding="utf-8"),
            iterations=iterations,
            cache_dir=cache_dir,
        ))
    _print_runs(runs)

    if output_path is not None:
        output_path.parent.mkdir(parents=True, exist_ok=True)
        report = {"iterations": iterations, "cache_dir": cache_dir, "runs": [asdict(r) for r in runs]}
        output_path.write_text(json.dumps(report, indent=2), encoding="utf-8")
        print(f"Results saved to {output_path}")
    return runs


def main() -> None:
    parser = argparse.ArgumentParser(description="Benchmark html-press over an HTML corpus")
    parser.add_argument("--corpus", type=Path, default=Path(__file__).resolve().parent / "corpus")
    parser.add_argument("--iterations", type=int, default=10, help="press runs per page and mode")
    parser.add_argument("--cache-dir", default=None, help="minifier result cache directory")
    parser.add_argument("--tokens", action="store_true", help="count cl100k tokens with tiktoken")
    parser.add_argument("--output", "-o", type=Path, default=None, help="write a JSON report here")
    args = parser.parse_args()

    if args.tokens and not _load_tokenizer():
        print("tiktoken not installed, token counts skipped (pip install tiktoken)")

    run_benchmark(
        args.corpus,
        iterations=args.iterations,
        cache_dir=args.cache_dir,
        output_path=args.output,
    )


if __name__ == "__main__":
    main()
