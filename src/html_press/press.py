"""Core pressing logic."""

from __future__ import annotations

import dataclasses
import functools
import logging
import os
import re
import secrets
from typing import IO, Any

from html_press.errors import CompressorError
from html_press.options import PressOptions, build_options
from html_press.scanner import EmbeddedContext, scan_tags

logger = logging.getLogger(__name__)

_INDENT = "  "


@dataclasses.dataclass(frozen=True, slots=True)
class EmbeddedBlock:
    """A script or style body handed to a minifier."""

    kind: str              # "script" or "style"
    original_length: int   # len(body) before minifying
    compressed_length: int  # len(body) after minifying


@dataclasses.dataclass(frozen=True, slots=True)
class PressResult:
    """Result of a press run with statistics."""

    text: str                                   # the pressed document
    original_length: int                        # len(original input)
    compressed_length: int                      # len(text)
    ratio: float                                # compressed_length / original_length (0.0–1.0)
    savings_pct: float                          # (1 - ratio) * 100
    embedded_blocks: tuple[EmbeddedBlock, ...]  # minified script/style bodies, in order

    def __str__(self) -> str:
        return self.text


_EMPTY_COMMENT_RE = re.compile(r"<!--[ \t]*-->")
_LINE_EDGE_WS_RE = re.compile(r"^[ \t]+|[ \t]+$", re.MULTILINE)
_BETWEEN_TAGS_RE = re.compile(r">([^<]+)<")
_TEXT_EDGE_WS_RE = re.compile(r"\A[ \t]+|[ \t]+\Z")
_LINE_BREAKS_RE = re.compile(r"[\r\n]+")
_HORIZONTAL_WS_RE = re.compile(r"[ \t]+")
_ATTRIBUTES_RE = re.compile(r"<([a-z\-:]+)([^>]*?)(/?)>", re.IGNORECASE)


@functools.lru_cache(maxsize=32)
def _block_element_re(names: tuple[str, ...]) -> re.Pattern[str]:
    alternation = "|".join(sorted((re.escape(n) for n in names), key=len, reverse=True))
    return re.compile(rf"[ \t]+(</?(?:{alternation})\b[^>]*>)", re.IGNORECASE)


@functools.lru_cache(maxsize=32)
def _void_element_re(names: tuple[str, ...]) -> re.Pattern[str]:
    alternation = "|".join(sorted((re.escape(n) for n in names), key=len, reverse=True))
    return re.compile(rf"<({alternation})(?![\w\-:])([^>]*?)\s*/*>", re.IGNORECASE)


class _Shelf:
    """Keeps minified bodies out of the markup passes.

    Each body is replaced by a single placeholder line that no markup pass
    rewrites; :meth:`restore` puts the bodies back. One-line output restores
    them flattened before the markup passes instead.
    """

    def __init__(self) -> None:
        self.token = f"HTMLPRESS{secrets.token_hex(8)}x"
        self.bodies: list[str] = []
        self._pattern = re.compile(re.escape(self.token) + r"(\d+)")

    def put(self, body: str) -> str:
        self.bodies.append(body)
        return f"{self.token}{len(self.bodies) - 1}"

    def restore(self, text: str, flatten: bool = False) -> str:
        """Reinsert the bodies, each trimmed line by line.

        With *flatten* each body is joined onto a single line.
        """
        if not self.bodies:
            return text

        def body(m: re.Match[str]) -> str:
            restored = _trim_lines(self.bodies[int(m.group(1))])
            if flatten:
                restored = _LINE_BREAKS_RE.sub(" ", restored.strip("\n"))
            return restored

        return self._pattern.sub(body, text)


def _log(options: PressOptions, message: str) -> None:
    if options.logger is not None:
        options.logger.error(message)


def _minify_block(kind: str, body: str, options: PressOptions) -> str:
    """Run the configured minifier for *kind*; identity when none is configured."""
    try:
        if kind == "script":
            if options.script_minifier is None:
                return body
            return options.script_minifier(body, options.script_options, options.cache_dir)
        if options.style_minifier is None:
            return body
        return options.style_minifier(body, options.cache_dir)
    except CompressorError:
        _log(options, f"{kind} minifier problem with code snippet:\n---\n{body}\n---")
        raise
    except Exception as e:
        _log(options, f"{kind} minifier problem with code snippet:\n---\n{body}\n---")
        raise CompressorError(kind, body, str(e)) from e


def _strip_carriage_returns(text: str) -> str:
    return text.replace("\r", "")


def _extract_embedded(
    text: str,
    kind: str,
    options: PressOptions,
    shelf: _Shelf,
    blocks: list[EmbeddedBlock],
) -> str:
    """Minify the interior lines of every top-level ``<kind>`` block.

    Lines holding the opening or closing tag stay in the markup; only lines
    strictly between them are minified. The result is shelved in place of the
    interior. A block left open at end of input is shelved unminified.
    """
    context = EmbeddedContext((kind,))
    res: list[str] = []
    buffer: list[str] = []

    for line in text.split("\n"):
        was_inside = context.inside
        crossed = False

        for tag in scan_tags(line):
            transition = context.feed(tag)
            if transition == "enter":
                crossed = True
                buffer = []
            elif transition == "exit":
                crossed = True
                body = "\n".join(buffer)
                buffer = []
                if body.strip():
                    compressed = _minify_block(kind, body, options)
                    blocks.append(EmbeddedBlock(kind, len(body), len(compressed)))
                    res.append(shelf.put(compressed))

        if was_inside and context.inside and not crossed:
            buffer.append(line)
        else:
            res.append(line)

    if context.inside and buffer:
        logger.debug("unterminated <%s> block left as is", kind)
        res.append(shelf.put("\n".join(buffer)))

    return "\n".join(res)


def _strip_empty_comments(text: str) -> str:
    """Remove ``<!-- -->`` comments holding only spaces or tabs."""
    return _EMPTY_COMMENT_RE.sub("", text)


def _trim_lines(text: str) -> str:
    return _LINE_EDGE_WS_RE.sub("", text)


def _collapse_block_whitespace(text: str, block_elements: tuple[str, ...]) -> str:
    """Drop whitespace before block-level tags and squeeze it at text edges.

    Spaces and tabs right before a block-level tag are removed. For text
    between two tags, each leading or trailing run of spaces/tabs becomes a
    single space.
    """
    if block_elements:
        text = _block_element_re(block_elements).sub(r"\1", text)
    return _BETWEEN_TAGS_RE.sub(
        lambda m: ">" + _TEXT_EDGE_WS_RE.sub(" ", m.group(1)) + "<",
        text,
    )


def _remove_empty_lines(text: str) -> str:
    return "\n".join(line for line in text.split("\n") if line)


def _normalize_whitespace(text: str, strip_line_breaks: bool = False) -> str:
    """Collapse line-break and space runs, then drop empty lines.

    With *strip_line_breaks* every run of line breaks becomes a space and the
    document ends up on one line.
    """
    text = _LINE_BREAKS_RE.sub(" " if strip_line_breaks else "\n", text)
    text = _HORIZONTAL_WS_RE.sub(" ", text)
    if strip_line_breaks:
        text = text.strip(" ")
    return _remove_empty_lines(text)


def _normalize_attributes(text: str) -> str:
    def squeeze(m: re.Match[str]) -> str:
        attributes = _HORIZONTAL_WS_RE.sub(" ", _LINE_BREAKS_RE.sub(" ", m.group(2))).rstrip()
        return f"<{m.group(1)}{attributes}{m.group(3)}>"

    return _ATTRIBUTES_RE.sub(squeeze, text)


def _fix_void_elements(text: str, void_elements: tuple[str, ...]) -> str:
    """Rewrite void elements as ``<name attrs/>``."""
    if not void_elements:
        return text
    return _void_element_re(void_elements).sub(r"<\1\2/>", text)


def _reindent(text: str) -> str:
    """Indent each line by its nesting depth, two spaces per level.

    A line is indented at the shallower of the depth before and after it,
    so a line that closes a tag sits at the level of its opener. Tags inside
    script and style bodies do not count; the block itself counts as one
    level.
    """
    level = 0
    context = EmbeddedContext()
    res: list[str] = []

    for line in text.split("\n"):
        pre_level = level

        for tag in scan_tags(line):
            transition = context.feed(tag)
            if transition == "enter":
                level += 1
            elif transition == "exit":
                level = max(level - 1, 0)
            elif transition is None and tag.counts_for_nesting:
                level = max(level - 1, 0) if tag.closing else level + 1

        res.append(_INDENT * min(pre_level, level) + line)

    return "\n".join(res)


def press_with_stats(
    html: str | IO[str],
    options: PressOptions | None = None,
    **overrides: Any,
) -> PressResult:
    """Press a markup document and return statistics about the run.

    Args:
        html: Markup text, or an object with a ``read()`` method.
        options: Press options (defaults when omitted).
        **overrides: Option values by name, applied on top of *options*.
            Deprecated names are accepted with a warning.

    Returns:
        PressResult with the pressed text and statistics.

    Raises:
        ConfigurationError: If the options are invalid.
        CompressorError: If a script or style minifier fails.
    """
    opts = build_options(options, **overrides)
    text = html.read() if hasattr(html, "read") else html
    original_length = len(text)

    shelf = _Shelf()
    blocks: list[EmbeddedBlock] = []

    out = _strip_carriage_returns(text)
    out = _extract_embedded(out, "script", opts, shelf, blocks)
    out = _extract_embedded(out, "style", opts, shelf, blocks)
    if opts.strip_line_breaks:
        # bodies end up on their tag's line, where the markup passes apply
        out = shelf.restore(out, flatten=True)
    out = _strip_empty_comments(out)
    out = _trim_lines(out)
    out = _collapse_block_whitespace(out, opts.block_elements)
    out = _normalize_whitespace(out, opts.strip_line_breaks)
    if opts.strip_line_breaks:
        # joined lines leave a space in front of block tags that began a line
        out = _collapse_block_whitespace(out, opts.block_elements)
    out = _normalize_attributes(out)
    out = _fix_void_elements(out, opts.void_elements)
    out = _remove_empty_lines(shelf.restore(out))
    out = _reindent(out)

    compressed_length = len(out)
    ratio = compressed_length / original_length if original_length > 0 else 1.0
    logger.debug(
        "pressed %d -> %d chars, %d embedded blocks",
        original_length, compressed_length, len(blocks),
    )

    return PressResult(
        text=out,
        original_length=original_length,
        compressed_length=compressed_length,
        ratio=ratio,
        savings_pct=(1 - ratio) * 100,
        embedded_blocks=tuple(blocks),
    )


def press(html: str | IO[str], options: PressOptions | None = None, **overrides: Any) -> str:
    """Compact a markup document.

    Removes carriage returns and empty comments, minifies multi-line script
    and style bodies, collapses redundant whitespace, tidies attribute
    spacing, self-closes void elements and re-indents by nesting depth.

    Args:
        html: Markup text, or an object with a ``read()`` method.
        options: Press options (defaults when omitted).
        **overrides: Option values by name, applied on top of *options*.

    Returns:
        The pressed document.

    Raises:
        ConfigurationError: If the options are invalid.
        CompressorError: If a script or style minifier fails.

    Example:
        >>> press("<div>\\n  <p>Hello   world</p>\\n</div>")
        '<div>\\n  <p>Hello world</p>\\n</div>'
    """
    return press_with_stats(html, options, **overrides).text


def press_file(
    file_path: str | os.PathLike[str],
    options: PressOptions | None = None,
    encoding: str = "utf-8",
    **overrides: Any,
) -> str:
    """Read a whole file and press it.

    Raises:
        FileNotFoundError: If the file does not exist.
    """
    with open(file_path, encoding=encoding) as f:
        return press(f, options, **overrides)
