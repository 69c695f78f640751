"""html-press - compact markup by squeezing whitespace and re-indenting it."""

from html_press.errors import CompressorError, ConfigurationError, PressError
from html_press.minifiers import minify_script, minify_style
from html_press.options import BLOCK_ELEMENTS, VOID_ELEMENTS, PressOptions, build_options
from html_press.press import EmbeddedBlock, PressResult, press, press_file, press_with_stats
from html_press.scanner import EmbeddedContext, TagMatch, scan_tags

__all__ = [
    "press",
    "press_with_stats",
    "press_file",
    "PressResult",
    "EmbeddedBlock",
    "PressOptions",
    "build_options",
    "BLOCK_ELEMENTS",
    "VOID_ELEMENTS",
    "minify_script",
    "minify_style",
    "scan_tags",
    "TagMatch",
    "EmbeddedContext",
    "PressError",
    "ConfigurationError",
    "CompressorError",
]
