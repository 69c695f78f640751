"""Press configuration."""

from __future__ import annotations

import dataclasses
import os
import re
import warnings
from collections.abc import Callable, Iterable, Mapping
from typing import Any

from html_press.errors import ConfigurationError
from html_press.minifiers import minify_script, minify_style

# Elements whose surrounding whitespace does not affect rendering.
BLOCK_ELEMENTS: tuple[str, ...] = (
    "area", "base", "basefont", "blockquote", "body",
    "caption", "center", "cite", "col", "colgroup",
    "dd", "dir", "div", "dl", "dt",
    "fieldset", "form", "frame", "frameset",
    "h1", "h2", "h3", "h4", "h5", "h6",
    "head", "hr", "html", "legend", "li", "link",
    "map", "menu", "meta", "ol", "optgroup", "option",
    "p", "param",
    "table", "tbody", "td", "tfoot", "th", "thead", "title", "tr",
    "ul",
)

# http://dev.w3.org/html5/spec/syntax.html#void-elements
VOID_ELEMENTS: tuple[str, ...] = (
    "area", "base", "br", "col", "command", "embed", "hr", "img",
    "input", "keygen", "link", "meta", "param", "source", "track", "wbr",
)

# old name -> current name
DEPRECATED_OPTIONS: dict[str, str] = {
    "dump_empty_values": "drop_empty_values",
    "strip_crlf": "strip_line_breaks",
    "js_minifier_options": "script_options",
    "cache": "cache_dir",
}

_ELEMENT_NAME_RE = re.compile(r"^[a-z][a-z0-9\-:]*$")

ScriptMinifier = Callable[[str, Mapping[str, Any] | None, str | os.PathLike[str] | None], str]
StyleMinifier = Callable[[str, str | os.PathLike[str] | None], str]


def _element_names(field: str, names: Iterable[str]) -> tuple[str, ...]:
    if isinstance(names, str):
        raise ConfigurationError(f"{field} must be a collection of element names, not a string")
    result = tuple(name.lower() for name in names)
    for name in result:
        if not _ELEMENT_NAME_RE.match(name):
            raise ConfigurationError(f"Invalid element name in {field}: {name!r}")
    return result


@dataclasses.dataclass(frozen=True, slots=True)
class PressOptions:
    """Options for a press run. Validated once, at construction."""

    logger: Any = None                               # anything with an error(msg) method
    unquoted_attributes: bool = False                # reserved
    drop_empty_values: bool = False                  # reserved
    strip_line_breaks: bool = False                  # join lines with spaces instead of "\n"
    script_options: Mapping[str, Any] | None = None  # forwarded to the script minifier
    cache_dir: str | os.PathLike[str] | None = None  # forwarded to both minifiers
    script_minifier: ScriptMinifier | None = minify_script  # None: scripts pass through
    style_minifier: StyleMinifier | None = minify_style     # None: styles pass through
    block_elements: tuple[str, ...] = BLOCK_ELEMENTS
    void_elements: tuple[str, ...] = VOID_ELEMENTS

    def __post_init__(self) -> None:
        if self.logger is not None and not callable(getattr(self.logger, "error", None)):
            raise ConfigurationError("Logger has no error method")
        for name in ("script_minifier", "style_minifier"):
            value = getattr(self, name)
            if value is not None and not callable(value):
                raise ConfigurationError(f"{name} must be callable or None")
        if self.script_options is not None and not isinstance(self.script_options, Mapping):
            raise ConfigurationError("script_options must be a mapping")
        object.__setattr__(self, "block_elements", _element_names("block_elements", self.block_elements))
        object.__setattr__(self, "void_elements", _element_names("void_elements", self.void_elements))


_FIELD_NAMES = frozenset(f.name for f in dataclasses.fields(PressOptions))


def _migrate(options: Mapping[str, Any]) -> dict[str, Any]:
    """Rename deprecated option names, warning once per call site."""
    migrated: dict[str, Any] = {}
    for key, value in options.items():
        if key in DEPRECATED_OPTIONS:
            new_key = DEPRECATED_OPTIONS[key]
            warnings.warn(
                f"{key} is deprecated, use {new_key}",
                FutureWarning,
                stacklevel=3,
            )
            if new_key in options:
                raise ConfigurationError(f"Both {key} and {new_key} given")
            key = new_key
        elif key not in _FIELD_NAMES:
            raise ConfigurationError(f"Unknown option: {key}")
        migrated[key] = value
    return migrated


def build_options(base: PressOptions | None = None, **overrides: Any) -> PressOptions:
    """Build :class:`PressOptions` from keyword overrides.

    Deprecated names are remapped to their replacements before validation.

    Args:
        base: Options to start from (defaults when omitted).
        **overrides: Option values by name.

    Returns:
        A validated PressOptions.

    Raises:
        ConfigurationError: On unknown names or invalid values.
    """
    migrated = _migrate(overrides)
    if base is None:
        return PressOptions(**migrated)
    if not migrated:
        return base
    return dataclasses.replace(base, **migrated)
