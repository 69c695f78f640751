"""Exceptions raised by html-press."""

from __future__ import annotations


class PressError(Exception):
    """Base class for html-press errors."""


class ConfigurationError(PressError, ValueError):
    """Invalid or incompatible press options."""


class CompressorError(PressError):
    """A script or style minifier failed on an embedded block."""

    def __init__(self, kind: str, snippet: str, message: str) -> None:
        super().__init__(f"{kind} minifier failed: {message}")
        self.kind = kind
        self.snippet = snippet
