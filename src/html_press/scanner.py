"""Tag scanning shared by the extraction and reindent passes."""

from __future__ import annotations

import dataclasses
import re
from collections.abc import Iterator

EMBEDDED_KINDS = ("script", "style")

_TAG_RE = re.compile(
    r"<(?P<bang>!?)(?P<slash>/?)(?P<name>[a-z\-:]+)(?P<attributes>[^>]*?)>",
    re.IGNORECASE,
)


@dataclasses.dataclass(frozen=True, slots=True)
class TagMatch:
    """A single ``<name ...>`` or ``</name>`` occurrence on a line."""

    name: str              # lowercase, without the leading "/"
    closing: bool          # True for "</name>"
    attributes: str        # raw text between the name and ">"
    self_closing: bool     # the tag ends in "/>"
    is_declaration: bool   # "<!...>" constructs (doctype, comments)
    start: int
    end: int

    @property
    def counts_for_nesting(self) -> bool:
        return not (self.is_declaration or self.self_closing)


def scan_tags(line: str) -> Iterator[TagMatch]:
    """Yield the tags found in *line*, left to right, without overlap."""
    for m in _TAG_RE.finditer(line):
        yield TagMatch(
            name=m.group("name").lower(),
            closing=bool(m.group("slash")),
            attributes=m.group("attributes"),
            self_closing=m.group(0).endswith("/>"),
            is_declaration=bool(m.group("bang")),
            start=m.start(),
            end=m.end(),
        )


class EmbeddedContext:
    """Tracks whether scanning is in markup or inside a script/style body.

    The context is either in markup (``kind is None``) or inside exactly one
    embedded kind at some depth. Only tags of the active kind move the depth
    while inside; a ``<style>`` inside a script is script text.

    ``feed`` returns ``"enter"`` when a block opens from markup, ``"exit"``
    when the outermost block closes, ``"inside"`` for any other tag seen
    while inside a block, and ``None`` for ordinary markup tags.
    """

    __slots__ = ("kinds", "kind", "depth")

    def __init__(self, kinds: tuple[str, ...] = EMBEDDED_KINDS) -> None:
        self.kinds = kinds
        self.kind: str | None = None
        self.depth = 0

    @property
    def inside(self) -> bool:
        return self.depth > 0

    def feed(self, tag: TagMatch) -> str | None:
        if not tag.counts_for_nesting:
            return "inside" if self.inside else None

        if self.kind is None:
            if tag.name in self.kinds and not tag.closing:
                self.kind = tag.name
                self.depth = 1
                return "enter"
            return None

        if tag.name == self.kind:
            if not tag.closing:
                self.depth += 1
            else:
                self.depth -= 1
                if self.depth == 0:
                    self.kind = None
                    return "exit"
        return "inside"
