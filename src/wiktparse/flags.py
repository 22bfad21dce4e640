"""
Diagnostics for a single page parse.

Anomalies found while parsing are never raised. They are recorded as
Flag objects in a FlagCollector that is created per parse, threaded
through every stage, and closed when the Entry is produced.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


@dataclass(frozen=True)
class Span:
    """Half-open character range [start, end) into the page text."""

    start: int
    end: int

    def __len__(self) -> int:
        return self.end - self.start

    def contains(self, other: "Span") -> bool:
        """Check if `other` lies within this span."""
        return self.start <= other.start and other.end <= self.end


class FlagKind(str, Enum):
    """Categories of non-fatal anomalies."""

    UNBALANCED = "unbalanced"  # opener without closer
    DEPTH_LIMIT = "depth_limit"  # nesting deeper than the parser allows
    UNKNOWN_SECTION = "unknown_section"  # heading with no configured kind
    UNKNOWN_SYNTAX = "unknown_syntax"  # unrecognized list or table syntax
    MALFORMED_TEMPLATE = "malformed_template"  # bad template name or arguments
    EMPTY = "empty"  # element missing required content
    SECTION_EMPTY = "section_empty"  # section missing required content
    DUPLICATE = "duplicate"  # repeats something seen before
    UNRECOGNIZED = "unrecognized"  # element not understood in this position
    VALUE_UNRECOGNIZED = "value_unrecognized"  # element understood, value not
    VALUE_CONFLICTING = "value_conflicting"  # value contradicts its context


@dataclass(frozen=True)
class Flag:
    """A non-fatal anomaly, positioned in the page text."""

    kind: FlagKind
    span: Span
    detail: str = ""
    language: Optional[str] = None  # language block the flag occurred in


class FlagCollector:
    """
    Append-only accumulator of flags for one page parse.

    The `language` attribute is set by the page driver while a language
    block is being classified, so flags record where they came from.
    """

    def __init__(self):
        self._flags: list[Flag] = []
        self._closed = False
        self.language: Optional[str] = None

    def add(self, kind: FlagKind, span: Span, detail: str = "") -> Flag:
        """Record a flag and return it."""
        if self._closed:
            raise RuntimeError("flag collector is closed; the parse already finished")
        flag = Flag(kind=kind, span=span, detail=detail, language=self.language)
        self._flags.append(flag)
        return flag

    @property
    def flags(self) -> list[Flag]:
        """All flags recorded so far, in order (a copy)."""
        return list(self._flags)

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> list[Flag]:
        """Make the collector read-only and return the final flag list."""
        self._closed = True
        return list(self._flags)

    def mark(self) -> int:
        """Return a marker for `since()`."""
        return len(self._flags)

    def since(self, mark: int) -> list[Flag]:
        """Flags recorded after `mark` was taken."""
        return self._flags[mark:]

    def within(self, span: Span) -> list[Flag]:
        """Flags positioned inside `span`."""
        return [flag for flag in self._flags if span.contains(flag.span)]

    def __len__(self) -> int:
        return len(self._flags)
