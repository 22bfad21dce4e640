"""
Scanner - positioned cursor over raw wikitext.

The scanner is the lexical primitive used by the node parser. It never
copies the remaining input: every test is done in place against the
original string, so a whole page parses in amortized linear time.

Usage:
    scanner = Scanner("{{en-noun}}")
    if scanner.starts_with("{{"):
        scanner.advance(2)
"""

from contextlib import contextmanager
from typing import Iterator, Optional, Pattern


class Scanner:
    """Cursor over a string with bounded lookahead."""

    def __init__(self, text: str):
        self.text = text
        self.pos = 0
        self.end = len(text)

    # =========================================================================
    # Position
    # =========================================================================

    def at_end(self) -> bool:
        """Check if the cursor reached the end (or the current bound)."""
        return self.pos >= self.end

    def at_line_start(self) -> bool:
        """Check if the cursor sits at the start of a line."""
        return self.pos == 0 or self.text[self.pos - 1] == "\n"

    def advance(self, n: int = 1) -> None:
        """Move the cursor forward by n characters, never past the bound."""
        self.pos = min(self.pos + n, self.end)

    @contextmanager
    def bounded(self, end: int) -> Iterator["Scanner"]:
        """Temporarily treat `end` as the end of input."""
        saved = self.end
        self.end = min(end, saved)
        try:
            yield self
        finally:
            self.end = saved

    # =========================================================================
    # Lookahead
    # =========================================================================

    def peek(self, n: int = 1) -> str:
        """Look ahead n characters without consuming."""
        return self.text[self.pos : min(self.pos + n, self.end)]

    def starts_with(self, literal: str) -> bool:
        """Check if the input at the cursor starts with `literal`."""
        return self.text.startswith(literal, self.pos, self.end)

    def starts_with_any(self, literals) -> Optional[str]:
        """Return the first of `literals` found at the cursor, if any."""
        for literal in literals:
            if self.text.startswith(literal, self.pos, self.end):
                return literal
        return None

    def match(self, pattern: Pattern[str]):
        """Match a compiled pattern anchored at the cursor."""
        return pattern.match(self.text, self.pos, self.end)

    def skip(self, pattern: Pattern[str]) -> int:
        """Consume whatever `pattern` matches at the cursor; return the length."""
        m = pattern.match(self.text, self.pos, self.end)
        if m is None:
            return 0
        self.pos = m.end()
        return m.end() - m.start()

    def find(self, literal: str, start: Optional[int] = None) -> int:
        """Position of the next `literal` at or after `start`, or -1."""
        return self.text.find(literal, self.pos if start is None else start, self.end)

    def search(self, pattern: Pattern[str]):
        """Search for a compiled pattern from the cursor to the bound."""
        return pattern.search(self.text, self.pos, self.end)

    def line_end(self) -> int:
        """Position of the next line break, or the bound."""
        index = self.text.find("\n", self.pos, self.end)
        return self.end if index == -1 else index

    # =========================================================================
    # Extraction
    # =========================================================================

    def slice(self, start: int, end: Optional[int] = None) -> str:
        """Return the text between two positions (end defaults to the cursor)."""
        return self.text[start : self.pos if end is None else end]
