"""
Shared context and helpers for section classifiers.

A classifier is a plain function:

    classify(nodes, ctx) -> record or None

It receives the direct content nodes of one section and returns a record
(possibly partial, with flags emitted through ctx) or None to refuse, in
which case the section is stored as a free-form document. Classifiers never
raise on malformed content.
"""

import re
from dataclasses import dataclass
from typing import Any, Callable, Optional

from ..config import Configuration
from ..flags import FlagCollector, FlagKind, Span
from ..freeform import UnparsedElement
from ..nodes import Comment, Node, Template, Text
from ..render import TemplateCall, template_call

# Text that only separates items on a line: "* {{l|en|a}}, {{l|en|b}}"
_SEPARATOR = re.compile(r"[\s,;:.()/~\-–—]*")
# Inline modifiers in column templates: "word<q:rare>"
_INLINE_MODIFIER = re.compile(r"<[^<>]*>")


@dataclass
class ClassifierContext:
    """What a classifier knows about the section it is looking at."""

    configuration: Configuration
    collector: FlagCollector
    language: str  # language block name, e.g. "English"
    code: str  # language code, e.g. "en"
    kind: str  # section kind, e.g. "noun"
    text: str  # full page text
    span: Span  # section heading; section-level flags are placed here

    def source(self, node: Node) -> str:
        """Verbatim page text of a node."""
        return self.text[node.span.start:node.span.end]

    def flag(self, kind: FlagKind, detail: str = "", span: Optional[Span] = None) -> None:
        self.collector.add(kind, span if span is not None else self.span, detail)

    def call(self, template: Template) -> TemplateCall:
        return template_call(template, self.collector)

    def unrecognized(self, node: Node, detail: str = "") -> UnparsedElement:
        """Keep a node verbatim and flag it as not understood here."""
        if not detail:
            detail = f"unexpected {type(node).__name__.lower()} in {self.kind} section"
        self.collector.add(FlagKind.UNRECOGNIZED, node.span, detail)
        return UnparsedElement(self.source(node), node.span)

    def check_language(self, code: Optional[str], what: str, span: Span) -> None:
        """Flag a language code that differs from the block's language."""
        if code and code != self.code:
            self.collector.add(
                FlagKind.VALUE_CONFLICTING,
                span,
                f"{what} has language '{code}' inside {self.language} ({self.code})",
            )


Classifier = Callable[[list[Node], ClassifierContext], Optional[Any]]


def is_separator(node: Node) -> bool:
    """Whitespace, punctuation-only text and comments."""
    if isinstance(node, Comment):
        return True
    return isinstance(node, Text) and _SEPARATOR.fullmatch(node.value) is not None


def strip_modifiers(value: str) -> str:
    return _INLINE_MODIFIER.sub("", value).strip()
