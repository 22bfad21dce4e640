"""
Free-form documents: ordered, typed elements for section content that is
not regular enough for a semantic record.

The transform from nodes is pure and total. Inline nodes are flattened into
paragraph text, block nodes map to their own element type, and whatever is
left over becomes an UnparsedElement carrying the source text, so content
is never dropped silently. Comments and categorizing links have no display
text and disappear.
"""

import re
from dataclasses import dataclass, field
from typing import Iterator, Union

from .flags import Span
from .nodes import (
    Comment,
    ExternalLink,
    Formatting,
    Heading,
    Link,
    ListKind,
    ListNode,
    Node,
    Table,
    Tag,
    Template,
    Text,
    Unparsed,
)
from .render import template_call, text_of

_BLANK_LINE = re.compile(r"\n[ \t]*\n\s*")
_WHITESPACE = re.compile(r"\s+")


# =============================================================================
# Elements
# =============================================================================


@dataclass
class Paragraph:
    text: str
    span: Span


@dataclass
class ItemElement:
    """One list item; nested lists appear among its elements."""

    marker: str
    elements: list["FreeFormElement"]
    span: Span


@dataclass
class ListElement:
    kind: ListKind
    items: list[ItemElement]
    span: Span


@dataclass
class CellElement:
    header: bool
    elements: list["FreeFormElement"]
    span: Span


@dataclass
class TableElement:
    rows: list[list[CellElement]]
    caption: str
    span: Span


@dataclass
class TemplateReference:
    """A template invocation, kept unexpanded."""

    name: str
    positional: list[str]
    named: dict[str, str]
    span: Span


@dataclass
class Reference:
    """Content of a <ref> footnote."""

    text: str
    attributes: str
    span: Span


@dataclass
class UnparsedElement:
    """Source text that was never understood, kept verbatim."""

    raw: str
    span: Span


FreeFormElement = Union[
    Paragraph,
    ListElement,
    TableElement,
    TemplateReference,
    Reference,
    UnparsedElement,
]


@dataclass
class FreeFormDocument:
    elements: list[FreeFormElement] = field(default_factory=list)

    def __iter__(self) -> Iterator[FreeFormElement]:
        return iter(self.elements)

    def __len__(self) -> int:
        return len(self.elements)

    @property
    def unparsed(self) -> list[UnparsedElement]:
        """Top-level unparsed elements."""
        return [e for e in self.elements if isinstance(e, UnparsedElement)]

    def text(self) -> str:
        """Paragraph text of the document, one paragraph per line."""
        return "\n".join(e.text for e in self.elements if isinstance(e, Paragraph))


# =============================================================================
# Transform
# =============================================================================


def _is_inline(node: Node) -> bool:
    if isinstance(node, (Text, Link, ExternalLink, Formatting)):
        return True
    return isinstance(node, Tag) and node.name not in ("ref", "references")


def _paragraphs(run: list[Node]) -> list[Paragraph]:
    """Merge inline nodes into paragraphs, splitting on blank lines."""
    paragraphs: list[Paragraph] = []
    parts: list[str] = []
    start = end = -1

    def close() -> None:
        text = _WHITESPACE.sub(" ", "".join(parts)).strip()
        if text:
            paragraphs.append(Paragraph(text, Span(start, end)))
        parts.clear()

    def add(piece: str, piece_start: int, piece_end: int) -> None:
        nonlocal start, end
        if not parts:
            start = piece_start
        parts.append(piece)
        end = piece_end

    for node in run:
        if not isinstance(node, Text):
            add(text_of([node]), node.span.start, node.span.end)
            continue
        offset = 0
        for m in _BLANK_LINE.finditer(node.value):
            add(node.value[offset:m.start()], node.span.start + offset, node.span.start + m.start())
            close()
            offset = m.end()
        if offset < len(node.value):
            add(node.value[offset:], node.span.start + offset, node.span.end)
    close()
    return paragraphs


def _element(node: Node) -> list[FreeFormElement]:
    if isinstance(node, Template):
        call = template_call(node)
        return [TemplateReference(call.name, call.positional, call.named, node.span)]

    if isinstance(node, ListNode):
        items = [ItemElement(item.marker, _elements(item.content), item.span) for item in node.items]
        return [ListElement(node.kind, items, node.span)]

    if isinstance(node, Table):
        rows = [
            [CellElement(cell.header, _elements(cell.content), cell.span) for cell in row.cells]
            for row in node.rows
        ]
        caption = text_of(node.caption).strip() if node.caption else ""
        return [TableElement(rows, caption, node.span)]

    if isinstance(node, Tag) and node.name == "ref":
        return [Reference(_WHITESPACE.sub(" ", text_of(node.content)).strip(), node.attributes, node.span)]

    if isinstance(node, Tag):
        # <references/> marks where footnotes are listed; it has no content.
        if not node.content:
            return []
        return [UnparsedElement(text_of(node.content), node.span)]

    if isinstance(node, Comment):
        return []

    if isinstance(node, Unparsed):
        return [UnparsedElement(node.raw, node.span)]

    if isinstance(node, Heading):
        marks = "=" * node.level
        return [UnparsedElement(f"{marks}{text_of(node.content)}{marks}", node.span)]

    return [UnparsedElement(text_of([node]), node.span)]


def _elements(nodes: list[Node]) -> list[FreeFormElement]:
    elements: list[FreeFormElement] = []
    run: list[Node] = []
    for node in nodes:
        if _is_inline(node):
            run.append(node)
            continue
        if isinstance(node, Comment):
            continue
        if run:
            elements.extend(_paragraphs(run))
            run = []
        elements.extend(_element(node))
    if run:
        elements.extend(_paragraphs(run))
    return elements


def to_free_form(nodes: list[Node]) -> FreeFormDocument:
    """
    Transform a node sequence into a free-form document.

    Deterministic: the same nodes always give an equal document.
    """
    return FreeFormDocument(_elements(nodes))
