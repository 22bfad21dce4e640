"""
Node types produced by the wikitext parser.

Every node is a plain dataclass with a `span` into the page text. The set
of node types is closed; consumers dispatch on the type with isinstance.

    Heading       == text ==
    Template      {{name|param|key=value}}
    Link          [[target|text]]
    ExternalLink  [https://example.org text]
    Table         {| ... |}
    ListNode      * item / # item / : item / ; term
    Formatting    ''italic'' / '''bold'''
    Comment       <!-- ... -->
    Tag           <ref>...</ref>, <br/>, <nowiki>...</nowiki>
    Text          literal text
    Unparsed      verbatim source the parser could not structure
"""

from dataclasses import dataclass
from enum import Enum
from typing import Iterator, Optional, Union

from .flags import Span


# =============================================================================
# Enumerations
# =============================================================================


class ListKind(str, Enum):
    BULLET = "bullet"  # *
    ORDERED = "ordered"  # #
    DEFINITION = "definition"  # : and ;


class FormattingKind(str, Enum):
    BOLD = "bold"
    ITALIC = "italic"


LIST_MARKERS = {
    "*": ListKind.BULLET,
    "#": ListKind.ORDERED,
    ":": ListKind.DEFINITION,
    ";": ListKind.DEFINITION,
}


# =============================================================================
# Nodes
# =============================================================================


@dataclass
class Text:
    value: str
    span: Span


@dataclass
class Unparsed:
    """Source text kept verbatim because it could not be structured."""

    raw: str
    span: Span


@dataclass
class Comment:
    value: str
    span: Span


@dataclass
class Heading:
    level: int
    content: list["Node"]
    span: Span


@dataclass
class Parameter:
    """A template parameter; `name` is None for positional parameters."""

    name: Optional[list["Node"]]
    value: list["Node"]
    span: Span

    @property
    def is_named(self) -> bool:
        return self.name is not None


@dataclass
class Template:
    name: list["Node"]
    parameters: list[Parameter]
    span: Span


@dataclass
class Link:
    target: list["Node"]
    text: Optional[list["Node"]]
    span: Span


@dataclass
class ExternalLink:
    url: str
    text: Optional[list["Node"]]
    span: Span


@dataclass
class TableCell:
    header: bool
    attributes: str
    content: list["Node"]
    span: Span


@dataclass
class TableRow:
    attributes: str
    cells: list[TableCell]
    span: Span


@dataclass
class Table:
    attributes: str
    caption: Optional[list["Node"]]
    rows: list[TableRow]
    span: Span


@dataclass
class ListItem:
    """One list line; nested lists are appended to `content`."""

    marker: str
    content: list["Node"]
    span: Span


@dataclass
class ListNode:
    kind: ListKind
    items: list[ListItem]
    span: Span


@dataclass
class Formatting:
    kind: FormattingKind
    content: list["Node"]
    span: Span


@dataclass
class Tag:
    """An HTML or extension tag; raw tags keep their content as one Text."""

    name: str
    attributes: str
    content: list["Node"]
    span: Span


Node = Union[
    Text,
    Unparsed,
    Comment,
    Heading,
    Template,
    Link,
    ExternalLink,
    Table,
    ListNode,
    Formatting,
    Tag,
]


# =============================================================================
# Traversal
# =============================================================================


def children(node: Node) -> Iterator[Node]:
    """Yield the direct child nodes of `node` in source order."""
    if isinstance(node, (Heading, Formatting, Tag)):
        yield from node.content
    elif isinstance(node, Template):
        yield from node.name
        for parameter in node.parameters:
            if parameter.name is not None:
                yield from parameter.name
            yield from parameter.value
    elif isinstance(node, Link):
        yield from node.target
        if node.text is not None:
            yield from node.text
    elif isinstance(node, ExternalLink):
        if node.text is not None:
            yield from node.text
    elif isinstance(node, ListNode):
        for item in node.items:
            yield from item.content
    elif isinstance(node, Table):
        if node.caption is not None:
            yield from node.caption
        for row in node.rows:
            for cell in row.cells:
                yield from cell.content


def walk(nodes: list[Node]) -> Iterator[Node]:
    """Yield every node in `nodes` and their descendants, depth first."""
    stack = list(reversed(nodes))
    while stack:
        node = stack.pop()
        yield node
        stack.extend(reversed(list(children(node))))


def is_blank(node: Node) -> bool:
    """Whitespace-only text and comments carry no content."""
    if isinstance(node, Text):
        return not node.value.strip()
    return isinstance(node, Comment)
