"""
Plain-text rendering of parsed nodes.

Templates are never expanded. A small table of well-known templates is
rendered to the text they display (links, mentions, glosses); every other
template renders as nothing.

Usage:
    text_of(nodes)             # "word" for [[word]], {{l|en|word}}, ...
    call = template_call(node) # TemplateCall(name="l", positional=["en", "word"])
"""

import re
from dataclasses import dataclass, field
from typing import Iterator, Optional, Union

from .flags import FlagCollector, FlagKind, Span
from .nodes import (
    Comment,
    ExternalLink,
    Formatting,
    Heading,
    Link,
    ListNode,
    Node,
    Table,
    Tag,
    Template,
    Text,
    Unparsed,
    walk,
)

_WHITESPACE = re.compile(r"\s+")

CATEGORY_PREFIXES = ("category:", "cat:")
MEDIA_PREFIXES = ("file:", "image:", "media:")

LINK_TEMPLATES = frozenset({"l", "m", "mention", "link", "l-self", "ll", "m-self", "langname-mention"})
FIRST_PARAM_TEMPLATES = frozenset(
    {"gloss", "gl", "q", "qualifier", "i", "qual", "qf", "sense", "s", "taxlink", "vern", "nowrap"}
)
NON_GLOSS_TEMPLATES = frozenset({"non-gloss definition", "non-gloss", "n-g", "ngd"})
EXAMPLE_TEMPLATES = frozenset({"ux", "uxi", "usex", "eg", "co", "coi"})


# =============================================================================
# Name normalization
# =============================================================================


def normalize_heading(text: str) -> str:
    """
    Normalize heading text for lookup.

    Lowercases, collapses whitespace and strips trailing ":" or "."
    ("Usage notes:" and "usage  notes" both become "usage notes").
    """
    return _WHITESPACE.sub(" ", text).strip().rstrip(":.").strip().lower()


def normalize_template_name(name: str) -> str:
    """Normalize a template name: underscores as spaces, lowercase, no prefix."""
    name = _WHITESPACE.sub(" ", name.replace("_", " ")).strip().lower()
    if name.startswith("template:"):
        name = name[len("template:"):].strip()
    return name


# =============================================================================
# Links
# =============================================================================


def link_target(link: Link) -> str:
    """Target page of a wikilink without leading colon or #anchor."""
    target = text_of(link.target).strip()
    if target.startswith(":"):
        target = target[1:]
    return target.split("#", 1)[0].strip()


def link_category(link: Link) -> Optional[str]:
    """
    Category name for a categorizing link, e.g. [[Category:en:Cats]].

    A link with a leading colon ([[:Category:...]]) only points to the
    category page and does not categorize.
    """
    target = text_of(link.target).strip()
    lowered = target.lower()
    for prefix in CATEGORY_PREFIXES:
        if lowered.startswith(prefix):
            return target[len(prefix):].strip()
    return None


def is_media_link(link: Link) -> bool:
    """Check if a wikilink embeds a file rather than linking a page."""
    return text_of(link.target).strip().lower().startswith(MEDIA_PREFIXES)


def _link_text(link: Link) -> str:
    if link_category(link) is not None or is_media_link(link):
        return ""
    if link.text is not None:
        return text_of(link.text)
    target = text_of(link.target).strip()
    return target[1:] if target.startswith(":") else target


# =============================================================================
# Template calls
# =============================================================================


@dataclass
class TemplateCall:
    """A template invocation with its parameters rendered to plain text."""

    name: str
    positional: list[str] = field(default_factory=list)
    named: dict[str, str] = field(default_factory=dict)
    span: Span = Span(0, 0)

    def param(self, key: Union[int, str]) -> Optional[str]:
        """
        Look up a parameter; integers are 1-based positions.

        An explicitly numbered parameter ({{l|en|2=word}}) counts as
        positional.
        """
        if isinstance(key, int):
            if 1 <= key <= len(self.positional):
                return self.positional[key - 1]
            return self.named.get(str(key))
        return self.named.get(key)


def template_name(template: Template) -> str:
    return normalize_template_name(text_of(template.name))


def template_call(template: Template, collector: Optional[FlagCollector] = None) -> TemplateCall:
    """
    Convert a Template node into a TemplateCall.

    A parameter name that contains markup other than text is rendered
    anyway and flagged as an unrecognized value.
    """
    call = TemplateCall(name=template_name(template), span=template.span)
    for parameter in template.parameters:
        value = text_of(parameter.value).strip()
        if parameter.name is None:
            call.positional.append(value)
            continue
        if collector is not None and not all(
            isinstance(node, (Text, Comment)) for node in parameter.name
        ):
            collector.add(
                FlagKind.VALUE_UNRECOGNIZED,
                parameter.span,
                f"parameter name of '{call.name}' is not plain text",
            )
        call.named[text_of(parameter.name).strip()] = value
    return call


def find_templates(nodes: list[Node], *names: str) -> list[Template]:
    """
    Find all templates with the given names, at any depth.

    Args:
        nodes: Nodes to search
        *names: Template names to match (case-insensitive); all if empty
    """
    wanted = {normalize_template_name(name) for name in names}
    return [
        node
        for node in walk(nodes)
        if isinstance(node, Template) and (not wanted or template_name(node) in wanted)
    ]


def _template_to_text(template: Template) -> str:
    """
    Extract display text from a template.

    Handles common templates that produce text:
    - {{m|lang|word}} -> word (mention), {{l|lang|word|alt}} -> alt
    - {{w|word}} -> word (Wikipedia link)
    - {{gloss|text}}, {{q|text}}, {{n-g|text}} -> text
    - {{ux|lang|example}} -> example
    - {{plural of|lang|word}} -> plural of word
    """
    call = template_call(template)
    name = call.name

    if name in LINK_TEMPLATES:
        return call.param(3) or call.param(2) or ""

    if name in EXAMPLE_TEMPLATES:
        return call.param(2) or ""

    if name == "w":
        return call.param(2) or call.param(1) or ""

    if name in FIRST_PARAM_TEMPLATES or name in NON_GLOSS_TEMPLATES:
        return call.param(1) or ""

    if name.endswith(" of") and call.param(2):
        return f"{name} {call.param(2)}"

    return ""


# =============================================================================
# Text rendering
# =============================================================================


def _render(node: Node) -> Iterator[str]:
    if isinstance(node, Text):
        yield node.value
    elif isinstance(node, Unparsed):
        yield node.raw
    elif isinstance(node, Template):
        yield _template_to_text(node)
    elif isinstance(node, Link):
        yield _link_text(node)
    elif isinstance(node, ExternalLink):
        yield text_of(node.text) if node.text is not None else node.url
    elif isinstance(node, (Formatting, Heading)):
        yield text_of(node.content)
    elif isinstance(node, Tag):
        if node.name == "br":
            yield "\n"
        elif node.name not in ("ref", "references"):
            yield text_of(node.content)
    elif isinstance(node, ListNode):
        yield "\n".join(text_of(item.content).strip() for item in node.items)
    elif isinstance(node, Table):
        yield "\n".join(
            " ".join(text_of(cell.content).strip() for cell in row.cells) for row in node.rows
        )
    # Comments render as nothing.


def text_of(nodes: Optional[list[Node]]) -> str:
    """Render a node sequence as the plain text a reader would see."""
    if not nodes:
        return ""
    return "".join(part for node in nodes for part in _render(node))
