"""
Part-of-speech sections: head template and definitions.

Expected shape:

    {{en-noun}}

    # {{lb|en|informal}} A [[domestic]] [[feline]].
    #: {{ux|en|The cat sat on the mat.}}
    #* {{quote-book|en|year=1900|passage=...}}
    ## A sub-sense.

Each top-level item of the ordered list is one sense. Nested "#" items are
sub-senses, "#:" items usage examples and "#*" items quotations, all tagged
with their depth (0 for top-level senses).
"""

import re
from dataclasses import dataclass, field
from typing import Optional

from ..flags import Flag, FlagKind, Span
from ..freeform import FreeFormElement, UnparsedElement, to_free_form
from ..nodes import (
    Comment,
    ExternalLink,
    Formatting,
    Link,
    ListItem,
    ListKind,
    ListNode,
    Node,
    Tag,
    Template,
    Text,
)
from ..render import TemplateCall, template_name, text_of
from .base import ClassifierContext

_WHITESPACE = re.compile(r"\s+")

# Joiners inside {{lb}}: {{lb|en|chiefly|_|US}}
LABEL_JOINERS = frozenset({"_", "and", "or", "&", ","})
PASSAGE_PARAMETERS = ("passage", "text", "t")


@dataclass
class Example:
    text: str
    depth: int
    span: Span
    templates: list[TemplateCall] = field(default_factory=list)


@dataclass
class Quotation:
    citation: str
    passage: str
    depth: int
    span: Span
    templates: list[TemplateCall] = field(default_factory=list)


@dataclass
class Sense:
    gloss: str
    depth: int
    span: Span
    labels: list[str] = field(default_factory=list)
    date: Optional[str] = None
    non_gloss: Optional[str] = None
    templates: list[TemplateCall] = field(default_factory=list)
    examples: list[Example] = field(default_factory=list)
    quotations: list[Quotation] = field(default_factory=list)
    subsenses: list["Sense"] = field(default_factory=list)
    references: int = 0
    unparsed: list[UnparsedElement] = field(default_factory=list)


@dataclass
class SenseList:
    head: Optional[TemplateCall] = None
    senses: list[Sense] = field(default_factory=list)
    extra: list[FreeFormElement] = field(default_factory=list)  # head line text, images, ...
    flags: list[Flag] = field(default_factory=list)

    def all_senses(self) -> list[Sense]:
        """Senses and sub-senses in document order."""
        result: list[Sense] = []
        stack = list(reversed(self.senses))
        while stack:
            sense = stack.pop()
            result.append(sense)
            stack.extend(reversed(sense.subsenses))
        return result


def _clean(text: str) -> str:
    return _WHITESPACE.sub(" ", text).strip()


# =============================================================================
# Templates inside a sense
# =============================================================================


def _labels(call: TemplateCall, ctx: ClassifierContext) -> list[str]:
    """Labels from {{lb|<code>|label|...}}; the code must match the block."""
    if not call.positional or not call.positional[0]:
        ctx.flag(FlagKind.EMPTY, f"{{{{{call.name}}}}} without language code", call.span)
        return []
    ctx.check_language(call.positional[0], f"{{{{{call.name}}}}}", call.span)

    labels: list[str] = []
    for value in call.positional[1:]:
        if not value or value in LABEL_JOINERS:
            continue
        if value in labels:
            ctx.flag(FlagKind.DUPLICATE, f"label '{value}' repeated", call.span)
            continue
        labels.append(value)
    if not labels:
        ctx.flag(FlagKind.EMPTY, f"{{{{{call.name}}}}} without labels", call.span)
    return labels


def _date(call: TemplateCall, ctx: ClassifierContext) -> Optional[str]:
    value = call.param(1)
    if not value or len(call.positional) > 1:
        ctx.flag(FlagKind.VALUE_UNRECOGNIZED, f"{{{{{call.name}}}}} expects one date", call.span)
    return value or None


def _non_gloss(call: TemplateCall, ctx: ClassifierContext) -> Optional[str]:
    value = call.param(1)
    if not value:
        ctx.flag(FlagKind.EMPTY, f"{{{{{call.name}}}}} without text", call.span)
        return None
    return _clean(value)


# =============================================================================
# Examples and quotations
# =============================================================================


def _split_nested(item: ListItem) -> tuple[list[Node], list[ListNode]]:
    own = [node for node in item.content if not isinstance(node, ListNode)]
    nested = [node for node in item.content if isinstance(node, ListNode)]
    return own, nested


def _example(item: ListItem, depth: int, ctx: ClassifierContext, sense: Sense) -> Example:
    own, nested = _split_nested(item)
    templates = [ctx.call(node) for node in own if isinstance(node, Template)]
    for node in nested:
        sense.unparsed.append(ctx.unrecognized(node, "list nested in a usage example"))
    return Example(text=_clean(text_of(own)), depth=depth, span=item.span, templates=templates)


def _quotation(item: ListItem, depth: int, ctx: ClassifierContext, sense: Sense) -> Quotation:
    """A "#*" citation line; the passage comes from the template or "#*:" lines."""
    own, nested = _split_nested(item)
    templates = [ctx.call(node) for node in own if isinstance(node, Template)]

    passage = ""
    for call in templates:
        for key in PASSAGE_PARAMETERS:
            if call.named.get(key):
                passage = call.named[key]
                break
        if passage:
            break

    passage_lines: list[str] = []
    for node in nested:
        if node.kind is ListKind.DEFINITION:
            passage_lines.extend(_clean(text_of(sub.content)) for sub in node.items)
        else:
            sense.unparsed.append(ctx.unrecognized(node, "list nested in a quotation"))
    if passage_lines:
        passage = _clean(" ".join([passage] + passage_lines))

    return Quotation(
        citation=_clean(text_of(own)),
        passage=passage,
        depth=depth,
        span=item.span,
        templates=templates,
    )


# =============================================================================
# Senses
# =============================================================================


def _sense(item: ListItem, depth: int, ctx: ClassifierContext) -> Sense:
    """Classify one "#" list item (and what is nested in it)."""
    config = ctx.configuration
    sense = Sense(gloss="", depth=depth, span=item.span)
    gloss_nodes: list[Node] = []

    for node in item.content:
        if isinstance(node, Template):
            call = ctx.call(node)
            if call.name in config.label_templates:
                sense.labels.extend(label for label in _labels(call, ctx) if label not in sense.labels)
            elif call.name in config.definition_date_templates:
                sense.date = _date(call, ctx)
            elif call.name in config.non_gloss_templates:
                sense.non_gloss = _non_gloss(call, ctx)
            else:
                sense.templates.append(call)
                gloss_nodes.append(node)
        elif isinstance(node, ListNode):
            if node.kind is ListKind.ORDERED:
                sense.subsenses.extend(_sense(sub, depth + 1, ctx) for sub in node.items)
            elif node.kind is ListKind.DEFINITION:
                sense.examples.extend(_example(sub, depth + 1, ctx, sense) for sub in node.items)
            else:
                sense.quotations.extend(_quotation(sub, depth + 1, ctx, sense) for sub in node.items)
        elif isinstance(node, Tag) and node.name == "ref":
            sense.references += 1
        elif isinstance(node, (Text, Link, ExternalLink, Formatting, Tag, Comment)):
            gloss_nodes.append(node)
        else:
            sense.unparsed.append(ctx.unrecognized(node))

    sense.gloss = _clean(text_of(gloss_nodes))
    if not sense.gloss and not sense.non_gloss:
        ctx.flag(FlagKind.EMPTY, "definition without gloss text", item.span)
    return sense


def _head(call: TemplateCall, code: str, record: SenseList, ctx: ClassifierContext) -> bool:
    if record.head is not None:
        ctx.flag(FlagKind.DUPLICATE, f"second head template {{{{{call.name}}}}}", call.span)
        return False
    record.head = call
    # Generic {{head|<code>|<pos>}} carries the language as first parameter.
    ctx.check_language(code or call.param(1), f"head template {{{{{call.name}}}}}", call.span)
    return True


def classify_senses(nodes: list[Node], ctx: ClassifierContext) -> SenseList:
    """
    Classify a part-of-speech section.

    Always returns a record; a section without definitions gives a
    partial record and a "section_empty" flag.
    """
    record = SenseList()
    has_definitions = False
    pending: list[Node] = []  # head line text and other display content

    for node in nodes:
        if isinstance(node, Template):
            code = ctx.configuration.head_template_language(template_name(node))
            if code is not None and _head(ctx.call(node), code, record, ctx):
                continue
            pending.append(node)
        elif isinstance(node, ListNode) and node.kind is ListKind.ORDERED:
            if has_definitions:
                ctx.flag(FlagKind.DUPLICATE, "second definitions list; senses merged", node.span)
            has_definitions = True
            record.extra.extend(to_free_form(pending).elements)
            pending = []
            record.senses.extend(_sense(item, 0, ctx) for item in node.items)
        elif isinstance(node, (Text, Link, ExternalLink, Formatting, Tag, Comment)):
            pending.append(node)
        else:
            record.extra.extend(to_free_form(pending).elements)
            pending = []
            record.extra.append(ctx.unrecognized(node))
    record.extra.extend(to_free_form(pending).elements)

    if not record.senses:
        ctx.flag(FlagKind.SECTION_EMPTY, "no definitions")
    return record
