"""
Term-list sections: synonyms, antonyms, derived terms, alternative forms, ...

Expected shape:

    * {{sense|animal}} {{l|en|kitty}}, {{l|en|moggy}}
    * {{q|informal}} [[puss]]
    {{col3|en|catnip|catfish|cathouse}}

Each list line becomes a TermItem holding its terms plus the qualifiers and
sense gloss on the same line. Column templates give one item per term.
"""

from dataclasses import dataclass, field
from typing import Optional

from ..flags import Flag, FlagKind, Span
from ..freeform import UnparsedElement
from ..nodes import Formatting, Link, ListNode, Node, Template, is_blank
from ..render import TemplateCall, is_media_link, link_category, link_target, text_of
from .base import ClassifierContext, is_separator, strip_modifiers


@dataclass
class Term:
    term: str
    language: Optional[str] = None
    alt: Optional[str] = None


@dataclass
class TermItem:
    terms: list[Term]
    span: Span
    qualifiers: list[str] = field(default_factory=list)
    sense: Optional[str] = None


@dataclass
class TermList:
    items: list[TermItem] = field(default_factory=list)
    unparsed: list[UnparsedElement] = field(default_factory=list)
    flags: list[Flag] = field(default_factory=list)

    def terms(self) -> list[str]:
        """All terms, in order."""
        return [term.term for item in self.items for term in item.terms]


def _column_items(call: TemplateCall, ctx: ClassifierContext) -> list[TermItem]:
    """{{col3|<code>|a|b|c}} -> one item per term."""
    language = call.param(1)
    ctx.check_language(language, f"{{{{{call.name}}}}}", call.span)
    items = []
    for value in call.positional[1:]:
        term = strip_modifiers(value)
        if term:
            items.append(TermItem([Term(term, language)], call.span))
    if not items:
        ctx.flag(FlagKind.EMPTY, f"{{{{{call.name}}}}} without terms", call.span)
    return items


class _Line:
    """Accumulates one list line."""

    def __init__(self, span: Span):
        self.item = TermItem([], span)
        self.extra: list[TermItem] = []

    def add_nodes(self, nodes: list[Node], ctx: ClassifierContext, record: TermList) -> None:
        config = ctx.configuration
        for node in nodes:
            if is_blank(node) or is_separator(node) or isinstance(node, ListNode):
                continue
            if isinstance(node, Formatting):
                self.add_nodes(node.content, ctx, record)
                continue
            if isinstance(node, Link):
                if link_category(node) is None and not is_media_link(node):
                    alt = text_of(node.text).strip() if node.text is not None else None
                    self.item.terms.append(Term(link_target(node), alt=alt or None))
                continue
            if isinstance(node, Template):
                call = ctx.call(node)
                if call.name in config.term_templates:
                    self._add_term(call, ctx)
                elif call.name in config.qualifier_templates:
                    self.item.qualifiers.extend(value for value in call.positional if value)
                elif call.name in config.sense_templates:
                    self.item.sense = ", ".join(value for value in call.positional if value) or None
                elif config.is_column_template(call.name):
                    self.extra.extend(_column_items(call, ctx))
                else:
                    record.unparsed.append(ctx.unrecognized(node, f"unexpected template '{call.name}' in term list"))
                continue
            record.unparsed.append(ctx.unrecognized(node))

    def _add_term(self, call: TemplateCall, ctx: ClassifierContext) -> None:
        language = call.param(1)
        term = strip_modifiers(call.param(2) or "")
        ctx.check_language(language, f"{{{{{call.name}}}}}", call.span)
        if not term:
            ctx.flag(FlagKind.EMPTY, f"{{{{{call.name}}}}} without a term", call.span)
            return
        self.item.terms.append(Term(term, language or None, call.param(3) or None))

    def items(self) -> list[TermItem]:
        own = [self.item] if self.item.terms else []
        return own + self.extra


def _list_items(node: ListNode, ctx: ClassifierContext, record: TermList) -> None:
    for item in node.items:
        line = _Line(item.span)
        line.add_nodes(item.content, ctx, record)
        record.items.extend(line.items())
        for nested in item.content:
            if isinstance(nested, ListNode):
                _list_items(nested, ctx, record)


def classify_terms(nodes: list[Node], ctx: ClassifierContext) -> Optional[TermList]:
    """
    Classify a term-list section.

    Returns:
        TermList, or None if no term was recognized
    """
    record = TermList()
    for node in nodes:
        if is_blank(node):
            continue
        if isinstance(node, ListNode):
            _list_items(node, ctx, record)
            continue
        line = _Line(node.span)
        line.add_nodes([node], ctx, record)
        record.items.extend(line.items())

    if not record.items:
        return None
    return record
