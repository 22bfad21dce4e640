"""
Pronunciation sections.

Expected shape:

    * {{a|UK}} {{IPA|en|/kæt/}}
    * {{audio|en|en-us-cat.ogg|Audio (US)}}
    * {{rhymes|en|æt}}

Known pronunciation templates become items; accent and qualifier templates
on the same line become the items' qualifiers. Anything else is kept as an
unparsed element next to the items.
"""

from dataclasses import dataclass, field
from typing import Optional

from ..flags import Flag, FlagKind, Span
from ..freeform import UnparsedElement
from ..nodes import Formatting, ListNode, Node, Template, Text, is_blank
from ..render import TemplateCall
from .base import ClassifierContext, is_separator


@dataclass
class PronunciationItem:
    kind: str  # ipa, audio, rhymes, homophones, hyphenation, ...
    template: str
    values: list[str]
    span: Span
    language: Optional[str] = None
    qualifiers: list[str] = field(default_factory=list)


@dataclass
class Pronunciation:
    items: list[PronunciationItem] = field(default_factory=list)
    unparsed: list[UnparsedElement] = field(default_factory=list)
    flags: list[Flag] = field(default_factory=list)

    def of_kind(self, kind: str) -> list[PronunciationItem]:
        return [item for item in self.items if item.kind == kind]

    @property
    def ipa(self) -> bool:
        return bool(self.of_kind("ipa"))

    @property
    def audio(self) -> bool:
        return bool(self.of_kind("audio"))

    @property
    def homophones(self) -> bool:
        return bool(self.of_kind("homophones"))

    @property
    def hyphenation(self) -> bool:
        return bool(self.of_kind("hyphenation"))

    @property
    def rhymes(self) -> bool:
        return bool(self.of_kind("rhymes"))


def _item(call: TemplateCall, kind: str, ctx: ClassifierContext) -> PronunciationItem:
    """
    Build an item from a template call.

    Templates named "<code>-IPA" carry their language in the name; the
    others take the language code as first parameter ({{IPA|en|/kæt/}}),
    unless it is given as lang=.
    "<code>-IPA" templates may also leave out the transcription, which is
    then generated from the page title.
    """
    positional = list(call.positional)
    code, _, rest = call.name.partition("-")
    if rest == "ipa":
        language = code
    elif call.name == "enpr":
        language = "en"
    else:
        language = call.named.get("lang")
        if language is None and positional:
            language = positional.pop(0) or None
    values = [value for value in positional if value]
    ctx.check_language(language, f"{{{{{call.name}}}}}", call.span)
    if not values and rest != "ipa":
        ctx.flag(FlagKind.EMPTY, f"{{{{{call.name}}}}} without a value", call.span)
    return PronunciationItem(kind=kind, template=call.name, values=values, span=call.span, language=language)


def _is_label(node: Node) -> bool:
    """Line labels such as "Rhymes:" or '''UK''' carry no data."""
    if isinstance(node, Text):
        return node.value.strip().endswith(":")
    if isinstance(node, Formatting):
        return not any(isinstance(child, Template) for child in node.content)
    return False


def _classify_line(nodes: list[Node], ctx: ClassifierContext, record: Pronunciation) -> None:
    """Classify the content of one list line (or one bare template)."""
    qualifiers: list[str] = []
    items: list[PronunciationItem] = []

    for node in nodes:
        if is_blank(node) or is_separator(node):
            continue
        if isinstance(node, ListNode):
            for item in node.items:
                _classify_line(item.content, ctx, record)
            continue
        if _is_label(node):
            continue
        if isinstance(node, Template):
            call = ctx.call(node)
            kind = ctx.configuration.pronunciation_kind(call.name)
            if kind is not None:
                items.append(_item(call, kind, ctx))
                continue
            if call.name in ctx.configuration.qualifier_templates:
                qualifiers.extend(value for value in call.positional if value)
                continue
            record.unparsed.append(ctx.unrecognized(node, f"unknown pronunciation template '{call.name}'"))
            continue
        record.unparsed.append(ctx.unrecognized(node))

    for item in items:
        item.qualifiers = qualifiers + item.qualifiers
    record.items.extend(items)


def classify_pronunciation(nodes: list[Node], ctx: ClassifierContext) -> Optional[Pronunciation]:
    """
    Classify a pronunciation section.

    Returns:
        Pronunciation with the recognized items (unknown content kept
        alongside), or None if no pronunciation template was found
    """
    record = Pronunciation()
    for node in nodes:
        if is_blank(node):
            continue
        if isinstance(node, ListNode):
            for item in node.items:
                _classify_line(item.content, ctx, record)
        elif isinstance(node, Template):
            _classify_line([node], ctx, record)
        else:
            record.unparsed.append(ctx.unrecognized(node))

    if not record.items:
        ctx.flag(FlagKind.SECTION_EMPTY, "no pronunciation templates")
        return None
    return record
