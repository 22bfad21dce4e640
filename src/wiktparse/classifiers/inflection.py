"""
Conjugation, declension and inflection sections.

Expected shape: one or more "<code>-<marker>..." templates, e.g.
{{de-decl-noun-f|Katze}} or {{es-conj|gatear}}.
"""

from dataclasses import dataclass, field
from typing import Optional

from ..flags import Flag, FlagKind
from ..freeform import UnparsedElement
from ..nodes import Node, Tag, Template, is_blank
from ..render import TemplateCall, template_name
from .base import ClassifierContext, is_separator


@dataclass
class Inflection:
    templates: list[TemplateCall] = field(default_factory=list)
    unparsed: list[UnparsedElement] = field(default_factory=list)
    flags: list[Flag] = field(default_factory=list)


def _collect(nodes: list[Node], ctx: ClassifierContext, record: Inflection) -> None:
    for node in nodes:
        if is_blank(node) or is_separator(node):
            continue
        if isinstance(node, Tag) and node.content:
            # Tables are often wrapped in <div> for layout.
            _collect(node.content, ctx, record)
            continue
        if isinstance(node, Template):
            code = ctx.configuration.inflection_template_language(template_name(node))
            if code is not None:
                call = ctx.call(node)
                ctx.check_language(code, f"{{{{{call.name}}}}}", call.span)
                record.templates.append(call)
                continue
        record.unparsed.append(ctx.unrecognized(node))


def classify_inflection(nodes: list[Node], ctx: ClassifierContext) -> Optional[Inflection]:
    """
    Classify an inflection section.

    Returns:
        Inflection, or None (with "section_empty") if no inflection
        template was found
    """
    record = Inflection()
    _collect(nodes, ctx, record)
    if not record.templates:
        ctx.flag(FlagKind.SECTION_EMPTY, "no inflection template")
        return None
    return record
