"""
Page-level driver: raw wikitext -> Entry.

Pipeline:
    1. WikitextParser turns the text into top-level nodes
    2. build_section_tree nests them under their headings
    3. Language headings open language blocks; every section below one is
       mapped to a section kind and handed to the kind's classifier, or
       kept as a free-form document
    4. The flag collector is closed and flags are attached to the
       narrowest structure that contains them

A parse never raises on page content. Malformed markup, unknown headings
and sections that do not look as expected all end up as flags.

Usage:
    entry = parse_page("cat", wikitext)
    english = entry.language("English")
    nouns = english.sections["noun"]
"""

import logging
from dataclasses import dataclass, field, fields, is_dataclass, replace
from enum import Enum
from typing import Any, Optional

from .classifiers import CLASSIFIERS, ClassifierContext
from .config import Configuration, default_configuration
from .flags import Flag, FlagCollector, FlagKind, Span
from .freeform import FreeFormDocument, to_free_form
from .nodes import Link, Node, walk
from .parser import DEFAULT_MAX_DEPTH, WikitextParser
from .render import find_templates, link_category, template_call
from .sections import SectionTree, build_section_tree

logger = logging.getLogger(__name__)

UNKNOWN_KIND = "unknown"
PAGE_TITLE_KIND = "page_title"


# =============================================================================
# Result types
# =============================================================================


@dataclass
class SectionResult:
    """One classified section: a record, or a free-form document."""

    kind: str
    heading: str
    level: int
    path: list[str]  # enclosing headings inside the language block
    span: Span
    record: Optional[Any] = None
    document: Optional[FreeFormDocument] = None
    flags: list[Flag] = field(default_factory=list)

    @property
    def is_free_form(self) -> bool:
        return self.record is None


@dataclass
class LanguageBlock:
    """Everything under one language heading."""

    name: str
    code: str
    span: Span
    preamble: FreeFormDocument = field(default_factory=FreeFormDocument)
    sections: dict[str, list[SectionResult]] = field(default_factory=dict)
    flags: list[Flag] = field(default_factory=list)

    def first(self, kind: str) -> Optional[SectionResult]:
        results = self.sections.get(kind)
        return results[0] if results else None

    def records(self, kind: str) -> list[Any]:
        """Records of all sections of `kind` that were classified."""
        return [result.record for result in self.sections.get(kind, []) if result.record is not None]


@dataclass
class Entry:
    """Structured result of parsing one page."""

    title: str
    tree: SectionTree
    languages: list[LanguageBlock] = field(default_factory=list)
    preamble: FreeFormDocument = field(default_factory=FreeFormDocument)
    sections: list[SectionResult] = field(default_factory=list)  # outside any language block
    see_also: list[str] = field(default_factory=list)
    categories: list[str] = field(default_factory=list)
    flags: list[Flag] = field(default_factory=list)

    def language(self, name: str) -> Optional[LanguageBlock]:
        wanted = name.strip().lower()
        for block in self.languages:
            if block.name.lower() == wanted or block.code == wanted:
                return block
        return None


# =============================================================================
# Builder
# =============================================================================


class _EntryBuilder:
    """Walks the section tree of one page and fills an Entry."""

    def __init__(self, title: str, text: str, configuration: Configuration, collector: FlagCollector):
        self.title = title
        self.text = text
        self.configuration = configuration
        self.collector = collector
        # Section results with the region their flags are taken from.
        self.regions: list[tuple[SectionResult, Span]] = []

    def build(self, nodes: list[Node], tree: SectionTree) -> Entry:
        entry = Entry(title=self.title, tree=tree, preamble=to_free_form(tree.content))

        for template in find_templates(tree.content, *self.configuration.see_also_templates):
            entry.see_also.extend(value for value in template_call(template).positional if value)

        for node in walk(nodes):
            if isinstance(node, Link):
                category = link_category(node)
                if category and category not in entry.categories:
                    entry.categories.append(category)

        for section in tree.children:
            self._outside(section, entry, [])
        return entry

    # === Outside language blocks ===

    def _outside(self, section: SectionTree, entry: Entry, path: list[str]) -> None:
        if self.configuration.language_code(section.title) is not None:
            self._language(section, entry)
            return

        if section.level == 1:
            kind = PAGE_TITLE_KIND
        else:
            kind = UNKNOWN_KIND
            self.collector.add(
                FlagKind.UNKNOWN_SECTION,
                section.heading.span,
                f"heading '{section.title}' outside any language section",
            )
        result = self._result(section, kind, path)
        result.document = to_free_form(section.content)
        entry.sections.append(result)

        for child in section.children:
            self._outside(child, entry, path + [section.title])

    # === Language blocks ===

    def _language(self, section: SectionTree, entry: Entry) -> None:
        name = self.configuration.language_name(section.title)
        code = self.configuration.language_code(section.title)
        previous_language = self.collector.language
        self.collector.language = name

        if entry.language(name) is not None:
            self.collector.add(FlagKind.DUPLICATE, section.heading.span, f"language '{name}' repeated")

        block = LanguageBlock(name=name, code=code, span=section.span, preamble=to_free_form(section.content))
        self._children(section, entry, block, [])

        if not any(
            self.configuration.classifier_for(kind) == "senses" for kind in block.sections
        ):
            self.collector.add(
                FlagKind.SECTION_EMPTY, section.heading.span, f"no part-of-speech section for {name}"
            )
        entry.languages.append(block)
        self.collector.language = previous_language

    def _children(self, section: SectionTree, entry: Entry, block: LanguageBlock, path: list[str]) -> None:
        seen: set[str] = set()
        for child in section.children:
            if self.configuration.language_code(child.title) is not None:
                self._language(child, entry)
                continue
            title = child.normalized_title
            if title in seen:
                self.collector.add(FlagKind.DUPLICATE, child.heading.span, f"section '{child.title}' repeated")
            seen.add(title)
            self._section(child, entry, block, path)

    def _section(self, section: SectionTree, entry: Entry, block: LanguageBlock, path: list[str]) -> None:
        kind = self.configuration.section_kind(section.title)
        if kind is None:
            kind = UNKNOWN_KIND
            self.collector.add(
                FlagKind.UNKNOWN_SECTION, section.heading.span, f"unknown section heading '{section.title}'"
            )

        result = self._result(section, kind, path)
        classifier = self.configuration.classifier_for(kind)
        if classifier is not None:
            ctx = ClassifierContext(
                configuration=self.configuration,
                collector=self.collector,
                language=block.name,
                code=block.code,
                kind=kind,
                text=self.text,
                span=section.heading.span,
            )
            mark = self.collector.mark()
            record = CLASSIFIERS[classifier](section.content, ctx)
            if record is not None:
                record.flags = self.collector.since(mark)
                result.record = record
        if result.record is None:
            result.document = to_free_form(section.content)
        block.sections.setdefault(kind, []).append(result)

        self._children(section, entry, block, path + [section.title])

    def _result(self, section: SectionTree, kind: str, path: list[str]) -> SectionResult:
        result = SectionResult(
            kind=kind,
            heading=section.title,
            level=section.level,
            path=list(path),
            span=section.span,
        )
        self.regions.append((result, section.own_span))
        return result

    # === Flags ===

    def attach_flags(self, entry: Entry, flags: list[Flag]) -> None:
        """Give parser flags their language, then hand flags to their structures."""
        located = []
        for flag in flags:
            if flag.language is None:
                for block in entry.languages:
                    if block.span.contains(flag.span):
                        flag = replace(flag, language=block.name)
                        break
            located.append(flag)
        entry.flags = located

        for block in entry.languages:
            block.flags = [flag for flag in located if block.span.contains(flag.span)]
        for result, region in self.regions:
            result.flags = [flag for flag in located if region.contains(flag.span)]


def parse_page(
    title: str,
    text: str,
    configuration: Optional[Configuration] = None,
    max_depth: int = DEFAULT_MAX_DEPTH,
) -> Entry:
    """
    Parse one page into an Entry.

    Args:
        title: Page title
        text: Raw wikitext of the page
        configuration: Section bindings; the packaged English ones if omitted
        max_depth: Maximum markup nesting before truncation

    Returns:
        Entry; never raises on malformed page content
    """
    if configuration is None:
        configuration = default_configuration()

    collector = FlagCollector()
    nodes = WikitextParser(text, collector, max_depth).parse()
    tree = build_section_tree(nodes)

    builder = _EntryBuilder(title, text, configuration, collector)
    entry = builder.build(nodes, tree)
    builder.attach_flags(entry, collector.close())

    logger.debug(
        f"Parsed '{title}': {len(nodes)} top-level nodes, "
        f"{len(entry.languages)} language blocks, {len(entry.flags)} flags"
    )
    return entry


# =============================================================================
# Conversion to plain data
# =============================================================================


def _plain(value: Any) -> Any:
    """Convert dataclasses, enums and spans to dicts, strings and lists."""
    if isinstance(value, Span):
        return [value.start, value.end]
    if isinstance(value, Enum):
        return value.value
    if is_dataclass(value) and not isinstance(value, type):
        result = {"type": type(value).__name__}
        for f in fields(value):
            result[f.name] = _plain(getattr(value, f.name))
        return result
    if isinstance(value, dict):
        return {str(key): _plain(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain(item) for item in value]
    return value


def _flag_to_dict(flag: Flag) -> dict:
    result = {"kind": flag.kind.value, "span": [flag.span.start, flag.span.end]}
    if flag.detail:
        result["detail"] = flag.detail
    if flag.language:
        result["language"] = flag.language
    return result


def _section_to_dict(result: SectionResult) -> dict:
    data = {
        "kind": result.kind,
        "heading": result.heading,
        "level": result.level,
        "span": [result.span.start, result.span.end],
    }
    if result.path:
        data["path"] = result.path
    if result.record is not None:
        data["record"] = _plain(result.record)
    else:
        data["document"] = _plain(result.document.elements)
    if result.flags:
        data["flags"] = [_flag_to_dict(flag) for flag in result.flags]
    return data


def entry_to_dict(entry: Entry, include_tree: bool = False) -> dict:
    """
    Convert an Entry to plain dicts and lists for serialization.

    Field order:
    1. title, categories, see_also (if present)
    2. preamble and sections outside language blocks (if present)
    3. languages, each with its sections grouped by kind
    4. flags (if any)
    5. tree (only if include_tree)
    """
    result: dict[str, Any] = {"title": entry.title}

    if entry.categories:
        result["categories"] = entry.categories
    if entry.see_also:
        result["see_also"] = entry.see_also
    if entry.preamble.elements:
        result["preamble"] = _plain(entry.preamble.elements)
    if entry.sections:
        result["sections"] = [_section_to_dict(section) for section in entry.sections]

    result["languages"] = [
        {
            "name": block.name,
            "code": block.code,
            "span": [block.span.start, block.span.end],
            "preamble": _plain(block.preamble.elements),
            "sections": {
                kind: [_section_to_dict(section) for section in sections]
                for kind, sections in block.sections.items()
            },
        }
        for block in entry.languages
    ]

    if entry.flags:
        result["flags"] = [_flag_to_dict(flag) for flag in entry.flags]

    if include_tree:
        result["tree"] = _plain(entry.tree)

    return result
