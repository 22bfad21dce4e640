"""
wiktparse - structured parsing of English Wiktionary pages.

Two stages: a tolerant wikitext parser producing a node tree, and a
heading-driven classifier that lifts sections into typed records or keeps
them as free-form documents. Anomalies are reported as flags, never raised.

Usage:
    from wiktparse import parse_page

    entry = parse_page("cat", wikitext)
    for block in entry.languages:
        print(block.name, sorted(block.sections))
"""

from .config import Configuration, ConfigurationError, load_configuration
from .entry import Entry, LanguageBlock, SectionResult, entry_to_dict, parse_page
from .flags import Flag, FlagCollector, FlagKind, Span
from .freeform import FreeFormDocument, to_free_form
from .parser import WikitextParser, parse_wikitext
from .sections import SectionTree, build_section_tree

__version__ = "0.1.0"

__all__ = [
    "Configuration",
    "ConfigurationError",
    "Entry",
    "Flag",
    "FlagCollector",
    "FlagKind",
    "FreeFormDocument",
    "LanguageBlock",
    "SectionResult",
    "SectionTree",
    "Span",
    "WikitextParser",
    "build_section_tree",
    "entry_to_dict",
    "load_configuration",
    "parse_page",
    "parse_wikitext",
    "to_free_form",
]
