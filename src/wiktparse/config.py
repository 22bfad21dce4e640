"""
Configuration loader for the section classifiers.

Loads the YAML bindings file (data/en-wikt.sections.yaml by default) and
builds indexed lookup tables. Which heading means which section kind, and
which classifier handles each kind, is data; nothing here is specific to
one language edition.

The Configuration object provides:
- Heading -> section kind lookup (literal headers and compiled %d patterns)
- Section kind -> classifier name
- Language name -> code
- Template name sets used by the classifiers
- Validation of classifier names and header uniqueness

All lookup tables use lowercase keys for case-insensitive matching.
"""

import logging
import re
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Any, Optional, Pattern, Union

import yaml

from .render import normalize_heading, normalize_template_name

logger = logging.getLogger(__name__)

DEFAULT_CONFIGURATION_PATH = Path(__file__).parent / "data" / "en-wikt.sections.yaml"

KNOWN_KEYS = frozenset(
    {
        "languages",
        "sections",
        "pronunciation_templates",
        "qualifier_templates",
        "sense_templates",
        "head_templates",
        "label_templates",
        "definition_date_templates",
        "non_gloss_templates",
        "term_templates",
        "column_templates",
        "see_also_templates",
        "inflection_markers",
    }
)


class ConfigurationError(ValueError):
    """Raised when the bindings file is invalid."""

    pass


# =============================================================================
# YAML utilities
# =============================================================================


def flatten_list(items: Any) -> list[str]:
    """
    Flatten a list that may contain nested lists from YAML anchor references.

    A single scalar is treated as a one-item list, and None as empty.
    """
    if items is None:
        return []
    if not isinstance(items, list):
        return [str(items)]
    result: list[str] = []
    for item in items:
        if isinstance(item, list):
            result.extend(flatten_list(item))
        else:
            result.append(str(item))
    return result


def compile_header_pattern(header: str) -> Pattern[str]:
    """Compile a normalized header containing %d (one or more digits)."""
    return re.compile(re.escape(header).replace("%d", r"\d+"))


def _load_yaml(path: Path) -> dict:
    """Load the bindings file with clear error messages."""
    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {path}")
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigurationError(f"{path}: expected a mapping at top level")
    return data


# =============================================================================
# Configuration
# =============================================================================


@dataclass
class SectionBinding:
    """One section kind from the bindings file."""

    kind: str
    headers: list[str]
    classifier: Optional[str] = None


@dataclass
class Configuration:
    """
    Indexed bindings for one language edition.

    Immutable once loaded; a single instance may be shared by any number
    of concurrent parses.
    """

    # === Languages ===
    language_codes: dict[str, str] = field(default_factory=dict)  # name -> code
    language_names: dict[str, str] = field(default_factory=dict)  # name -> display name

    # === Sections ===
    sections: dict[str, SectionBinding] = field(default_factory=dict)
    header_to_kind: dict[str, str] = field(default_factory=dict)
    header_patterns: list[tuple[Pattern[str], str]] = field(default_factory=list)

    # === Templates ===
    pronunciation_templates: dict[str, str] = field(default_factory=dict)  # name -> item kind
    qualifier_templates: set[str] = field(default_factory=set)
    sense_templates: set[str] = field(default_factory=set)
    head_templates: set[str] = field(default_factory=set)
    head_suffixes: set[str] = field(default_factory=set)
    label_templates: set[str] = field(default_factory=set)
    definition_date_templates: set[str] = field(default_factory=set)
    non_gloss_templates: set[str] = field(default_factory=set)
    term_templates: set[str] = field(default_factory=set)
    column_templates: set[str] = field(default_factory=set)
    column_patterns: list[Pattern[str]] = field(default_factory=list)
    see_also_templates: set[str] = field(default_factory=set)
    inflection_markers: set[str] = field(default_factory=set)

    # === Lookups ===

    def language_code(self, name: str) -> Optional[str]:
        """Code for a language heading, e.g. "English" -> "en"."""
        return self.language_codes.get(normalize_heading(name))

    def language_name(self, name: str) -> Optional[str]:
        """Canonical spelling of a language heading."""
        return self.language_names.get(normalize_heading(name))

    def section_kind(self, title: str) -> Optional[str]:
        """
        Section kind for a heading title, or None if unknown.

        Args:
            title: Heading text as written (normalized here)
        """
        header = normalize_heading(title)
        # Fast path: literal headers first
        kind = self.header_to_kind.get(header)
        if kind is not None:
            return kind
        # Slow path: %d patterns
        for pattern, kind in self.header_patterns:
            if pattern.fullmatch(header):
                return kind
        return None

    def classifier_for(self, kind: str) -> Optional[str]:
        """Classifier name for a section kind; None means free-form."""
        binding = self.sections.get(kind)
        return binding.classifier if binding else None

    def pronunciation_kind(self, name: str) -> Optional[str]:
        """Item kind for a pronunciation template ("<code>-IPA" counts as ipa)."""
        name = normalize_template_name(name)
        kind = self.pronunciation_templates.get(name)
        if kind is not None:
            return kind
        code, _, rest = name.partition("-")
        if rest == "ipa" and code in self.language_codes.values():
            return "ipa"
        return None

    def head_template_language(self, name: str) -> Optional[str]:
        """
        Language code of a head template; "" for generic ones.

        Returns None if `name` is not a head template. Language-specific
        head templates are "<code>-<suffix>" or "<code>-<suffix>-<variant>".
        """
        name = normalize_template_name(name)
        if name in self.head_templates:
            return ""
        code, sep, rest = name.partition("-")
        if not sep or not code.isalpha():
            return None
        for suffix in self.head_suffixes:
            if rest == suffix or rest.startswith(suffix + "-"):
                return code
        return None

    def inflection_template_language(self, name: str) -> Optional[str]:
        """Language code of an inflection template ("de-decl-noun-m" -> "de")."""
        code, sep, rest = normalize_template_name(name).partition("-")
        if not sep or not code.isalpha():
            return None
        if rest.split("-", 1)[0] in self.inflection_markers:
            return code
        return None

    def is_column_template(self, name: str) -> bool:
        name = normalize_template_name(name)
        if name in self.column_templates:
            return True
        return any(pattern.fullmatch(name) for pattern in self.column_patterns)

    def summary(self) -> str:
        """Return a human-readable summary of the loaded configuration."""
        classified = sum(1 for binding in self.sections.values() if binding.classifier)
        pattern_note = f" ({len(self.header_patterns)} patterns)" if self.header_patterns else ""
        return (
            f"Configuration:\n"
            f"  - {len(self.language_codes)} languages\n"
            f"  - {len(self.sections)} section kinds ({classified} with a classifier)\n"
            f"  - {len(self.header_to_kind) + len(self.header_patterns)} section headers{pattern_note}\n"
            f"  - {len(self.pronunciation_templates)} pronunciation templates\n"
            f"  - {len(self.head_templates)} generic head templates, "
            f"{len(self.head_suffixes)} head suffixes\n"
            f"  - {len(self.term_templates)} term templates, "
            f"{len(self.column_templates) + len(self.column_patterns)} column templates"
        )


# =============================================================================
# Loading and validation
# =============================================================================


def _template_set(data: dict, key: str) -> set[str]:
    return {normalize_template_name(name) for name in flatten_list(data.get(key))}


def _index_sections(config: Configuration, sections: Any) -> None:
    if not isinstance(sections, dict) or not sections:
        raise ConfigurationError("'sections' must be a non-empty mapping of kind -> binding")

    from .classifiers import CLASSIFIERS

    seen: dict[str, str] = {}  # normalized header -> kind
    for kind, entry in sections.items():
        kind = str(kind)
        if not isinstance(entry, dict):
            raise ConfigurationError(f"Section '{kind}': expected a mapping, got {type(entry).__name__}")
        classifier = entry.get("classifier")
        if classifier is not None and classifier not in CLASSIFIERS:
            raise ConfigurationError(
                f"Section '{kind}' references unknown classifier '{classifier}'"
            )
        headers = flatten_list(entry.get("headers"))
        if not headers:
            raise ConfigurationError(f"Section '{kind}' has no headers")
        config.sections[kind] = SectionBinding(kind=kind, headers=headers, classifier=classifier)

        for header in headers:
            normalized = normalize_heading(header)
            if normalized in seen and seen[normalized] != kind:
                raise ConfigurationError(
                    f"Duplicate header '{header}': mapped to both {seen[normalized]} and {kind}"
                )
            seen[normalized] = kind
            # Pattern format: %d matches one or more digits
            if "%d" in normalized:
                config.header_patterns.append((compile_header_pattern(normalized), kind))
            else:
                config.header_to_kind[normalized] = kind


def build_configuration(data: dict, source: Union[str, Path] = "<data>") -> Configuration:
    """
    Index and validate already-loaded bindings.

    Raises:
        ConfigurationError: If the bindings are invalid
    """
    unknown = set(data) - KNOWN_KEYS
    if unknown:
        raise ConfigurationError(f"{source}: unknown keys {sorted(unknown)}")

    config = Configuration()

    # === Languages ===

    languages = data.get("languages")
    if not isinstance(languages, dict) or not languages:
        raise ConfigurationError(f"{source}: 'languages' must be a non-empty mapping of name -> code")
    for name, code in languages.items():
        if not isinstance(code, str) or not code:
            raise ConfigurationError(f"Language '{name}': code must be a non-empty string")
        config.language_codes[normalize_heading(str(name))] = code.lower()
        config.language_names[normalize_heading(str(name))] = str(name)

    # === Sections ===

    _index_sections(config, data.get("sections"))
    for name in config.language_codes:
        if name in config.header_to_kind:
            raise ConfigurationError(
                f"Language '{config.language_names[name]}' is also a section header "
                f"(kind {config.header_to_kind[name]})"
            )

    # === Templates ===

    pronunciation = data.get("pronunciation_templates") or {}
    if not isinstance(pronunciation, dict):
        raise ConfigurationError(f"{source}: 'pronunciation_templates' must map item kind -> names")
    for item_kind, names in pronunciation.items():
        for name in flatten_list(names):
            config.pronunciation_templates[normalize_template_name(name)] = str(item_kind)

    heads = data.get("head_templates") or {}
    if not isinstance(heads, dict):
        raise ConfigurationError(f"{source}: 'head_templates' must have 'generic' and 'language_suffixes'")
    config.head_templates = _template_set(heads, "generic")
    config.head_suffixes = _template_set(heads, "language_suffixes")

    config.qualifier_templates = _template_set(data, "qualifier_templates")
    config.sense_templates = _template_set(data, "sense_templates")
    config.label_templates = _template_set(data, "label_templates")
    config.definition_date_templates = _template_set(data, "definition_date_templates")
    config.non_gloss_templates = _template_set(data, "non_gloss_templates")
    config.term_templates = _template_set(data, "term_templates")
    config.see_also_templates = _template_set(data, "see_also_templates")
    config.inflection_markers = _template_set(data, "inflection_markers")

    for name in _template_set(data, "column_templates"):
        if "%d" in name:
            config.column_patterns.append(compile_header_pattern(name))
        else:
            config.column_templates.add(name)

    return config


def load_configuration(path: Optional[Union[str, Path]] = None) -> Configuration:
    """
    Load and index the bindings file into a Configuration.

    Args:
        path: YAML bindings file; the packaged English bindings if omitted

    Returns:
        Configuration with all lookups populated

    Raises:
        FileNotFoundError: If the file is missing
        ConfigurationError: If the file is invalid
    """
    path = Path(path) if path is not None else DEFAULT_CONFIGURATION_PATH
    config = build_configuration(_load_yaml(path), source=path)
    logger.info(
        f"Loaded configuration from {path}: {len(config.language_codes)} languages, "
        f"{len(config.sections)} section kinds"
    )
    return config


@lru_cache(maxsize=1)
def default_configuration() -> Configuration:
    """The packaged configuration, loaded once."""
    return load_configuration()
