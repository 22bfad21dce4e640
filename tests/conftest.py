"""Pytest configuration and shared fixtures."""
import pytest
import tempfile
from pathlib import Path

from wiktparse.config import default_configuration
from wiktparse.flags import FlagCollector


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def configuration():
    """The packaged English bindings."""
    return default_configuration()


@pytest.fixture
def collector():
    """A fresh flag collector."""
    return FlagCollector()


@pytest.fixture
def cat_page():
    """A trimmed-down multi-language page."""
    return """{{also|Cat|CAT}}
==English==
[[File:Cat03.jpg|thumb|A cat]]

===Etymology===
From {{inh|en|enm|cat}}, from {{inh|en|ang|catt}}.

===Pronunciation===
* {{a|UK}} {{IPA|en|/kæt/}}
* {{audio|en|en-us-cat.ogg|Audio (US)}}
* {{rhymes|en|æt}}

===Noun===
{{en-noun}}

# {{lb|en|countable}} A [[domestic]] [[feline]].
#: {{ux|en|The cat sat on the mat.}}
#* {{quote-book|en|year=1900|passage=The cat came back.}}
## A wild member of the cat family.
# {{lb|en|slang}} A [[man]], a [[guy]].

====Synonyms====
* {{sense|feline}} {{l|en|kitty}}, {{l|en|moggy}}

====Translations====
{{trans-top|domestic species}}
* French: {{t+|fr|chat|m}}
{{trans-bottom}}

===Verb===
{{en-verb}}

# {{lb|en|nautical}} To [[hoist]] an anchor.

[[Category:en:Cats]]

----

==French==

===Pronunciation===
* {{IPA|fr|/ʃa/}}

===Noun===
{{fr-noun|m}}

# [[cat]]

====Declension====
{{fr-decl|chat}}
"""
