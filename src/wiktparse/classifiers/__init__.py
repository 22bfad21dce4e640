"""
Semantic section classifiers.

Classifiers are registered by name; the bindings file says which section
kinds use which classifier. Adding a section kind is a change to the YAML
file, adding a classifier is one entry here.
"""

from .base import Classifier, ClassifierContext
from .inflection import Inflection, classify_inflection
from .pronunciation import Pronunciation, PronunciationItem, classify_pronunciation
from .senses import Example, Quotation, Sense, SenseList, classify_senses
from .terms import Term, TermItem, TermList, classify_terms

CLASSIFIERS: dict[str, Classifier] = {
    "pronunciation": classify_pronunciation,
    "senses": classify_senses,
    "terms": classify_terms,
    "inflection": classify_inflection,
}

__all__ = [
    "CLASSIFIERS",
    "Classifier",
    "ClassifierContext",
    "Example",
    "Inflection",
    "Pronunciation",
    "PronunciationItem",
    "Quotation",
    "Sense",
    "SenseList",
    "Term",
    "TermItem",
    "TermList",
    "classify_inflection",
    "classify_pronunciation",
    "classify_senses",
    "classify_terms",
]
