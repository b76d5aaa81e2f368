# SPDX-License-Identifier: Apache-2.0

"""
Subject classification domain logic.

Maps free-text case subjects to a category label through keyword membership.
The rule set is built once at startup and never mutated; every function here
is pure.
"""

import re
import unicodedata
from dataclasses import dataclass
from typing import Any, FrozenSet, Iterable, List, Mapping, Optional, Tuple

from models.enums import DEFAULT_CATEGORY
from .errors import InvalidInputError


TOKEN_PATTERN = re.compile(r"\w+", re.UNICODE)

# Evaluation order matters: the last matching category wins.
DEFAULT_RULES: List[Tuple[str, List[str]]] = [
    ("PETICION", [
        "peticion", "petición", "solicitud", "solicito", "informacion",
        "información", "certificado", "copia", "consulta"
    ]),
    ("QUEJA", [
        "queja", "inconformidad", "maltrato", "demora", "grosero", "atencion", "atención"
    ]),
    ("RECLAMO", [
        "reclamo", "cobro", "factura", "incumplimiento", "devolucion", "devolución", "servicio"
    ]),
    ("SUGERENCIA", [
        "sugerencia", "sugiero", "propuesta", "mejora", "recomendacion", "recomendación"
    ]),
    ("DENUNCIA", [
        "denuncia", "irregularidad", "corrupcion", "corrupción", "fraude", "soborno", "ilegal"
    ]),
]


@dataclass(frozen=True)
class ClassificationRuleSet:
    """Ordered, immutable mapping of category labels to trigger keywords."""

    rules: Tuple[Tuple[str, FrozenSet[str]], ...]
    default_category: str = DEFAULT_CATEGORY

    @classmethod
    def from_pairs(
        cls,
        pairs: Iterable[Tuple[str, Iterable[str]]],
        default_category: str = DEFAULT_CATEGORY
    ) -> "ClassificationRuleSet":
        """Build a rule set from (category, keywords) pairs, keeping their order."""
        rules = []
        seen = set()
        for category, keywords in pairs:
            label = str(category).strip()
            if not label:
                raise ValueError("Category label cannot be empty")
            if label in seen:
                raise ValueError(f"Duplicate category in rule set: {label}")
            seen.add(label)
            rules.append((label, frozenset(normalize_text(str(k).strip()) for k in keywords if str(k).strip())))
        return cls(rules=tuple(rules), default_category=default_category)

    @classmethod
    def from_config(cls, config: Optional[Mapping[str, Any]]) -> "ClassificationRuleSet":
        """
        Build a rule set from the ``classification`` section of the rule file.

        Expected shape::

            classification:
              default_category: OTROS
              categories:
                - name: PETICION
                  keywords: [solicitud, peticion]

        Falls back to the built-in rules when no categories are configured.
        """
        config = config or {}
        default_category = config.get("default_category") or DEFAULT_CATEGORY
        categories = config.get("categories")
        if not categories:
            return cls.from_pairs(DEFAULT_RULES, default_category)

        pairs = []
        for entry in categories:
            if not isinstance(entry, Mapping) or "name" not in entry:
                raise ValueError(f"Invalid category entry: {entry!r}")
            pairs.append((entry["name"], entry.get("keywords") or []))
        return cls.from_pairs(pairs, default_category)

    @property
    def categories(self) -> List[str]:
        """Category labels in evaluation order."""
        return [label for label, _ in self.rules]


def normalize_text(text: str) -> str:
    """Lowercase NFC form of text."""
    return unicodedata.normalize("NFC", text).lower()


def tokenize(text: str) -> List[str]:
    """Split text into lowercase word tokens."""
    return TOKEN_PATTERN.findall(normalize_text(text))


def classify(subject: Optional[str], rule_set: ClassificationRuleSet) -> str:
    """
    Derive the category of a case subject.

    Args:
        subject: Free-text subject
        rule_set: Classification rules

    Returns:
        Category label of the last matching rule, or the default category

    Raises:
        InvalidInputError: If subject is None
    """
    if subject is None:
        raise InvalidInputError("Subject is required for classification")

    tokens = set(tokenize(subject))
    category = rule_set.default_category
    if not tokens:
        return category

    for label, keywords in rule_set.rules:
        if tokens & keywords:
            category = label

    return category
