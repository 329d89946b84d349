"""Identity label normalization.

Rules are applied in order and the first hit wins:

1. user-declared routine names (exact, or substring in either direction)
2. synonym table (exact, then whole-word containment, longest key first)
3. the cleaned label itself
"""

from __future__ import annotations

import re
from typing import Iterable, Optional

from commitment_engine.config import DEFAULT_SYNONYMS

_WHITESPACE = re.compile(r"\s+")


def clean_label(label: str) -> str:
    return _WHITESPACE.sub(" ", str(label or "").strip().lower())


class IdentityNormalizer:
    """Maps free-text activity labels onto canonical identities."""

    def __init__(self, routine_names: Optional[Iterable[str]] = None, synonyms: Optional[dict[str, str]] = None):
        self.routine_names = [name.strip() for name in (routine_names or []) if name and name.strip()]
        table = DEFAULT_SYNONYMS if synonyms is None else synonyms
        self.synonyms = {clean_label(k): clean_label(v) for k, v in table.items()}
        self._contained = [
            (re.compile(rf"\b{re.escape(key)}\b"), value)
            for key, value in sorted(self.synonyms.items(), key=lambda item: (-len(item[0]), item[0]))
        ]

    def _declared(self, cleaned: str) -> Optional[str]:
        for name in self.routine_names:
            declared = clean_label(name)
            if cleaned == declared or cleaned in declared or declared in cleaned:
                return name
        return None

    def canonical(self, label: str) -> str:
        cleaned = clean_label(label)
        if not cleaned:
            return cleaned

        declared = self._declared(cleaned)
        if declared is not None:
            return declared

        if cleaned in self.synonyms:
            return self.synonyms[cleaned]
        for pattern, value in self._contained:
            if pattern.search(cleaned):
                return value
        return cleaned

    def group(self, labels: Iterable[str]) -> dict[str, list[str]]:
        """Canonical identity -> raw variants, in first-seen order."""

        groups: dict[str, list[str]] = {}
        for label in labels:
            variants = groups.setdefault(self.canonical(label), [])
            if label not in variants:
                variants.append(label)
        return groups
