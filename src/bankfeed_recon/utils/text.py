"""Text normalization helpers for reference and keyword matching."""

from typing import Iterable, Optional
import re

_NON_ALNUM = re.compile(r"[^A-Za-z0-9]")
_TOKEN_SPLIT = re.compile(r"[^a-z0-9]+")

# Document number shapes seen on bank descriptions (INV-2024-001, REC2024001, ...)
REFERENCE_PATTERNS = [
    re.compile(r"INV-?\d{4}-?\d{3,4}", re.IGNORECASE),
    re.compile(r"REC-?\d{4}-?\d{3,4}", re.IGNORECASE),
    re.compile(r"QT-?\d{4}-?\d{3,4}", re.IGNORECASE),
    re.compile(r"CN-?\d{4}-?\d{4}", re.IGNORECASE),
    re.compile(r"DN-?\d{4}-?\d{4}", re.IGNORECASE),
    re.compile(r"\b[A-Z]{2,4}-\d{4,}", re.IGNORECASE),
]


def normalize_reference(value: Optional[str]) -> str:
    """Strip everything but letters and digits and upper-case the rest."""
    if not value:
        return ""
    return _NON_ALNUM.sub("", value).upper()


def extract_references(description: Optional[str]) -> list[str]:
    """Pull normalized document references out of a free-text description."""
    if not description:
        return []

    refs: list[str] = []
    for pattern in REFERENCE_PATTERNS:
        for found in pattern.findall(description):
            ref = normalize_reference(found)
            if ref and ref not in refs:
                refs.append(ref)
    return refs


def tokenize(text: Optional[str]) -> list[str]:
    """Lower-case a string and split it on anything that is not a letter or digit."""
    if not text:
        return []
    return [t for t in _TOKEN_SPLIT.split(text.lower()) if t]


def significant_tokens(
    text: Optional[str], min_length: int, stop_words: Iterable[str]
) -> set[str]:
    """Tokens of at least ``min_length`` characters that are not stop-words."""
    stops = {w.lower() for w in stop_words}
    return {t for t in tokenize(text) if len(t) >= min_length and t not in stops}
