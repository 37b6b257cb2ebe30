from __future__ import annotations

import re
from typing import Iterable, Optional

_FILLER_WORDS = re.compile(r"\b(the|license|version)\b")
_NON_ALNUM = re.compile(r"[^a-z0-9]")
_DESCRIPTIVE_LABEL = re.compile(r"\s|,|\blicense\b|\bversion\b", re.IGNORECASE)


def fingerprint(label: Optional[str]) -> Optional[str]:
    """Collapse a license label into a punctuation- and case-free token.

    ``"Apache License, Version 2.0"`` and ``"Apache-2.0"`` both become
    ``"apache20"``. Returns ``None`` when nothing is left or the label is
    not a string.
    """

    if not isinstance(label, str):
        return None
    normalized = _FILLER_WORDS.sub("", label.lower())
    normalized = _NON_ALNUM.sub("", normalized)
    return normalized or None


def matches(left: Optional[str], right: Optional[str]) -> bool:
    if left == right:
        return True

    left_fingerprint = fingerprint(left)
    right_fingerprint = fingerprint(right)
    if not (left_fingerprint and right_fingerprint):
        return False
    return left_fingerprint == right_fingerprint


def needs_canonicalization(labels: Iterable[str]) -> bool:
    """Return True when any label reads like free text rather than an SPDX id."""

    return any(_DESCRIPTIVE_LABEL.search(label) for label in labels)
