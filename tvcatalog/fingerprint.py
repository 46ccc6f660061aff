"""
Channel name fingerprinting.

A fingerprint is the grouping key for raw provider names: two entries with the
same fingerprint are treated as sources of the same channel.

Deutsch:
    Erzeugt aus verrauschten Sendernamen einen Gruppierungsschlüssel.
"""

from __future__ import annotations

import re
import threading
from typing import Dict

# Country/source markers, only honoured at the very start of a name.
_PREFIX_RE = re.compile(
    r"^\s*(?:"
    r"\[[^\]]{1,6}\]"
    r"|\|[^|]{1,6}\|"
    r"|[a-z]{2,3}\s*[:|]"
    r"|[a-z]{2}\s*-\s+"
    r")\s*",
    re.IGNORECASE,
)
# "RO-Pro TV"; upper-case only so names like "Al-Jazeera" survive.
_UPPER_DASH_PREFIX_RE = re.compile(r"^\s*[A-Z]{2}-(?=[^\W\d_])")

_QUALITY_TOKEN_RE = re.compile(
    r"\b(?:"
    r"ultra\s*hd|full\s*hd"
    r"|4k|uhd|fhd|hd|sd"
    r"|2160p|1080[pi]|720p"
    r"|hevc|h\.?26[45]"
    r"|backup|alt"
    r"|\d{2,3}\s*fps|fps"
    r")\b"
)

_BRAND_VARIANTS = (
    (re.compile(r"\bsports\b"), "sport"),
    (re.compile(r"\bmovies\b"), "movie"),
    (re.compile(r"\bcinemas\b"), "cinema"),
)

_NON_ALNUM_RE = re.compile(r"[\W_]+")
_WHITESPACE_RE = re.compile(r"\s+")


def compute_fingerprint(raw_name: str) -> str:
    """
    Derive the grouping key for ``raw_name``. Pure and deterministic.

    Deutsch:
        Berechnet den Gruppierungsschlüssel; rein und deterministisch.
    """

    lowered = raw_name.lower()
    text = strip_prefixes(raw_name).lower()
    text = _QUALITY_TOKEN_RE.sub(" ", text)
    for pattern, replacement in _BRAND_VARIANTS:
        text = pattern.sub(replacement, text)
    text = _NON_ALNUM_RE.sub("", text)
    if text:
        return text
    collapsed = _WHITESPACE_RE.sub(" ", lowered).strip()
    return collapsed or lowered


def strip_prefixes(raw_name: str) -> str:
    """Remove leading country or source markers, repeatedly."""

    text = raw_name
    while True:
        stripped = _PREFIX_RE.sub("", text, count=1)
        stripped = _UPPER_DASH_PREFIX_RE.sub("", stripped, count=1)
        if stripped == text:
            return text
        text = stripped


class FingerprintNormalizer:
    """
    Memoizing wrapper around :func:`compute_fingerprint`.

    The memo table lives as long as one raw entry list; the owner clears it
    whenever a new list is adopted.

    Deutsch:
        Zwischenspeicher für Fingerprints, wird bei jedem neuen Snapshot geleert.
    """

    def __init__(self) -> None:
        self._memo: Dict[str, str] = {}
        self._lock = threading.Lock()

    def fingerprint(self, raw_name: str) -> str:
        with self._lock:
            cached = self._memo.get(raw_name)
        if cached is not None:
            return cached
        value = compute_fingerprint(raw_name)
        with self._lock:
            self._memo[raw_name] = value
        return value

    def clear(self) -> None:
        with self._lock:
            self._memo.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._memo)
