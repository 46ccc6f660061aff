"""
Quality detection and display-name cleaning.

Deutsch:
    Erkennung der Bildqualität und Bereinigung der Anzeigenamen.
"""

from __future__ import annotations

import re
from typing import Dict

from .models import Quality, QualityTier

QUALITIES: Dict[QualityTier, Quality] = {
    QualityTier.ULTRA_HD: Quality(QualityTier.ULTRA_HD, "4K UHD", "🟣"),
    QualityTier.FULL_HD: Quality(QualityTier.FULL_HD, "Full HD", "🔵"),
    QualityTier.HD50: Quality(QualityTier.HD50, "HD 50fps", "🟢"),
    QualityTier.HD: Quality(QualityTier.HD, "HD", "🟡"),
    QualityTier.SD: Quality(QualityTier.SD, "SD", "⚪"),
}

_DISPLAY_QUALITY_RE = re.compile(
    r"\b(?:"
    r"ultra\s*hd|full\s*hd"
    r"|4k|uhd|fhd|hd|sd"
    r"|2160p?|1080[pi]?|720p?"
    r"|hevc|h\.?26[45]"
    r"|\d{2,3}\s*fps|fps"
    r")\b",
    re.IGNORECASE,
)
_GROUP_RE = re.compile(r"\[[^\]]*\]|\([^)]*\)")
_COUNTRY_RE = re.compile(r"^\s*(?:\|[^|]{1,6}\||[A-Za-z]{2,3}\s*[:|]|[A-Za-z]{2}\s*-\s+|[A-Z]{2}-(?=[^\W\d_]))\s*")
_EDGE_PUNCT_RE = re.compile(r"^[\s|:\-_.]+|[\s|:\-_.]+$")
_WHITESPACE_RE = re.compile(r"\s+")


def classify(raw_name: str) -> Quality:
    """
    Return the quality for ``raw_name``; the first matching rule wins.

    Deutsch:
        Ermittelt die Qualitätsstufe; die erste passende Regel gewinnt.
    """

    lowered = raw_name.lower()
    if "4k" in lowered or "uhd" in lowered or "ultra" in lowered:
        return QUALITIES[QualityTier.ULTRA_HD]
    if "fhd" in lowered or "1080" in lowered or "full hd" in lowered:
        return QUALITIES[QualityTier.FULL_HD]
    if "hd" in lowered and "50" in lowered and "fps" in lowered:
        return QUALITIES[QualityTier.HD50]
    if "hd" in lowered or "720" in lowered:
        return QUALITIES[QualityTier.HD]
    return QUALITIES[QualityTier.SD]


def clean_display_name(raw_name: str) -> str:
    text = raw_name
    while True:
        stripped = _COUNTRY_RE.sub("", text, count=1)
        if stripped == text:
            break
        text = stripped
    text = _GROUP_RE.sub(" ", text)
    text = _DISPLAY_QUALITY_RE.sub(" ", text)
    text = _WHITESPACE_RE.sub(" ", text)
    text = _EDGE_PUNCT_RE.sub("", text)
    # Separators left between removed tokens, e.g. "RO|4K| Pro TV".
    text = re.sub(r"\s*\|\s*", " ", text).strip()
    return text or raw_name
