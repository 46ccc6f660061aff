"""
Fold raw provider entries into canonical channels.

Deutsch:
    Fasst Rohdaten des Anbieters zu kanonischen Sendern zusammen.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional
from urllib.parse import quote

from .fingerprint import FingerprintNormalizer
from .models import CanonicalChannel, RankedSource, RawEntry
from .quality import classify, clean_display_name

PLACEHOLDER_LOGO = "https://via.placeholder.com/300x300?text={text}"


@dataclass
class _ChannelDraft:
    fingerprint: str
    display_name: str
    representative: RawEntry
    sources: List[RankedSource] = field(default_factory=list)


def group_entries(
    entries: Iterable[RawEntry],
    normalizer: Optional[FingerprintNormalizer] = None,
) -> Dict[str, CanonicalChannel]:
    """
    Group ``entries`` by fingerprint, preserving first-seen order of channels.

    Sources within a channel are ordered by descending tier; equal tiers keep
    their input order.

    Deutsch:
        Gruppiert Einträge nach Fingerprint in Reihenfolge des ersten Auftretens.
    """

    if normalizer is None:
        normalizer = FingerprintNormalizer()
    drafts: Dict[str, _ChannelDraft] = {}
    for entry in entries:
        key = normalizer.fingerprint(entry.raw_name)
        draft = drafts.get(key)
        if draft is None:
            draft = _ChannelDraft(
                fingerprint=key,
                display_name=clean_display_name(entry.raw_name),
                representative=entry,
            )
            drafts[key] = draft
        draft.sources.append(RankedSource(entry=entry, quality=classify(entry.raw_name)))

    channels: Dict[str, CanonicalChannel] = {}
    for key, draft in drafts.items():
        ranked = sorted(draft.sources, key=lambda source: source.quality.tier, reverse=True)
        channels[key] = CanonicalChannel(
            fingerprint=key,
            display_name=draft.display_name,
            logo_url=_resolve_logo(draft),
            sources=tuple(ranked),
            representative=draft.representative,
            categories=tuple(dict.fromkeys(source.entry.category_label for source in draft.sources)),
        )
    return channels


def _resolve_logo(draft: _ChannelDraft) -> str:
    if _is_absolute_url(draft.representative.logo_url):
        return str(draft.representative.logo_url)
    for source in draft.sources:
        if _is_absolute_url(source.entry.logo_url):
            return str(source.entry.logo_url)
    return placeholder_logo(draft.display_name)


def placeholder_logo(display_name: str) -> str:
    return PLACEHOLDER_LOGO.format(text=quote(display_name or "TV", safe=""))


def _is_absolute_url(value: Optional[str]) -> bool:
    if not value:
        return False
    lowered = value.strip().lower()
    return lowered.startswith("http://") or lowered.startswith("https://")
