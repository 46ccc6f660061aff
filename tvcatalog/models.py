"""
Shared data models for the catalog core.

Deutsch:
    Gemeinsame Datenmodelle für Katalog, Programmführer und Cache.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import IntEnum
from typing import Any, Dict, Mapping, Optional, Tuple

DEFAULT_CATEGORY = "Live TV"


class QualityTier(IntEnum):
    SD = 1
    HD = 2
    HD50 = 3
    FULL_HD = 4
    ULTRA_HD = 5


@dataclass(frozen=True)
class Quality:
    tier: QualityTier
    label: str
    icon: str


@dataclass(frozen=True)
class RawEntry:
    """
    One stream as reported by the provider. Replaced wholesale on every refresh.

    Deutsch:
        Ein vom Anbieter gemeldeter Stream; wird bei jedem Refresh komplett ersetzt.
    """

    source_id: str
    raw_name: str
    stream_url: str
    logo_url: Optional[str] = None
    category_label: str = DEFAULT_CATEGORY

    def to_dict(self) -> Dict[str, Any]:
        return {
            "source_id": self.source_id,
            "raw_name": self.raw_name,
            "stream_url": self.stream_url,
            "logo_url": self.logo_url,
            "category_label": self.category_label,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "RawEntry":
        return cls(
            source_id=str(data["source_id"]),
            raw_name=str(data["raw_name"]),
            stream_url=str(data["stream_url"]),
            logo_url=data.get("logo_url") or None,
            category_label=str(data.get("category_label") or DEFAULT_CATEGORY),
        )


@dataclass(frozen=True)
class RankedSource:
    entry: RawEntry
    quality: Quality


@dataclass(frozen=True)
class CanonicalChannel:
    """
    Deduplicated channel with its sources ordered by descending quality tier.

    Name, logo and category come from the first-seen entry; ``categories``
    lists every source label in input order.

    Deutsch:
        Deduplizierter Sender; Quellen absteigend nach Qualitätsstufe sortiert.
    """

    fingerprint: str
    display_name: str
    logo_url: str
    sources: Tuple[RankedSource, ...]
    representative: RawEntry
    categories: Tuple[str, ...] = ()

    @property
    def primary(self) -> RankedSource:
        return self.sources[0]

    @property
    def source_count(self) -> int:
        return len(self.sources)

    @property
    def category(self) -> str:
        return self.representative.category_label


@dataclass(frozen=True)
class ProgramEntry:
    title: str
    description: str
    start: datetime
    end: datetime


@dataclass(frozen=True)
class GuideResult:
    available: bool
    current: Optional[ProgramEntry] = None
    upcoming: Tuple[ProgramEntry, ...] = field(default_factory=tuple)
    progress_percent: int = 0

    @classmethod
    def unavailable(cls) -> "GuideResult":
        return cls(available=False)


@dataclass(frozen=True)
class CacheEntry:
    """
    Snapshot unit written to the local and shared caches.

    Deutsch:
        Snapshot-Einheit für lokalen und gemeinsamen Cache.
    """

    raw_entries: Tuple[RawEntry, ...]
    built_at_ms: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "built_at_ms": self.built_at_ms,
            "raw_entries": [entry.to_dict() for entry in self.raw_entries],
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "CacheEntry":
        entries = data["raw_entries"]
        if not isinstance(entries, list):
            raise TypeError("raw_entries must be a list")
        return cls(
            raw_entries=tuple(RawEntry.from_dict(item) for item in entries),
            built_at_ms=int(data["built_at_ms"]),
        )


@dataclass(frozen=True)
class ChannelSummary:
    id: str
    name: str
    poster: str

    def to_dict(self) -> Dict[str, str]:
        return {"id": self.id, "name": self.name, "poster": self.poster}


@dataclass(frozen=True)
class ChannelDetail:
    display_name: str
    poster: str
    guide_description_text: str
    source_count: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "display_name": self.display_name,
            "poster": self.poster,
            "guide_description_text": self.guide_description_text,
            "source_count": self.source_count,
        }


@dataclass(frozen=True)
class StreamOption:
    url: str
    label: str

    def to_dict(self) -> Dict[str, str]:
        return {"url": self.url, "label": self.label}
