"""
Provider for extended M3U playlists.

Deutsch:
    Anbieter für erweiterte M3U-Playlisten.
"""

from __future__ import annotations

import logging
import re
import unicodedata
from typing import Dict, List, Optional

from ..errors import MalformedPayload
from ..models import DEFAULT_CATEGORY, RawEntry
from ..settings import ProviderKind
from . import BaseProvider, register

log = logging.getLogger(__name__)


@register
class M3UProvider(BaseProvider):
    """
    Playlist provider without guide or category endpoints.

    Deutsch:
        Playlist-Anbieter ohne EPG- und Kategorie-Schnittstelle.
    """

    kind = ProviderKind.M3U

    def fetch_live_streams(self) -> List[RawEntry]:
        response = self._get(str(self.settings.m3u_url), timeout=self.settings.request_timeout)
        response.encoding = response.encoding or "utf-8"
        entries = parse_playlist(response.text, max_entries=self.settings.max_entries)
        log.debug("parsed %d playlist entries", len(entries))
        return entries


def parse_playlist(text: str, max_entries: Optional[int] = None) -> List[RawEntry]:
    lines = text.splitlines()
    if not any(line.strip().startswith("#EXT") for line in lines[:50]):
        raise MalformedPayload("playlist does not look like an extended M3U file")

    entries: List[RawEntry] = []
    seen_ids: set[str] = set()
    current_meta: Dict[str, str] = {}
    position = 0
    for line in lines:
        line = line.strip()
        if not line:
            continue
        if line.startswith("#EXTINF"):
            current_meta = _parse_extinf(line)
            continue
        if line.startswith("#"):
            continue
        if max_entries is not None and len(entries) >= max_entries:
            log.info("truncating playlist at %d entries", max_entries)
            break
        position += 1
        name = current_meta.get("name") or current_meta.get("tvg-name") or _clean_text(line)
        source_id = current_meta.get("tvg-id") or ""
        if not source_id or source_id in seen_ids:
            source_id = str(position)
        seen_ids.add(source_id)
        entries.append(
            RawEntry(
                source_id=source_id,
                raw_name=name,
                stream_url=line,
                logo_url=current_meta.get("tvg-logo") or None,
                category_label=current_meta.get("group-title") or DEFAULT_CATEGORY,
            )
        )
        current_meta = {}
    return entries


def _parse_extinf(line: str) -> Dict[str, str]:
    meta: Dict[str, str] = {}
    match = re.match(r'#EXTINF:-?\d+((?:\s+[a-zA-Z0-9\-]+="[^"]*")*)\s*,(.*)', line)
    if match:
        attrs = match.group(1)
        name = match.group(2)
        meta["name"] = _clean_text(name)
        for attr_match in re.finditer(r'([a-zA-Z0-9\-]+)="([^"]*)"', attrs):
            meta[attr_match.group(1).lower()] = _clean_text(attr_match.group(2))
    return meta


def _clean_text(value: Optional[str]) -> str:
    if value is None:
        return ""
    text = value.replace("\x00", "").strip()
    text = unicodedata.normalize("NFC", text)
    return text
