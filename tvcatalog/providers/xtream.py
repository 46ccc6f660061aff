"""
Provider for Xtream Codes compatible panels (``player_api.php``).

Deutsch:
    Anbieter für Xtream-Codes-kompatible Panels.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional
from zoneinfo import ZoneInfo

from jsonschema import Draft7Validator

from ..errors import MalformedPayload, UpstreamUnavailable
from ..models import DEFAULT_CATEGORY, ProgramEntry, RawEntry
from ..schemas import load_validator
from ..settings import ProviderKind
from . import BaseProvider, register

log = logging.getLogger(__name__)

_STREAM_VALIDATOR = load_validator("xtream.live_stream.schema.json")
_CATEGORY_VALIDATOR = load_validator("xtream.category.schema.json")
_LISTING_VALIDATOR = load_validator("xtream.epg_listing.schema.json")

_LISTING_TIME_FORMAT = "%Y-%m-%d %H:%M:%S"


@register
class XtreamProvider(BaseProvider):
    kind = ProviderKind.XTREAM
    guide_text_base64 = True

    @property
    def api_url(self) -> str:
        return f"{self.settings.base_url}/player_api.php"

    def _params(self, action: str, **extra: str) -> Dict[str, str]:
        params = {
            "username": str(self.settings.username),
            "password": str(self.settings.password),
            "action": action,
        }
        params.update(extra)
        return params

    def fetch_live_streams(self) -> List[RawEntry]:
        payload = self._get_json(
            self.api_url,
            params=self._params("get_live_streams"),
            timeout=self.settings.request_timeout,
        )
        if not isinstance(payload, list):
            raise MalformedPayload("get_live_streams did not return a list")
        try:
            categories = self.fetch_categories()
        except (UpstreamUnavailable, MalformedPayload) as exc:
            log.warning("categories unavailable, using default labels: %s", exc)
            categories = {}

        entries: List[RawEntry] = []
        for idx, item in enumerate(payload):
            if len(entries) >= self.settings.max_entries:
                log.info("truncating live streams at %d entries", self.settings.max_entries)
                break
            if not _is_valid(_STREAM_VALIDATOR, item, "live stream", idx):
                continue
            entries.append(self._build_entry(item, categories))
        return entries

    def fetch_categories(self) -> Dict[str, str]:
        payload = self._get_json(
            self.api_url,
            params=self._params("get_live_categories"),
            timeout=self.settings.request_timeout,
        )
        if not isinstance(payload, list):
            raise MalformedPayload("get_live_categories did not return a list")
        mapping: Dict[str, str] = {}
        for idx, item in enumerate(payload):
            if _is_valid(_CATEGORY_VALIDATOR, item, "category", idx):
                mapping[str(item["category_id"])] = str(item["category_name"])
        return mapping

    def fetch_short_epg(self, source_id: str) -> List[ProgramEntry]:
        payload = self._get_json(
            self.api_url,
            params=self._params("get_short_epg", stream_id=str(source_id)),
            timeout=self.settings.guide_timeout,
        )
        if not isinstance(payload, Mapping):
            raise MalformedPayload("get_short_epg did not return an object")
        listings = payload.get("epg_listings") or []
        if not isinstance(listings, list):
            raise MalformedPayload("epg_listings is not a list")
        tz = ZoneInfo(self.settings.timezone)
        programs: List[ProgramEntry] = []
        for idx, item in enumerate(listings):
            if not _is_valid(_LISTING_VALIDATOR, item, "epg listing", idx):
                continue
            start = _listing_time(item, "start_timestamp", "start", tz)
            end = _listing_time(item, "stop_timestamp", "end", tz)
            if start is None or end is None:
                log.debug("skipping epg listing %d with unreadable times", idx)
                continue
            programs.append(
                ProgramEntry(
                    title=str(item.get("title") or "Program"),
                    description=str(item.get("description") or ""),
                    start=start,
                    end=end,
                )
            )
        return programs

    def stream_url(self, stream_id: str) -> str:
        return f"{self.settings.base_url}/live/{self.settings.username}/{self.settings.password}/{stream_id}.m3u8"

    def _build_entry(self, item: Mapping[str, Any], categories: Mapping[str, str]) -> RawEntry:
        stream_id = str(item["stream_id"])
        category_id = item.get("category_id")
        label = categories.get(str(category_id)) if category_id is not None else None
        return RawEntry(
            source_id=stream_id,
            raw_name=str(item["name"]).strip(),
            stream_url=self.stream_url(stream_id),
            logo_url=str(item.get("stream_icon") or "").strip() or None,
            category_label=label or str(item.get("category_name") or "").strip() or DEFAULT_CATEGORY,
        )


def _is_valid(validator: Draft7Validator, item: Any, what: str, index: int) -> bool:
    error = next(iter(validator.iter_errors(item)), None)
    if error is not None:
        log.debug("skipping invalid %s at index %d: %s", what, index, error.message)
        return False
    return True


def _listing_time(item: Mapping[str, Any], timestamp_field: str, text_field: str, tz: ZoneInfo) -> Optional[datetime]:
    raw_timestamp = item.get(timestamp_field)
    if raw_timestamp not in (None, ""):
        try:
            return datetime.fromtimestamp(int(raw_timestamp), tz=timezone.utc)
        except (TypeError, ValueError, OverflowError, OSError):
            log.debug("unreadable %s %r, falling back to %s", timestamp_field, raw_timestamp, text_field)
    text = item.get(text_field)
    if not text:
        return None
    try:
        return datetime.strptime(str(text), _LISTING_TIME_FORMAT).replace(tzinfo=tz)
    except ValueError:
        return None
