"""
Catalog service exposed to the routing layer.

Deutsch:
    Katalogdienst: Liste, Detailansicht und Streamauswahl.
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timezone, tzinfo
from typing import Callable, Dict, List, Optional, Tuple
from zoneinfo import ZoneInfo

from .cache import RedisSnapshotCache, SnapshotCache
from .errors import NotFound
from .grouping import group_entries
from .guide import GuideResolver, render_description
from .history import AccessHistory
from .models import CanonicalChannel, ChannelDetail, ChannelSummary, RawEntry, StreamOption
from .providers import create_provider
from .refresh import RefreshOrchestrator
from .settings import Settings

log = logging.getLogger(__name__)

DEFAULT_CATALOG_LIMIT = 1000


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CatalogService:
    """
    Canonical catalog, guide and history for one configuration key.

    Deutsch:
        Kanonischer Katalog mit EPG und Verlauf für einen Konfigurationsschlüssel.
    """

    def __init__(
        self,
        orchestrator: RefreshOrchestrator,
        history: AccessHistory,
        guide: GuideResolver,
        *,
        tz: tzinfo = timezone.utc,
        catalog_limit: int = DEFAULT_CATALOG_LIMIT,
        now: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.orchestrator = orchestrator
        self.history = history
        self.guide = guide
        self.tz = tz
        self.catalog_limit = catalog_limit
        self._now = now
        self._lock = threading.Lock()
        self._catalog_source: Optional[Tuple[RawEntry, ...]] = None
        self._catalog: Dict[str, CanonicalChannel] = {}

    def refresh(self, force: bool = False) -> None:
        self.orchestrator.ensure_fresh(force=force)

    def catalog(self) -> Dict[str, CanonicalChannel]:
        self.orchestrator.ensure_fresh()
        snapshot = self.orchestrator.snapshot()
        with self._lock:
            if snapshot is not self._catalog_source:
                self._catalog = group_entries(snapshot, self.orchestrator.normalizer)
                self._catalog_source = snapshot
                log.debug("rebuilt catalog: %d entries -> %d channels", len(snapshot), len(self._catalog))
            return self._catalog

    def list_catalog(
        self,
        search: Optional[str] = None,
        category: Optional[str] = None,
        history_only: bool = False,
    ) -> List[ChannelSummary]:
        channels = self.catalog()
        if history_only:
            candidates = [channels[key] for key in self.history.list() if key in channels]
        else:
            candidates = list(channels.values())
        if search and search.strip():
            needle = search.strip().lower()
            candidates = [channel for channel in candidates if needle in channel.display_name.lower()]
        if category:
            wanted = category.strip().lower()
            candidates = [
                channel for channel in candidates if any(label.lower() == wanted for label in channel.categories)
            ]
        return [
            ChannelSummary(id=channel.fingerprint, name=channel.display_name, poster=channel.logo_url)
            for channel in candidates[: self.catalog_limit]
        ]

    def list_categories(self) -> List[str]:
        labels: Dict[str, None] = {}
        for channel in self.catalog().values():
            for label in channel.categories:
                labels.setdefault(label, None)
        return list(labels)

    def get_channel_detail(self, fingerprint: str) -> Optional[ChannelDetail]:
        try:
            channel = self.lookup(fingerprint)
        except NotFound:
            log.info("detail requested for unknown channel %s", fingerprint)
            return None
        now = self._now()
        guide = self.guide.resolve(channel.primary.entry.source_id, now)
        return ChannelDetail(
            display_name=channel.display_name,
            poster=channel.logo_url,
            guide_description_text=render_description(channel, guide, now, self.tz),
            source_count=channel.source_count,
        )

    def select_stream(self, fingerprint: str) -> List[StreamOption]:
        try:
            channel = self.lookup(fingerprint)
        except NotFound:
            log.info("stream requested for unknown channel %s", fingerprint)
            return []
        self.history.touch(channel.fingerprint)
        tier_counts: Dict[int, int] = {}
        for source in channel.sources:
            tier_counts[source.quality.tier] = tier_counts.get(source.quality.tier, 0) + 1
        options: List[StreamOption] = []
        seen: Dict[int, int] = {}
        for source in channel.sources:
            quality = source.quality
            label = f"{quality.icon} {quality.label}"
            if tier_counts[quality.tier] > 1:
                seen[quality.tier] = seen.get(quality.tier, 0) + 1
                label = f"{label} #{seen[quality.tier]}"
            options.append(StreamOption(url=source.entry.stream_url, label=label))
        return options

    def lookup(self, fingerprint: str) -> CanonicalChannel:
        channel = self.catalog().get(fingerprint)
        if channel is None:
            raise NotFound(f"unknown channel {fingerprint}")
        return channel


class ServiceRegistry:
    """
    Keeps one service per configuration key.

    Deutsch:
        Hält je Konfigurationsschlüssel genau einen Dienst.
    """

    def __init__(self, factory: Optional[Callable[[Settings], CatalogService]] = None) -> None:
        self._factory = factory
        self._services: Dict[str, CatalogService] = {}
        self._lock = threading.Lock()
        self._local_cache: Optional[SnapshotCache] = None

    def get(self, settings: Settings) -> CatalogService:
        key = settings.cache_key()
        with self._lock:
            service = self._services.get(key)
            if service is None:
                if self._factory is not None:
                    service = self._factory(settings)
                else:
                    if self._local_cache is None:
                        self._local_cache = SnapshotCache(settings.local_cache_size, settings.ttl_seconds)
                    service = build_service(settings, local_cache=self._local_cache)
                self._services[key] = service
            return service

    def __len__(self) -> int:
        with self._lock:
            return len(self._services)


def build_service(
    settings: Settings,
    *,
    provider=None,
    local_cache: Optional[SnapshotCache] = None,
    shared_cache: Optional[RedisSnapshotCache] = None,
) -> CatalogService:
    """
    Validate ``settings`` and wire all collaborators of a catalog service.

    Raises ConfigurationIncomplete for unusable settings.
    """

    settings.validate()
    provider = provider or create_provider(settings)
    if local_cache is None:
        local_cache = SnapshotCache(settings.local_cache_size, settings.ttl_seconds)
    if shared_cache is None and settings.redis_url:
        shared_cache = RedisSnapshotCache.from_url(settings.redis_url)
    orchestrator = RefreshOrchestrator(
        provider,
        settings.cache_key(),
        settings.ttl_seconds,
        local_cache=local_cache,
        shared_cache=shared_cache,
    )
    history = AccessHistory(settings.history_capacity, settings.history_path)
    guide = GuideResolver(provider, upcoming_limit=settings.upcoming_limit)
    log.info("catalog service ready (provider=%s, ttl=%.0f min)", settings.provider.value, settings.ttl_minutes)
    return CatalogService(
        orchestrator,
        history,
        guide,
        tz=ZoneInfo(settings.timezone),
        catalog_limit=settings.catalog_limit,
    )
