"""
Refresh orchestration for the raw entry list.

One orchestrator owns the data of one configuration key. Refreshes are
triggered lazily by callers that observe staleness; concurrent callers share a
single in-flight fetch.

Deutsch:
    Steuert die Aktualisierung der Rohdaten mit TTL, Single-Flight und Caches.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional, Tuple

from .cache import RedisSnapshotCache, SnapshotCache
from .errors import CatalogError, MalformedPayload, UpstreamUnavailable
from .fingerprint import FingerprintNormalizer
from .models import CacheEntry, RawEntry

log = logging.getLogger(__name__)


class RefreshState(str, Enum):
    EMPTY = "empty"
    REFRESHING = "refreshing"
    FRESH = "fresh"
    STALE = "stale"


@dataclass
class _Flight:
    done: threading.Event = field(default_factory=threading.Event)
    origin: Optional[str] = None


class RefreshOrchestrator:
    """
    Owns the raw entry list of one configuration key.

    Deutsch:
        Verwaltet die Rohdaten eines Konfigurationsschlüssels.
    """

    def __init__(
        self,
        provider,
        cache_key: str,
        ttl_seconds: float,
        *,
        clock: Callable[[], float] = time.time,
        local_cache: Optional[SnapshotCache] = None,
        shared_cache: Optional[RedisSnapshotCache] = None,
        normalizer: Optional[FingerprintNormalizer] = None,
    ) -> None:
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        self.provider = provider
        self.cache_key = cache_key
        self.ttl_seconds = ttl_seconds
        self.local_cache = local_cache
        self.shared_cache = shared_cache
        self.normalizer = normalizer if normalizer is not None else FingerprintNormalizer()
        self.last_error: Optional[CatalogError] = None
        self.last_origin: Optional[str] = None
        self._clock = clock
        self._lock = threading.Lock()
        self._flight: Optional[_Flight] = None
        self._entries: Tuple[RawEntry, ...] = ()
        self._built_at_ms: Optional[int] = None

    @property
    def last_refresh_ms(self) -> Optional[int]:
        return self._built_at_ms

    @property
    def state(self) -> RefreshState:
        with self._lock:
            if self._flight is not None:
                return RefreshState.REFRESHING
            if self._built_at_ms is None:
                return RefreshState.EMPTY
            return RefreshState.STALE if self._is_stale_locked() else RefreshState.FRESH

    def snapshot(self) -> Tuple[RawEntry, ...]:
        return self._entries

    def ensure_fresh(self, force: bool = False) -> None:
        """
        Refresh when forced or stale; join the in-flight refresh if there is one.

        Failures are logged and leave the previous snapshot in place.

        Deutsch:
            Aktualisiert bei Bedarf; parallele Aufrufer warten auf denselben Abruf.
        """

        with self._lock:
            if not force and not self._is_stale_locked():
                return
            flight = self._flight
            leader = flight is None
            if flight is None:
                flight = self._flight = _Flight()
        if not leader:
            flight.done.wait()
            return
        try:
            flight.origin = self._refresh(force)
        finally:
            with self._lock:
                self._flight = None
            flight.done.set()

    def _refresh(self, force: bool) -> Optional[str]:
        started = time.monotonic()
        if not force:
            cached = self._read_caches()
            if cached is not None:
                entry, origin = cached
                self._adopt(entry.raw_entries, entry.built_at_ms, origin)
                return origin
        try:
            entries = tuple(self.provider.fetch_live_streams())
        except (UpstreamUnavailable, MalformedPayload) as exc:
            self.last_error = exc
            log.warning(
                "refresh of %s failed, serving %d cached entries: %s",
                self.cache_key[:12],
                len(self._entries),
                exc,
                exc_info=log.isEnabledFor(logging.DEBUG),
            )
            return None
        built_at_ms = int(self._clock() * 1000)
        self._adopt(entries, built_at_ms, "upstream")
        log.info(
            "refreshed %s from upstream: %d entries in %.2fs",
            self.cache_key[:12],
            len(entries),
            time.monotonic() - started,
        )
        self._write_caches(CacheEntry(raw_entries=entries, built_at_ms=built_at_ms))
        return "upstream"

    def _adopt(self, entries: Tuple[RawEntry, ...], built_at_ms: int, origin: str) -> None:
        with self._lock:
            self._entries = entries
            self._built_at_ms = built_at_ms
            self.normalizer.clear()
            self.last_error = None
            self.last_origin = origin
        if origin != "upstream":
            log.info("adopted %d entries for %s from %s", len(entries), self.cache_key[:12], origin)

    def _read_caches(self) -> Optional[Tuple[CacheEntry, str]]:
        if self.local_cache is not None:
            entry = self.local_cache.get(self.cache_key)
            if entry is not None and self._is_usable(entry):
                return entry, "local cache"
        if self.shared_cache is not None:
            try:
                entry = self.shared_cache.get(self.cache_key)
            except (UpstreamUnavailable, MalformedPayload) as exc:
                log.warning("shared cache unavailable for %s: %s", self.cache_key[:12], exc)
                return None
            if entry is not None and self._is_usable(entry):
                if self.local_cache is not None:
                    self.local_cache.put(self.cache_key, entry, self.ttl_seconds)
                return entry, "shared cache"
        return None

    def _write_caches(self, entry: CacheEntry) -> None:
        if self.local_cache is not None:
            self.local_cache.put(self.cache_key, entry, self.ttl_seconds)
        if self.shared_cache is not None:
            try:
                self.shared_cache.put(self.cache_key, entry, self.ttl_seconds)
            except UpstreamUnavailable as exc:
                log.warning("shared cache write failed for %s: %s", self.cache_key[:12], exc)

    def _is_usable(self, entry: CacheEntry) -> bool:
        if self._age_ms(entry.built_at_ms) >= self.ttl_seconds * 1000:
            return False
        current = self._built_at_ms
        return current is None or entry.built_at_ms > current

    def _is_stale_locked(self) -> bool:
        if self._built_at_ms is None:
            return True
        return self._age_ms(self._built_at_ms) >= self.ttl_seconds * 1000

    def _age_ms(self, built_at_ms: int) -> float:
        return self._clock() * 1000 - built_at_ms
