"""
Snapshot caches used by the refresh orchestrator.

Deutsch:
    Prozesslokaler und gemeinsamer (Redis) Cache für Snapshots.
"""

from __future__ import annotations

import json
import logging
import threading
import time
from collections import OrderedDict
from typing import Callable, Optional, Tuple

import redis

from .errors import MalformedPayload, UpstreamUnavailable
from .models import CacheEntry

log = logging.getLogger(__name__)

KEY_PREFIX = "tvcatalog:snapshot:"
REDIS_TIMEOUT = 5.0


class SnapshotCache:
    """
    Process-local cache bounded by entry count and by snapshot age.

    Deutsch:
        Prozesslokaler Cache, begrenzt nach Anzahl und Alter der Einträge.
    """

    def __init__(self, max_entries: int, max_age_seconds: float, clock: Callable[[], float] = time.time) -> None:
        if max_entries < 1:
            raise ValueError("max_entries must be positive")
        self.max_entries = max_entries
        self.max_age_seconds = max_age_seconds
        self._clock = clock
        self._entries: "OrderedDict[str, Tuple[CacheEntry, float]]" = OrderedDict()
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[CacheEntry]:
        with self._lock:
            item = self._entries.get(key)
            if item is None:
                return None
            entry, max_age_seconds = item
            if self._is_expired(entry, max_age_seconds):
                del self._entries[key]
                return None
            self._entries.move_to_end(key)
            return entry

    def put(self, key: str, entry: CacheEntry, ttl_seconds: Optional[float] = None) -> None:
        """Store ``entry``; ``ttl_seconds`` overrides the default age bound for it."""

        max_age_seconds = self.max_age_seconds if ttl_seconds is None else ttl_seconds
        with self._lock:
            self._entries[key] = (entry, max_age_seconds)
            self._entries.move_to_end(key)
            while len(self._entries) > self.max_entries:
                evicted, _ = self._entries.popitem(last=False)
                log.debug("evicted snapshot %s from local cache", evicted[:12])

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def _is_expired(self, entry: CacheEntry, max_age_seconds: float) -> bool:
        age_ms = self._clock() * 1000 - entry.built_at_ms
        return age_ms >= max_age_seconds * 1000


class RedisSnapshotCache:
    """
    Shared cache for snapshots, keyed by configuration hash.

    Deutsch:
        Gemeinsamer Snapshot-Cache in Redis.
    """

    def __init__(self, client: "redis.Redis", prefix: str = KEY_PREFIX) -> None:
        self.client = client
        self.prefix = prefix

    @classmethod
    def from_url(cls, url: str, timeout: float = REDIS_TIMEOUT) -> "RedisSnapshotCache":
        client = redis.Redis.from_url(url, socket_timeout=timeout, socket_connect_timeout=timeout)
        return cls(client)

    def get(self, key: str) -> Optional[CacheEntry]:
        try:
            raw = self.client.get(self.prefix + key)
        except redis.RedisError as exc:
            raise UpstreamUnavailable(f"shared cache read failed: {exc}") from exc
        if raw is None:
            return None
        try:
            if isinstance(raw, bytes):
                raw = raw.decode("utf-8")
            return CacheEntry.from_dict(json.loads(raw))
        except (UnicodeDecodeError, ValueError, KeyError, TypeError) as exc:
            raise MalformedPayload(f"shared cache entry {key[:12]} undecodable: {exc}") from exc

    def put(self, key: str, entry: CacheEntry, ttl_seconds: float) -> None:
        payload = json.dumps(entry.to_dict(), separators=(",", ":"))
        try:
            self.client.set(self.prefix + key, payload, ex=max(1, int(ttl_seconds)))
        except redis.RedisError as exc:
            raise UpstreamUnavailable(f"shared cache write failed: {exc}") from exc
