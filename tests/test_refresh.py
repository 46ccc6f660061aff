from __future__ import annotations

import threading
from typing import List

import redis
from conftest import FakeClock, FakeProvider, FakeRedis, entry

from tvcatalog.cache import RedisSnapshotCache, SnapshotCache
from tvcatalog.errors import MalformedPayload
from tvcatalog.fingerprint import FingerprintNormalizer
from tvcatalog.models import CacheEntry, RawEntry
from tvcatalog.refresh import RefreshOrchestrator, RefreshState

TTL = 20 * 60


def _orchestrator(provider: FakeProvider, clock: FakeClock, **kwargs) -> RefreshOrchestrator:
    return RefreshOrchestrator(provider, "cfg", TTL, clock=clock, **kwargs)


def test_cold_start_is_empty(clock: FakeClock) -> None:
    orchestrator = _orchestrator(FakeProvider(), clock)
    assert orchestrator.snapshot() == ()
    assert orchestrator.state is RefreshState.EMPTY


def test_refresh_follows_ttl(clock: FakeClock, sample_entries: List[RawEntry]) -> None:
    provider = FakeProvider(sample_entries)
    orchestrator = _orchestrator(provider, clock)

    orchestrator.ensure_fresh()
    assert provider.calls == 1
    assert orchestrator.snapshot() == tuple(sample_entries)
    assert orchestrator.state is RefreshState.FRESH

    clock.advance(TTL - 1)
    orchestrator.ensure_fresh()
    assert provider.calls == 1

    clock.advance(1)
    assert orchestrator.state is RefreshState.STALE
    orchestrator.ensure_fresh()
    assert provider.calls == 2

    orchestrator.ensure_fresh(force=True)
    assert provider.calls == 3


def test_concurrent_callers_share_one_fetch(clock: FakeClock, sample_entries: List[RawEntry]) -> None:
    provider = FakeProvider(sample_entries, delay=0.2)
    orchestrator = _orchestrator(provider, clock)
    barrier = threading.Barrier(50)
    seen: List[int] = []

    def worker() -> None:
        barrier.wait()
        orchestrator.ensure_fresh()
        seen.append(len(orchestrator.snapshot()))

    threads = [threading.Thread(target=worker) for _ in range(50)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert provider.calls == 1
    assert seen == [3] * 50


def test_readers_see_previous_snapshot_during_refresh(clock: FakeClock, sample_entries: List[RawEntry]) -> None:
    provider = FakeProvider(sample_entries[:1])
    orchestrator = _orchestrator(provider, clock)
    orchestrator.ensure_fresh()
    before = orchestrator.snapshot()

    provider.entries = sample_entries
    provider.delay = 0.2
    clock.advance(TTL)
    worker = threading.Thread(target=orchestrator.ensure_fresh)
    worker.start()
    while orchestrator.state is not RefreshState.REFRESHING and worker.is_alive():
        pass
    assert orchestrator.snapshot() is before
    worker.join()
    assert orchestrator.snapshot() == tuple(sample_entries)


def test_failed_refresh_keeps_last_good_data(clock: FakeClock, sample_entries: List[RawEntry], failing) -> None:
    provider = FakeProvider(sample_entries)
    orchestrator = _orchestrator(provider, clock)
    orchestrator.ensure_fresh()
    good = orchestrator.snapshot()

    provider.failures.append(failing)
    orchestrator.ensure_fresh(force=True)

    assert orchestrator.snapshot() is good
    assert orchestrator.last_error is failing

    provider.failures.append(MalformedPayload("html page"))
    clock.advance(TTL)
    orchestrator.ensure_fresh()
    assert orchestrator.snapshot() is good
    assert orchestrator.state is RefreshState.STALE


def test_failure_on_cold_start_serves_empty(clock: FakeClock, failing) -> None:
    provider = FakeProvider([entry("1", "Pro TV")])
    provider.failures.append(failing)
    orchestrator = _orchestrator(provider, clock)

    orchestrator.ensure_fresh()
    assert orchestrator.snapshot() == ()

    orchestrator.ensure_fresh()
    assert len(orchestrator.snapshot()) == 1
    assert provider.calls == 2


def test_adopting_new_data_clears_fingerprint_memo(clock: FakeClock, sample_entries: List[RawEntry]) -> None:
    orchestrator = _orchestrator(FakeProvider(sample_entries), clock)
    orchestrator.normalizer.fingerprint("Old Channel HD")
    assert len(orchestrator.normalizer) == 1

    orchestrator.ensure_fresh()
    assert len(orchestrator.normalizer) == 0


def test_write_through_and_read_through(clock: FakeClock, sample_entries: List[RawEntry]) -> None:
    client = FakeRedis()
    shared = RedisSnapshotCache(client)
    first = _orchestrator(FakeProvider(sample_entries), clock, shared_cache=shared)
    first.ensure_fresh()
    assert len(client.store) == 1
    assert list(client.expiry.values()) == [TTL]

    clock.advance(60)
    second_provider = FakeProvider([])
    second = _orchestrator(second_provider, clock, shared_cache=shared)
    second.ensure_fresh()

    assert second_provider.calls == 0
    assert second.snapshot() == tuple(sample_entries)
    assert second.last_origin == "shared cache"
    assert second.last_refresh_ms == first.last_refresh_ms


def test_local_cache_is_consulted_first(clock: FakeClock, sample_entries: List[RawEntry]) -> None:
    local = SnapshotCache(max_entries=4, max_age_seconds=TTL, clock=clock)
    local.put("cfg", CacheEntry(raw_entries=tuple(sample_entries), built_at_ms=int(clock() * 1000)))
    client = FakeRedis()
    provider = FakeProvider([])
    orchestrator = _orchestrator(provider, clock, local_cache=local, shared_cache=RedisSnapshotCache(client))

    orchestrator.ensure_fresh()

    assert provider.calls == 0
    assert orchestrator.last_origin == "local cache"
    assert orchestrator.snapshot() == tuple(sample_entries)


def test_expired_cache_entries_go_upstream(clock: FakeClock, sample_entries: List[RawEntry]) -> None:
    client = FakeRedis()
    shared = RedisSnapshotCache(client)
    shared.put("cfg", CacheEntry(raw_entries=(entry("9", "Old"),), built_at_ms=int(clock() * 1000)), TTL)
    clock.advance(TTL)
    provider = FakeProvider(sample_entries)
    orchestrator = _orchestrator(provider, clock, shared_cache=shared)

    orchestrator.ensure_fresh()

    assert provider.calls == 1
    assert orchestrator.snapshot() == tuple(sample_entries)


def test_shared_cache_failures_are_absorbed(clock: FakeClock, sample_entries: List[RawEntry]) -> None:
    client = FakeRedis()
    client.fail_with = redis.TimeoutError("slow")
    provider = FakeProvider(sample_entries)
    orchestrator = _orchestrator(provider, clock, shared_cache=RedisSnapshotCache(client))

    orchestrator.ensure_fresh()

    assert provider.calls == 1
    assert orchestrator.snapshot() == tuple(sample_entries)


def test_forced_refresh_bypasses_caches(clock: FakeClock, sample_entries: List[RawEntry]) -> None:
    local = SnapshotCache(max_entries=4, max_age_seconds=TTL, clock=clock)
    local.put("cfg", CacheEntry(raw_entries=(entry("9", "Cached"),), built_at_ms=int(clock() * 1000)))
    provider = FakeProvider(sample_entries)
    orchestrator = _orchestrator(provider, clock, local_cache=local)

    orchestrator.ensure_fresh(force=True)

    assert provider.calls == 1
    assert orchestrator.snapshot() == tuple(sample_entries)
    assert local.get("cfg").raw_entries == tuple(sample_entries)


def test_supplied_normalizer_is_kept(clock: FakeClock, sample_entries: List[RawEntry]) -> None:
    normalizer = FingerprintNormalizer()
    orchestrator = _orchestrator(FakeProvider(sample_entries), clock, normalizer=normalizer)
    assert orchestrator.normalizer is normalizer


def test_local_cache_honours_each_configuration_ttl(clock: FakeClock, sample_entries: List[RawEntry]) -> None:
    local = SnapshotCache(8, 60 * 60, clock=clock)
    RefreshOrchestrator(FakeProvider(sample_entries), "short", 60, clock=clock, local_cache=local).ensure_fresh()

    clock.advance(61)
    assert local.get("short") is None
