import asyncio
import json
from datetime import date

import pytest
from structlog.testing import capture_logs

from atletiek_scraper.cache_keys import (
    new_get_registrations,
    new_get_results,
    new_search_athletes,
    new_search_competitions,
)
from atletiek_scraper.request_cache import CacheSweeper, RequestCache

HOUR = 3600.0


class FakeClock:
    def __init__(self, now: float = 1_700_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cache(clock: FakeClock) -> RequestCache:
    return RequestCache(clock=clock)


class TestLookup:
    def test_miss(self, cache: RequestCache) -> None:
        assert cache.lookup(new_get_registrations(39657)) is None

    def test_hit_reports_age(self, cache: RequestCache, clock: FakeClock) -> None:
        key = new_get_registrations(39657)
        cache.insert(key, "[]")
        clock.now += 90
        assert cache.lookup(key) == ("[]", 90.0)

    def test_normalized_keys_share_an_entry(self, cache: RequestCache) -> None:
        start, end = date(2023, 5, 1), date(2023, 5, 31)
        cache.insert(new_search_competitions(start, end, None), "[1]")
        hit = cache.lookup(new_search_competitions(start, end, ""))
        assert hit is not None
        assert hit[0] == "[1]"

    def test_insert_replaces(self, cache: RequestCache) -> None:
        key = new_search_athletes("siekman")
        cache.insert(key, "old")
        cache.insert(key, "new")
        assert cache.lookup(key)[0] == "new"  # type: ignore[index]
        assert len(cache) == 1

    def test_expired_entries_stay_until_swept(
        self, cache: RequestCache, clock: FakeClock
    ) -> None:
        key = new_get_registrations(39657)
        cache.insert(key, "[]")
        clock.now += 13 * HOUR
        assert cache.lookup(key) is not None


class TestSweep:
    def test_removes_only_expired(self, cache: RequestCache, clock: FakeClock) -> None:
        registrations = new_get_registrations(39657)
        results = new_get_results(1398565)
        cache.insert(registrations, "[]")
        cache.insert(results, "{}")

        clock.now += 13 * HOUR
        assert cache.sweep() == 1
        assert cache.lookup(registrations) is None
        assert cache.lookup(results) is not None

        clock.now += 12 * HOUR
        assert cache.sweep() == 1
        assert len(cache) == 0

    def test_custom_ttl(self, clock: FakeClock) -> None:
        cache = RequestCache(ttls={"get_registrations": 60.0}, clock=clock)
        key = new_get_registrations(39657)
        cache.insert(key, "[]")
        clock.now += 61
        assert cache.sweep() == 1
        assert cache.ttl_for(new_get_results(1)) == 24 * HOUR

    def test_sweep_on_empty_cache(self, cache: RequestCache) -> None:
        assert cache.sweep() == 0


class TestSnapshot:
    def test_roundtrip_keeps_timestamps(
        self, cache: RequestCache, clock: FakeClock
    ) -> None:
        key = new_search_competitions(date(2023, 5, 1), date(2023, 5, 31), "Meet", "BE")
        cache.insert(key, '[{"name": "Pinkstermeeting"}]')
        cache.insert(new_get_results(1398565), "{}")
        data = cache.snapshot()

        clock.now += 100
        restored = RequestCache(clock=clock)
        assert restored.restore(data) == 2
        assert restored.lookup(key) == ('[{"name": "Pinkstermeeting"}]', 100.0)

    def test_restored_entries_expire_on_schedule(
        self, cache: RequestCache, clock: FakeClock
    ) -> None:
        cache.insert(new_get_registrations(39657), "[]")
        data = cache.snapshot()

        clock.now += 13 * HOUR
        restored = RequestCache(clock=clock)
        restored.restore(data)
        assert restored.sweep() == 1

    @pytest.mark.parametrize("data", [b"not json", b"\xff\xfe", b"[]", b"{}"])
    def test_unreadable_snapshot(self, cache: RequestCache, data: bytes) -> None:
        assert cache.restore(data) == 0
        assert len(cache) == 0

    def test_wrong_schema_version(self, cache: RequestCache) -> None:
        data = json.dumps({"schema_version": 2, "entries": []})
        with capture_logs() as logs:
            assert cache.restore(data) == 0
        assert logs[0]["event"] == "cache_snapshot_invalid"

    def test_invalid_entries_are_dropped(self, cache: RequestCache) -> None:
        """Test that bad entries are dropped and the rest is restored."""
        valid = {
            "key": {"kind": "get_registrations", "competition_id": 39657},
            "created_at": 1_700_000_000.0,
            "payload": "[]",
        }
        entries = [
            valid,
            {"key": {"kind": "get_start_list"}, "created_at": 1.0, "payload": "[]"},
            {"key": {"kind": "get_results"}, "created_at": 1.0, "payload": "{}"},
            {"key": {"kind": "get_results", "participant_id": 1}, "payload": "{}"},
            {
                "key": {
                    "kind": "search_competitions",
                    "start": "2023-05-01",
                    "end": "2023-05-31",
                    "country": "SE",
                },
                "created_at": 1.0,
                "payload": "[]",
            },
        ]
        data = json.dumps({"schema_version": 1, "entries": entries})

        with capture_logs() as logs:
            assert cache.restore(data) == 1

        dropped = [log for log in logs if log["event"] == "cache_entry_dropped"]
        assert len(dropped) == 4
        assert cache.lookup(new_get_registrations(39657)) is not None


class TestCacheSweeper:
    @pytest.mark.asyncio
    async def test_sweeps_periodically(self, clock: FakeClock) -> None:
        cache = RequestCache(ttls={"get_registrations": 1.0}, clock=clock)
        cache.insert(new_get_registrations(39657), "[]")
        clock.now += 2

        sweeper = CacheSweeper(cache, interval=0.01)
        sweeper.start()
        for _ in range(100):
            if len(cache) == 0:
                break
            await asyncio.sleep(0.01)
        await sweeper.stop()

        assert len(cache) == 0

    @pytest.mark.asyncio
    async def test_stop_without_start(self, cache: RequestCache) -> None:
        await CacheSweeper(cache).stop()

    @pytest.mark.asyncio
    async def test_stop_is_prompt(self, cache: RequestCache) -> None:
        sweeper = CacheSweeper(cache, interval=3600.0)
        sweeper.start()
        await asyncio.wait_for(sweeper.stop(), timeout=1.0)
