from pathlib import Path

from structlog.testing import capture_logs

from atletiek_scraper.cache_keys import new_get_registrations, new_get_results
from atletiek_scraper.request_cache import RequestCache
from atletiek_scraper.storage import CacheStore


def test_save_and_load(temp_snapshot_file: Path) -> None:
    """Test that a saved snapshot restores into a fresh cache."""
    cache = RequestCache()
    cache.insert(new_get_registrations(39657), "[]")
    cache.insert(new_get_results(1398565), "{}")

    store = CacheStore(temp_snapshot_file)
    store.save(cache)

    assert temp_snapshot_file.exists()
    # No temporary files left behind
    assert [p.name for p in temp_snapshot_file.parent.iterdir()] == ["requests.json"]

    restored = RequestCache()
    assert store.load(restored) == 2
    assert restored.lookup(new_get_results(1398565)) is not None


def test_save_overwrites(temp_snapshot_file: Path) -> None:
    store = CacheStore(temp_snapshot_file)
    cache = RequestCache()
    cache.insert(new_get_registrations(1), "[]")
    store.save(cache)

    store.save(RequestCache())

    restored = RequestCache()
    assert store.load(restored) == 0
    assert len(restored) == 0


def test_load_missing_file(tmp_path: Path) -> None:
    store = CacheStore(tmp_path / "missing.json")
    assert store.load(RequestCache()) == 0


def test_load_corrupt_file(temp_snapshot_file: Path) -> None:
    temp_snapshot_file.parent.mkdir(parents=True)
    temp_snapshot_file.write_text("{not json", encoding="utf-8")

    with capture_logs() as logs:
        assert CacheStore(temp_snapshot_file).load(RequestCache()) == 0
    assert logs[0]["event"] == "cache_snapshot_unreadable"
