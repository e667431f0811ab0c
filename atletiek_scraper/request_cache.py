import asyncio
import json
import threading
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any

import structlog
from jsonschema import Draft202012Validator

from atletiek_scraper.cache_keys import DEFAULT_TTLS, CachedRequestKey, key_from_dict
from atletiek_scraper.exceptions import ScraperError

logger = structlog.get_logger(__name__)

SNAPSHOT_SCHEMA_VERSION = 1

SNAPSHOT_SCHEMA = {
    "type": "object",
    "required": ["schema_version", "entries"],
    "properties": {
        "schema_version": {"const": SNAPSHOT_SCHEMA_VERSION},
        "entries": {"type": "array"},
    },
}

ENTRY_SCHEMA = {
    "type": "object",
    "required": ["key", "created_at", "payload"],
    "properties": {
        "key": {
            "type": "object",
            "required": ["kind"],
            "properties": {"kind": {"type": "string"}},
        },
        "created_at": {"type": "number", "minimum": 0},
        "payload": {"type": "string"},
    },
}


@dataclass(frozen=True)
class CacheEntry:
    created_at: float  # Unix epoch seconds
    payload: str


class RequestCache:
    """In-memory cache of serialized responses, keyed by request.

    Entries live in a fixed number of shards, each a dict guarded by its own
    lock, so concurrent readers and writers on different keys rarely contend.
    Entries are never expired on read; ``sweep`` removes the ones older than
    the time to live of their request kind.
    """

    def __init__(
        self,
        ttls: Mapping[str, float] | None = None,
        shards: int = 16,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the cache.

        Args:
            ttls: Time to live in seconds per key kind, merged over the
                defaults.
            shards: Number of shards (at least 1).
            clock: Wall-clock source returning epoch seconds.
        """
        self.ttls = {**DEFAULT_TTLS, **(ttls or {})}
        self._clock = clock
        self._shards: list[dict[CachedRequestKey, CacheEntry]] = [
            {} for _ in range(max(shards, 1))
        ]
        self._locks = [threading.Lock() for _ in self._shards]

    def _shard(
        self, key: CachedRequestKey
    ) -> tuple[dict[CachedRequestKey, CacheEntry], threading.Lock]:
        index = hash(key) % len(self._shards)
        return self._shards[index], self._locks[index]

    def ttl_for(self, key: CachedRequestKey) -> float:
        return self.ttls[key.kind]

    def lookup(self, key: CachedRequestKey) -> tuple[str, float] | None:
        """Returns (payload, age in seconds) for a cached key, or None."""
        shard, lock = self._shard(key)
        with lock:
            entry = shard.get(key)
        if entry is None:
            return None
        return entry.payload, max(self._clock() - entry.created_at, 0.0)

    def insert(self, key: CachedRequestKey, payload: str) -> None:
        """Stores a payload, replacing any previous entry for the key."""
        shard, lock = self._shard(key)
        entry = CacheEntry(created_at=self._clock(), payload=payload)
        with lock:
            shard[key] = entry

    def sweep(self) -> int:
        """Removes expired entries.

        Returns:
            The number of entries removed.
        """
        now = self._clock()
        removed = 0
        for shard, lock in zip(self._shards, self._locks, strict=True):
            with lock:
                expired = [
                    key
                    for key, entry in shard.items()
                    if now - entry.created_at > self.ttl_for(key)
                ]
                for key in expired:
                    del shard[key]
            removed += len(expired)

        if removed:
            logger.debug("cache_swept", removed=removed, remaining=len(self))
        return removed

    def __len__(self) -> int:
        total = 0
        for shard, lock in zip(self._shards, self._locks, strict=True):
            with lock:
                total += len(shard)
        return total

    def snapshot(self) -> bytes:
        """Serializes all entries, keeping their original timestamps."""
        entries = []
        for shard, lock in zip(self._shards, self._locks, strict=True):
            with lock:
                items = list(shard.items())
            entries.extend(
                {
                    "key": key.to_dict(),
                    "created_at": entry.created_at,
                    "payload": entry.payload,
                }
                for key, entry in items
            )

        document = {"schema_version": SNAPSHOT_SCHEMA_VERSION, "entries": entries}
        return json.dumps(document, ensure_ascii=False).encode("utf-8")

    def restore(self, data: bytes | str) -> int:
        """Loads entries from a snapshot.

        Entries that fail validation are dropped with a warning. A document
        that cannot be read at all restores nothing.

        Returns:
            The number of entries restored.
        """
        try:
            document = json.loads(data)
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            logger.warning("cache_snapshot_unreadable", error=str(e))
            return 0

        document_validator = Draft202012Validator(SNAPSHOT_SCHEMA)
        if not document_validator.is_valid(document):
            logger.warning("cache_snapshot_invalid")
            return 0

        entry_validator = Draft202012Validator(ENTRY_SCHEMA)
        restored = 0
        for raw in document["entries"]:
            if not entry_validator.is_valid(raw):
                logger.warning("cache_entry_dropped", reason="invalid entry")
                continue
            try:
                key = key_from_dict(raw["key"])
            except (KeyError, TypeError, ValueError, ScraperError) as e:
                logger.warning("cache_entry_dropped", reason=str(e))
                continue

            shard, lock = self._shard(key)
            with lock:
                shard[key] = CacheEntry(
                    created_at=float(raw["created_at"]), payload=raw["payload"]
                )
            restored += 1

        logger.info("cache_restored", entries=restored)
        return restored


class CacheSweeper:
    """Background task that periodically sweeps a RequestCache."""

    def __init__(self, cache: RequestCache, interval: float = 60.0) -> None:
        self.cache = cache
        self.interval = interval
        self._stop = asyncio.Event()
        self._task: asyncio.Task[None] | None = None

    def start(self) -> None:
        if self._task is not None and not self._task.done():
            return
        self._stop = asyncio.Event()
        self._task = asyncio.create_task(self._run())

    async def _run(self) -> None:
        while not self._stop.is_set():
            try:
                await asyncio.wait_for(self._stop.wait(), timeout=self.interval)
            except TimeoutError:
                self.cache.sweep()

    async def stop(self) -> None:
        """Stops the sweeper; an in-flight sweep runs to completion."""
        if self._task is None:
            return
        self._stop.set()
        await self._task
        self._task = None
