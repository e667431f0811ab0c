import asyncio
import json
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import date
from typing import Any, Generic, TypeVar

import structlog

from atletiek_scraper.cache_keys import (
    CachedRequestKey,
    new_get_athlete_profile,
    new_get_registrations,
    new_get_results,
    new_search_athletes,
    new_search_competitions,
)
from atletiek_scraper.config import Settings
from atletiek_scraper.exceptions import ScraperError
from atletiek_scraper.models import (
    AthleteEventResults,
    AthleteProfile,
    AthleteSummary,
    CompetitionEvent,
    CompetitionSummary,
    Registration,
)
from atletiek_scraper.rate_limiter import TokenBucket
from atletiek_scraper.request_cache import CacheSweeper, RequestCache
from atletiek_scraper.scraper import Scraper
from atletiek_scraper.sources.atletiek_source import AtletiekSource
from atletiek_scraper.storage import CacheStore

logger = structlog.get_logger(__name__)

T = TypeVar("T")

Fetcher = Callable[[str], Awaitable[bytes]]


@dataclass(frozen=True)
class CachedResult(Generic[T]):
    """Result of a client operation.

    ``age`` is the age of the cache entry in seconds, None when the value
    was fetched for this call.
    """

    value: T
    cached: bool
    age: float | None = None


def to_jsonable(value: Any) -> Any:
    """Converts a record or a list of records to JSON compatible data."""
    if isinstance(value, list):
        return [item.to_dict() for item in value]
    return value.to_dict()


class AtletiekClient:
    """Cached, rate limited access to atletiek.nu.

    Every operation first consults the request cache. On a miss it waits for
    the token bucket, fetches the page, parses it and caches the result.
    Failures are raised to the caller and leave the cache untouched.

    Use as an async context manager to restore and persist the cache
    snapshot and to run the background sweeper:

        async with AtletiekClient(settings=load_settings()) as client:
            result = await client.get_registrations(39657)
    """

    def __init__(
        self,
        fetcher: Fetcher | None = None,
        cache: RequestCache | None = None,
        gate: TokenBucket | None = None,
        settings: Settings | None = None,
        source: AtletiekSource | None = None,
        store: CacheStore | None = None,
    ) -> None:
        self.settings = settings or Settings()

        self._scraper: Scraper | None = None
        if fetcher is None:
            self._scraper = Scraper(
                user_agent=self.settings.user_agent,
                timeout=self.settings.request_timeout,
                retries=self.settings.retries,
            )
            fetcher = self._scraper

        self.fetcher = fetcher
        self.cache = cache if cache is not None else RequestCache(self.settings.ttls())
        self.gate = gate or TokenBucket(
            capacity=self.settings.gate_capacity,
            refill_amount=self.settings.gate_refill_amount,
            refill_interval=self.settings.gate_refill_interval,
        )
        self.source = source or AtletiekSource(self.settings.base_url)
        if store is None and self.settings.snapshot_path:
            store = CacheStore(self.settings.snapshot_path)
        self.store = store
        self.sweeper = CacheSweeper(self.cache, self.settings.sweep_interval)
        # Fetches that outlive a cancelled caller
        self._populating: set[asyncio.Task[Any]] = set()

    async def __aenter__(self) -> "AtletiekClient":
        if self.store is not None:
            self.store.load(self.cache)
        self.sweeper.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.sweeper.stop()
        if self._populating:
            await asyncio.gather(*self._populating, return_exceptions=True)
        try:
            if self.store is not None:
                self.store.save(self.cache)
        finally:
            if self._scraper is not None:
                await self._scraper.close()

    # --- Operations ---------------------------------------------------------

    async def search_competitions(
        self,
        start: date,
        end: date,
        query: str | None = None,
        country: str | None = None,
    ) -> CachedResult[list[CompetitionSummary]]:
        """Searches competitions between two dates.

        Raises:
            ConfigurationError: If the country is not supported.
        """
        key = new_search_competitions(start, end, query, country)
        return await self._execute(
            key, lambda data: [CompetitionSummary.from_dict(d) for d in data]
        )

    async def get_registrations(
        self, competition_id: int
    ) -> CachedResult[list[Registration]]:
        return await self._execute(
            new_get_registrations(competition_id),
            lambda data: [Registration.from_dict(d) for d in data],
        )

    async def get_results(self, participant_id: int) -> CachedResult[AthleteEventResults]:
        return await self._execute(
            new_get_results(participant_id), AthleteEventResults.from_dict
        )

    async def search_athletes(self, query: str) -> CachedResult[list[AthleteSummary]]:
        return await self._execute(
            new_search_athletes(query),
            lambda data: [AthleteSummary.from_dict(d) for d in data],
        )

    async def get_athlete_profile(self, athlete_id: int) -> CachedResult[AthleteProfile]:
        return await self._execute(
            new_get_athlete_profile(athlete_id), AthleteProfile.from_dict
        )

    async def get_competition_events(
        self, competition_id: int
    ) -> CachedResult[list[CompetitionEvent]]:
        """Lists the events of a competition from its start list links.

        Event lists are not cached, but the fetch still passes the gate.
        """
        request = self.source.competition_events_request(competition_id)
        await self.gate.acquire()
        try:
            html = await self.fetcher(request.url)
            events = request.parse(html)
        except ScraperError as e:
            logger.warning("request_failed", url=request.url, **e.to_dict())
            raise
        return CachedResult(events, cached=False, age=None)

    # --- Pipeline -----------------------------------------------------------

    async def _execute(
        self, key: CachedRequestKey, decode: Callable[[Any], T]
    ) -> CachedResult[T]:
        hit = self.cache.lookup(key)
        if hit is not None:
            payload, age = hit
            try:
                value = decode(json.loads(payload))
            except (ValueError, KeyError, TypeError) as e:
                # Unreadable payload (e.g. from an older snapshot): refetch
                logger.warning("cache_payload_invalid", kind=key.kind, error=str(e))
            else:
                logger.debug("cache_hit", kind=key.kind, age=round(age, 1))
                return CachedResult(value, cached=True, age=age)

        logger.debug("cache_miss", kind=key.kind)
        await self.gate.acquire()
        # Once fetching started, a cancelled caller still populates the cache
        task = asyncio.create_task(self._populate(key))
        self._populating.add(task)
        task.add_done_callback(self._populate_done)
        value = await asyncio.shield(task)
        return CachedResult(value, cached=False, age=None)

    def _populate_done(self, task: asyncio.Task[Any]) -> None:
        self._populating.discard(task)
        if task.cancelled():
            return
        # ScraperErrors were already logged by _populate
        error = task.exception()
        if error is not None and not isinstance(error, ScraperError):
            logger.error("populate_failed", error=repr(error))

    async def _populate(self, key: CachedRequestKey) -> Any:
        request = self.source.request_for(key)
        try:
            html = await self.fetcher(request.url)
            value = request.parse(html)
        except ScraperError as e:
            logger.warning("request_failed", kind=key.kind, url=request.url, **e.to_dict())
            raise

        self.cache.insert(key, json.dumps(to_jsonable(value), ensure_ascii=False))
        logger.info("request_cached", kind=key.kind, url=request.url)
        return value
