import asyncio
import itertools
import time
from typing import Any

import structlog
from curl_cffi.requests import AsyncSession, RequestsError

from atletiek_scraper.exceptions import FetchError

logger = structlog.get_logger(__name__)

# Without a desktop browser user agent the site leaves out the sortData
# spans that carry the machine readable values.
USER_AGENT = "Mozilla/5.0 (X11; Linux x86_64; rv:109.0) Gecko/20100101 Firefox/114.0"

RETRYABLE_STATUS = frozenset({429, 500, 502, 503, 504})


class Scraper:
    """Fetches raw pages from atletiek.nu.

    Instances are callable with a URL, which makes them usable as the
    fetcher of AtletiekClient. Retryable failures (timeouts, connection
    errors, 429 and 5xx responses) are retried with exponential backoff.
    """

    def __init__(
        self,
        user_agent: str = USER_AGENT,
        timeout: float = 30.0,
        retries: int = 3,
        backoff: float = 1.0,
        max_backoff: float = 30.0,
        session: Any | None = None,
    ) -> None:
        """Initialize the scraper.

        Args:
            user_agent: User-Agent header sent with every request.
            timeout: Request timeout in seconds.
            retries: Total number of attempts per URL.
            backoff: Delay before the first retry, doubled on every retry.
            max_backoff: Upper bound for the retry delay.
            session: Optional pre-built session (curl_cffi AsyncSession
                compatible).
        """
        self.user_agent = user_agent
        self.timeout = timeout
        self.retries = max(retries, 1)
        self.backoff = backoff
        self.max_backoff = max_backoff
        self._session = session
        self._owns_session = session is None
        self._request_ids = itertools.count(1)

    def _get_session(self) -> Any:
        if self._session is None:
            self._session = AsyncSession(
                headers={
                    "User-Agent": self.user_agent,
                    "Accept-Language": "en-GB,en;q=0.9",
                }
            )
        return self._session

    async def close(self) -> None:
        if self._session is not None and self._owns_session:
            await self._session.close()
            self._session = None

    async def __call__(self, url: str) -> bytes:
        return await self.fetch(url)

    async def fetch(self, url: str) -> bytes:
        """Fetches a page.

        Args:
            url: Absolute URL of the page.

        Returns:
            The raw response body.

        Raises:
            FetchError: If all attempts failed or the failure is not
                retryable (e.g. 404).
        """
        session = self._get_session()

        for attempt in range(1, self.retries + 1):
            request_id = next(self._request_ids)
            logger.debug("request_sent", request_id=request_id, url=url, attempt=attempt)
            started = time.monotonic()

            try:
                response = await session.get(url, timeout=self.timeout)
            except RequestsError as e:
                if "Too many open files" in str(e):
                    logger.error(
                        "resource_limit_reached",
                        error="Too many open files (errno 24)",
                        suggestion="Raise the open file limit or lower concurrency",
                    )
                error = FetchError(f"Request failed: {e}", url=url, retryable=True)
            else:
                status = response.status_code
                logger.info(
                    "request_completed",
                    request_id=request_id,
                    url=url,
                    status=status,
                    elapsed=round(time.monotonic() - started, 3),
                )
                if status < 400:
                    return response.content
                error = FetchError(
                    f"HTTP {status} for {url}",
                    url=url,
                    status_code=status,
                    retryable=status in RETRYABLE_STATUS,
                )

            if not error.retryable or attempt == self.retries:
                logger.error(
                    "fetch_failed",
                    url=url,
                    status_code=error.status_code,
                    attempts=attempt,
                    error=error.message,
                )
                raise error

            delay = min(self.backoff * 2 ** (attempt - 1), self.max_backoff)
            logger.warning(
                "fetch_retry",
                url=url,
                attempt=attempt,
                delay=delay,
                error=error.message,
            )
            await asyncio.sleep(delay)

        # Unreachable: the last attempt either returns or raises
        raise FetchError(f"No attempts made for {url}", url=url)
