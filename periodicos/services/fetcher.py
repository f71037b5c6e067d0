"""Page fetchers for the Periódicos CAPES portal.

Two implementations share one contract, ``fetch(url, timeout) -> html``:

- ExtractionProxyFetcher: the production path. The portal actively blocks
  naive scraping, so pages are requested through a third-party extraction
  API that returns the body base64-encoded. Temporary bans are retried with
  exponential backoff.
- DirectFetcher: plain GET with browser headers, used when no proxy API key
  is configured.

Every request carries its own aiohttp timeout, which aborts the in-flight
request rather than ignoring its result.
"""

import asyncio
import base64
import binascii
from abc import ABC, abstractmethod
from typing import Optional

import aiohttp
import structlog

from periodicos.models.config import HarvesterSettings, ProxySettings
from periodicos.observability.metrics import FETCH_DURATION, FETCH_RETRIES
from periodicos.utils.exceptions import (
    FetchError,
    FetchTimeoutError,
    NetworkError,
    TransientBlockError,
)
from periodicos.utils.retry import RetryHandler

logger = structlog.get_logger()

BROWSER_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/91.0.4472.124 Safari/537.36"
    ),
    "Accept-Language": "en-US,en;q=0.9,pt-BR;q=0.8,pt;q=0.7",
}


class PageFetcher(ABC):
    """Abstract base class for HTML page fetchers"""

    def __init__(self, session: Optional[aiohttp.ClientSession] = None):
        self._session = session
        self._owns_session = session is None

    @property
    @abstractmethod
    def name(self) -> str:
        """Fetcher name for logging and metrics"""
        pass

    @abstractmethod
    async def fetch(self, url: str, timeout: float) -> str:
        """Fetch a page and return its HTML text

        Args:
            url: Page URL
            timeout: Seconds before the request is aborted

        Raises:
            FetchError: On non-success status, timeout or network failure
        """
        pass

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create aiohttp session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        """Close the aiohttp session if this fetcher created it."""
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()


class DirectFetcher(PageFetcher):
    """Fetch portal pages with a plain GET"""

    @property
    def name(self) -> str:
        return "direct"

    async def fetch(self, url: str, timeout: float) -> str:
        session = await self._get_session()

        with FETCH_DURATION.labels(fetcher=self.name).time():
            try:
                async with session.get(
                    url,
                    headers=BROWSER_HEADERS,
                    timeout=aiohttp.ClientTimeout(total=timeout),
                ) as response:
                    if not 200 <= response.status < 300:
                        raise FetchError(
                            f"HTTP {response.status} for {url}",
                            url=url,
                            status=response.status,
                        )
                    return await response.text(errors="replace")
            except asyncio.TimeoutError:
                logger.warning("fetch_timeout", url=url, timeout=timeout)
                raise FetchTimeoutError(
                    f"Request timed out after {timeout}s: {url}", url=url
                )
            except aiohttp.ClientError as e:
                logger.warning("fetch_network_error", url=url, error=str(e))
                raise FetchError(f"Request failed for {url}: {e}", url=url)
            except (UnicodeDecodeError, LookupError) as e:
                logger.warning("fetch_decode_error", url=url, error=str(e))
                raise FetchError(f"Could not decode page {url}: {e}", url=url)


class ExtractionProxyFetcher(PageFetcher):
    """Fetch portal pages through the extraction proxy

    Retry policy:
    - Transient block status: up to ``retry.max_attempts`` attempts
    - Network errors and timeouts: up to ``retry.network_max_attempts``
    - Any other non-200 proxy status: not retried
    """

    def __init__(
        self,
        settings: ProxySettings,
        session: Optional[aiohttp.ClientSession] = None,
        retry_handler: Optional[RetryHandler] = None,
    ):
        if not settings.api_key:
            raise ValueError("Extraction proxy requires an API key")
        super().__init__(session)
        self.settings = settings
        self.retry_handler = retry_handler or RetryHandler(settings.retry)

    @property
    def name(self) -> str:
        return "proxy"

    async def fetch(self, url: str, timeout: float) -> str:
        with FETCH_DURATION.labels(fetcher=self.name).time():
            try:
                return await self.retry_handler.execute(
                    lambda: self._fetch_once(url, timeout),
                    retryable_exceptions={TransientBlockError, NetworkError},
                    attempt_limits={
                        NetworkError: self.settings.retry.network_max_attempts
                    },
                    on_retry=self._record_retry,
                )
            except TransientBlockError as e:
                logger.error("proxy_block_retries_exhausted", url=url)
                raise FetchError(
                    f"Target temporarily blocked, retries exhausted for {url}: {e}",
                    url=url,
                    status=e.status,
                ) from e
            except NetworkError as e:
                logger.error("proxy_network_retries_exhausted", url=url, error=str(e))
                raise FetchError(
                    f"Proxy request failed for {url}: {e}", url=url
                ) from e

    @staticmethod
    def _record_retry(attempt: int, error: Exception, delay: float) -> None:
        reason = "transient_block" if isinstance(error, TransientBlockError) else "network"
        FETCH_RETRIES.labels(reason=reason).inc()

    async def _fetch_once(self, url: str, timeout: float) -> str:
        session = await self._get_session()
        payload = {"url": url, "httpResponseBody": True}

        try:
            async with session.post(
                self.settings.endpoint,
                json=payload,
                auth=aiohttp.BasicAuth(self.settings.api_key or "", ""),
                timeout=aiohttp.ClientTimeout(total=timeout),
            ) as response:
                if response.status == self.settings.transient_block_status:
                    raise TransientBlockError(
                        f"Proxy reported temporary block ({response.status}) for {url}",
                        status=response.status,
                    )
                if response.status != 200:
                    body = await response.text(errors="replace")
                    logger.error(
                        "proxy_error",
                        url=url,
                        status=response.status,
                        body=body[:500],
                    )
                    raise FetchError(
                        f"Proxy returned HTTP {response.status} for {url}",
                        url=url,
                        status=response.status,
                    )
                try:
                    data = await response.json()
                except ValueError as e:
                    raise FetchError(
                        f"Proxy returned invalid JSON for {url}: {e}", url=url
                    )
        except asyncio.TimeoutError:
            raise NetworkError(f"Proxy request timed out after {timeout}s: {url}")
        except aiohttp.ClientError as e:
            raise NetworkError(f"Proxy connection error for {url}: {e}")

        encoded = data.get("httpResponseBody") if isinstance(data, dict) else None
        if not encoded:
            raise FetchError(f"Proxy response carried no body for {url}", url=url)

        try:
            return base64.b64decode(encoded).decode("utf-8", errors="replace")
        except (binascii.Error, ValueError) as e:
            raise FetchError(f"Proxy body is not valid base64 for {url}: {e}", url=url)


def create_fetcher(
    settings: HarvesterSettings, session: Optional[aiohttp.ClientSession] = None
) -> PageFetcher:
    """Use the extraction proxy when an API key is configured"""
    if settings.proxy.enabled:
        logger.info("fetcher_selected", fetcher="proxy")
        return ExtractionProxyFetcher(settings.proxy, session=session)

    logger.warning(
        "fetcher_selected",
        fetcher="direct",
        reason="no extraction proxy API key configured",
    )
    return DirectFetcher(session=session)
