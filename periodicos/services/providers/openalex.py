import aiohttp
import asyncio
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence
import structlog
from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
)

from periodicos.models.article import ArticleMetrics
from periodicos.models.config import OpenAlexSettings
from periodicos.models.search import ItemFailure
from periodicos.observability.metrics import METRICS_BATCHES
from periodicos.utils.exceptions import MetricsError

logger = structlog.get_logger()

DOI_PREFIXES = ("https://doi.org/", "http://doi.org/", "doi:")


class RateLimitError(MetricsError):
    """OpenAlex rate limit exceeded"""

    pass


def normalize_doi(doi: str) -> str:
    """Lowercase DOI without resolver prefix"""
    value = doi.strip()
    lowered = value.lower()
    for prefix in DOI_PREFIXES:
        if lowered.startswith(prefix):
            value = value[len(prefix) :]
            break
    return value.lower()


def parse_work(work: dict) -> ArticleMetrics:
    """Citation metrics from one OpenAlex work object

    A missing publication year stays None.
    """
    open_access = work.get("open_access") or {}
    cited_by = work.get("cited_by_count")
    fwci = work.get("fwci")
    year = work.get("publication_year")
    oa_date = open_access.get("oa_date")

    return ArticleMetrics(
        cited_by_count=cited_by if isinstance(cited_by, int) else 0,
        fwci=float(fwci) if isinstance(fwci, (int, float)) else None,
        publication_year=year if isinstance(year, int) else None,
        is_open_access=open_access.get("is_oa") is True,
        open_access_oa_date=oa_date if isinstance(oa_date, str) else None,
    )


@dataclass
class CitationLookup:
    """Metrics found per DOI plus the batches that failed"""

    metrics: Dict[str, ArticleMetrics] = field(default_factory=dict)
    failures: List[ItemFailure] = field(default_factory=list)


class OpenAlexClient:
    """Batch citation metrics lookup against the OpenAlex works API"""

    def __init__(
        self,
        settings: Optional[OpenAlexSettings] = None,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        self.settings = settings or OpenAlexSettings()
        self._session = session
        self._owns_session = session is None

    @property
    def name(self) -> str:
        return "openalex"

    @property
    def works_url(self) -> str:
        return f"{self.settings.base_url.rstrip('/')}/works"

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()

    def _build_params(self, dois: Sequence[str]) -> dict:
        params = {
            "filter": f"doi:{'|'.join(dois)}",
            "per-page": str(len(dois)),
        }
        if self.settings.mailto:
            params["mailto"] = self.settings.mailto
        return params

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_exception_type((aiohttp.ClientError, RateLimitError)),
        reraise=True,
    )
    async def fetch_batch(self, dois: Sequence[str]) -> Dict[str, ArticleMetrics]:
        """Metrics for up to one page of DOIs, keyed by normalized DOI

        Raises:
            MetricsError: On a non-200, non-404 response or timeout
        """
        if not dois:
            return {}

        session = await self._get_session()

        try:
            async with session.get(
                self.works_url,
                params=self._build_params(dois),
                timeout=aiohttp.ClientTimeout(total=self.settings.timeout_seconds),
            ) as response:

                if response.status == 404:
                    return {}

                if response.status == 429:
                    raise RateLimitError("OpenAlex rate limit exceeded", status=429)

                if response.status >= 500:
                    raise aiohttp.ClientError(f"Server error: {response.status}")

                if response.status != 200:
                    text = await response.text()
                    logger.error(
                        "openalex_api_error", status=response.status, body=text[:500]
                    )
                    raise MetricsError(
                        f"OpenAlex request failed: {response.status}",
                        status=response.status,
                    )

                data = await response.json()

        except asyncio.TimeoutError:
            logger.error("openalex_timeout", batch_size=len(dois))
            raise MetricsError("OpenAlex request timed out")

        return self._parse_response(data)

    def _parse_response(self, data: dict) -> Dict[str, ArticleMetrics]:
        results: Dict[str, ArticleMetrics] = {}
        works = data.get("results") if isinstance(data, dict) else None
        if not isinstance(works, list):
            return results

        for work in works:
            if not isinstance(work, dict) or not work.get("doi"):
                continue
            try:
                results[normalize_doi(work["doi"])] = parse_work(work)
            except Exception as e:
                logger.warning(
                    "openalex_work_parsing_failed", doi=work.get("doi"), error=str(e)
                )
                continue

        return results

    async def get_metrics_by_dois(
        self,
        dois: Sequence[str],
        batch_size: Optional[int] = None,
        delay: Optional[float] = None,
    ) -> CitationLookup:
        """Look up ``dois`` in sequential batches

        A failing batch is recorded and skipped; the other batches still
        contribute their metrics.
        """
        batch_size = batch_size or self.settings.batch_size
        delay = self.settings.batch_delay_seconds if delay is None else delay

        unique: List[str] = []
        for doi in dois:
            normalized = normalize_doi(doi)
            if normalized and normalized not in unique:
                unique.append(normalized)

        lookup = CitationLookup()

        for start in range(0, len(unique), batch_size):
            batch = unique[start : start + batch_size]
            try:
                found = await self.fetch_batch(batch)
            except Exception as e:
                METRICS_BATCHES.labels(status="failed").inc()
                logger.warning(
                    "openalex_batch_failed",
                    batch_start=start,
                    batch_size=len(batch),
                    error=str(e),
                )
                lookup.failures.append(
                    ItemFailure(
                        stage="citation_metrics",
                        item=f"dois {start + 1}-{start + len(batch)}",
                        error=str(e),
                    )
                )
            else:
                METRICS_BATCHES.labels(status="success").inc()
                lookup.metrics.update(found)

            if start + batch_size < len(unique) and delay > 0:
                await asyncio.sleep(delay)

        logger.info(
            "openalex_lookup_completed",
            requested=len(unique),
            found=len(lookup.metrics),
            failed_batches=len(lookup.failures),
        )
        return lookup
