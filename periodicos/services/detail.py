"""Detail enricher: turn listing records into full articles.

Each record's detail page is fetched with bounded concurrency. A record whose
detail page cannot be fetched, or that carries no article id, is dropped and
reported as an ItemFailure; the remaining records are still returned.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List

import structlog

from periodicos.models.article import Article, BasicArticleInfo
from periodicos.models.search import ItemFailure
from periodicos.observability.metrics import PAGES_FETCHED
from periodicos.services.extractors import extract_detail_fields, parse_html
from periodicos.services.fetcher import PageFetcher
from periodicos.services.listing import build_detail_url
from periodicos.utils.concurrency import bounded_map
from periodicos.utils.exceptions import FetchError

logger = structlog.get_logger()

STAGE = "detail"


@dataclass
class EnrichmentResult:
    """Articles produced by an enrichment stage plus the items it lost"""

    articles: List[Article] = field(default_factory=list)
    failures: List[ItemFailure] = field(default_factory=list)


def merge_detail(info: BasicArticleInfo, detail: Dict[str, Any]) -> Article:
    """Combine a listing record with the fields read from its detail page

    Detail values win; listing values fill whatever the detail page lacks.
    The boolean flags are set if either source reports them.
    """
    article = Article.from_basic(info)
    values = article.model_dump(exclude={"metrics"})

    for key, value in detail.items():
        if key in ("is_open_access", "is_peer_reviewed"):
            continue
        if value is not None:
            values[key] = value

    values["title"] = detail.get("title") or info.title
    values["authors"] = list(detail.get("authors") or info.authors or [])
    values["is_open_access"] = bool(detail.get("is_open_access")) or bool(
        info.is_open_access
    )
    values["is_peer_reviewed"] = bool(detail.get("is_peer_reviewed")) or bool(
        info.is_peer_reviewed
    )
    return Article(**values)


class DetailEnricher:
    """Fetch and merge detail pages for listing records"""

    def __init__(self, fetcher: PageFetcher):
        self.fetcher = fetcher

    async def fetch_detail(self, article_id: str, timeout: float) -> Dict[str, Any]:
        """Fetch one detail page and extract its fields

        Raises:
            FetchError: If the page cannot be fetched
        """
        url = build_detail_url(article_id)
        try:
            html = await self.fetcher.fetch(url, timeout)
        except FetchError:
            PAGES_FETCHED.labels(kind="detail", status="failed").inc()
            raise
        PAGES_FETCHED.labels(kind="detail", status="success").inc()
        return extract_detail_fields(parse_html(html))

    async def _enrich_one(self, info: BasicArticleInfo, timeout: float) -> Article:
        if not info.article_id:
            raise ValueError("record has no article id")
        detail = await self.fetch_detail(info.article_id, timeout)
        return merge_detail(info, detail)

    async def enrich(
        self,
        records: List[BasicArticleInfo],
        max_workers: int = 5,
        timeout: float = 30.0,
    ) -> EnrichmentResult:
        """Fetch details for ``records`` in batches of ``max_workers``"""
        if not records:
            return EnrichmentResult()

        logger.info("detail_enrichment_started", records=len(records))

        outcome = await bounded_map(
            records,
            lambda info: self._enrich_one(info, timeout),
            max_workers=max_workers,
            stage=STAGE,
            describe=lambda info: info.article_id or info.title,
        )

        logger.info(
            "detail_enrichment_completed",
            enriched=len(outcome.results),
            failed=len(outcome.failures),
        )
        return EnrichmentResult(articles=outcome.results, failures=outcome.failures)
