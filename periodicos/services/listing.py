"""Listing paginator for Periódicos CAPES search results.

Start -> FetchPage1 -> ComputeTotalPages -> FetchRemainingPages* -> Done

The first page is fatal on failure: without it there is no page count to
paginate from. Later pages are fetched in bounded-concurrency batches and a
failing page only loses its own entries.
"""

import math
from dataclasses import dataclass, field
from typing import List, Optional, Tuple
from urllib.parse import quote

import structlog

from periodicos.models.article import BasicArticleInfo
from periodicos.models.search import ItemFailure, SearchOptions
from periodicos.observability.metrics import PAGES_FETCHED
from periodicos.services.extractors import (
    PAGE_SIZE,
    PORTAL_ROOT,
    extract_listing_entries,
    extract_total_results,
    parse_html,
)
from periodicos.services.fetcher import PageFetcher
from periodicos.utils.concurrency import bounded_map
from periodicos.utils.exceptions import FetchError, SearchError

logger = structlog.get_logger()

SEARCH_URL = f"{PORTAL_ROOT}/index.php/acervo/buscador.html"
DETAIL_URL = f"{SEARCH_URL}?task=detalhes&source=all&id={{}}"


def build_search_url(term: str, advanced: bool = True, page: int = 1) -> str:
    """Listing URL for one results page"""
    query = f"all:contains({term})" if advanced else term
    mode = "&mode=advanced" if advanced else ""
    encoded = quote(query, safe="!*'()")
    return f"{SEARCH_URL}?q={encoded}{mode}&source=all&page={page}"


def build_detail_url(article_id: str) -> str:
    return DETAIL_URL.format(article_id)


@dataclass
class ListingResult:
    """Basic records gathered from the listing pages of one query"""

    records: List[BasicArticleInfo] = field(default_factory=list)
    total_found: int = 0
    pages_processed: int = 0
    failures: List[ItemFailure] = field(default_factory=list)


class ListingPaginator:
    """Walk the paginated listing for a query"""

    def __init__(self, fetcher: PageFetcher, page_size: int = PAGE_SIZE):
        self.fetcher = fetcher
        self.page_size = page_size

    def effective_page_count(
        self,
        total_pages: int,
        max_pages: Optional[int] = None,
        max_results: Optional[int] = None,
    ) -> int:
        """Clamp the available pages by the page bound and the result bound"""
        pages = total_pages
        if max_pages:
            pages = min(pages, max_pages)
        if max_results:
            pages = min(pages, math.ceil(max_results / self.page_size))
        return pages

    async def _fetch_entries(
        self, options: SearchOptions, page: int
    ) -> Tuple[int, List[BasicArticleInfo]]:
        url = build_search_url(options.query, options.advanced, page)
        try:
            html = await self.fetcher.fetch(url, options.timeout)
        except FetchError:
            PAGES_FETCHED.labels(kind="listing", status="failed").inc()
            raise
        PAGES_FETCHED.labels(kind="listing", status="success").inc()

        soup = parse_html(html)
        entries = extract_listing_entries(soup, options.query, options.query)
        logger.debug("listing_page_parsed", page=page, entries=len(entries))
        return extract_total_results(soup), entries

    async def first_page(
        self, options: SearchOptions
    ) -> Tuple[int, List[BasicArticleInfo]]:
        """Fetch page 1, returning the total hit count and its entries

        Raises:
            SearchError: If page 1 cannot be fetched
        """
        try:
            return await self._fetch_entries(options, 1)
        except FetchError as e:
            logger.error("first_listing_page_failed", query=options.query, error=str(e))
            raise SearchError(
                f"Could not fetch search results for '{options.query}': {e}"
            ) from e

    async def preview(
        self, query: str, advanced: bool = True, timeout: float = 30.0
    ) -> Tuple[int, List[BasicArticleInfo]]:
        """First page only, for a quick look at a query"""
        options = SearchOptions(query=query, advanced=advanced, timeout=timeout)
        return await self.first_page(options)

    async def _fetch_page(
        self, options: SearchOptions, page: int
    ) -> List[BasicArticleInfo]:
        _, entries = await self._fetch_entries(options, page)
        return entries

    async def collect(self, options: SearchOptions) -> ListingResult:
        """Gather basic records for ``options.query`` across listing pages"""
        total_found, records = await self.first_page(options)
        total_pages = math.ceil(total_found / self.page_size)
        page_limit = self.effective_page_count(
            total_pages, options.max_pages, options.max_results
        )

        logger.info(
            "listing_started",
            query=options.query,
            total_found=total_found,
            total_pages=total_pages,
            pages_to_fetch=max(page_limit, 1),
        )

        result = ListingResult(
            records=list(records), total_found=total_found, pages_processed=1
        )
        max_results = options.max_results

        def satisfied(pages: List[List[BasicArticleInfo]]) -> bool:
            if not max_results:
                return False
            return len(records) + sum(len(p) for p in pages) >= max_results

        remaining = list(range(2, page_limit + 1))
        if remaining and not satisfied([]):
            outcome = await bounded_map(
                remaining,
                lambda page: self._fetch_page(options, page),
                max_workers=options.max_workers,
                stage="listing_page",
                describe=lambda page: f"page {page}",
                stop_when=satisfied,
            )
            for page_records in outcome.results:
                result.records.extend(page_records)
            result.pages_processed += outcome.items_attempted
            result.failures.extend(outcome.failures)

        if max_results and len(result.records) > max_results:
            result.records = result.records[:max_results]

        logger.info(
            "listing_completed",
            query=options.query,
            records=len(result.records),
            pages_processed=result.pages_processed,
            failed_pages=len(result.failures),
        )
        return result
