"""Search orchestration for the Periódicos CAPES portal.

A search runs these stages in order:
1. Listing: paginate the result list and collect basic records
2. Details (optional): fetch each record's detail page
3. Filters: client-side document type, access, review, year and language
4. Metrics (optional): Qualis classification and OpenAlex citations
5. Truncation to ``max_results``

Only a failure on the first listing page is fatal. Every other failure is
contained to its item and reported on the result.
"""

from pathlib import Path
from typing import List, Optional, Union

import structlog

from periodicos.models.article import Article
from periodicos.models.config import HarvesterSettings
from periodicos.models.export import ExportResult
from periodicos.models.search import (
    ArticlesBatchResult,
    ExportFormat,
    SearchFilters,
    SearchMetadata,
    SearchOptions,
    SearchPreviewResult,
    SearchResult,
    SortBy,
)
from periodicos.observability.context import correlation_id_context
from periodicos.output.bibliographic_exporter import BibliographicExporter
from periodicos.services.detail import DetailEnricher
from periodicos.services.fetcher import PageFetcher, create_fetcher
from periodicos.services.listing import ListingPaginator
from periodicos.services.metrics_service import MetricsMerger
from periodicos.services.providers.openalex import OpenAlexClient
from periodicos.services.qualis_service import QualisService
from periodicos.utils.exceptions import NoArticlesFoundError
from periodicos.utils.text import generate_query_slug

logger = structlog.get_logger()

PREVIEW_SAMPLE_SIZE = 5
MAX_BATCH_COUNT = 50


def sort_by_year(articles: List[Article], sort_by: SortBy) -> List[Article]:
    """Order by publication year; articles with an unknown year go last"""
    if sort_by is SortBy.RELEVANCE:
        return list(articles)

    known = [a for a in articles if a.year is not None]
    unknown = [a for a in articles if a.year is None]
    known.sort(key=lambda a: a.year or 0, reverse=sort_by is SortBy.DATE_DESC)
    return known + unknown


class CapesSearchService:
    """Search, enrich and export Periódicos CAPES articles"""

    def __init__(
        self,
        settings: Optional[HarvesterSettings] = None,
        fetcher: Optional[PageFetcher] = None,
        qualis: Optional[QualisService] = None,
        openalex: Optional[OpenAlexClient] = None,
        exporter: Optional[BibliographicExporter] = None,
    ):
        self.settings = settings or HarvesterSettings()
        self.fetcher = fetcher or create_fetcher(self.settings)
        self.paginator = ListingPaginator(self.fetcher)
        self.enricher = DetailEnricher(self.fetcher)
        self.merger = MetricsMerger(
            qualis=qualis or QualisService(self.settings.qualis_db_path),
            openalex=openalex or OpenAlexClient(self.settings.openalex),
        )
        self.exporter = exporter or BibliographicExporter()

    async def __aenter__(self) -> "CapesSearchService":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def close(self) -> None:
        """Release the Qualis store and HTTP sessions"""
        await self.fetcher.close()
        await self.merger.close()

    def build_options(self, query: str, **kwargs) -> SearchOptions:
        """SearchOptions with worker and timeout defaults from settings"""
        kwargs.setdefault("max_workers", self.settings.max_workers)
        kwargs.setdefault("timeout", self.settings.timeout_seconds)
        return SearchOptions(query=query, **kwargs)

    async def search(self, options: SearchOptions) -> SearchResult:
        """Run the full search pipeline for ``options``

        Raises:
            SearchError: If the first listing page cannot be fetched
        """
        with correlation_id_context() as corr_id:
            logger.info(
                "search_started",
                query=options.query,
                correlation_id=corr_id,
                fetch_details=options.fetch_details,
                include_metrics=options.include_metrics,
            )

            listing = await self.paginator.collect(options)
            failures = list(listing.failures)

            if options.fetch_details:
                enriched = await self.enricher.enrich(
                    listing.records, options.max_workers, options.timeout
                )
                articles = enriched.articles
                failures.extend(enriched.failures)
            else:
                articles = [Article.from_basic(r) for r in listing.records]

            articles = options.filters.apply(articles)

            if options.include_metrics and articles:
                merged = await self.merger.enrich(articles)
                articles = merged.articles
                failures.extend(merged.failures)

            if options.max_results:
                articles = articles[: options.max_results]

            logger.info(
                "search_completed",
                query=options.query,
                total_found=listing.total_found,
                articles=len(articles),
                pages_processed=listing.pages_processed,
                failures=len(failures),
            )

            return SearchResult(
                articles=articles,
                total_found=listing.total_found,
                pages_processed=listing.pages_processed,
                query=options.query,
                failures=failures,
            )

    async def preview_search(
        self, query: str, filters: Optional[SearchFilters] = None
    ) -> SearchPreviewResult:
        """Total hit count and a few sample titles from page 1

        Raises:
            SearchError: If the first listing page cannot be fetched
        """
        options = self.build_options(query, filters=filters or SearchFilters())

        with correlation_id_context():
            total_found, entries = await self.paginator.preview(
                options.query, options.advanced, options.timeout
            )

        candidates = [Article.from_basic(e) for e in entries]
        # Year and language are unknown on listing entries
        if not options.filters.needs_details:
            candidates = options.filters.apply(candidates)

        logger.info("preview_completed", query=options.query, total_found=total_found)

        return SearchPreviewResult(
            query=options.query,
            total_found=total_found,
            sample_titles=[a.title for a in candidates[:PREVIEW_SAMPLE_SIZE]],
            filters_applied=filters,
        )

    async def get_articles(
        self,
        query: str,
        start_index: int = 0,
        count: int = 10,
        filters: Optional[SearchFilters] = None,
        sort_by: SortBy = SortBy.RELEVANCE,
    ) -> ArticlesBatchResult:
        """One window of fully detailed articles

        Listing records up to ``start_index + count`` are collected, the
        window is cut from them, then details and metrics are fetched for
        the window only. Sorting applies within the window.

        Raises:
            ValueError: If ``count`` is outside 1-50 or ``start_index`` < 0
            SearchError: If the first listing page cannot be fetched
        """
        if not 1 <= count <= MAX_BATCH_COUNT:
            raise ValueError(f"count must be between 1 and {MAX_BATCH_COUNT}")
        if start_index < 0:
            raise ValueError("start_index must not be negative")

        sort_by = SortBy(sort_by)
        options = self.build_options(
            query,
            max_results=start_index + count,
            filters=filters or SearchFilters(),
        )

        with correlation_id_context():
            listing = await self.paginator.collect(options)
            window = listing.records[start_index : start_index + count]
            failures = list(listing.failures)

            enriched = await self.enricher.enrich(
                window, options.max_workers, options.timeout
            )
            failures.extend(enriched.failures)
            articles = options.filters.apply(enriched.articles)

            if articles:
                merged = await self.merger.enrich(articles)
                articles = merged.articles
                failures.extend(merged.failures)

        articles = sort_by_year(articles, sort_by)

        return ArticlesBatchResult(
            articles=articles,
            total_found=listing.total_found,
            start_index=start_index,
            count_returned=len(articles),
            query=options.query,
            sort_by=sort_by,
            filters_applied=filters,
            failures=failures,
        )

    async def export_search(
        self,
        query: str,
        export_format: ExportFormat = ExportFormat.RIS,
        filters: Optional[SearchFilters] = None,
        max_results: Optional[int] = None,
        output_dir: Optional[Union[str, Path]] = None,
    ) -> ExportResult:
        """Search with full details and metrics, then write one export file

        The file lands in ``<output_dir or export_dir>/<query-slug>/``.

        Raises:
            SearchError: If the first listing page cannot be fetched
            NoArticlesFoundError: If the search produced no articles
            ExportError: If the file cannot be written
        """
        export_format = ExportFormat(export_format)
        options = self.build_options(
            query,
            max_results=max_results or self.settings.default_export_max_results,
            full_details=True,
            include_metrics=True,
            filters=filters or SearchFilters(),
        )

        result = await self.search(options)
        if not result.articles:
            raise NoArticlesFoundError(f"No articles found for '{options.query}'")

        directory = Path(output_dir or self.settings.export_dir) / generate_query_slug(
            options.query
        )
        file_result = self.exporter.write_file(
            result.articles, export_format, output_dir=directory
        )

        return ExportResult(
            output_directory=str(directory),
            files_created=[file_result.file_path],
            articles_exported=file_result.article_count,
            format=export_format,
            search_metadata=SearchMetadata(
                query=options.query,
                total_found=result.total_found,
                search_date=file_result.created_at,
                filters_applied=filters,
            ),
        )
