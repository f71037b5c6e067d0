"""Attach journal-quality and citation metrics to articles.

Two passes run in order:
1. Quality: Qualis classification looked up by each article's ISSN.
2. Citation: OpenAlex metrics looked up in batches by DOI.

The citation pass merges into whatever the quality pass produced, so a
Qualis classification is never lost. Articles whose DOI is absent from the
OpenAlex response are left as they were.
"""

from typing import List, Optional

import structlog

from periodicos.models.article import Article, ArticleMetrics
from periodicos.services.detail import EnrichmentResult
from periodicos.services.providers.openalex import OpenAlexClient, normalize_doi
from periodicos.services.qualis_service import QualisService

logger = structlog.get_logger()


class MetricsMerger:
    """Enrich articles with Qualis and OpenAlex metrics"""

    def __init__(
        self,
        qualis: Optional[QualisService] = None,
        openalex: Optional[OpenAlexClient] = None,
    ):
        self.qualis = qualis
        self.openalex = openalex

    def apply_quality(self, articles: List[Article]) -> List[Article]:
        if self.qualis is None or not self.qualis.is_available():
            return list(articles)

        enriched = []
        for article in articles:
            classification = self.qualis.lookup(article.issn)
            if classification is None:
                enriched.append(article)
                continue
            metrics = article.metrics or ArticleMetrics()
            metrics = metrics.model_copy(update={"qualis": classification})
            enriched.append(article.model_copy(update={"metrics": metrics}))
        return enriched

    async def enrich(self, articles: List[Article]) -> EnrichmentResult:
        articles = self.apply_quality(articles)

        if self.openalex is None:
            return EnrichmentResult(articles=articles)

        dois = [a.doi for a in articles if a.doi]
        if not dois:
            return EnrichmentResult(articles=articles)

        lookup = await self.openalex.get_metrics_by_dois(dois)

        merged: List[Article] = []
        matched = 0
        for article in articles:
            citation = None
            if article.doi:
                citation = lookup.metrics.get(normalize_doi(article.doi))
            if citation is None:
                merged.append(article)
                continue
            matched += 1
            current = article.metrics or ArticleMetrics()
            merged.append(
                article.model_copy(update={"metrics": current.merge_citation(citation)})
            )

        logger.info(
            "metrics_merged",
            articles=len(articles),
            with_doi=len(dois),
            matched=matched,
        )
        return EnrichmentResult(articles=merged, failures=lookup.failures)

    async def close(self) -> None:
        if self.qualis is not None:
            self.qualis.close()
        if self.openalex is not None:
            await self.openalex.close()
