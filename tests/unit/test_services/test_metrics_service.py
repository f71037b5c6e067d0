"""Tests for the Qualis + OpenAlex metrics merger."""

import pytest
from unittest.mock import AsyncMock, MagicMock

from periodicos.models.article import Article, ArticleMetrics, QualisClassification
from periodicos.models.search import ItemFailure
from periodicos.services.metrics_service import MetricsMerger
from periodicos.services.providers.openalex import CitationLookup


def article(**overrides) -> Article:
    data = {"title": "A title", "search_term": "q"}
    data.update(overrides)
    return Article(**data)


@pytest.fixture
def qualis():
    service = MagicMock()
    service.is_available.return_value = True
    service.lookup.side_effect = lambda issn: (
        QualisClassification(classification="A1", area="BIODIVERSIDADE")
        if issn == "1234-5678"
        else None
    )
    return service


@pytest.fixture
def openalex():
    client = MagicMock()
    client.get_metrics_by_dois = AsyncMock(
        return_value=CitationLookup(
            metrics={"10.1/a": ArticleMetrics(cited_by_count=42, fwci=2.0)}
        )
    )
    client.close = AsyncMock()
    return client


@pytest.mark.asyncio
async def test_citation_merge_preserves_qualis(qualis, openalex):
    merger = MetricsMerger(qualis=qualis, openalex=openalex)

    result = await merger.enrich([article(issn="1234-5678", doi="10.1/A")])

    metrics = result.articles[0].metrics
    assert metrics.cited_by_count == 42
    assert metrics.fwci == 2.0
    assert metrics.qualis.classification == "A1"
    assert metrics.qualis.area == "BIODIVERSIDADE"


@pytest.mark.asyncio
async def test_doi_missing_from_response_left_untouched(qualis, openalex):
    merger = MetricsMerger(qualis=qualis, openalex=openalex)
    original = article(doi="10.9/zzz")

    result = await merger.enrich([original])

    assert result.articles[0] == original
    assert result.articles[0].metrics is None


@pytest.mark.asyncio
async def test_quality_only_when_no_doi(qualis, openalex):
    merger = MetricsMerger(qualis=qualis, openalex=openalex)

    result = await merger.enrich([article(issn="1234-5678")])

    assert result.articles[0].metrics.qualis.classification == "A1"
    assert result.articles[0].metrics.cited_by_count == 0
    openalex.get_metrics_by_dois.assert_not_called()


@pytest.mark.asyncio
async def test_unavailable_qualis_skips_quality_pass(qualis, openalex):
    qualis.is_available.return_value = False
    merger = MetricsMerger(qualis=qualis, openalex=openalex)

    result = await merger.enrich([article(issn="1234-5678", doi="10.1/a")])

    qualis.lookup.assert_not_called()
    assert result.articles[0].metrics.qualis is None
    assert result.articles[0].metrics.cited_by_count == 42


@pytest.mark.asyncio
async def test_batch_failures_reported(qualis, openalex):
    failure = ItemFailure(stage="citation_metrics", item="dois 1-1", error="boom")
    openalex.get_metrics_by_dois.return_value = CitationLookup(failures=[failure])
    merger = MetricsMerger(qualis=qualis, openalex=openalex)

    result = await merger.enrich([article(doi="10.1/a")])

    assert result.failures == [failure]
    assert result.articles[0].metrics is None


@pytest.mark.asyncio
async def test_existing_metrics_keep_qualis_across_citation_merge(openalex):
    merger = MetricsMerger(qualis=None, openalex=openalex)
    existing = ArticleMetrics(
        qualis=QualisClassification(classification="B3", area="LETRAS")
    )

    result = await merger.enrich([article(doi="10.1/a", metrics=existing)])

    assert result.articles[0].metrics.qualis.classification == "B3"
    assert result.articles[0].metrics.cited_by_count == 42


@pytest.mark.asyncio
async def test_close_releases_both(qualis, openalex):
    await MetricsMerger(qualis=qualis, openalex=openalex).close()

    qualis.close.assert_called_once()
    openalex.close.assert_awaited_once()
