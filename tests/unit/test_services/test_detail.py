"""Tests for the detail enricher."""

import pytest
from unittest.mock import AsyncMock

from periodicos.models.article import BasicArticleInfo
from periodicos.services.detail import DetailEnricher, merge_detail
from periodicos.utils.exceptions import FetchError

DETAIL_PAGE = """
<html><body>
  <h1 id="item-titulo">Full Title From Detail</h1>
  <a href="https://doi.org/10.4321/xyz.1">doi</a>
  <div id="item-ano">2021</div>
  <span id="item-language">Linguagem: Português</span>
  <a class="view-autor">Pereira, E.</a>
</body></html>
"""


def basic(article_id="W1", **overrides) -> BasicArticleInfo:
    data = {
        "title": f"Listing title {article_id}",
        "article_id": article_id,
        "detail_url": f"https://www.periodicos.capes.gov.br/?id={article_id}",
        "theme": "query",
        "search_term": "query",
        "journal": "Listing Journal",
        "authors": ["Listing, A."],
        "document_type": "Artigo",
        "is_open_access": True,
        "is_peer_reviewed": None,
    }
    data.update(overrides)
    return BasicArticleInfo(**data)


class TestMergeDetail:
    def test_detail_overrides_listing(self):
        article = merge_detail(
            basic(),
            {"title": "Detail", "journal": "Detail Journal", "authors": ["D, B."]},
        )
        assert article.title == "Detail"
        assert article.journal == "Detail Journal"
        assert article.authors == ["D, B."]

    def test_listing_values_kept_when_detail_silent(self):
        article = merge_detail(basic(), {"doi": "10.1/abc"})

        assert article.title == "Listing title W1"
        assert article.journal == "Listing Journal"
        assert article.authors == ["Listing, A."]
        assert article.document_type == "Artigo"
        assert article.doi == "10.1/abc"
        assert article.search_term == "query"

    def test_flags_are_or_ed(self):
        article = merge_detail(
            basic(is_open_access=True, is_peer_reviewed=False),
            {"is_open_access": False, "is_peer_reviewed": True},
        )
        assert article.is_open_access is True
        assert article.is_peer_reviewed is True

    def test_authors_default_empty(self):
        article = merge_detail(basic(authors=[]), {})
        assert article.authors == []


class TestDetailEnricher:
    @pytest.mark.asyncio
    async def test_enrich_merges_detail_fields(self):
        fetcher = AsyncMock()
        fetcher.fetch.return_value = DETAIL_PAGE
        enricher = DetailEnricher(fetcher)

        result = await enricher.enrich([basic("W1")], max_workers=2, timeout=5)

        assert result.failures == []
        article = result.articles[0]
        assert article.title == "Full Title From Detail"
        assert article.doi == "10.4321/xyz.1"
        assert article.publication_date == "2021"
        assert article.language == "Português"
        assert article.authors == ["Pereira, E."]
        assert article.journal == "Listing Journal"
        assert article.is_open_access is True

        url, timeout = fetcher.fetch.call_args.args
        assert url.endswith("task=detalhes&source=all&id=W1")
        assert timeout == 5

    @pytest.mark.asyncio
    async def test_missing_id_is_dropped(self):
        fetcher = AsyncMock()
        fetcher.fetch.return_value = DETAIL_PAGE
        enricher = DetailEnricher(fetcher)

        result = await enricher.enrich(
            [basic("W1"), basic(None, title="No id")], max_workers=5
        )

        assert len(result.articles) == 1
        assert len(result.failures) == 1
        assert result.failures[0].stage == "detail"
        assert result.failures[0].item == "No id"
        assert fetcher.fetch.call_count == 1

    @pytest.mark.asyncio
    async def test_fetch_failure_drops_only_that_record(self):
        async def fetch(url, timeout):
            if url.endswith("id=W2"):
                raise FetchError("HTTP 502", url=url, status=502)
            return DETAIL_PAGE

        fetcher = AsyncMock()
        fetcher.fetch.side_effect = fetch
        enricher = DetailEnricher(fetcher)

        result = await enricher.enrich(
            [basic("W1"), basic("W2"), basic("W3")], max_workers=2
        )

        assert len(result.articles) == 2
        assert [f.item for f in result.failures] == ["W2"]

    @pytest.mark.asyncio
    async def test_empty_records(self):
        fetcher = AsyncMock()
        result = await DetailEnricher(fetcher).enrich([])

        assert result.articles == []
        fetcher.fetch.assert_not_called()

    @pytest.mark.asyncio
    async def test_fetch_detail_propagates_errors(self):
        fetcher = AsyncMock()
        fetcher.fetch.side_effect = FetchError("timeout")

        with pytest.raises(FetchError):
            await DetailEnricher(fetcher).fetch_detail("W1", timeout=1)
