"""Tests for search options, filters and result models."""

import pytest
from pydantic import ValidationError

from periodicos.models.article import Article
from periodicos.models.search import (
    ExportFormat,
    SearchFilters,
    SearchOptions,
    SortBy,
)


def article(**overrides) -> Article:
    data = {"title": "Some title", "search_term": "q"}
    data.update(overrides)
    return Article(**data)


class TestSearchFilters:
    def test_empty_by_default(self):
        filters = SearchFilters()
        assert filters.is_empty
        assert not filters.needs_details

    def test_rejects_unknown_document_type(self):
        with pytest.raises(ValidationError):
            SearchFilters(document_types=("Tese",))

    def test_rejects_unknown_language(self):
        with pytest.raises(ValidationError):
            SearchFilters(languages=("Klingon",))

    @pytest.mark.parametrize("year_range", [(1700, 2000), (2000, 2031), (2010, 2000)])
    def test_rejects_bad_year_range(self, year_range):
        with pytest.raises(ValidationError):
            SearchFilters(year_range=year_range)

    def test_frozen(self):
        filters = SearchFilters(open_access_only=True)
        with pytest.raises(ValidationError):
            filters.open_access_only = False

    def test_year_and_language_need_details(self):
        assert SearchFilters(year_range=(2000, 2020)).needs_details
        assert SearchFilters(languages=("Inglês",)).needs_details
        assert not SearchFilters(document_types=("Artigo",)).needs_details

    def test_document_type_allow_list(self):
        filters = SearchFilters(document_types=("Artigo", "Revisão"))
        assert filters.matches(article(document_type="Artigo"))
        assert not filters.matches(article(document_type="Carta"))
        assert not filters.matches(article())

    def test_open_access_tri_state(self):
        open_art = article(is_open_access=True)
        closed_art = article(is_open_access=False)

        assert SearchFilters(open_access_only=True).apply([open_art, closed_art]) == [
            open_art
        ]
        assert SearchFilters(open_access_only=False).apply(
            [open_art, closed_art]
        ) == [closed_art]
        assert len(SearchFilters().apply([open_art, closed_art])) == 2

    def test_peer_review_filter(self):
        filters = SearchFilters(peer_reviewed_only=True)
        assert filters.matches(article(is_peer_reviewed=True))
        assert not filters.matches(article(is_peer_reviewed=False))

    def test_year_range_excludes_unknown_year(self):
        filters = SearchFilters(year_range=(2015, 2020))
        assert filters.matches(article(publication_date="2018"))
        assert not filters.matches(article(publication_date="2014"))
        assert not filters.matches(article(publication_date=None))

    def test_language_excludes_unknown(self):
        filters = SearchFilters(languages=("Português",))
        assert filters.matches(article(language="Português"))
        assert not filters.matches(article(language="Inglês"))
        assert not filters.matches(article())


class TestSearchOptions:
    def test_defaults(self):
        options = SearchOptions(query="machine learning")
        assert options.max_workers == 5
        assert options.timeout == 30.0
        assert options.advanced is True
        assert options.fetch_details is False
        assert options.filters.is_empty

    def test_blank_query_rejected(self):
        with pytest.raises(ValidationError):
            SearchOptions(query="   ")

    def test_control_characters_rejected(self):
        with pytest.raises(ValidationError):
            SearchOptions(query="bad\x00query")

    def test_query_is_stripped(self):
        assert SearchOptions(query="  soil  ").query == "soil"

    def test_max_workers_bounds(self):
        with pytest.raises(ValidationError):
            SearchOptions(query="q", max_workers=0)
        with pytest.raises(ValidationError):
            SearchOptions(query="q", max_workers=51)

    def test_flat_filters_are_folded(self):
        options = SearchOptions(
            query="q",
            document_types=["Artigo"],
            open_access_only=True,
            year_min=2010,
            year_max=2020,
            languages=["Inglês"],
        )
        assert options.filters.document_types == ("Artigo",)
        assert options.filters.open_access_only is True
        assert options.filters.year_range == (2010, 2020)
        assert options.filters.languages == ("Inglês",)

    def test_single_year_bound(self):
        options = SearchOptions(query="q", year_min=2015)
        assert options.filters.year_range == (2015, 2030)

    def test_filters_force_detail_fetch(self):
        options = SearchOptions(query="q", year_min=2015)
        assert options.fetch_details is True

    def test_full_details_flag(self):
        assert SearchOptions(query="q", full_details=True).fetch_details is True


class TestEnums:
    def test_export_extension(self):
        assert ExportFormat.RIS.extension == "ris"
        assert ExportFormat.BIBTEX.extension == "bib"

    def test_sort_values(self):
        assert SortBy("date_desc") is SortBy.DATE_DESC
