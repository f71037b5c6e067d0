"""Search request and result models.

Filters and options are constructed once per request and frozen so that no
pipeline stage can mutate them mid-flight.
"""

from datetime import datetime
from enum import Enum
from typing import Any, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from periodicos.models.article import Article, DOCUMENT_TYPES, LANGUAGES

MIN_YEAR = 1800
MAX_YEAR = 2030

# Flat keyword names folded into SearchOptions.filters
FILTER_KEYS = (
    "document_types",
    "open_access_only",
    "peer_reviewed_only",
    "year_min",
    "year_max",
    "languages",
)


class SortBy(str, Enum):
    RELEVANCE = "relevance"
    DATE_DESC = "date_desc"
    DATE_ASC = "date_asc"


class ExportFormat(str, Enum):
    RIS = "ris"
    BIBTEX = "bibtex"

    @property
    def extension(self) -> str:
        return "ris" if self is ExportFormat.RIS else "bib"


class SearchFilters(BaseModel):
    """Client-side filters applied to harvested articles

    ``open_access_only`` and ``peer_reviewed_only`` are tri-state: True keeps
    only matching articles, False keeps only non-matching ones and None
    disables the filter.
    """

    model_config = ConfigDict(frozen=True)

    document_types: Optional[Tuple[str, ...]] = None
    open_access_only: Optional[bool] = None
    peer_reviewed_only: Optional[bool] = None
    year_range: Optional[Tuple[int, int]] = None
    languages: Optional[Tuple[str, ...]] = None

    @field_validator("document_types")
    @classmethod
    def validate_document_types(
        cls, v: Optional[Tuple[str, ...]]
    ) -> Optional[Tuple[str, ...]]:
        if v is None:
            return None
        unknown = [t for t in v if t not in DOCUMENT_TYPES]
        if unknown:
            raise ValueError(f"Unknown document types: {', '.join(unknown)}")
        return v or None

    @field_validator("languages")
    @classmethod
    def validate_languages(
        cls, v: Optional[Tuple[str, ...]]
    ) -> Optional[Tuple[str, ...]]:
        if v is None:
            return None
        unknown = [lang for lang in v if lang not in LANGUAGES]
        if unknown:
            raise ValueError(f"Unknown languages: {', '.join(unknown)}")
        return v or None

    @field_validator("year_range")
    @classmethod
    def validate_year_range(
        cls, v: Optional[Tuple[int, int]]
    ) -> Optional[Tuple[int, int]]:
        if v is None:
            return None
        low, high = v
        for year in (low, high):
            if not MIN_YEAR <= year <= MAX_YEAR:
                raise ValueError(f"Year {year} outside {MIN_YEAR}-{MAX_YEAR}")
        if low > high:
            raise ValueError("year_range minimum must not exceed maximum")
        return v

    @property
    def is_empty(self) -> bool:
        return (
            self.document_types is None
            and self.open_access_only is None
            and self.peer_reviewed_only is None
            and self.year_range is None
            and self.languages is None
        )

    @property
    def needs_details(self) -> bool:
        """Year and language are only known after the detail page is read"""
        return self.year_range is not None or self.languages is not None

    def matches(self, article: Article) -> bool:
        if self.document_types is not None:
            if article.document_type not in self.document_types:
                return False

        if self.open_access_only is not None:
            if article.is_open_access != self.open_access_only:
                return False

        if self.peer_reviewed_only is not None:
            if article.is_peer_reviewed != self.peer_reviewed_only:
                return False

        if self.year_range is not None:
            year = article.year
            if year is None:
                return False
            low, high = self.year_range
            if not low <= year <= high:
                return False

        if self.languages is not None:
            if article.language not in self.languages:
                return False

        return True

    def apply(self, articles: List[Article]) -> List[Article]:
        if self.is_empty:
            return list(articles)
        return [a for a in articles if self.matches(a)]


class SearchOptions(BaseModel):
    """Options for a single harvest request"""

    model_config = ConfigDict(frozen=True)

    query: str = Field(..., min_length=1, max_length=500)
    max_pages: Optional[int] = Field(None, ge=1)
    max_results: Optional[int] = Field(None, ge=1)
    full_details: bool = False
    max_workers: int = Field(5, ge=1, le=50)
    timeout: float = Field(30.0, gt=0, le=600, description="Per-request seconds")
    advanced: bool = True
    include_metrics: bool = False
    filters: SearchFilters = Field(default_factory=SearchFilters)

    @model_validator(mode="before")
    @classmethod
    def fold_flat_filters(cls, data: Any) -> Any:
        """Accept flat filter keywords (year_min, languages, ...) as well"""
        if not isinstance(data, dict):
            return data
        flat = {k: data[k] for k in FILTER_KEYS if k in data}
        if not flat:
            return data

        data = {k: v for k, v in data.items() if k not in FILTER_KEYS}
        existing = data.get("filters")
        if isinstance(existing, SearchFilters):
            merged = existing.model_dump()
        else:
            merged = dict(existing or {})

        year_min = flat.pop("year_min", None)
        year_max = flat.pop("year_max", None)
        if year_min is not None or year_max is not None:
            merged["year_range"] = (
                year_min if year_min is not None else MIN_YEAR,
                year_max if year_max is not None else MAX_YEAR,
            )
        merged.update({k: v for k, v in flat.items() if v is not None})
        data["filters"] = merged
        return data

    @field_validator("query")
    @classmethod
    def validate_query(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Query cannot be empty")
        if any(ord(c) < 32 for c in v if c not in "\t\n\r"):
            raise ValueError("Query contains invalid control characters")
        return v

    @property
    def fetch_details(self) -> bool:
        return self.full_details or self.filters.needs_details


class ItemFailure(BaseModel):
    """A unit of work that failed without aborting its stage"""

    stage: str
    item: str
    error: str


class SearchResult(BaseModel):
    articles: List[Article]
    total_found: int
    pages_processed: int
    query: str
    failures: List[ItemFailure] = Field(default_factory=list)


class SearchPreviewResult(BaseModel):
    query: str
    total_found: int
    sample_titles: List[str]
    filters_applied: Optional[SearchFilters] = None


class ArticlesBatchResult(BaseModel):
    articles: List[Article]
    total_found: int
    start_index: int
    count_returned: int
    query: str
    sort_by: SortBy
    filters_applied: Optional[SearchFilters] = None
    failures: List[ItemFailure] = Field(default_factory=list)


class SearchMetadata(BaseModel):
    query: str
    total_found: int
    search_date: datetime
    filters_applied: Optional[SearchFilters] = None
