import re
from pydantic import BaseModel, Field, ConfigDict, field_validator
from typing import Optional, List

# Portal vocabulary for the document-type and language facets
DOCUMENT_TYPES = ("Artigo", "Capítulo de livro", "Carta", "Errata", "Revisão")
LANGUAGES = ("Inglês", "Português", "Espanhol", "Francês", "Alemão", "Italiano")

YEAR_PATTERN = re.compile(r"(\d{4})")


def extract_year(value: Optional[str]) -> Optional[int]:
    """Return the first 4-digit year found in a date string, or None"""
    if not value:
        return None
    match = YEAR_PATTERN.search(value)
    return int(match.group(1)) if match else None


class QualisClassification(BaseModel):
    """Journal quality tier from the local Qualis table"""
    classification: str
    area: str


class ArticleMetrics(BaseModel):
    """Citation and journal-quality metrics attached to an article"""
    # Citation metrics (OpenAlex)
    cited_by_count: int = Field(0, ge=0)
    fwci: Optional[float] = None
    publication_year: Optional[int] = None
    is_open_access: bool = False
    open_access_oa_date: Optional[str] = None

    # Journal quality (Qualis)
    qualis: Optional[QualisClassification] = None

    def merge_citation(self, other: "ArticleMetrics") -> "ArticleMetrics":
        """Take citation fields from ``other`` without losing our Qualis data"""
        merged = other.model_copy()
        if merged.qualis is None:
            merged.qualis = self.qualis
        return merged


class BasicArticleInfo(BaseModel):
    """Abbreviated record scraped from one listing-page entry"""
    title: str
    article_id: Optional[str] = None
    detail_url: Optional[str] = None
    theme: str
    search_term: str
    journal: Optional[str] = None
    publisher: Optional[str] = None
    authors: List[str] = Field(default_factory=list)
    document_type: Optional[str] = None
    is_open_access: Optional[bool] = None
    is_peer_reviewed: Optional[bool] = None


class Article(BaseModel):
    """Canonical article record returned to callers and exported"""
    model_config = ConfigDict(validate_assignment=True)

    title: str = Field(..., min_length=1)
    authors: List[str] = Field(default_factory=list)
    publication_date: Optional[str] = None
    doi: Optional[str] = None
    journal: Optional[str] = None
    abstract: Optional[str] = None
    search_term: str = Field(..., min_length=1)
    article_id: Optional[str] = None
    issn: Optional[str] = None
    volume: Optional[str] = None
    issue: Optional[str] = None
    language: Optional[str] = None
    publisher: Optional[str] = None
    detail_url: Optional[str] = None
    document_type: Optional[str] = None
    is_open_access: bool = False
    is_peer_reviewed: bool = False
    metrics: Optional[ArticleMetrics] = None

    @field_validator(
        "publication_date",
        "doi",
        "journal",
        "abstract",
        "article_id",
        "issn",
        "volume",
        "issue",
        "language",
        "publisher",
        "detail_url",
        "document_type",
    )
    @classmethod
    def blank_to_none(cls, v: Optional[str]) -> Optional[str]:
        # Extraction never yields empty strings; treat them as unknown
        if v is None:
            return None
        v = v.strip()
        return v or None

    @property
    def year(self) -> Optional[int]:
        return extract_year(self.publication_date)

    @classmethod
    def from_basic(cls, info: BasicArticleInfo) -> "Article":
        """Project a listing record into a partial article"""
        return cls(
            title=info.title,
            authors=list(info.authors),
            search_term=info.theme,
            article_id=info.article_id,
            detail_url=info.detail_url,
            journal=info.journal,
            publisher=info.publisher,
            document_type=info.document_type,
            is_open_access=bool(info.is_open_access),
            is_peer_reviewed=bool(info.is_peer_reviewed),
        )
