"""Field extractors for Periódicos CAPES listing and detail pages.

Each extractor takes a parsed document (or a result-entry sub-tree) and
returns one normalized field. Known markup hooks (ids and classes) are tried
before generic text patterns. A missing field yields None, an empty list or
False for the two boolean flags; extractors never raise for missing data.
"""

import math
import re
from typing import Any, Dict, List, Optional, Union
from urllib.parse import parse_qs, urljoin, urlparse

import structlog
from bs4 import BeautifulSoup, Tag

from periodicos.models.article import BasicArticleInfo, DOCUMENT_TYPES
from periodicos.utils.text import clean_text

logger = structlog.get_logger()

PORTAL_ROOT = "https://www.periodicos.capes.gov.br"
PAGE_SIZE = 30

Node = Union[BeautifulSoup, Tag]

DOI_IN_URL = re.compile(
    r"(?:doi\.org/|doi=|/doi/)(10\.\d{4,9}/[-._;()/:A-Z0-9]+)", re.IGNORECASE
)
DOI_IN_TEXT = re.compile(r"(10\.\d{4,9}/[^\s\"'<>]+)")
ISSN_PATTERN = re.compile(r"\b(\d{4}-?\d{3}[\dXx])\b")
YEAR_PATTERN = re.compile(r"\b(1[5-9]\d{2}|20\d{2})\b")
ARTICLE_ID_PATTERN = re.compile(r"[?&]id=([A-Za-z0-9]+)")

AUTHOR_SELECTORS = (
    "a.view-autor",
    ".view-autor",
    ".authors a",
    ".authors span",
    ".autores a",
    ".autores span",
)
OPEN_ACCESS_CLASSES = ".text-green-cool-vivid-50, .open-access"
OPEN_ACCESS_MARKER = "Acesso aberto"
PEER_REVIEW_CLASSES = ".text-violet-50, .peer-review"
PEER_REVIEW_MARKER = "Revisado por pares"
METADATA_PARAGRAPH = "p.small.text-muted.mb-3.block"


def parse_html(html: str) -> BeautifulSoup:
    return BeautifulSoup(html, "html.parser")


def _text(node: Optional[Tag]) -> Optional[str]:
    if node is None:
        return None
    value = clean_text(node.get_text(" "))
    return value or None


def _meta(soup: Node, name: str) -> Optional[str]:
    tag = soup.find("meta", attrs={"name": name})
    if tag is None:
        return None
    content = tag.get("content")
    if not isinstance(content, str):
        return None
    return clean_text(content) or None


def _labelled_value(node: Optional[Tag], label: str) -> Optional[str]:
    """Strip a "Label:" prefix and trailing separators from a metadata span"""
    value = _text(node)
    if value is None:
        return None
    value = re.sub(rf"^{label}\s*:?\s*", "", value, flags=re.IGNORECASE)
    value = value.rstrip("; ").strip()
    return value or None


def _text_field(soup: Node, label: str) -> Optional[str]:
    """Find "Label: value" inside the small muted metadata paragraphs"""
    pattern = re.compile(rf"{label}\s*:\s*([^;\n]+)", re.IGNORECASE)
    for paragraph in soup.select("p.small.text-muted, .small, .text-muted"):
        match = pattern.search(paragraph.get_text(" "))
        if match:
            value = clean_text(match.group(1)).rstrip(";").strip()
            if value:
                return value
    return None


# ==================== Identifiers ====================


def extract_article_id(url: Optional[str]) -> Optional[str]:
    if not url:
        return None
    values = parse_qs(urlparse(url).query).get("id")
    if values and values[0]:
        return values[0]
    match = ARTICLE_ID_PATTERN.search(url)
    return match.group(1) if match else None


def extract_doi_from_url(url: Optional[str]) -> Optional[str]:
    if not url:
        return None
    match = DOI_IN_URL.search(url)
    return _trim_doi(match.group(1)) if match else None


def _trim_doi(doi: str) -> str:
    return doi.rstrip(".,;")


def extract_doi(soup: Node) -> Optional[str]:
    """DOI from anchor hrefs first, then the metadata paragraph"""
    for anchor in soup.select("a[href]"):
        href = anchor.get("href")
        if isinstance(href, str):
            doi = extract_doi_from_url(href)
            if doi:
                return doi

    for paragraph in soup.select(METADATA_PARAGRAPH):
        match = DOI_IN_TEXT.search(paragraph.get_text(" "))
        if match:
            return _trim_doi(match.group(1))

    return None


def extract_issn(soup: Node) -> Optional[str]:
    for label in soup.find_all(["strong", "label", "dt"]):
        if "ISSN" not in label.get_text():
            continue
        sibling = label.find_next_sibling()
        candidates = [_text(sibling), clean_text(label.get_text(" "))]
        for candidate in candidates:
            if candidate:
                match = ISSN_PATTERN.search(candidate)
                if match:
                    return match.group(1).upper()
    return None


# ==================== Bibliographic fields ====================


def extract_title(soup: Node) -> Optional[str]:
    title = _meta(soup, "title") or _meta(soup, "citation_title")
    if title:
        return title
    return _text(soup.select_one("#item-titulo")) or _text(soup.find("h1"))


def extract_authors(soup: Node) -> List[str]:
    """Authors in first-seen order, deduplicated by exact match"""
    authors: List[str] = []
    for selector in AUTHOR_SELECTORS:
        for node in soup.select(selector):
            name = _text(node)
            if name and name not in authors:
                authors.append(name)
    return authors


def extract_publication_year(soup: Node) -> Optional[str]:
    for selector in ("#item-ano", ".ano", ".year"):
        value = _text(soup.select_one(selector))
        if value:
            match = YEAR_PATTERN.search(value)
            if match:
                return match.group(1)

    for name in ("citation_publication_date", "citation_date"):
        value = _meta(soup, name)
        if value:
            match = YEAR_PATTERN.search(value)
            if match:
                return match.group(1)

    return None


def extract_volume(soup: Node) -> Optional[str]:
    return _labelled_value(soup.select_one("#item-volume"), "Volume") or _text_field(
        soup, "Volume"
    )


def extract_issue(soup: Node) -> Optional[str]:
    return _labelled_value(soup.select_one("#item-issue"), "Issue") or _text_field(
        soup, "Issue"
    )


def extract_language(soup: Node) -> Optional[str]:
    return _labelled_value(
        soup.select_one("#item-language"), "Linguagem"
    ) or _text_field(soup, "Linguagem")


def extract_publisher(soup: Node) -> Optional[str]:
    for selector in ("#item-instituicao", ".publisher", ".editora"):
        value = _labelled_value(soup.select_one(selector), "Editora")
        if value:
            return value
    return None


def extract_journal(soup: Node) -> Optional[str]:
    for selector in ("#item-periodico", ".journal", "#journal"):
        value = _text(soup.select_one(selector))
        if value:
            return value
    return _meta(soup, "citation_journal_title")


def extract_abstract(soup: Node) -> Optional[str]:
    return (
        _text(soup.select_one("#item-resumo"))
        or _meta(soup, "abstract")
        or _meta(soup, "description")
        or _meta(soup, "citation_abstract")
    )


# ==================== Flags ====================


def _has_marker(soup: Node, classes: str, marker: str) -> bool:
    if soup.select_one(classes) is not None:
        return True
    return marker.lower() in soup.get_text(" ").lower()


def extract_open_access(soup: Node) -> bool:
    return _has_marker(soup, OPEN_ACCESS_CLASSES, OPEN_ACCESS_MARKER)


def extract_peer_review(soup: Node) -> bool:
    return _has_marker(soup, PEER_REVIEW_CLASSES, PEER_REVIEW_MARKER)


# ==================== Listing pages ====================


def extract_total_results(soup: Node) -> int:
    """Total hit count from the pagination summary; 0 when absent"""
    total = _text(soup.select_one("div.pagination-information span.total"))
    if not total:
        return 0
    digits = re.sub(r"\D", "", total)
    return int(digits) if digits else 0


def extract_total_pages(soup: Node, page_size: int = PAGE_SIZE) -> int:
    return math.ceil(extract_total_results(soup) / page_size)


def _extract_document_type(section: Tag) -> Optional[str]:
    for node in section.select(".tipo-documento, .badge, span.text-down-01"):
        value = _text(node)
        if value in DOCUMENT_TYPES:
            return value
    return None


def _extract_journal_publisher(section: Tag) -> Dict[str, Optional[str]]:
    """Parse the "<type> - <publisher> | <journal>" summary line"""
    for paragraph in section.select("p.text-down-01"):
        text = paragraph.get_text(" ")
        if "|" not in text:
            continue
        left, _, right = text.partition("|")
        journal = clean_text(right.split("|")[0]) or None
        publisher = None
        if "-" in left:
            publisher = clean_text(left.split("-", 1)[1]) or None
        return {"journal": journal, "publisher": publisher}
    return {"journal": None, "publisher": None}


def extract_listing_entries(
    soup: Node, theme: str, search_term: str
) -> List[BasicArticleInfo]:
    """One BasicArticleInfo per result entry carrying an article id"""
    entries: List[BasicArticleInfo] = []

    for section in soup.select("#resultados .result-busca"):
        try:
            title_elem = section.select_one(".titulo-busca")
            title = _text(title_elem)
            href = title_elem.get("href") if title_elem is not None else None

            detail_url = urljoin(PORTAL_ROOT, href) if isinstance(href, str) else None
            article_id = extract_article_id(detail_url)

            if not title or not article_id:
                logger.debug(
                    "listing_entry_skipped",
                    reason="missing title" if not title else "missing article id",
                    title=title,
                )
                continue

            entries.append(
                BasicArticleInfo(
                    title=title,
                    article_id=article_id,
                    detail_url=detail_url,
                    theme=theme,
                    search_term=search_term,
                    authors=extract_authors(section),
                    document_type=_extract_document_type(section),
                    is_open_access=extract_open_access(section),
                    is_peer_reviewed=extract_peer_review(section),
                    **_extract_journal_publisher(section),
                )
            )
        except Exception as e:
            logger.warning("listing_entry_parse_error", error=str(e))
            continue

    return entries


# ==================== Detail pages ====================


def extract_detail_fields(soup: Node) -> Dict[str, Any]:
    """All fields the detail page provides; absent ones are omitted"""
    fields: Dict[str, Any] = {
        "title": extract_title(soup),
        "abstract": extract_abstract(soup),
        "issn": extract_issn(soup),
        "publication_date": extract_publication_year(soup),
        "volume": extract_volume(soup),
        "issue": extract_issue(soup),
        "language": extract_language(soup),
        "publisher": extract_publisher(soup),
        "journal": extract_journal(soup),
        "doi": extract_doi(soup),
    }
    detail = {key: value for key, value in fields.items() if value is not None}

    authors = extract_authors(soup)
    if authors:
        detail["authors"] = authors

    detail["is_open_access"] = extract_open_access(soup)
    detail["is_peer_reviewed"] = extract_peer_review(soup)
    return detail
