"""RIS and BibTeX serialization of harvested articles.

RIS records use CRLF line endings within a record and are separated by a
blank line; the file ends with a single newline. Records without a title are
skipped in both formats, and reported counts reflect only emitted records.
"""

import os
import re
import tempfile
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Tuple, Union

import structlog

from periodicos.models.article import Article, extract_year
from periodicos.models.export import ExportFileResult
from periodicos.models.search import ExportFormat
from periodicos.observability.metrics import ARTICLES_EXPORTED
from periodicos.utils.exceptions import ExportError
from periodicos.utils.text import strip_html_tags

logger = structlog.get_logger()

RIS_TYPES = {
    "Artigo": "JOUR",
    "Capítulo de livro": "CHAP",
    "Carta": "NEWS",
    "Errata": "JOUR",
    "Revisão": "JOUR",
}
DEFAULT_RIS_TYPE = "JOUR"

BIBTEX_TYPES = {"Capítulo de livro": "inbook"}
DEFAULT_BIBTEX_TYPE = "article"

BIBTEX_SPECIAL = re.compile(r"([\\{}$&%#])")

DEFAULT_PREFIX = "capes_export"


def escape_bibtex(value: str) -> str:
    return BIBTEX_SPECIAL.sub(r"\\\1", value)


def _notes(article: Article) -> List[str]:
    notes = []
    if article.is_open_access:
        notes.append("Open Access")
    if article.is_peer_reviewed:
        notes.append("Peer Reviewed")
    if article.article_id:
        notes.append(f"CAPES ID: {article.article_id}")
    return notes


def citation_key(article: Article) -> str:
    """First three words longer than three characters, then the year"""
    normalized = re.sub(r"[^a-z0-9\s]", "", article.title.lower())
    words = [w for w in normalized.split() if len(w) > 3][:3]
    year = extract_year(article.publication_date)
    return "".join(words) + (str(year) if year else "unknown")


class BibliographicExporter:
    """Serialize articles to RIS or BibTeX and write export files"""

    def ris_record(self, article: Article) -> Optional[str]:
        if not article.title:
            return None

        lines = [f"TY  - {RIS_TYPES.get(article.document_type or '', DEFAULT_RIS_TYPE)}"]
        lines.append(f"TI  - {article.title}")
        lines.extend(f"AU  - {author}" for author in article.authors)

        year = extract_year(article.publication_date)
        if year:
            lines.append(f"PY  - {year}")

        if article.journal:
            lines.append(f"T2  - {article.journal}")
            lines.append(f"JF  - {article.journal}")
        if article.volume:
            lines.append(f"VL  - {article.volume}")
        if article.issue:
            lines.append(f"IS  - {article.issue}")
        if article.abstract:
            lines.append(f"AB  - {strip_html_tags(article.abstract)}")
        if article.doi:
            lines.append(f"DO  - {article.doi}")
        if article.issn:
            lines.append(f"SN  - {article.issn}")
        if article.publisher:
            lines.append(f"PB  - {article.publisher}")
        if article.language:
            lines.append(f"LA  - {article.language}")
        if article.detail_url:
            lines.append(f"UR  - {article.detail_url}")
        if article.search_term:
            lines.append(f"KW  - {article.search_term}")

        notes = _notes(article)
        if notes:
            lines.append(f"N1  - {'; '.join(notes)}")

        lines.append("ER  - ")
        return "\r\n".join(lines)

    def bibtex_entry(self, article: Article) -> Optional[str]:
        if not article.title:
            return None

        entry_type = BIBTEX_TYPES.get(article.document_type or "", DEFAULT_BIBTEX_TYPE)
        year = extract_year(article.publication_date)

        fields = [("title", escape_bibtex(article.title))]
        if article.authors:
            fields.append(("author", escape_bibtex(" and ".join(article.authors))))
        if article.journal:
            fields.append(("journal", escape_bibtex(article.journal)))
        if year:
            fields.append(("year", str(year)))
        if article.volume:
            fields.append(("volume", escape_bibtex(article.volume)))
        if article.issue:
            fields.append(("number", escape_bibtex(article.issue)))
        if article.abstract:
            fields.append(("abstract", escape_bibtex(strip_html_tags(article.abstract))))
        if article.doi:
            fields.append(("doi", article.doi))
        if article.detail_url:
            fields.append(("url", article.detail_url))
        if article.publisher:
            fields.append(("publisher", escape_bibtex(article.publisher)))
        if article.language:
            fields.append(("language", escape_bibtex(article.language)))

        notes = _notes(article)
        if notes:
            fields.append(("note", escape_bibtex("; ".join(notes))))

        lines = [f"@{entry_type}{{{citation_key(article)},"]
        lines.extend(f"  {name} = {{{value}}}," for name, value in fields)
        lines.append("}")
        return "\n".join(lines)

    def render(
        self, articles: List[Article], export_format: ExportFormat
    ) -> Tuple[str, int]:
        """Serialized document and the number of records it contains"""
        convert = (
            self.ris_record if export_format is ExportFormat.RIS else self.bibtex_entry
        )
        records = [r for r in (convert(a) for a in articles) if r is not None]

        skipped = len(articles) - len(records)
        if skipped:
            logger.warning(
                "export_records_skipped", reason="missing title", count=skipped
            )

        return "\n\n".join(records) + "\n", len(records)

    def to_ris(self, articles: List[Article]) -> str:
        return self.render(articles, ExportFormat.RIS)[0]

    def to_bibtex(self, articles: List[Article]) -> str:
        return self.render(articles, ExportFormat.BIBTEX)[0]

    def export(self, articles: List[Article], export_format: ExportFormat) -> str:
        return self.render(articles, ExportFormat(export_format))[0]

    def write_file(
        self,
        articles: List[Article],
        export_format: ExportFormat,
        output_dir: Optional[Union[str, Path]] = None,
        filename: Optional[str] = None,
        prefix: str = DEFAULT_PREFIX,
    ) -> ExportFileResult:
        """Serialize ``articles`` and write them to one file

        Args:
            articles: Articles to export
            export_format: RIS or BibTeX
            output_dir: Target directory, created if missing (default: cwd)
            filename: File name; the format's extension is appended if absent
            prefix: Prefix of the generated name when ``filename`` is omitted

        Raises:
            ExportError: If the file cannot be written
        """
        export_format = ExportFormat(export_format)
        content, count = self.render(articles, export_format)

        extension = f".{export_format.extension}"
        if not filename:
            timestamp = datetime.now().strftime("%Y%m%d%H%M%S")
            filename = f"{prefix}_{timestamp}{extension}"
        elif not filename.endswith(extension):
            filename += extension

        target_dir = Path(output_dir) if output_dir else Path.cwd()
        file_path = target_dir / filename

        try:
            target_dir.mkdir(parents=True, exist_ok=True)
            self._atomic_write(file_path, content)
        except OSError as e:
            logger.error("export_write_failed", path=str(file_path), error=str(e))
            raise ExportError(f"Could not write {file_path}: {e}") from e

        ARTICLES_EXPORTED.labels(format=export_format.value).inc(count)
        size = file_path.stat().st_size

        logger.info(
            "export_file_written",
            path=str(file_path),
            format=export_format.value,
            articles=count,
            bytes=size,
        )

        return ExportFileResult(
            file_path=str(file_path),
            article_count=count,
            file_size_bytes=size,
            created_at=datetime.now(),
        )

    @staticmethod
    def _atomic_write(file_path: Path, content: str) -> None:
        """Write via temp file + rename so readers never see a partial file"""
        fd, tmp_path = tempfile.mkstemp(
            dir=file_path.parent, prefix=".export_", suffix=".tmp"
        )
        try:
            # newline="" keeps RIS CRLF sequences byte-exact
            with os.fdopen(fd, "w", encoding="utf-8", newline="") as f:
                f.write(content)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, file_path)
            os.chmod(file_path, 0o644)
        except Exception:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise
