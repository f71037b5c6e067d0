"""Qualis journal classification lookup.

Reads the local Qualis SQLite table in read-only mode. The database is opened
lazily on first use; when the file is missing or unreadable the service
reports itself unavailable and every lookup returns None instead of raising.
"""

import re
import sqlite3
from pathlib import Path
from typing import Optional, Union

import structlog
from pydantic import ValidationError

from periodicos.models.article import QualisClassification
from periodicos.observability.metrics import QUALIS_LOOKUPS

logger = structlog.get_logger()

QUALIS_QUERY = (
    "SELECT issn, journal_name, area, classification "
    "FROM qualis WHERE issn = ? OR issn = ?"
)


def format_issn(issn: str) -> str:
    """Insert the hyphen into an 8-character ISSN that lacks one"""
    clean = re.sub(r"[^0-9Xx]", "", issn).upper()
    if len(clean) == 8 and "-" not in issn:
        return f"{clean[:4]}-{clean[4:]}"
    return issn.strip().upper()


class QualisService:
    """Read-only Qualis lookup by ISSN"""

    def __init__(self, db_path: Optional[Union[str, Path]]):
        self.db_path = Path(db_path) if db_path else None
        self._conn: Optional[sqlite3.Connection] = None
        self._init_attempted = False

    def _connect(self) -> None:
        if self._init_attempted:
            return
        self._init_attempted = True

        if self.db_path is None or not self.db_path.is_file():
            logger.warning(
                "qualis_db_unavailable",
                path=str(self.db_path) if self.db_path else None,
                reason="file not found",
            )
            return

        conn = None
        try:
            conn = sqlite3.connect(
                f"file:{self.db_path.resolve()}?mode=ro",
                uri=True,
                check_same_thread=False,
            )
            # Surface a missing table now rather than on every lookup
            conn.execute(QUALIS_QUERY, ("", "")).fetchall()
        except sqlite3.Error as e:
            if conn is not None:
                conn.close()
            logger.warning(
                "qualis_db_unavailable", path=str(self.db_path), reason=str(e)
            )
            return

        self._conn = conn
        logger.info("qualis_db_opened", path=str(self.db_path))

    def is_available(self) -> bool:
        self._connect()
        return self._conn is not None

    def lookup(self, issn: Optional[str]) -> Optional[QualisClassification]:
        """Classification for ``issn``, trying hyphenated and bare forms"""
        if not issn or not self.is_available():
            return None
        assert self._conn is not None

        hyphenated = format_issn(issn)
        bare = hyphenated.replace("-", "")

        try:
            row = self._conn.execute(QUALIS_QUERY, (hyphenated, bare)).fetchone()
        except sqlite3.Error as e:
            logger.error("qualis_query_failed", issn=issn, error=str(e))
            return None

        if row is None:
            QUALIS_LOOKUPS.labels(result="miss").inc()
            return None

        _, _, area, classification = row
        try:
            result = QualisClassification(classification=classification, area=area)
        except ValidationError as e:
            QUALIS_LOOKUPS.labels(result="invalid").inc()
            logger.warning("qualis_row_invalid", issn=issn, error=str(e))
            return None

        QUALIS_LOOKUPS.labels(result="hit").inc()
        return result

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None
        self._init_attempted = False
