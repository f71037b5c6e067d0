"""Custom exceptions for the Periódicos CAPES harvester

This module defines the exception hierarchy for the harvesting pipeline:
- Base exception for all harvester errors
- Fetch errors, split into retryable and permanent failures
- Call-level errors raised by the search and export entry points

All exceptions inherit from HarvesterError to allow catching all
harvester-related errors in a single except block when needed.
"""

from typing import Optional


class HarvesterError(Exception):
    """Base exception for all harvester errors

    Use this to catch any error in the harvesting pipeline:
    ```python
    try:
        await service.search(options)
    except HarvesterError as e:
        logger.error("search_failed", error=str(e))
    ```
    """

    pass


class FetchError(HarvesterError):
    """Page fetch failed

    Raised when:
    - HTTP request returns a non-success status
    - Network errors persist after retries
    - Retries on a transient upstream block are exhausted
    """

    def __init__(
        self, message: str, url: Optional[str] = None, status: Optional[int] = None
    ) -> None:
        super().__init__(message)
        self.url = url
        self.status = status


class FetchTimeoutError(FetchError):
    """Request aborted at its timeout boundary"""

    pass


class RetryableError(HarvesterError):
    """Base for retryable errors (transient blocks, connection errors).

    Errors that inherit from this class indicate transient failures
    that may succeed on retry.
    """

    pass


class TransientBlockError(RetryableError):
    """Extraction proxy reported the target as temporarily blocked

    Raised when:
    - The proxy answers with its designated temporary-ban status
    """

    def __init__(self, message: str, status: Optional[int] = None) -> None:
        super().__init__(message)
        self.status = status


class NetworkError(RetryableError):
    """Connection-level failure talking to the extraction proxy"""

    pass


class SearchError(HarvesterError):
    """A search could not start

    Raised when:
    - The first listing page cannot be fetched
    - The preview page cannot be fetched
    """

    pass


class NoArticlesFoundError(SearchError):
    """Export requested but the search produced no articles"""

    pass


class MetricsError(HarvesterError):
    """Citation metrics request failed for one batch"""

    def __init__(self, message: str, status: Optional[int] = None) -> None:
        super().__init__(message)
        self.status = status


class ExportError(HarvesterError):
    """Writing a bibliographic export file failed"""

    pass
