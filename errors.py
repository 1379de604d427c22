"""Exception hierarchy for the Marketo template export pipeline."""

from typing import Optional


class MarketoExportError(Exception):
    """Base exception for all export-related errors."""
    pass


class AuthenticationError(MarketoExportError):
    """Raised when the client-credentials exchange fails.

    Covers network failures, non-success HTTP statuses and identity
    responses that lack ``access_token`` or a numeric ``expires_in``.
    Fatal to the whole run.
    """
    pass


class ProviderBusinessError(MarketoExportError):
    """Raised when Marketo answers HTTP 200 but reports a logical error."""

    def __init__(self, code: Optional[str], message: str, endpoint: Optional[str] = None):
        self.code = str(code) if code is not None else None
        self.message = message
        self.endpoint = endpoint
        super().__init__(f"Marketo API Error ({self.code or 'unknown'}): {message}")


class ContentUnavailableError(MarketoExportError):
    """Raised when no HTML could be retrieved for a template."""

    def __init__(self, template_id, message: str):
        self.template_id = template_id
        super().__init__(message)


class PaginationLimitExceeded(MarketoExportError):
    """Page cap reached while the provider still reported more results.

    Recorded by the paginator as a partial-result warning rather than
    raised, unless the paginator runs in strict mode.
    """

    def __init__(self, max_pages: int, items_fetched: int):
        self.max_pages = max_pages
        self.items_fetched = items_fetched
        super().__init__(
            f"Reached maximum page limit ({max_pages}) after {items_fetched} templates. "
            f"Some templates may be missing."
        )


class ArchiveError(MarketoExportError):
    """Raised when the export directory cannot be compressed."""
    pass


__all__ = [
    'MarketoExportError',
    'AuthenticationError',
    'ProviderBusinessError',
    'ContentUnavailableError',
    'PaginationLimitExceeded',
    'ArchiveError'
]
