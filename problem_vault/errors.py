"""Error taxonomy for problem extraction.

Every failure that leaves the extraction core is one of the exceptions below.
Each carries an ErrorKind so callers can pick a user-facing message and
operators can tell a broken extractor apart from a bad URL or a blocked source.
"""

from enum import Enum


class ErrorKind(str, Enum):
    """Machine-readable category of an extraction failure."""

    INVALID_URL_FORMAT = "invalid_url_format"
    UNSUPPORTED_PLATFORM = "unsupported_platform"
    SOURCE_NOT_FOUND = "source_not_found"
    EXTRACTION_FAILED = "extraction_failed"
    AUTOMATION_UNAVAILABLE = "automation_unavailable"
    UPSTREAM_BLOCKED = "upstream_blocked"
    SOURCE_UNREACHABLE = "source_unreachable"


class ProblemVaultError(Exception):
    """Base exception for all extraction errors.

    Attributes:
        kind: Category of the failure.
        url: URL being processed when the failure happened, if any.
        original_exception: Lower-level exception that caused this one.
    """

    kind: ErrorKind = ErrorKind.EXTRACTION_FAILED

    def __init__(
        self,
        message: str,
        url: str | None = None,
        original_exception: Exception | None = None,
    ) -> None:
        super().__init__(message)
        self.url = url
        self.original_exception = original_exception


class InvalidUrlFormatError(ProblemVaultError):
    """URL does not match the identifier pattern of the targeted source.

    Always raised before any network I/O.
    """

    kind = ErrorKind.INVALID_URL_FORMAT


class UnsupportedPlatformError(InvalidUrlFormatError):
    """URL host does not belong to any supported source."""

    kind = ErrorKind.UNSUPPORTED_PLATFORM


class SourceNotFoundError(ProblemVaultError):
    """Source confirmed that no such problem exists."""

    kind = ErrorKind.SOURCE_NOT_FOUND


class ExtractionFailedError(ProblemVaultError):
    """Every selector strategy was exhausted without finding title or body."""

    kind = ErrorKind.EXTRACTION_FAILED


class AutomationUnavailableError(ProblemVaultError):
    """No browser automation backend could be launched in this environment."""

    kind = ErrorKind.AUTOMATION_UNAVAILABLE


class UpstreamBlockedError(ProblemVaultError):
    """Source answered with an access-denial signal (403-class or bot wall)."""

    kind = ErrorKind.UPSTREAM_BLOCKED

    def __init__(
        self,
        message: str,
        url: str | None = None,
        original_exception: Exception | None = None,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message, url=url, original_exception=original_exception)
        self.status_code = status_code


class SourceUnreachableError(ProblemVaultError):
    """Navigation or network request failed (timeout, DNS, connection reset)."""

    kind = ErrorKind.SOURCE_UNREACHABLE


def raise_for_status(status: int | None, url: str) -> None:
    """Translate an HTTP status code from a source into the error taxonomy.

    Args:
        status: HTTP status code, None when the transport did not report one.
        url: URL that produced the status.

    Raises:
        UpstreamBlockedError: 401, 403 and 429 responses.
        SourceNotFoundError: 404 and 410 responses.
        SourceUnreachableError: Any other status >= 400.
    """
    if status is None or status < 400:
        return
    if status in (401, 403, 429):
        raise UpstreamBlockedError(
            f"Source denied access (HTTP {status})", url=url, status_code=status
        )
    if status in (404, 410):
        raise SourceNotFoundError(f"Source reports no such problem (HTTP {status})", url=url)
    raise SourceUnreachableError(f"Source responded with HTTP {status}", url=url)
