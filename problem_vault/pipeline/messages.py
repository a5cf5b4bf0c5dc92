"""User-facing messages for archive outcomes.

Each error kind maps to exactly one message. Internal error details are
logged by the pipeline and never shown to users.
"""

from ..errors import ErrorKind

SUPPORTED_PLATFORMS_TEXT = "Codeforces, LeetCode, AtCoder, CodeChef"

# Success messages
PROBLEM_ARCHIVED = "Problem added to your vault"
PROBLEM_ALREADY_ARCHIVED = "Problem already exists in vault"

# Error messages
ERROR_MESSAGES: dict[ErrorKind, str] = {
    ErrorKind.INVALID_URL_FORMAT: (
        "This doesn't look like a problem URL. Please check the URL and try again."
    ),
    ErrorKind.UNSUPPORTED_PLATFORM: (
        f"Unsupported platform. Supported: {SUPPORTED_PLATFORMS_TEXT}"
    ),
    ErrorKind.SOURCE_NOT_FOUND: (
        "The website reports that this problem does not exist. Please check the URL."
    ),
    ErrorKind.EXTRACTION_FAILED: (
        "Could not read the problem from this page. The page layout may have changed."
    ),
    ErrorKind.AUTOMATION_UNAVAILABLE: (
        "Problem import from this website is temporarily unavailable. Please try again later."
    ),
    ErrorKind.UPSTREAM_BLOCKED: (
        "Access forbidden. The website may be blocking automated requests. "
        "Please try again later."
    ),
    ErrorKind.SOURCE_UNREACHABLE: (
        "Failed to fetch the problem. The website did not respond, please try again."
    ),
}

ERROR_UNEXPECTED = "Failed to parse problem"


def error_message(kind: ErrorKind | None) -> str:
    """Get the user-facing message for an error kind."""
    if kind is None:
        return ERROR_UNEXPECTED
    return ERROR_MESSAGES.get(kind, ERROR_UNEXPECTED)
