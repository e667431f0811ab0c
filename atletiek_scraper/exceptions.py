"""Custom exception hierarchy for the atletiek.nu scraper.

Provides structured exceptions with error context and correction hints so
that callers (CLI, host services) can classify failures without parsing
messages.
"""

from typing import Any


class ScraperError(Exception):
    """Base exception for all scraper errors.

    Attributes:
        message: Human-readable error message.
        error_data: Structured error information.
        suggestion: Hint for how to resolve the error.
    """

    def __init__(
        self,
        message: str,
        error_data: dict[str, Any] | None = None,
        suggestion: str | None = None,
    ):
        """Initialize the scraper error.

        Args:
            message: Human-readable error message.
            error_data: Structured context (URLs, IDs, fields, etc.).
            suggestion: Actionable correction hint.
        """
        super().__init__(message)
        self.message = message
        self.error_data = error_data or {}
        self.suggestion = suggestion

    def __str__(self) -> str:
        """Return formatted error message with suggestion if available."""
        base = self.message
        if self.suggestion:
            return f"{base}\nSuggestion: {self.suggestion}"
        return base

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to structured dictionary for logging.

        Returns:
            Dictionary with error type, message, data, and suggestion.
        """
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "error_data": self.error_data,
            "suggestion": self.suggestion,
        }


class FetchError(ScraperError):
    """HTTP/connection failures while fetching an upstream page.

    Never cached. Retryable failures (timeouts, 429, 5xx) are flagged so a
    host can decide to try again later.
    """

    def __init__(
        self,
        message: str,
        url: str | None = None,
        status_code: int | None = None,
        retryable: bool = True,
        error_data: dict[str, Any] | None = None,
        suggestion: str | None = None,
    ):
        """Initialize fetch error.

        Args:
            message: Human-readable error message.
            url: The URL that failed.
            status_code: HTTP status code if applicable.
            retryable: Whether retrying might succeed.
            error_data: Additional context.
            suggestion: How to resolve the error.
        """
        data = error_data or {}
        data.update({"url": url, "status_code": status_code, "retryable": retryable})

        default_suggestion = suggestion or (
            "Check network connectivity and retry the request. "
            "If the error persists, atletiek.nu may be temporarily unavailable."
            if retryable
            else "This error is not retryable. Check the URL and request parameters."
        )

        super().__init__(message, data, default_suggestion)
        self.url = url
        self.status_code = status_code
        self.retryable = retryable


class ExtractError(ScraperError):
    """HTML extraction failures (structure doesn't match expectations)."""

    def __init__(
        self,
        message: str,
        page: str | None = None,
        field: str | None = None,
        selector: str | None = None,
        html_snippet: str | None = None,
        error_data: dict[str, Any] | None = None,
        suggestion: str | None = None,
    ):
        """Initialize extraction error.

        Args:
            message: Human-readable error message.
            page: Page kind being parsed (e.g. "registrations").
            field: Field name that failed to parse.
            selector: CSS selector that failed.
            html_snippet: Relevant HTML snippet (truncated).
            error_data: Additional context.
            suggestion: How to resolve the error.
        """
        data = error_data or {}
        data.update(
            {
                "page": page,
                "field": field,
                "selector": selector,
                "html_snippet": html_snippet[:500] if html_snippet else None,
            }
        )

        default_suggestion = suggestion or (
            f"The HTML structure may have changed. "
            f"Check the selector '{selector}' in the source page."
            if selector
            else "The HTML structure may have changed. Review the parser implementation."
        )

        super().__init__(message, data, default_suggestion)
        self.page = page
        self.field = field
        self.selector = selector


class StructureNotFound(ExtractError):
    """The page does not have the expected shape at all.

    Raised both when the requested entity does not exist and when the
    upstream layout changed; the markup gives no reliable way to tell
    these apart.

    Examples:
        - No results table on an athlete results page
        - No registrations table or list on a competition page
    """


class UnsupportedPageVariant(ExtractError):
    """A recognized alternate page format that is not supported yet."""

    def __init__(self, message: str, marker: str | None = None, **kwargs: Any):
        """Initialize unsupported variant error.

        Args:
            message: Human-readable error message.
            marker: The marker text that identified the variant.
            **kwargs: Passed on to ExtractError.
        """
        kwargs.setdefault(
            "suggestion",
            "This page format is recognized but not supported by the parser.",
        )
        super().__init__(message, **kwargs)
        self.error_data["marker"] = marker
        self.marker = marker


class FieldParseError(ExtractError):
    """A single field or row could not be parsed.

    Recovered locally by the extractors: the field or row is skipped and a
    diagnostic is logged.
    """

    def __init__(self, message: str, raw_value: str | None = None, **kwargs: Any):
        """Initialize field parse error.

        Args:
            message: Human-readable error message.
            raw_value: The raw text that failed to parse.
            **kwargs: Passed on to ExtractError.
        """
        super().__init__(message, **kwargs)
        self.error_data["raw_value"] = raw_value[:200] if raw_value else None
        self.raw_value = raw_value


class ConfigurationError(ScraperError):
    """Invalid configuration or CLI arguments.

    Examples:
        - Invalid date format in arguments
        - Unsupported country code
        - Unknown key in the settings file
    """

    def __init__(
        self,
        message: str,
        parameter: str | None = None,
        expected_format: str | None = None,
        example: str | None = None,
        error_data: dict[str, Any] | None = None,
        suggestion: str | None = None,
    ):
        """Initialize configuration error.

        Args:
            message: Human-readable error message.
            parameter: Parameter name that's invalid.
            expected_format: Expected format for the parameter.
            example: Example of valid value.
            error_data: Additional context.
            suggestion: How to resolve the error.
        """
        data = error_data or {}
        data.update(
            {
                "parameter": parameter,
                "expected_format": expected_format,
                "example": example,
            }
        )

        default_suggestion = suggestion or (
            f"Parameter '{parameter}' must be in format: {expected_format}. "
            f"Example: {example}"
            if parameter and expected_format and example
            else "Check the command-line arguments and configuration."
        )

        super().__init__(message, data, default_suggestion)
        self.parameter = parameter
        self.expected_format = expected_format
        self.example = example
