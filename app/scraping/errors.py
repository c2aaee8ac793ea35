"""
Error taxonomy for menu scraping and source orchestration.
"""

from __future__ import annotations


class MenuScrapingError(RuntimeError):
    """
    Base class for scraping errors carrying a machine-readable code.
    """

    code = "PARSE_ERROR"


class ValidationError(MenuScrapingError):
    """
    Raised when every extracted record of a source failed validation.
    """

    code = "VALIDATION_ERROR"


class SourceUnavailable(MenuScrapingError):
    """
    Raised when a source document cannot be fetched (network, timeout, empty body).
    """

    code = "SOURCE_UNAVAILABLE"

    def __init__(self, message: str, *, url: str | None = None) -> None:
        super().__init__(message)
        self.url = url


class CircuitOpenError(MenuScrapingError):
    code = "CIRCUIT_OPEN"

    def __init__(self, source_id: str, *, retry_at: float | None = None) -> None:
        super().__init__(f"Circuit breaker is open for {source_id}")
        self.source_id = source_id
        self.retry_at = retry_at


class ConfigurationError(MenuScrapingError):
    """
    Raised at registration time for malformed source descriptors.
    """

    code = "CONFIGURATION_ERROR"

    def __init__(self, message: str, *, errors: list[str] | None = None) -> None:
        super().__init__(message)
        self.errors = list(errors or [])


class UnknownSourceError(MenuScrapingError, KeyError):
    code = "UNKNOWN_SOURCE"

    def __init__(self, source_id: str) -> None:
        super().__init__(f"Parser not found: {source_id}")
        self.source_id = source_id

    def __str__(self) -> str:
        return f"Parser not found: {self.source_id}"


class RetryExhaustedError(MenuScrapingError):
    """
    Raised when every retry attempt failed with a retryable error.

    Attributes:
        attempts: Total number of attempts made.
        last_error: The error raised by the final attempt.
        history: Errors from every failed attempt, oldest first.
    """

    code = "RETRY_EXHAUSTED"

    def __init__(
        self,
        *,
        operation_name: str,
        attempts: int,
        last_error: BaseException,
        history: list[BaseException],
    ) -> None:
        self.operation_name = operation_name
        self.attempts = attempts
        self.last_error = last_error
        self.history = history
        super().__init__(
            f"{operation_name} failed after {attempts} attempt(s): {last_error}"
        )


def error_code(exc: BaseException) -> str:
    """
    Machine-readable code for any exception, defaulting to PARSE_ERROR.
    """

    code = getattr(exc, "code", None)
    if isinstance(code, str) and code:
        return code
    return MenuScrapingError.code
