"""Error taxonomy for the parser core.

Errors raised while a single request is processed (validation, rate limiting,
fetching, extraction, cancellation) derive from ParserError and carry a
``kind`` string that the pipeline copies into the failure result, so callers
can tell a bad request from a transient upstream problem.

Registry errors are wiring mistakes rather than data conditions and are
allowed to propagate to the caller.
"""


class ParserError(Exception):
    """Base class for errors produced while executing one parse request.

    Attributes:
        message: Human-readable description of the failure
        kind: Machine-readable failure category
    """

    kind = "error"

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class ValidationError(ParserError):
    """Raised when a request is missing or carries a malformed field."""

    kind = "validation"


class RateLimitedError(ParserError):
    """Raised when the rate limiter denies admission.

    Attributes:
        retry_after: Seconds until a retry may be admitted, when known
    """

    kind = "rate_limited"

    def __init__(self, key: str, retry_after: int | None = None) -> None:
        self.key = key
        self.retry_after = retry_after
        message = f"Rate limit exceeded for parser '{key}'"
        if retry_after:
            message = f"{message}; retry after {retry_after}s"
        super().__init__(message)


class FetchError(ParserError):
    """Raised when a fetch exhausts its retries or fails at the transport level.

    Attributes:
        url: The URL that could not be fetched
        status_code: Last HTTP status seen, if any response arrived
        cause: Last underlying exception, if the failure was transport-level
    """

    kind = "fetch"

    def __init__(
        self,
        message: str,
        url: str | None = None,
        status_code: int | None = None,
        cause: BaseException | None = None,
    ) -> None:
        self.url = url
        self.status_code = status_code
        self.cause = cause
        super().__init__(message)


class ExtractionError(ParserError):
    """Raised when a strategy cannot turn an upstream payload into items."""

    kind = "extraction"


class CancelledError(ParserError):
    """Raised when a caller deadline expires or the execution is cancelled."""

    kind = "cancelled"

    def __init__(self, message: str = "Parse cancelled: deadline exceeded") -> None:
        super().__init__(message)


class RegistryError(Exception):
    """Base class for parser registry misconfiguration."""

    kind = "registry"


class ParserNotFoundError(RegistryError):
    """Raised when no parser is registered under the requested name."""

    kind = "not_found"

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Parser '{name}' not found")


class ParserAlreadyRegisteredError(RegistryError):
    """Raised when registering a name that is already bound."""

    kind = "already_registered"

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Parser '{name}' is already registered")
