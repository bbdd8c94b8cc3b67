"""AI enrichment exceptions.

Every error here is recoverable from the caller's point of view: the pull
request stays usable, only the optional enrichment is missing.
"""


class EnrichmentError(Exception):
    """Base exception for enrichment failures."""

    def __init__(self, message: str, feature_type: str | None = None) -> None:
        super().__init__(message)
        self.feature_type = feature_type


class EnrichmentTimeoutError(EnrichmentError):
    """Raised when the runner does not answer within the time budget."""

    pass


class EnrichmentUnavailableError(EnrichmentError):
    """Raised when a feature is not being called at all right now."""

    pass


class CircuitOpenError(EnrichmentUnavailableError):
    """Raised by the circuit breaker instead of attempting a call."""

    def __init__(self, feature_type: str, retry_after_seconds: float) -> None:
        seconds = max(0, round(retry_after_seconds))
        super().__init__(
            f"AI service temporarily unavailable for {feature_type} (circuit open). "
            f"Retry in ~{seconds}s.",
            feature_type,
        )
        self.retry_after_seconds = retry_after_seconds
