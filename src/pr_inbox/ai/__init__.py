"""Optional AI enrichment: result cache, circuit breaker and guarded runner calls."""

from .cache import AiResultCache
from .circuit_breaker import BreakerSnapshot, CircuitBreakerRegistry, CircuitState
from .enrichment import AiRunner, EnrichmentResult, EnrichmentService, parse_risk_assessment
from .exceptions import (
    CircuitOpenError,
    EnrichmentError,
    EnrichmentTimeoutError,
    EnrichmentUnavailableError,
)

__all__ = [
    # Cache
    "AiResultCache",
    # Circuit breaker
    "BreakerSnapshot",
    "CircuitBreakerRegistry",
    "CircuitState",
    # Enrichment
    "AiRunner",
    "EnrichmentResult",
    "EnrichmentService",
    "parse_risk_assessment",
    # Exceptions
    "CircuitOpenError",
    "EnrichmentError",
    "EnrichmentTimeoutError",
    "EnrichmentUnavailableError",
]
