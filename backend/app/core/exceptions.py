"""
Custom exception hierarchy for the catalog sync engine.

Exceptions are categorized as:
- RetryableError: Transient errors that the retry policy may retry
- NonRetryableError: Permanent errors that should fail immediately

Job-level failures (connection missing or inactive, credentials missing)
are NonRetryableError at the call site but still fail the Job through the
queue state machine, which re-queues it until max attempts.
"""
from typing import Any, Dict, Optional


class CatalogSyncException(Exception):
    """Base exception for the catalog sync engine."""

    def __init__(self, message: str = "", details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


# ============================================
# RETRYABLE ERRORS
# ============================================
class RetryableError(CatalogSyncException):
    """
    Base class for errors that may succeed on retry.

    - Network timeouts
    - Rate limits (with backoff)
    - Temporary service unavailability
    """
    pass


class ExternalAPIError(RetryableError):
    """
    Error response from a destination API (Shopify, WooCommerce).

    Carries the HTTP status so the retry policy can classify it; a 4xx
    status makes it permanent regardless of this base class.
    """
    def __init__(
        self,
        service: str,
        message: str,
        status_code: Optional[int] = None,
        retry_after: Optional[float] = None,
    ):
        self.service = service
        self.status_code = status_code
        self.retry_after = retry_after
        super().__init__(f"{service} API error: {message}")


class RateLimitError(ExternalAPIError):
    """
    Rate limit exceeded (HTTP 429).

    Should retry after the specified delay when the server supplied one.
    """
    def __init__(self, service: str, retry_after: Optional[float] = None, message: str = ""):
        detail = message or (
            f"rate limited. Retry after {retry_after}s" if retry_after is not None else "rate limited"
        )
        super().__init__(service, detail, status_code=429, retry_after=retry_after)


class ConnectionTimeoutError(RetryableError):
    """Connection or timeout error - typically transient."""

    def __init__(self, service: str, timeout: Optional[float] = None):
        self.service = service
        self.timeout = timeout
        super().__init__(f"{service} connection timeout after {timeout}s")


# ============================================
# NON-RETRYABLE ERRORS
# ============================================
class NonRetryableError(CatalogSyncException):
    """
    Base class for errors that should NOT be retried by the retry policy.

    - Validation failures
    - Missing data
    - Authentication errors (need config fix)
    """
    pass


class ValidationError(NonRetryableError):
    """Invalid input data - retrying won't help."""
    pass


class AuthenticationError(NonRetryableError):
    """
    Destination authentication failed.

    Needs credentials fix, not retry.
    """
    pass


class ConnectionNotFoundError(NonRetryableError):
    """Connection referenced by a job does not exist."""

    def __init__(self, connection_id: str):
        self.connection_id = connection_id
        super().__init__("Connection not found", {"connection_id": connection_id})


class ConnectionNotActiveError(NonRetryableError):
    """Connection is paused or disabled."""

    def __init__(self, connection_id: str, status: str):
        self.connection_id = connection_id
        self.status = status
        super().__init__(
            f"Connection not active (status: {status})",
            {"connection_id": connection_id, "status": status},
        )


class CredentialsMissingError(NonRetryableError):
    """Decrypted destination credential is missing."""
    pass


class JobNotFoundError(NonRetryableError):
    """Job not found - permanent failure."""

    def __init__(self, job_id: str):
        self.job_id = job_id
        super().__init__(f"Job not found: {job_id}", {"job_id": job_id})


class DispatchQueueFullError(NonRetryableError):
    """Rate limiter queue reached its maximum depth."""

    def __init__(self, domain: str, tier: str, max_depth: int):
        self.domain = domain
        self.tier = tier
        self.max_depth = max_depth
        super().__init__(
            f"Rate limiter queue is full ({domain}/{tier}, max {max_depth})",
            {"domain": domain, "tier": tier, "max_depth": max_depth},
        )
