"""
Exponential backoff for rate-limited provider calls.

    retry = BackoffRetry(max_retries=3, base_delay_ms=5000)
    result = retry.call(invoker.invoke, lead, user, company)

Only rate-limit failures are retried, waiting base_delay_ms * 2**attempt
between attempts (5s, 10s, 20s for the defaults). Any other error, or the
last rate-limit error once retries are exhausted, is re-raised unchanged.
"""
import logging
import time

from kamcrm.errors import EnrichmentError, ProviderError, RateLimitError

logger = logging.getLogger('services.retry')

RATE_LIMIT_SIGNATURES = ('too many requests', '429', 'rate limit', 'rate_limit')


def is_rate_limit_error(error) -> bool:
    """
    True if the error is, or reads like, an HTTP 429.

    kamcrm error types are judged by type and status, never by message.
    Message sniffing only applies to foreign exceptions.
    """
    if isinstance(error, RateLimitError):
        return True
    if isinstance(error, EnrichmentError):
        return isinstance(error, ProviderError) and error.status == 429
    message = str(error).lower()
    return any(sig in message for sig in RATE_LIMIT_SIGNATURES)


class BackoffRetry:
    """Retry a callable on rate-limit errors with exponential delay."""

    def __init__(self, max_retries: int = 3, base_delay_ms: int = 5000):
        if max_retries < 0 or base_delay_ms < 0:
            raise ValueError("max_retries and base_delay_ms must be >= 0")
        self.max_retries = max_retries
        self.base_delay_ms = base_delay_ms

    def delay_for(self, attempt: int) -> float:
        """Seconds to wait before retry number attempt+1."""
        return self.base_delay_ms * (2 ** attempt) / 1000.0

    def call(self, func, *args, **kwargs):
        """Execute func, retrying on rate limits. Returns func's result."""
        attempt = 0
        while True:
            try:
                return func(*args, **kwargs)
            except Exception as e:
                if not is_rate_limit_error(e) or attempt >= self.max_retries:
                    if attempt:
                        logger.error("Giving up after %d retries: %s", attempt, e)
                    raise
                wait = self.delay_for(attempt)
                logger.warning(
                    "Rate limited, waiting %.1fs (retry %d/%d)",
                    wait, attempt + 1, self.max_retries,
                )
                time.sleep(wait)
                attempt += 1
