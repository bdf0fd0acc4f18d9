"""
Error taxonomy for the enrichment pipeline and AI flows.

RateLimitError is the only retryable error. Everything else propagates to the
caller on first occurrence; the batch runner records it per entity.
"""


class EnrichmentError(Exception):
    """Base class for all enrichment failures."""


class ProviderError(EnrichmentError):
    """Chat-completion provider returned a non-2xx response or was unreachable."""

    def __init__(self, message, status=None, body=''):
        self.status = status
        self.body = body or ''
        super().__init__(message)

    @classmethod
    def from_response(cls, status, body):
        body = body or ''
        return cls(f"Provider returned HTTP {status}: {body[:500]}", status=status, body=body)


class RateLimitError(ProviderError):
    """HTTP 429 from the provider. Retried by the backoff executor."""

    def __init__(self, message='429 Too Many Requests', status=429, body=''):
        super().__init__(message, status=status, body=body)


class MalformedResponseError(EnrichmentError):
    """Provider answered, but not with the JSON shape we asked for."""

    def __init__(self, message, raw=''):
        self.raw = raw or ''
        super().__init__(message)


class PersistenceError(EnrichmentError):
    """A read or write against the analysis store failed."""


class ConfigurationError(EnrichmentError):
    """Required configuration is missing or invalid. Fatal to the whole run."""
