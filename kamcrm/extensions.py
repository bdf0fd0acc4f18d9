"""
Shared client instances: Redis and the OpenRouter chat client.

Importing this module never opens a connection: redis-py connects on first
command and the OpenAI client is built on demand by make_openrouter_client().
"""
import logging
import redis

from kamcrm.config import REDIS_URL, OPENROUTER_API_KEY, OPENROUTER_BASE_URL
from kamcrm.errors import ConfigurationError

logger = logging.getLogger('kamcrm.extensions')

# ── Redis ─────────────────────────────────────────────────────────────────────
redis_client = redis.from_url(REDIS_URL, decode_responses=True)


# ── OpenRouter (OpenAI-compatible) ───────────────────────────────────────────

def make_openrouter_client(api_key=None, base_url=None):
    """
    Build an OpenAI SDK client pointed at OpenRouter.

    SDK-level retries are disabled; rate-limit retries are owned by
    services.retry.BackoffRetry.
    """
    from openai import OpenAI

    key = api_key or OPENROUTER_API_KEY
    if not key:
        raise ConfigurationError("OPENROUTER_API_KEY is not set")
    client = OpenAI(api_key=key, base_url=base_url or OPENROUTER_BASE_URL, max_retries=0)
    logger.info("OpenRouter client initialized")
    return client
