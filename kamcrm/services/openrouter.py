"""
OpenRouter chat-completion helpers (OpenAI SDK, OpenAI-compatible endpoint).

SDK exceptions are translated into the kamcrm error taxonomy here so callers
never depend on openai's exception classes:

    openai.RateLimitError     → RateLimitError (retryable)
    openai.APIStatusError     → ProviderError(status, body)
    openai.APIConnectionError → ProviderError(status=None)
    unparseable content       → MalformedResponseError
"""
import json
import logging
import re
from typing import Any, Dict, List, Optional

import openai

from kamcrm.errors import ProviderError, RateLimitError, MalformedResponseError

logger = logging.getLogger('services.openrouter')

_FENCE_RE = re.compile(r'^\s*```(?:json)?\s*(.*?)\s*```\s*$', re.DOTALL)


def strip_code_fence(text: str) -> str:
    """Remove a surrounding ```json ... ``` fence if present."""
    match = _FENCE_RE.match(text or '')
    return match.group(1) if match else (text or '').strip()


def parse_json_object(text: str) -> Dict[str, Any]:
    """Parse model output as a JSON object, tolerating a markdown fence."""
    body = strip_code_fence(text)
    if not body:
        raise MalformedResponseError("Provider returned empty content", raw=text)
    try:
        parsed = json.loads(body)
    except json.JSONDecodeError as e:
        raise MalformedResponseError(f"AI response was not valid JSON: {e}", raw=text)
    if not isinstance(parsed, dict):
        raise MalformedResponseError("AI response was not a JSON object", raw=text)
    return parsed


def complete(client, messages: List[Dict[str, Any]], model: str,
             temperature: float = 0.5, max_tokens: int = 1000,
             json_mode: bool = True, breaker=None) -> str:
    """
    Run one chat completion and return the first choice's content.

    If a breaker is given the request goes through breaker.call(), so an
    OPEN circuit raises CircuitOpenError before any network traffic.
    """
    request = dict(
        model=model,
        messages=messages,
        temperature=temperature,
        max_tokens=max_tokens,
    )
    if json_mode:
        request['response_format'] = {"type": "json_object"}

    create = client.chat.completions.create
    try:
        if breaker is not None:
            response = breaker.call(create, **request)
        else:
            response = create(**request)
    except openai.RateLimitError as e:
        raise RateLimitError(body=_error_body(e)) from e
    except openai.APIStatusError as e:
        raise ProviderError.from_response(e.status_code, _error_body(e)) from e
    except openai.APIConnectionError as e:
        raise ProviderError(f"Provider unreachable: {e}", status=None) from e

    try:
        content = response.choices[0].message.content
    except (AttributeError, IndexError, TypeError):
        raise MalformedResponseError("Provider response had no choices")
    return content or ''


def chat_json(client, prompt: str, model: str, temperature: float = 0.5,
              max_tokens: int = 1000, system: Optional[str] = None, breaker=None) -> Dict[str, Any]:
    """Single-prompt completion parsed as a JSON object."""
    messages = []
    if system:
        messages.append({"role": "system", "content": system})
    messages.append({"role": "user", "content": prompt})
    content = complete(client, messages, model, temperature, max_tokens, json_mode=True, breaker=breaker)
    return parse_json_object(content)


def chat_text(client, prompt: str, model: str, temperature: float = 0.5,
              max_tokens: int = 256, breaker=None) -> str:
    """Plain-text completion with surrounding quotes and backticks trimmed."""
    messages = [
        {"role": "system", "content": "You are a helpful assistant."},
        {"role": "user", "content": prompt},
    ]
    content = complete(client, messages, model, temperature, max_tokens, json_mode=False, breaker=breaker)
    return content.strip().strip('"').strip('`').strip()


def _error_body(error) -> str:
    response = getattr(error, 'response', None)
    if response is not None:
        try:
            return response.text
        except Exception:
            pass
    return str(error)
