"""
Enrichment invoker: one prompt, one chat completion, one validated result.

    invoker = EnrichmentInvoker(client, settings, breaker=get_breaker('openrouter'))
    result = invoker.invoke('Lead', adapter.describe(lead), user_ctx, company_ctx, context)

Returns {recommendations, pitchNotes, useCase, emailTemplate, score}. Incomplete
output is rejected with MalformedResponseError; there is no placeholder fallback.
"""
import logging
from typing import Any, Dict, Optional

from kamcrm.errors import ConfigurationError, MalformedResponseError
from kamcrm.services.openrouter import chat_json

logger = logging.getLogger('pipeline.enrichment')

REQUIRED_TEXT_FIELDS = ('pitchNotes', 'useCase', 'emailTemplate')
SCORE_KEYS = ('score', 'leadScore', 'accountScore')

CONTEXT_LABELS = {
    'news': 'Recent news',
    'industry': 'Industry trends and pain points',
    'website': 'Their website',
    'profile': 'Company profile',
    'opportunities': 'Open opportunities with us',
}


def build_prompt(entity_type: str, profile: Dict[str, str], user: Dict[str, str],
                 company: Optional[Dict[str, Any]], context: Optional[Dict[str, str]] = None) -> str:
    """Assemble the enrichment prompt for a lead or an account."""
    kind = entity_type.lower()
    lines = [
        f"You are an expert sales assistant. Your user is {user.get('name') or 'the account manager'}.",
        f"Analyze the following {kind} and provide tailored sales assets.",
        "",
        f"{entity_type} information:",
    ]
    lines += [f"- {label}: {value}" for label, value in profile.items()]

    if company:
        lines += ["", "Our company:", f"- Name: {company.get('name') or 'N/A'}"]
        if company.get('industry'):
            lines.append(f"- Industry: {company['industry']}")
        if company.get('description'):
            lines.append(f"- About: {company['description']}")
        if company.get('services'):
            lines.append(f"- Services we offer: {', '.join(company['services'])}")
        if company.get('website_summary'):
            lines.append(f"- Website summary: {company['website_summary']}")

    blocks = [(CONTEXT_LABELS.get(k, k), v) for k, v in (context or {}).items() if v and v.strip()]
    if blocks:
        lines += ["", "Additional context (may be incomplete):"]
        lines += [f"{label}: {value}" for label, value in blocks]

    lines += [
        "",
        "Based on this, generate the following:",
        "1. recommendations: 3-4 specific services or products of ours that fit this "
        f"{kind}, as a JSON array of strings.",
        "2. pitchNotes: concise, actionable talking points for a sales pitch.",
        f"3. useCase: a compelling use case for this {kind}.",
        f"4. emailTemplate: a short, personalised outreach email to this {kind}, signed "
        "by our user. First line 'Subject: ...', then a blank line and the body.",
        f"5. score: how good a fit this {kind} is for us, an integer from 0 to 100.",
        "",
        'Respond with a bare JSON object with exactly the keys "recommendations", '
        '"pitchNotes", "useCase", "emailTemplate" and "score". No markdown, no commentary.',
    ]
    return '\n'.join(lines)


def validate_result(data: Dict[str, Any]) -> Dict[str, Any]:
    """Check the parsed response and normalise it to the result shape."""
    recs = data.get('recommendations')
    if not isinstance(recs, list) or not recs:
        raise MalformedResponseError("AI response missing recommendations", raw=str(data))
    recs = [str(r).strip() for r in recs if str(r).strip()]
    if not recs:
        raise MalformedResponseError("AI response has only empty recommendations", raw=str(data))

    for key in REQUIRED_TEXT_FIELDS:
        value = data.get(key)
        if not isinstance(value, str) or not value.strip():
            raise MalformedResponseError(f"AI response missing {key}", raw=str(data))

    score = next((data[k] for k in SCORE_KEYS if data.get(k) is not None), None)
    if isinstance(score, bool) or score is None:
        raise MalformedResponseError("AI response missing numeric score", raw=str(data))
    try:
        score = float(score)
    except (TypeError, ValueError):
        raise MalformedResponseError(f"AI response score is not numeric: {score!r}", raw=str(data))

    result = {
        'recommendations': recs,
        'pitchNotes': data['pitchNotes'].strip(),
        'useCase': data['useCase'].strip(),
        'emailTemplate': data['emailTemplate'].strip(),
        'score': score,
    }
    return result


class EnrichmentInvoker:
    """Calls the chat-completion provider for one entity."""

    def __init__(self, client, settings, breaker=None, client_factory=None):
        self.client = client
        self.settings = settings
        self.breaker = breaker
        self._client_factory = client_factory

    def ensure_ready(self):
        """Build the client if needed; ConfigurationError if that is impossible."""
        if self.client is None:
            if self._client_factory is None:
                raise ConfigurationError("No chat-completion client configured")
            self.client = self._client_factory()
        return self.client

    def invoke(self, entity_type, profile, user, company, context=None) -> Dict[str, Any]:
        client = self.ensure_ready()
        prompt = build_prompt(entity_type, profile, user, company, context)
        data = chat_json(
            client, prompt,
            model=self.settings.model,
            temperature=self.settings.temperature,
            max_tokens=self.settings.max_tokens,
            breaker=self.breaker,
        )
        return validate_result(data)
