"""
AI insight flows shown in the CRM (not persisted).

Unlike enrichment these are display features, so several of them degrade
instead of raising:
  - forecast_opportunity() returns N/A placeholders on any failure
  - extract_lead_from_card() returns None on any failure
  - generate_insights() returns None per section that failed
"""
import logging
import re
from typing import Any, Dict, Optional
from urllib.parse import urlparse

from kamcrm.config import VISION_MODEL
from kamcrm.errors import EnrichmentError, MalformedResponseError
from kamcrm.services import context
from kamcrm.services.openrouter import chat_json, chat_text, complete, parse_json_object
from kamcrm.services.retry import is_rate_limit_error

logger = logging.getLogger('services.insights')


def _require_text(data, *keys):
    for key in keys:
        if not isinstance(data.get(key), str) or not data[key].strip():
            raise MalformedResponseError(f"AI response missing {key}", raw=str(data))
    return data


# ── Opportunity forecasting ──────────────────────────────────────────────────

RATE_LIMIT_HINT = "Rate limit reached. Please wait and try again or check your API plan."
SAFETY_HINT = "Forecast generation blocked due to content safety filters."
GENERIC_HINT = "Error generating forecast. Please try again later."


def forecast_opportunity(client, opportunity, recent_updates: str, settings, breaker=None) -> Dict[str, Any]:
    """
    Timeline prediction, completion estimate, revenue forecast and bottlenecks.

    Never raises: on failure the revenue forecast falls back to the
    opportunity value and the bottleneck field explains what went wrong.
    """
    value = float(opportunity.value or 0)
    prompt = (
        "You are an AI assistant that provides opportunity timeline predictions, completion date "
        "estimates, revenue forecasts, and potential bottleneck identification.\n\n"
        f"Opportunity Name: {opportunity.name}\n"
        f"Opportunity Description: {opportunity.description or 'N/A'}\n"
        f"Opportunity Timeline: {opportunity.timeline()}\n"
        f"Opportunity Value: {value}\n"
        f"Opportunity Status: {opportunity.status}\n"
        f"Recent Updates: {recent_updates or 'None'}\n\n"
        'Respond in JSON with the keys "timelinePrediction", "completionDateEstimate", '
        '"revenueForecast" (number) and "bottleneckIdentification".'
    )
    try:
        data = chat_json(client, prompt, model=settings.model, temperature=settings.temperature,
                         max_tokens=settings.max_tokens, breaker=breaker)
        _require_text(data, 'timelinePrediction', 'completionDateEstimate', 'bottleneckIdentification')
        data['revenueForecast'] = float(data.get('revenueForecast', value))
        return {
            'timelinePrediction': data['timelinePrediction'],
            'completionDateEstimate': data['completionDateEstimate'],
            'revenueForecast': data['revenueForecast'],
            'bottleneckIdentification': data['bottleneckIdentification'],
        }
    except Exception as e:
        logger.error("Forecast failed for opportunity %s: %s", opportunity.id, e)
        if is_rate_limit_error(e):
            hint = RATE_LIMIT_HINT
        elif 'blocked' in str(e).lower() or 'safety' in str(e).lower():
            hint = SAFETY_HINT
        else:
            hint = GENERIC_HINT
        return {
            'timelinePrediction': 'N/A',
            'completionDateEstimate': 'N/A',
            'revenueForecast': value,
            'bottleneckIdentification': hint,
        }


# ── Business card OCR ────────────────────────────────────────────────────────

CARD_FIELDS = ('personName', 'companyName', 'email', 'phone')
_DATA_URI_RE = re.compile(r'^data:image/[\w.+-]+;base64,', re.IGNORECASE)


def extract_lead_from_card(client, image_data_uri: str, breaker=None) -> Optional[Dict[str, str]]:
    """Read name, company, email and phone off a business card image. None on failure."""
    if not image_data_uri or not _DATA_URI_RE.match(image_data_uri):
        logger.warning("Card extraction called without an image data URI")
        return None

    messages = [{
        "role": "user",
        "content": [{
            "type": "text",
            "text": (
                "You are an expert OCR and data extraction system specializing in business cards. "
                "Extract the person's full name, company name, email address and phone number. "
                "If a field is not clearly visible, omit it rather than guessing.\n\n"
                'Respond in JSON with any of the keys "personName", "companyName", "email", "phone".'
            ),
        }, {
            "type": "image_url",
            "image_url": {"url": image_data_uri},
        }],
    }]
    try:
        content = complete(client, messages, model=VISION_MODEL, temperature=0.2,
                           max_tokens=300, json_mode=True, breaker=breaker)
        data = parse_json_object(content)
    except Exception as e:
        logger.error("Card extraction failed: %s", e)
        return None

    extracted = {k: str(data[k]).strip() for k in CARD_FIELDS if data.get(k) and str(data[k]).strip()}
    if 'email' in extracted and '@' not in extracted['email']:
        del extracted['email']
    return extracted or None


# ── Daily account summary ────────────────────────────────────────────────────

def daily_account_summary(client, account_name: str, recent_updates: str, key_metrics: str,
                          settings, breaker=None) -> Dict[str, str]:
    """Summary report plus a relationship-health line for one account."""
    health = relationship_health(recent_updates)
    prompt = (
        "You are an AI assistant specializing in daily summary reports for key accounts.\n"
        "Write a concise daily summary covering key metrics, recent updates and an overall "
        "assessment of the account's status.\n\n"
        f"Account Name: {account_name}\n"
        f"Recent Updates: {recent_updates or 'None'}\n"
        f"Key Metrics: {key_metrics or 'None'}\n"
        f"Relationship health signal: {health['healthScore']} ({health['summary']})\n\n"
        'Respond in JSON with the keys "summary" and "relationshipHealth" (a short assessment '
        'such as healthy, at risk or needs attention).'
    )
    data = chat_json(client, prompt, model=settings.model, temperature=settings.temperature,
                     max_tokens=settings.max_tokens, breaker=breaker)
    _require_text(data, 'summary')
    return {
        'summary': data['summary'].strip(),
        'relationshipHealth': (data.get('relationshipHealth') or health['summary']).strip(),
    }


# ── Communication insights ───────────────────────────────────────────────────

def relationship_health(history: str) -> Dict[str, Any]:
    """Heuristic health score in [0, 1] from the length and tone of the history."""
    history = history or ''
    length = len(history)
    lowered = history.lower()

    score = 0.5
    summary = "The relationship health is moderate."
    if length > 500:
        score = 0.8
        summary = "The relationship appears strong due to frequent communication."
    elif 0 < length < 100:
        score = 0.3
        summary = "The relationship might need more engagement due to limited communication."
    elif length == 0:
        score = 0.1
        summary = "No communication history provided to assess relationship health."

    if 'great' in lowered or 'excellent' in lowered:
        score = min(1.0, score + 0.15)
    if 'problem' in lowered or 'issue' in lowered:
        score = max(0.0, score - 0.15)

    return {'healthScore': round(score, 2), 'summary': summary}


def analyze_communication(client, history, settings, breaker=None):
    prompt = (
        "You are an AI assistant specializing in analyzing communication patterns and sentiment.\n"
        "Analyze the following communication history and provide key insights and a sentiment analysis.\n\n"
        f"Communication History: {history}\n\n"
        'Respond in JSON with the keys "keyInsights" and "sentimentAnalysis".'
    )
    data = chat_json(client, prompt, model=settings.model, temperature=settings.temperature,
                     max_tokens=settings.max_tokens, breaker=breaker)
    _require_text(data, 'keyInsights', 'sentimentAnalysis')
    return {'keyInsights': data['keyInsights'], 'sentimentAnalysis': data['sentimentAnalysis']}


def summarize_update(client, content, settings, breaker=None):
    prompt = (
        "You are an AI assistant specializing in summarizing updates, extracting action items, "
        "and suggesting follow-up actions.\n\n"
        f"Update Content: {content}\n\n"
        'Respond in JSON with the keys "summary", "actionItems" and "followUpSuggestions".'
    )
    data = chat_json(client, prompt, model=settings.model, temperature=settings.temperature,
                     max_tokens=settings.max_tokens, breaker=breaker)
    _require_text(data, 'summary', 'actionItems', 'followUpSuggestions')
    return {k: data[k] for k in ('summary', 'actionItems', 'followUpSuggestions')}


def generate_insights(client, history: str, settings, breaker=None) -> Dict[str, Any]:
    """Run all three insight sections; a failed section comes back as None."""
    insights = {'communicationAnalysis': None, 'updateSummary': None, 'relationshipHealth': None}

    try:
        insights['communicationAnalysis'] = analyze_communication(client, history, settings, breaker)
    except Exception as e:
        logger.error("Communication analysis failed: %s", e)

    try:
        insights['updateSummary'] = summarize_update(client, history, settings, breaker)
    except Exception as e:
        logger.error("Update summary failed: %s", e)

    insights['relationshipHealth'] = relationship_health(history)
    return insights


# ── Company description ──────────────────────────────────────────────────────

def extract_about_section(text: str, limit: int = 800) -> str:
    """Pull the 'About us' section out of crawled page text, else a cleaned prefix."""
    match = re.search(r'About us\n([\s\S]+?)(\n##|$)', text or '', re.IGNORECASE)
    if match:
        return match.group(1).strip()

    cleaned = re.sub(r'#+\s.*\n', '', text or '')
    cleaned = re.sub(r'We are Hiring[\s\S]+?(?=\n##|$)', '', cleaned, flags=re.IGNORECASE)
    cleaned = re.sub(r'Updates[\s\S]+?(?=\n##|$)', '', cleaned, flags=re.IGNORECASE)
    cleaned = re.sub(r'Employees at [^\n]+\n[\s\S]+?(?=\n##|$)', '', cleaned, flags=re.IGNORECASE)
    return cleaned[:limit]


def company_description(client, name: str, website: str, industry: str, settings, breaker=None) -> str:
    """
    At most 80 words describing a company, grounded in Exa web content.

    If the grounded prompt fails, a generic prompt based on name and industry
    is tried once. Raises if both fail or the model returns nothing.
    """
    query = ' '.join(filter(None, [name, website, industry, 'company profile']))
    urls = context.exa_search_urls(query, num_results=3, category='company', type='auto')
    texts = []
    for item in context.exa_contents(urls, livecrawl='preferred', summary={'max_length': 1024}):
        texts.append(item.get('text') or context.summary_text(item))
    info = extract_about_section('\n\n'.join(t for t in texts if t))

    prompt = (
        "You are an expert B2B business analyst. Write a concise, professional company description "
        "(max 80 words) for the following company, suitable for use in a CRM or sales platform. "
        "Use only real data from the provided company information. Do not use placeholders or make up "
        "facts. Use strict formal business English.\n\n"
        f"Company Name: {name or 'N/A'}\nWebsite: {website or 'N/A'}\nIndustry: {industry or 'N/A'}\n\n"
        "Company Information (from web, ignore job postings and unrelated sections):\n"
        f"{info}\n\nReturn only the description text, no extra commentary."
    )
    try:
        description = chat_text(client, prompt, model=settings.model,
                                temperature=settings.temperature, breaker=breaker)
    except EnrichmentError as e:
        logger.warning("Grounded description failed (%s), retrying with generic prompt", e)
        fallback = (
            "You are an expert B2B business analyst. Write a generic, professional company description "
            f"(max 80 words) for a company named {name or website} in the {industry or 'technology'} "
            "industry. If you do not have real data, use your best judgment based on the name and "
            "industry. Use strict formal business English."
        )
        description = chat_text(client, fallback, model=settings.model,
                                temperature=settings.temperature, breaker=breaker)

    if not description:
        raise MalformedResponseError("AI did not return a description")
    return description


# ── Website analysis ─────────────────────────────────────────────────────────

def normalize_website(website: str) -> str:
    """Add a scheme and return the hostname; ValueError if it is not a URL."""
    url = (website or '').strip()
    if not url:
        raise ValueError("Website URL is required")
    if not url.startswith(('http://', 'https://')):
        url = 'https://' + url
    host = urlparse(url).hostname
    if not host or '.' not in host:
        raise ValueError("Invalid website URL format")
    return host


def analyze_website(website: str) -> Dict[str, Any]:
    """
    Describe a company from its own about/company pages via Exa.

    Returns {'description', 'success', 'source'}. Provider failures raise;
    "nothing found" is a normal unsuccessful result.
    """
    host = normalize_website(website)
    urls = context.exa_search_urls(
        f'site:{host} about company', num_results=4, strict=True,
        type='keyword', includeDomains=[host],
    )[:2]
    if not urls:
        return {'description': 'Unable to find relevant company/about pages on the provided website.',
                'success': False, 'source': None}

    results = context.exa_contents(urls, strict=True, livecrawl='always',
                                   subpages=2, subpageTarget=['about', 'company'])
    first = results[0] if results else {}

    description = ''
    summary = first.get('summary')
    if isinstance(summary, dict) and summary.get('text'):
        description = summary['text']
    elif first.get('highlights'):
        description = ' '.join(first['highlights'])
    elif first.get('text'):
        para = next((p for p in first['text'].split('\n') if len(p) > 50), None)
        description = para or first['text'][:300]

    if not description:
        return {'description': 'Unable to extract company description from the provided website. '
                               'Please enter it manually.',
                'success': False, 'source': None}

    return {
        'description': re.sub(r'\s+', ' ', description).strip(),
        'success': True,
        'source': first.get('url') or urls[0],
    }
