"""
External context for enrichment prompts: Tavily, Serper and Exa.

Every fetcher is optional context: a missing API key, an HTTP error, a
timeout or an open circuit all degrade to '' (or []) and are logged. The
only exception is exa_* used by website analysis, which callers may ask to
raise via strict=True.
"""
import logging
from datetime import datetime, timezone
from typing import List

import requests
from sqlalchemy.exc import SQLAlchemyError

from kamcrm.config import (
    TAVILY_API_KEY, TAVILY_API_URL,
    SERPER_API_KEY, SERPER_API_URL,
    EXA_API_KEY, EXA_API_URL,
    COMPANY_SUMMARY_REFRESH_HOURS,
)
from kamcrm.errors import PersistenceError
from kamcrm.services.circuit_breaker import get_breaker
from kamcrm.services.freshness import check_freshness, SKIP

logger = logging.getLogger('services.context')

REQUEST_TIMEOUT = 20


def _post(service, url, payload, headers):
    """POST through the provider's breaker and return the decoded JSON body."""
    def _do():
        resp = requests.post(url, json=payload, headers=headers, timeout=REQUEST_TIMEOUT)
        resp.raise_for_status()
        return resp.json()
    return get_breaker(service).call(_do)


# ── Tavily ────────────────────────────────────────────────────────────────────

def _tavily_headers():
    return {'Content-Type': 'application/json', 'Authorization': f'Bearer {TAVILY_API_KEY}'}


def tavily_search(query: str, max_results: int = 3) -> str:
    """Top search snippets for query, joined into one paragraph."""
    if not TAVILY_API_KEY or not query.strip():
        return ''
    try:
        data = _post('tavily', f'{TAVILY_API_URL}/search',
                     {'query': query, 'max_results': max_results}, _tavily_headers())
    except Exception as e:
        logger.warning("Tavily search failed for %r: %s", query, e)
        return ''
    results = data.get('results') or []
    return ' '.join(r.get('content') or r.get('snippet') or '' for r in results).strip()


def tavily_extract(url: str, max_chars: int = 1500) -> str:
    """Raw text of a single web page, truncated."""
    if not TAVILY_API_KEY or not url:
        return ''
    try:
        data = _post('tavily', f'{TAVILY_API_URL}/extract', {'urls': [url]}, _tavily_headers())
    except Exception as e:
        logger.warning("Tavily extract failed for %s: %s", url, e)
        return ''
    results = data.get('results') or []
    if not results:
        return ''
    return (results[0].get('raw_content') or '')[:max_chars].strip()


# ── Serper ────────────────────────────────────────────────────────────────────

def serper_news(query: str, limit: int = 3) -> str:
    """Top news snippets for query."""
    if not SERPER_API_KEY or not query.strip():
        return ''
    try:
        data = _post('serper', f'{SERPER_API_URL}/news', {'q': query},
                     {'Content-Type': 'application/json', 'X-API-KEY': SERPER_API_KEY})
    except Exception as e:
        logger.warning("Serper news failed for %r: %s", query, e)
        return ''
    news = (data.get('news') or [])[:limit]
    return ' '.join(n.get('snippet', '') for n in news).strip()


# ── Exa ───────────────────────────────────────────────────────────────────────

def _exa_headers():
    return {'Content-Type': 'application/json', 'x-api-key': EXA_API_KEY or ''}


def exa_search(query: str, num_results: int = 3) -> str:
    """Highlights from the top Exa results, joined."""
    if not EXA_API_KEY or not query.strip():
        return ''
    try:
        data = _post('exa', f'{EXA_API_URL}/search',
                     {'query': query, 'numResults': num_results,
                      'contents': {'highlights': {'numSentences': 2}}},
                     _exa_headers())
    except Exception as e:
        logger.warning("Exa search failed for %r: %s", query, e)
        return ''
    parts = []
    for r in data.get('results') or []:
        highlights = r.get('highlights') or []
        parts.append(' '.join(highlights) if highlights else (r.get('text') or ''))
    return ' '.join(p for p in parts if p).strip()


def exa_search_urls(query: str, num_results: int = 3, strict: bool = False, **options) -> List[str]:
    """URLs of the top Exa results. options are passed through (type, category, includeDomains)."""
    if not EXA_API_KEY:
        return []
    payload = {'query': query, 'numResults': num_results, **options}
    try:
        data = _post('exa', f'{EXA_API_URL}/search', payload, _exa_headers())
    except Exception as e:
        if strict:
            raise
        logger.warning("Exa search failed for %r: %s", query, e)
        return []
    return [r['url'] for r in data.get('results') or []
            if isinstance(r.get('url'), str) and r['url'].startswith('http')]


def exa_contents(urls: List[str], strict: bool = False, **options) -> List[dict]:
    """Exa /contents results for urls (each has text, summary, highlights, subpages)."""
    if not EXA_API_KEY or not urls:
        return []
    payload = {'urls': list(urls), 'text': True, **options}
    try:
        data = _post('exa', f'{EXA_API_URL}/contents', payload, _exa_headers())
    except Exception as e:
        if strict:
            raise
        logger.warning("Exa contents failed for %s: %s", urls, e)
        return []
    return data.get('results') or []


def summary_text(item):
    summary = item.get('summary')
    if isinstance(summary, dict):
        return summary.get('text') or ''
    return summary or ''


# ── Company website summary (cached on the company row) ──────────────────────

def refresh_company_summary(session, company, force: bool = False, now=None) -> str:
    """
    Return the company's website summary, re-crawling it when stale.

    The cached value is reused while younger than COMPANY_SUMMARY_REFRESH_HOURS,
    unless force is set. A failed crawl keeps the old summary.
    """
    if company is None or not company.website:
        return ''

    cached = (company.website_summary or '').strip()
    if not force and cached and check_freshness(
            company.website_summary_refreshed_at, COMPANY_SUMMARY_REFRESH_HOURS, now=now) == SKIP:
        logger.debug("Using cached website summary for %s", company.name)
        return cached

    results = exa_contents(
        [company.website],
        livecrawl='always',
        subpages=5,
        subpageTarget=['about', 'products', 'company', 'services', 'team'],
        summary={'query': "Summarize this company's offerings, mission, and unique value in 4-7 sentences."},
    )
    if not results:
        return cached

    main = results[0]
    parts = [summary_text(main)]
    parts.extend(summary_text(sub) for sub in main.get('subpages') or [])
    summary = '\n'.join(p for p in parts if p).strip()
    if not summary:
        summary = (main.get('text') or '')[:2000].strip()
    if not summary:
        return cached

    try:
        company.website_summary = summary
        company.website_summary_refreshed_at = now or datetime.now(timezone.utc)
        session.commit()
    except SQLAlchemyError as e:
        session.rollback()
        raise PersistenceError(f"Saving company website summary failed: {e}") from e
    logger.info("Company website summary refreshed for %s (%d chars)", company.name, len(summary))
    return summary


# ── Context bundles for the invoker ──────────────────────────────────────────

def lead_context(lead) -> dict:
    """News and website context blocks for a lead."""
    name = lead.company_name or ''
    industry = lead.industry or ''
    return {
        'news': ' '.join(filter(None, [
            tavily_search(f'{name} {industry} news'.strip()),
            serper_news(f'{name} news'),
        ])),
        'website': tavily_extract(lead.website) if lead.website else '',
        'profile': exa_search(f'{name} {industry} company profile'.strip()),
    }


def account_context(account, opportunities=()) -> dict:
    """News, industry and website context blocks for an account."""
    name = account.name or ''
    industry = account.industry or ''
    news = ' '.join(filter(None, [
        tavily_search(f'{name} {industry} news'.strip()),
        serper_news(f'{name} {industry} news'.strip()),
    ]))
    industry_block = ''
    if industry:
        trends = tavily_search(f'{industry} technology trends')
        pains = tavily_search(f'{industry} challenges pain points')
        if trends or pains:
            industry_block = f"Trends: {trends}\nPain points: {pains}"
    opps = '; '.join(
        f"{o.name} ({o.status}, value {o.value or 0})" for o in opportunities
    )
    return {
        'news': news,
        'industry': industry_block,
        'website': tavily_extract(account.website) if account.website else '',
        'profile': exa_search(f'{name} {industry} company profile'.strip()),
        'opportunities': opps,
    }
