"""Tests for kamcrm.services.context: optional search context and the company summary cache."""
from datetime import datetime, timedelta, timezone

import pytest
import requests
from unittest.mock import patch, MagicMock

from kamcrm.errors import PersistenceError
from kamcrm.services import context


class PassthroughBreaker:
    def call(self, func, *args, **kwargs):
        return func(*args, **kwargs)


@pytest.fixture(autouse=True)
def _passthrough_breakers():
    with patch('kamcrm.services.context.get_breaker', return_value=PassthroughBreaker()), \
            patch.multiple('kamcrm.services.context',
                           TAVILY_API_KEY=None, SERPER_API_KEY=None, EXA_API_KEY=None):
        yield


@pytest.fixture
def keys():
    with patch.multiple('kamcrm.services.context',
                        TAVILY_API_KEY='tv-key', SERPER_API_KEY='sp-key', EXA_API_KEY='exa-key'):
        yield


def _response(payload, status=200):
    resp = MagicMock()
    resp.json.return_value = payload
    if status >= 400:
        resp.raise_for_status.side_effect = requests.HTTPError(f'{status} Error')
    return resp


class TestMissingKeys:
    """Without API keys every fetcher returns empty output and makes no request."""

    def test_all_empty(self):
        with patch('kamcrm.services.context.requests.post') as post:
            assert context.tavily_search('acme news') == ''
            assert context.tavily_extract('https://acme.example') == ''
            assert context.serper_news('acme') == ''
            assert context.exa_search('acme') == ''
            assert context.exa_search_urls('acme') == []
            assert context.exa_contents(['https://acme.example']) == []
        post.assert_not_called()


class TestFetchers:

    def test_tavily_search_joins_results(self, keys):
        payload = {'results': [{'content': 'Acme raised a round.'}, {'snippet': 'Acme opened a plant.'}]}
        with patch('kamcrm.services.context.requests.post', return_value=_response(payload)) as post:
            text = context.tavily_search('acme news', max_results=2)
        assert text == 'Acme raised a round. Acme opened a plant.'
        url = post.call_args.args[0]
        assert url.endswith('/search')
        assert post.call_args.kwargs['json'] == {'query': 'acme news', 'max_results': 2}
        assert post.call_args.kwargs['timeout'] == context.REQUEST_TIMEOUT

    def test_tavily_extract_truncates(self, keys):
        payload = {'results': [{'raw_content': 'a' * 3000}]}
        with patch('kamcrm.services.context.requests.post', return_value=_response(payload)):
            assert len(context.tavily_extract('https://acme.example', max_chars=100)) == 100

    def test_http_error_degrades_to_empty(self, keys):
        with patch('kamcrm.services.context.requests.post', return_value=_response({}, status=500)):
            assert context.tavily_search('acme') == ''
            assert context.serper_news('acme') == ''

    def test_timeout_degrades_to_empty(self, keys):
        with patch('kamcrm.services.context.requests.post', side_effect=requests.Timeout('slow')):
            assert context.exa_search('acme') == ''

    def test_serper_limit_and_header(self, keys):
        payload = {'news': [{'snippet': 'one'}, {'snippet': 'two'}, {'snippet': 'three'}]}
        with patch('kamcrm.services.context.requests.post', return_value=_response(payload)) as post:
            assert context.serper_news('acme', limit=2) == 'one two'
        assert post.call_args.kwargs['headers']['X-API-KEY'] == 'sp-key'

    def test_exa_search_prefers_highlights(self, keys):
        payload = {'results': [{'highlights': ['h1', 'h2']}, {'text': 'plain'}]}
        with patch('kamcrm.services.context.requests.post', return_value=_response(payload)):
            assert context.exa_search('acme') == 'h1 h2 plain'

    def test_exa_search_urls_filters(self, keys):
        payload = {'results': [{'url': 'https://acme.example/about'}, {'url': 'ftp://x'}, {}]}
        with patch('kamcrm.services.context.requests.post', return_value=_response(payload)):
            assert context.exa_search_urls('acme') == ['https://acme.example/about']

    def test_strict_raises(self, keys):
        with patch('kamcrm.services.context.requests.post', side_effect=requests.ConnectionError('down')):
            with pytest.raises(requests.ConnectionError):
                context.exa_contents(['https://acme.example'], strict=True)

    def test_summary_text(self):
        assert context.summary_text({'summary': {'text': 'nested'}}) == 'nested'
        assert context.summary_text({'summary': 'flat'}) == 'flat'
        assert context.summary_text({}) == ''


class TestBundles:

    def test_lead_context_without_keys(self, make_lead):
        lead = make_lead(website='https://acme.example')
        assert context.lead_context(lead) == {'news': '', 'website': '', 'profile': ''}

    def test_account_context_lists_opportunities(self, make_account, make_opportunity):
        account = make_account()
        opp = make_opportunity(account, name='POS refresh', status='In Progress', value=1200.0)
        ctx = context.account_context(account, [opp])
        assert ctx['opportunities'] == 'POS refresh (In Progress, value 1200.0)'
        assert ctx['news'] == ''
        assert ctx['industry'] == ''


class TestCompanySummary:

    NOW = datetime(2026, 3, 1, tzinfo=timezone.utc)

    def test_no_website(self, db_session, make_company):
        company = make_company(website='')
        assert context.refresh_company_summary(db_session, company) == ''

    def test_fresh_cache_reused(self, db_session, make_company):
        company = make_company(website_summary='Cached summary',
                               website_summary_refreshed_at=self.NOW - timedelta(hours=10))
        with patch('kamcrm.services.context.exa_contents') as contents:
            assert context.refresh_company_summary(db_session, company, now=self.NOW) == 'Cached summary'
        contents.assert_not_called()

    def test_stale_cache_recrawled(self, db_session, make_company):
        company = make_company(website_summary='Old',
                               website_summary_refreshed_at=self.NOW - timedelta(days=30))
        crawl = [{'summary': {'text': 'Main page.'}, 'subpages': [{'summary': 'About page.'}]}]
        with patch('kamcrm.services.context.exa_contents', return_value=crawl):
            summary = context.refresh_company_summary(db_session, company, now=self.NOW)
        assert summary == 'Main page.\nAbout page.'
        db_session.refresh(company)
        assert company.website_summary == 'Main page.\nAbout page.'

    def test_force_ignores_fresh_cache(self, db_session, make_company):
        company = make_company(website_summary='Cached', website_summary_refreshed_at=self.NOW)
        with patch('kamcrm.services.context.exa_contents', return_value=[{'text': 'Raw page text'}]):
            assert context.refresh_company_summary(db_session, company, force=True, now=self.NOW) == 'Raw page text'

    def test_failed_crawl_keeps_old_value(self, db_session, make_company):
        company = make_company(website_summary='Old', website_summary_refreshed_at=self.NOW - timedelta(days=30))
        with patch('kamcrm.services.context.exa_contents', return_value=[]):
            assert context.refresh_company_summary(db_session, company, now=self.NOW) == 'Old'

    def test_failed_save_rolls_back(self, db_session, make_company, failing_company_write):
        company = make_company(website_summary='Old', website_summary_refreshed_at=self.NOW - timedelta(days=30))
        with patch('kamcrm.services.context.exa_contents', return_value=[{'summary': 'New summary.'}]):
            with pytest.raises(PersistenceError):
                context.refresh_company_summary(db_session, company, now=self.NOW)
        # session is usable again and the row is unchanged
        db_session.refresh(company)
        assert company.website_summary == 'Old'
