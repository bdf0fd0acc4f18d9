"""Tests for kamcrm.pipeline.base and kamcrm.pipeline.entities: adapters and BatchResult."""
import pytest
from unittest.mock import patch

from kamcrm.pipeline.base import BatchResult, EntityAdapter, get_adapter
from kamcrm.pipeline.entities import ADAPTERS, LeadAdapter, AccountAdapter


class TestBatchResult:

    def test_to_dict(self):
        result = BatchResult(job_name='lead_enrichment_cron', status='completed', total=3, processed=2, errors=1)
        assert result.to_dict() == {
            'job_name': 'lead_enrichment_cron', 'status': 'completed', 'total': 3,
            'processed': 2, 'skipped': 0, 'errors': 1, 'error_messages': [],
        }

    def test_error_messages_not_shared(self):
        a = BatchResult(job_name='a', status='completed')
        a.error_messages.append('x')
        assert BatchResult(job_name='b', status='completed').error_messages == []


class TestGetAdapter:

    def test_known_kinds(self):
        assert isinstance(get_adapter(ADAPTERS, 'lead'), LeadAdapter)
        assert isinstance(get_adapter(ADAPTERS, 'account'), AccountAdapter)

    def test_unknown_kind(self):
        with pytest.raises(ValueError, match='contact'):
            get_adapter(ADAPTERS, 'contact')

    def test_abstract_base(self):
        with pytest.raises(TypeError):
            EntityAdapter()


class TestLeadAdapter:

    def test_fetch_excludes_archived(self, db_session, make_lead):
        kept = make_lead()
        make_lead(company_name='Archived', is_archived=True)
        assert [l.id for l in LeadAdapter().fetch_entities(db_session)] == [kept.id]

    def test_fetch_orders_by_updated_at(self, db_session, make_lead):
        from datetime import datetime, timezone
        newer = make_lead(company_name='Newer', updated_at=datetime(2026, 2, 1, tzinfo=timezone.utc))
        older = make_lead(company_name='Older', updated_at=datetime(2026, 1, 1, tzinfo=timezone.utc))
        assert [l.id for l in LeadAdapter().fetch_entities(db_session)] == [older.id, newer.id]

    def test_describe_fills_na(self, make_lead):
        lead = make_lead(job_title='', website=None)
        profile = LeadAdapter().describe(lead)
        assert profile['Company'] == 'Acme Corp'
        assert profile['Job title'] == 'N/A'
        assert profile['Website'] == 'N/A'

    def test_get_entity_and_label(self, db_session, make_lead):
        lead = make_lead()
        adapter = LeadAdapter()
        assert adapter.get_entity(db_session, lead.id) is lead
        assert adapter.get_entity(db_session, 'missing') is None
        assert adapter.label(lead) == f'Acme Corp ({lead.id})'

    def test_owner_id(self, make_lead, make_user):
        owner = make_user()
        assert LeadAdapter().owner_id(make_lead(owner_id=owner.id)) == owner.id


class TestAccountAdapter:

    def test_context_includes_open_opportunities(self, db_session, make_account, make_opportunity):
        account = make_account()
        open_opp = make_opportunity(account, name='Open deal')
        make_opportunity(account, name='Old deal', is_archived=True)
        with patch('kamcrm.services.context.account_context', return_value={'opportunities': 'x'}) as ctx:
            assert AccountAdapter().gather_context(db_session, account) == {'opportunities': 'x'}
        passed = ctx.call_args.args[1]
        assert [o.id for o in passed] == [open_opp.id]

    def test_describe(self, make_account):
        profile = AccountAdapter().describe(make_account(contact_person_name='Hank'))
        assert profile['Name'] == 'Globex'
        assert profile['Primary contact'] == 'Hank'
        assert profile['Description'] == 'N/A'
