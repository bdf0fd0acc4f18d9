"""Tests for kamcrm.services.records: archive / restore cascades and lead conversion."""
import pytest

from kamcrm.models.account import Account
from kamcrm.models.lead import Lead
from kamcrm.models.opportunity import Opportunity
from kamcrm.models.update import Update
from kamcrm.services.records import set_archived, convert_lead_to_account, ConversionError


class TestSetArchived:

    def test_archive_lead_and_its_updates(self, db_session, make_lead, make_update):
        lead = make_lead()
        other = make_lead(company_name='Other')
        make_update(lead_id=lead.id)
        make_update(lead_id=lead.id)
        make_update(lead_id=other.id)

        counts = set_archived(db_session, 'leads', [lead.id], user_id='user-9')
        assert counts == {'records': 1, 'updates': 2, 'opportunities': 0}

        db_session.expire_all()
        archived = db_session.get(Lead, lead.id)
        assert archived.is_archived is True
        assert archived.archived_by == 'user-9'
        assert archived.archived_at is not None
        assert db_session.get(Lead, other.id).is_archived is False

    def test_archive_account_cascades_to_opportunities(self, db_session, make_account, make_opportunity, make_update):
        account = make_account()
        opp = make_opportunity(account)
        make_update(account_id=account.id)
        make_update(opportunity_id=opp.id)

        counts = set_archived(db_session, 'accounts', [account.id])
        assert counts == {'records': 1, 'updates': 2, 'opportunities': 1}
        db_session.expire_all()
        assert db_session.get(Opportunity, opp.id).is_archived is True

    def test_restore_reverses_archive(self, db_session, make_account, make_opportunity, make_update):
        account = make_account()
        opp = make_opportunity(account)
        update = make_update(opportunity_id=opp.id)
        set_archived(db_session, 'accounts', [account.id], user_id='u1')

        counts = set_archived(db_session, 'accounts', [account.id], archived=False)
        assert counts == {'records': 1, 'updates': 1, 'opportunities': 1}
        db_session.expire_all()
        restored = db_session.get(Account, account.id)
        assert restored.is_archived is False
        assert restored.archived_by is None
        assert db_session.get(Update, update.id).is_archived is False

    def test_already_archived_not_counted(self, db_session, make_lead):
        lead = make_lead()
        set_archived(db_session, 'leads', [lead.id])
        assert set_archived(db_session, 'leads', [lead.id])['records'] == 0

    def test_unknown_kind(self, db_session):
        with pytest.raises(ValueError):
            set_archived(db_session, 'contacts', ['x'])

    def test_empty_ids(self, db_session):
        with pytest.raises(ValueError):
            set_archived(db_session, 'leads', ['', None])


class TestConvertLead:

    def test_creates_account_and_links_updates(self, db_session, make_lead, make_update, make_user):
        owner = make_user()
        lead = make_lead(company_name='Initech', person_name='Bill', website='https://initech.example',
                         owner_id=owner.id)
        update = make_update(lead_id=lead.id)

        account = convert_lead_to_account(db_session, lead, account_type='Channel Partner')

        assert account.name == 'Initech'
        assert account.type == 'Channel Partner'
        assert account.contact_person_name == 'Bill'
        assert account.owner_id == owner.id
        assert account.converted_from_lead_id == lead.id
        assert lead.status == 'Converted to Account'
        db_session.expire_all()
        assert db_session.get(Update, update.id).account_id == account.id

    def test_already_converted(self, db_session, make_lead):
        lead = make_lead(status='Converted to Account')
        with pytest.raises(ConversionError):
            convert_lead_to_account(db_session, lead)

    def test_archived_lead(self, db_session, make_lead):
        lead = make_lead(is_archived=True)
        with pytest.raises(ConversionError):
            convert_lead_to_account(db_session, lead)
