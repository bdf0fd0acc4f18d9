"""
Lead and account adapters for the enrichment runner.
"""
import logging

from sqlalchemy import select

from kamcrm.config import JOB_NAMES
from kamcrm.models.account import Account
from kamcrm.models.lead import Lead
from kamcrm.models.opportunity import Opportunity
from kamcrm.pipeline.base import EntityAdapter
from kamcrm.services import context

logger = logging.getLogger('pipeline.entities')


class LeadAdapter(EntityAdapter):
    entity_type = 'Lead'
    job_name = JOB_NAMES['Lead']

    def fetch_entities(self, session):
        return session.execute(
            select(Lead)
            .where(Lead.is_archived.is_(False))
            .order_by(Lead.updated_at, Lead.id)
        ).scalars().all()

    def get_entity(self, session, entity_id):
        return session.get(Lead, entity_id)

    def describe(self, lead):
        return {
            'Name': lead.person_name or 'N/A',
            'Company': lead.company_name or 'N/A',
            'Job title': lead.job_title or 'N/A',
            'Industry': lead.industry or 'N/A',
            'Country': lead.country or 'N/A',
            'Website': lead.website or 'N/A',
            'Status': lead.status,
        }

    def gather_context(self, session, lead):
        return context.lead_context(lead)

    def label(self, lead):
        return f"{lead.company_name} ({lead.id})"


class AccountAdapter(EntityAdapter):
    entity_type = 'Account'
    job_name = JOB_NAMES['Account']

    def fetch_entities(self, session):
        return session.execute(
            select(Account)
            .where(Account.is_archived.is_(False), Account.status != 'Inactive')
            .order_by(Account.updated_at, Account.id)
        ).scalars().all()

    def get_entity(self, session, entity_id):
        return session.get(Account, entity_id)

    def describe(self, account):
        return {
            'Name': account.name,
            'Type': account.type,
            'Status': account.status,
            'Industry': account.industry or 'N/A',
            'Country': account.country or 'N/A',
            'Website': account.website or 'N/A',
            'Description': account.description or 'N/A',
            'Primary contact': account.contact_person_name or 'N/A',
        }

    def gather_context(self, session, account):
        opportunities = session.execute(
            select(Opportunity).where(
                Opportunity.account_id == account.id,
                Opportunity.is_archived.is_(False),
            )
        ).scalars().all()
        return context.account_context(account, opportunities)

    def label(self, account):
        return f"{account.name} ({account.id})"


ADAPTERS = {
    'lead': LeadAdapter,
    'account': AccountAdapter,
}
