"""
Archive / restore of leads, accounts and opportunities, and lead conversion.

Archiving flags the record and every non-archived activity update attached
to it. Archiving an account also archives its opportunities. Restoring
reverses exactly that. Rows are never deleted.
"""
import logging
from datetime import datetime, timezone

from sqlalchemy import update as sa_update, select
from sqlalchemy.exc import SQLAlchemyError

from kamcrm.errors import PersistenceError
from kamcrm.models.account import Account
from kamcrm.models.lead import Lead
from kamcrm.models.opportunity import Opportunity
from kamcrm.models.update import Update

logger = logging.getLogger('services.records')

MODELS = {
    'leads': (Lead, Update.lead_id),
    'accounts': (Account, Update.account_id),
    'opportunities': (Opportunity, Update.opportunity_id),
}

CLOSED_LEAD_STATUSES = ('Converted to Account', 'Lost')


class ConversionError(ValueError):
    """The lead cannot be converted in its current state."""


def _set_archived(session, model, column, ids, archived, user_id, now):
    values = {
        'is_archived': archived,
        'archived_at': now if archived else None,
        'archived_by': user_id if archived else None,
    }
    return session.execute(
        sa_update(model)
        .where(column.in_(ids), model.is_archived.is_(not archived))
        .values(**values)
        .execution_options(synchronize_session=False)
    ).rowcount


def set_archived(session, kind, ids, archived=True, user_id=None, now=None):
    """
    Archive (or restore) records of kind 'leads' | 'accounts' | 'opportunities'.

    Returns {'records': n, 'updates': n, 'opportunities': n} counts.
    ValueError for an unknown kind or an empty id list.
    """
    if kind not in MODELS:
        raise ValueError(f"Unknown record kind '{kind}'")
    ids = [i for i in (ids or []) if i]
    if not ids:
        raise ValueError("No ids given")

    model, update_fk = MODELS[kind]
    now = now or datetime.now(timezone.utc)
    counts = {'records': 0, 'updates': 0, 'opportunities': 0}
    try:
        if kind == 'accounts':
            opp_ids = session.execute(
                select(Opportunity.id).where(Opportunity.account_id.in_(ids))
            ).scalars().all()
            if opp_ids:
                counts['opportunities'] = _set_archived(session, Opportunity, Opportunity.id, opp_ids, archived, user_id, now)
                counts['updates'] += _set_archived(session, Update, Update.opportunity_id, opp_ids, archived, user_id, now)

        counts['updates'] += _set_archived(session, Update, update_fk, ids, archived, user_id, now)
        counts['records'] = _set_archived(session, model, model.id, ids, archived, user_id, now)
        session.commit()
    except SQLAlchemyError as e:
        session.rollback()
        raise PersistenceError(f"{'Archiving' if archived else 'Restoring'} {kind} failed: {e}") from e

    logger.info("%s %d %s (%d updates, %d opportunities)",
                'Archived' if archived else 'Restored', counts['records'], kind,
                counts['updates'], counts['opportunities'])
    return counts


def convert_lead_to_account(session, lead, account_type='Client'):
    """
    Create an Account from a lead and mark the lead converted.

    The lead's activity updates are linked to the new account as well.
    """
    if lead.status in CLOSED_LEAD_STATUSES:
        raise ConversionError(f"Lead is already '{lead.status}'")
    if lead.is_archived:
        raise ConversionError("Archived leads cannot be converted")

    try:
        account = Account(
            name=lead.company_name,
            type=account_type,
            status='Active',
            contact_person_name=lead.person_name or '',
            contact_email=lead.email or '',
            contact_phone=lead.phone or '',
            industry=lead.industry or '',
            website=lead.website or '',
            country=lead.country or '',
            owner_id=lead.owner_id,
            converted_from_lead_id=lead.id,
        )
        session.add(account)
        session.flush()

        session.execute(
            sa_update(Update)
            .where(Update.lead_id == lead.id, Update.account_id.is_(None))
            .values(account_id=account.id)
            .execution_options(synchronize_session=False)
        )
        lead.status = 'Converted to Account'
        session.commit()
    except SQLAlchemyError as e:
        session.rollback()
        raise PersistenceError(f"Converting lead {lead.id} failed: {e}") from e

    logger.info("Lead %s converted to account %s", lead.id, account.id)
    return account
