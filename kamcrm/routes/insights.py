"""
AI insight endpoints: forecasting, card OCR, summaries, company descriptions.
"""
import logging
from flask import Blueprint, request, jsonify
from sqlalchemy import select

from kamcrm.database import get_session
from kamcrm.extensions import make_openrouter_client
from kamcrm.models.account import Account
from kamcrm.models.opportunity import Opportunity
from kamcrm.models.update import Update
from kamcrm.pipeline.settings import EnrichmentSettings
from kamcrm.services import insights
from kamcrm.services.circuit_breaker import get_breaker
from kamcrm.services.context import refresh_company_summary
from kamcrm.services.db import get_company

logger = logging.getLogger('routes.insights')

bp = Blueprint('insights', __name__)

RECENT_UPDATES = 10


def _json_body():
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def _recent_updates(session, **filters):
    column, value = next(iter(filters.items()))
    rows = session.execute(
        select(Update)
        .where(getattr(Update, column) == value, Update.is_archived.is_(False))
        .order_by(Update.date.desc())
        .limit(RECENT_UPDATES)
    ).scalars().all()
    return '\n'.join(f"[{u.type}] {u.content}" for u in rows)


@bp.route('/api/opportunities/<opportunity_id>/forecast', methods=['POST'])
def forecast(opportunity_id):
    session = get_session()
    try:
        opportunity = session.get(Opportunity, opportunity_id)
        if opportunity is None:
            return jsonify({'error': 'Opportunity not found.'}), 404
        updates = _recent_updates(session, opportunity_id=opportunity.id)
        result = insights.forecast_opportunity(
            make_openrouter_client(), opportunity, updates,
            EnrichmentSettings.load(), breaker=get_breaker('openrouter'),
        )
        return jsonify(result)
    finally:
        session.close()


@bp.route('/api/extract-lead-from-card', methods=['POST'])
def extract_lead_from_card():
    data = _json_body()
    image = data.get('imageDataUri')
    if not image:
        return jsonify({'error': 'imageDataUri is required.'}), 400
    extracted = insights.extract_lead_from_card(
        make_openrouter_client(), image, breaker=get_breaker('openrouter'),
    )
    if extracted is None:
        return jsonify({'error': 'Could not extract lead details from the image.', 'lead': None}), 422
    return jsonify({'lead': extracted})


@bp.route('/api/accounts/<account_id>/daily-summary', methods=['POST'])
def daily_summary(account_id):
    session = get_session()
    try:
        account = session.get(Account, account_id)
        if account is None:
            return jsonify({'error': 'Account not found.'}), 404
        opportunities = session.execute(
            select(Opportunity).where(Opportunity.account_id == account.id, Opportunity.is_archived.is_(False))
        ).scalars().all()
        metrics = (
            f"{len(opportunities)} open opportunities, "
            f"total value {sum(o.value or 0 for o in opportunities):.2f}"
        )
        updates = _recent_updates(session, account_id=account.id)
        result = insights.daily_account_summary(
            make_openrouter_client(), account.name, updates, _json_body().get('keyMetrics') or metrics,
            EnrichmentSettings.load(), breaker=get_breaker('openrouter'),
        )
        return jsonify(result)
    finally:
        session.close()


@bp.route('/api/insights', methods=['POST'])
def communication_insights():
    history = _json_body().get('communicationHistory')
    if not isinstance(history, str):
        return jsonify({'error': 'communicationHistory is required.'}), 400
    result = insights.generate_insights(
        make_openrouter_client(), history, EnrichmentSettings.load(), breaker=get_breaker('openrouter'),
    )
    return jsonify(result)


@bp.route('/api/company-description', methods=['POST'])
def company_description():
    data = _json_body()
    name, website = data.get('name'), data.get('website')
    if not name and not website:
        return jsonify({'error': 'Missing company name or website.'}), 400
    description = insights.company_description(
        make_openrouter_client(), name, website, data.get('industry'),
        EnrichmentSettings.load(), breaker=get_breaker('openrouter'),
    )
    return jsonify({'description': description})


@bp.route('/api/website-analysis', methods=['POST'])
def website_analysis():
    website = _json_body().get('website')
    try:
        result = insights.analyze_website(website)
    except ValueError as e:
        return jsonify({'error': str(e), 'success': False}), 400
    return jsonify(result)


@bp.route('/api/company-summary-refresh', methods=['POST'])
def company_summary_refresh():
    force = _json_body().get('forceRefresh') is True or request.args.get('forceRefresh') == 'true'
    session = get_session()
    try:
        company = get_company(session)
        if company is None:
            return jsonify({'error': 'No company found'}), 404
        summary = refresh_company_summary(session, company, force=force)
        return jsonify({'summary': summary})
    finally:
        session.close()
