"""
On-demand enrichment for a single lead or account.

POST /api/lead-enrichment     {"leadId": "...", "forceRefresh": false}
POST /api/account-enrichment  {"accountId": "...", "forceRefresh": false}

A fresh result (younger than the freshness window) is returned from the
store without calling the provider unless forceRefresh is true.
"""
import logging
from flask import Blueprint, request, jsonify

from kamcrm.database import get_session
from kamcrm.extensions import make_openrouter_client
from kamcrm.pipeline.base import get_adapter
from kamcrm.pipeline.enrichment import EnrichmentInvoker
from kamcrm.pipeline.entities import ADAPTERS
from kamcrm.pipeline.runner import enrich_single
from kamcrm.pipeline.settings import EnrichmentSettings
from kamcrm.services.circuit_breaker import get_breaker
from kamcrm.services.db import latest_success_record

logger = logging.getLogger('routes.enrichment')

bp = Blueprint('enrichment', __name__)


def _enrich(kind, id_key):
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return jsonify({'error': 'Invalid JSON in request body.'}), 400
    entity_id = data.get(id_key)
    if not entity_id:
        return jsonify({'error': f'{id_key} is required.'}), 400

    adapter = get_adapter(ADAPTERS, kind)
    session = get_session()
    try:
        entity = adapter.get_entity(session, entity_id)
        if entity is None:
            return jsonify({'error': f'{adapter.entity_type} not found.'}), 404

        if data.get('triggerEnrichment') is False:
            latest = latest_success_record(session, adapter.entity_type, entity.id)
            if latest is None:
                return jsonify({'error': 'No enrichment available yet.'}), 404
            return jsonify({**latest.to_dict(), 'cached': True})

        settings = EnrichmentSettings.load()
        invoker = EnrichmentInvoker(make_openrouter_client(), settings, breaker=get_breaker('openrouter'))
        record, cached = enrich_single(
            session, adapter, invoker, settings, entity,
            force_refresh=bool(data.get('forceRefresh')),
        )
        return jsonify({**record.to_dict(), 'cached': cached})
    finally:
        session.close()


@bp.route('/api/lead-enrichment', methods=['POST'])
def lead_enrichment():
    return _enrich('lead', 'leadId')


@bp.route('/api/account-enrichment', methods=['POST'])
def account_enrichment():
    return _enrich('account', 'accountId')
