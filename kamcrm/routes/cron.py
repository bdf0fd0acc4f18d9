"""
Scheduler triggers: authenticated with `Authorization: Bearer <CRON_SECRET>`.

The batch itself runs on the RQ worker; these endpoints only enqueue it.
"""
import hmac
import logging
from flask import Blueprint, request, jsonify

from kamcrm import config
from kamcrm.pipeline.runner import launch_job

logger = logging.getLogger('routes.cron')

bp = Blueprint('cron', __name__)


def _authorized():
    if not config.CRON_SECRET:
        logger.error("CRON_SECRET is not set; rejecting cron trigger")
        return False
    expected = f'Bearer {config.CRON_SECRET}'
    return hmac.compare_digest(request.headers.get('Authorization', ''), expected)


def _trigger(kind):
    if not _authorized():
        return jsonify({'error': 'Unauthorized'}), 401
    result = launch_job(kind)
    if result['status'] == 'skipped':
        return jsonify(result), 200
    return jsonify(result), 202


@bp.route('/api/cron/lead-enrichment')
def cron_lead_enrichment():
    return _trigger('lead')


@bp.route('/api/cron/account-enrichment')
def cron_account_enrichment():
    return _trigger('account')
