"""
Record lifecycle endpoints: archive / restore and lead conversion.
"""
import logging
from flask import Blueprint, request, jsonify

from kamcrm.database import get_session
from kamcrm.models.lead import Lead
from kamcrm.services.records import set_archived, convert_lead_to_account, ConversionError, MODELS

logger = logging.getLogger('routes.records')

bp = Blueprint('records', __name__)


def _change_archive(kind, archived):
    if kind not in MODELS:
        return jsonify({'error': f'Unknown record kind: {kind}'}), 404
    data = request.get_json(silent=True) or {}
    ids = data.get('ids')
    if isinstance(ids, str):
        ids = [ids]
    if not isinstance(ids, list) or not ids:
        return jsonify({'error': 'ids must be a non-empty list.'}), 400

    session = get_session()
    try:
        counts = set_archived(session, kind, ids, archived=archived, user_id=data.get('userId'))
        return jsonify({'ok': True, **counts})
    finally:
        session.close()


@bp.route('/api/<kind>/archive', methods=['POST'])
def archive(kind):
    return _change_archive(kind, True)


@bp.route('/api/<kind>/restore', methods=['POST'])
def restore(kind):
    return _change_archive(kind, False)


@bp.route('/api/leads/<lead_id>/convert', methods=['POST'])
def convert_lead(lead_id):
    data = request.get_json(silent=True) or {}
    account_type = data.get('accountType', 'Client')
    if account_type not in ('Client', 'Channel Partner'):
        return jsonify({'error': f'Invalid account type: {account_type}'}), 400

    session = get_session()
    try:
        lead = session.get(Lead, lead_id)
        if lead is None:
            return jsonify({'error': 'Lead not found.'}), 404
        try:
            account = convert_lead_to_account(session, lead, account_type=account_type)
        except ConversionError as e:
            return jsonify({'error': str(e)}), 409
        return jsonify({'account': account.to_dict(), 'lead': lead.to_dict()}), 201
    finally:
        session.close()
