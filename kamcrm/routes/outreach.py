"""
Outreach email endpoint.

POST /api/send-email  {"to": "...", "subject": "...", "body": "..."}

subject may be omitted when body is an AI email template whose first line
is 'Subject: ...'.
"""
import logging
from flask import Blueprint, request, jsonify

from kamcrm.services.mailer import send_email, split_template, EmailDeliveryError

logger = logging.getLogger('routes.outreach')

bp = Blueprint('outreach', __name__)


@bp.route('/api/send-email', methods=['POST'])
def send():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return jsonify({'error': 'Invalid JSON in request body.'}), 400

    to = (data.get('to') or '').strip()
    subject = (data.get('subject') or '').strip()
    body = (data.get('body') or '').strip()
    if body and not subject:
        subject, body = split_template(body)
    if not to or not subject or not body:
        return jsonify({'error': 'Missing required fields'}), 400
    if '@' not in to:
        return jsonify({'error': f'Invalid recipient: {to}'}), 400

    try:
        send_email(to, subject, body)
    except EmailDeliveryError as e:
        return jsonify({'error': str(e)}), 502
    return jsonify({'success': True})
