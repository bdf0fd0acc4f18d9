"""
Monitor routes: job flags, provider health, liveness.
"""
from flask import Blueprint, jsonify

from kamcrm.database import get_session
from kamcrm.services.circuit_breaker import get_all_breakers
from kamcrm.services.db import list_jobs, reset_job

bp = Blueprint('monitor', __name__)


@bp.route('/health')
def health():
    return jsonify({'status': 'ok'})


@bp.route('/api/jobs')
def jobs():
    """Advisory flag rows for every enrichment job that has ever run."""
    session = get_session()
    try:
        return jsonify({'jobs': [job.to_dict() for job in list_jobs(session)]})
    finally:
        session.close()


@bp.route('/api/jobs/<job_name>/reset', methods=['POST'])
def reset(job_name):
    """Clear a 'running' flag left behind by a killed run."""
    session = get_session()
    try:
        job = reset_job(session, job_name)
        if job is None:
            return jsonify({'error': f'Unknown job: {job_name}'}), 404
        return jsonify({'ok': True, 'job': job.to_dict()})
    finally:
        session.close()


@bp.route('/api/health')
def api_health():
    """Circuit breaker state and counters per external provider."""
    breakers = get_all_breakers()
    return jsonify({'services': {name: cb.get_health() for name, cb in breakers.items()}})


@bp.route('/api/health/<service>/reset', methods=['POST'])
def reset_circuit(service):
    breakers = get_all_breakers()
    if service not in breakers:
        return jsonify({'error': f'Unknown service: {service}'}), 404
    breakers[service].reset()
    return jsonify({'ok': True, 'service': service, 'state': breakers[service].state})
