"""Tests for kamcrm.routes.cron: bearer-secret scheduler triggers."""
from unittest.mock import patch

import pytest

SECRET = 'cron-secret-123'


@pytest.fixture
def secret():
    with patch('kamcrm.config.CRON_SECRET', SECRET):
        yield SECRET


class TestCronAuth:

    def test_missing_header(self, client, secret):
        assert client.get('/api/cron/lead-enrichment').status_code == 401

    def test_wrong_secret(self, client, secret):
        resp = client.get('/api/cron/lead-enrichment', headers={'Authorization': 'Bearer wrong'})
        assert resp.status_code == 401

    def test_unset_secret_rejects_everything(self, client):
        with patch('kamcrm.config.CRON_SECRET', None):
            resp = client.get('/api/cron/lead-enrichment', headers={'Authorization': 'Bearer None'})
        assert resp.status_code == 401


class TestCronTrigger:

    def test_queued(self, client, secret):
        launched = {'status': 'queued', 'job_name': 'lead_enrichment_cron', 'job_id': 'rq-1'}
        with patch('kamcrm.routes.cron.launch_job', return_value=launched) as launch:
            resp = client.get('/api/cron/lead-enrichment', headers={'Authorization': f'Bearer {secret}'})
        assert resp.status_code == 202
        assert resp.get_json()['job_id'] == 'rq-1'
        launch.assert_called_once_with('lead')

    def test_skipped_when_running(self, client, secret):
        skipped = {'status': 'skipped', 'job_name': 'account_enrichment_cron', 'reason': 'already running'}
        with patch('kamcrm.routes.cron.launch_job', return_value=skipped) as launch:
            resp = client.get('/api/cron/account-enrichment', headers={'Authorization': f'Bearer {secret}'})
        assert resp.status_code == 200
        assert resp.get_json()['status'] == 'skipped'
        launch.assert_called_once_with('account')
