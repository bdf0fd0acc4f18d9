"""Tests for kamcrm.routes.outreach: the send-email endpoint."""
import pytest
from unittest.mock import patch

from kamcrm.errors import ConfigurationError
from kamcrm.services.mailer import EmailDeliveryError


@pytest.fixture
def send():
    with patch('kamcrm.routes.outreach.send_email') as mock_send:
        yield mock_send


class TestSendEmail:

    def test_sends(self, client, send):
        resp = client.post('/api/send-email', json={
            'to': 'jordan@acme.example', 'subject': 'Less downtime', 'body': 'Hi Jordan,',
        })
        assert resp.status_code == 200
        assert resp.get_json() == {'success': True}
        send.assert_called_once_with('jordan@acme.example', 'Less downtime', 'Hi Jordan,')

    def test_subject_taken_from_template(self, client, send):
        resp = client.post('/api/send-email', json={
            'to': 'jordan@acme.example', 'body': 'Subject: Less downtime\n\nHi Jordan,',
        })
        assert resp.status_code == 200
        send.assert_called_once_with('jordan@acme.example', 'Less downtime', 'Hi Jordan,')

    @pytest.mark.parametrize('payload', [
        {'subject': 'Hello', 'body': 'Hi'},
        {'to': 'jordan@acme.example', 'body': 'Hi Jordan, no subject line'},
        {'to': 'jordan@acme.example', 'subject': 'Hello'},
    ])
    def test_missing_fields(self, client, send, payload):
        resp = client.post('/api/send-email', json=payload)
        assert resp.status_code == 400
        send.assert_not_called()

    def test_invalid_recipient(self, client, send):
        resp = client.post('/api/send-email', json={'to': 'jordan', 'subject': 'Hello', 'body': 'Hi'})
        assert resp.status_code == 400
        send.assert_not_called()

    def test_invalid_json(self, client, send):
        resp = client.post('/api/send-email', data='nope', content_type='application/json')
        assert resp.status_code == 400

    def test_missing_smtp_configuration_is_500(self, client, send):
        send.side_effect = ConfigurationError('SMTP configuration is missing in environment variables.')
        resp = client.post('/api/send-email', json={'to': 'jordan@acme.example', 'subject': 'Hello', 'body': 'Hi'})
        assert resp.status_code == 500
        assert 'SMTP' in resp.get_json()['error']

    def test_delivery_failure_is_502(self, client, send):
        send.side_effect = EmailDeliveryError('535 bad credentials')
        resp = client.post('/api/send-email', json={'to': 'jordan@acme.example', 'subject': 'Hello', 'body': 'Hi'})
        assert resp.status_code == 502
        assert '535' in resp.get_json()['error']
