"""Tests for kamcrm.routes.records: archive / restore and lead conversion endpoints."""
from kamcrm.models.lead import Lead


class TestArchiveRoutes:

    def test_unknown_kind(self, client):
        assert client.post('/api/contacts/archive', json={'ids': ['x']}).status_code == 404

    def test_ids_required(self, client):
        assert client.post('/api/leads/archive', json={}).status_code == 400
        assert client.post('/api/leads/archive', json={'ids': []}).status_code == 400

    def test_archive_and_restore(self, client, db_session, make_lead, make_update):
        lead = make_lead()
        make_update(lead_id=lead.id)

        resp = client.post('/api/leads/archive', json={'ids': [lead.id], 'userId': 'u-1'})
        assert resp.get_json() == {'ok': True, 'records': 1, 'updates': 1, 'opportunities': 0}
        db_session.expire_all()
        assert db_session.get(Lead, lead.id).archived_by == 'u-1'

        resp = client.post('/api/leads/restore', json={'ids': lead.id})
        assert resp.get_json()['records'] == 1
        db_session.expire_all()
        assert db_session.get(Lead, lead.id).is_archived is False


class TestConvertRoute:

    def test_invalid_type(self, client, make_lead):
        lead = make_lead()
        assert client.post(f'/api/leads/{lead.id}/convert', json={'accountType': 'Vendor'}).status_code == 400

    def test_unknown_lead(self, client):
        assert client.post('/api/leads/nope/convert', json={}).status_code == 404

    def test_convert(self, client, make_lead):
        lead = make_lead(company_name='Initech')
        resp = client.post(f'/api/leads/{lead.id}/convert', json={'accountType': 'Client'})
        assert resp.status_code == 201
        body = resp.get_json()
        assert body['account']['name'] == 'Initech'
        assert body['account']['convertedFromLeadId'] == lead.id
        assert body['lead']['status'] == 'Converted to Account'

    def test_convert_twice_conflicts(self, client, make_lead):
        lead = make_lead()
        client.post(f'/api/leads/{lead.id}/convert', json={})
        assert client.post(f'/api/leads/{lead.id}/convert', json={}).status_code == 409
