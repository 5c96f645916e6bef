"""
API Tests

Tests for REST API endpoints.
"""
import json
import os
from unittest.mock import patch

import pytest

from etsy_sync.exceptions import SyncAlreadyRunningError
from etsy_sync.extensions import db
from etsy_sync.models import Node, SyncRun


@pytest.fixture
def started_run(app):
    run = SyncRun(shop_id='TestShop', status='pending')
    db.session.add(run)
    db.session.commit()
    return run


@pytest.fixture
def sample_nodes(app):
    db.session.add_all([
        Node(id='etsy_listing_42', type='FeaturedEtsyListing', payload=json.dumps({'listing_id': 42})),
        Node(id='etsy_listing_42_image_1', type='EtsyListingImage', parent_id='etsy_listing_42'),
        Node(id='etsy_listing_42_product_7', type='EtsyListingInventory', parent_id='etsy_listing_42'),
        Node(id='etsy_listing_43', type='FeaturedEtsyListing'),
    ])
    db.session.commit()


class TestHealthCheck:
    """Tests for health check endpoint."""

    def test_health_check(self, client):
        """Test health check returns healthy status."""
        response = client.get('/api/health')

        assert response.status_code == 200
        data = json.loads(response.data)
        assert data['status'] == 'healthy'
        assert data['service'] == 'etsy-sync'


class TestStartSync:
    """Tests for POST /api/sync."""

    def test_start_sync(self, client, started_run):
        with patch('etsy_sync.api.sync.SyncService.start_sync', return_value=started_run) as start:
            response = client.post('/api/sync', json={'language': 'DE', 'limit': 50})

        assert response.status_code == 202
        data = json.loads(response.data)
        assert data['success'] is True
        assert data['data']['id'] == started_run.id
        start.assert_called_once_with(language='de', limit=50)

    def test_start_sync_without_body(self, client, started_run):
        with patch('etsy_sync.api.sync.SyncService.start_sync', return_value=started_run) as start:
            response = client.post('/api/sync')

        assert response.status_code == 202
        start.assert_called_once_with(language=None, limit=None)

    @pytest.mark.parametrize('body', [
        {'limit': 0},
        {'limit': 101},
        {'limit': 'many'},
        {'language': 'english'},
        {'language': 12},
    ])
    def test_invalid_input(self, client, body):
        with patch('etsy_sync.api.sync.SyncService.start_sync') as start:
            response = client.post('/api/sync', json=body)

        assert response.status_code == 400
        assert json.loads(response.data)['error']['code'] == 'VALIDATION_ERROR'
        start.assert_not_called()

    def test_already_running(self, client):
        with patch('etsy_sync.api.sync.SyncService.start_sync', side_effect=SyncAlreadyRunningError('busy')):
            response = client.post('/api/sync')

        assert response.status_code == 409
        assert json.loads(response.data)['error']['code'] == 'SYNC_RUNNING'

    def test_missing_credentials(self, client, app):
        app.config['ETSY_SHOP_ID'] = None

        response = client.post('/api/sync')

        assert response.status_code == 400
        assert json.loads(response.data)['error']['code'] == 'NOT_CONFIGURED'

    def test_requires_api_key_when_configured(self, client, app, started_run):
        app.config['API_KEY'] = 'secret'

        with patch('etsy_sync.api.sync.SyncService.start_sync', return_value=started_run):
            missing = client.post('/api/sync')
            wrong = client.post('/api/sync', headers={'X-API-Key': 'nope'})
            ok = client.post('/api/sync', headers={'X-API-Key': 'secret'})

        assert missing.status_code == 401
        assert wrong.status_code == 401
        assert ok.status_code == 202


class TestSyncRuns:
    """Tests for the run history endpoints."""

    def test_list_runs(self, client, started_run):
        db.session.add(SyncRun(shop_id='TestShop', status='completed'))
        db.session.commit()

        response = client.get('/api/sync/runs')

        assert response.status_code == 200
        data = json.loads(response.data)['data']
        assert data['total'] == 2
        assert data['items'][0]['status'] == 'completed'
        assert data['running'] is False

    def test_list_runs_by_status(self, client, started_run):
        response = client.get('/api/sync/runs?status=pending')

        data = json.loads(response.data)['data']
        assert [item['id'] for item in data['items']] == [started_run.id]

    def test_invalid_pagination(self, client):
        assert client.get('/api/sync/runs?page=0').status_code == 400
        assert client.get('/api/sync/runs?page_size=abc').status_code == 400

    def test_get_run(self, client, started_run):
        started_run.sync_logs = json.dumps({'summary': {'total': 1}, 'issues': [{'type': 'malformed'}]})
        db.session.commit()

        response = client.get(f'/api/sync/runs/{started_run.id}')

        assert response.status_code == 200
        assert json.loads(response.data)['data']['sync_logs']['issues'] == [{'type': 'malformed'}]

    def test_get_run_not_found(self, client):
        assert client.get('/api/sync/runs/99999').status_code == 404

    def test_run_issues(self, client, started_run):
        started_run.sync_logs = json.dumps({'issues': [
            {'type': 'fetch_failed', 'listing_id': 1},
            {'type': 'malformed', 'listing_id': 2},
        ]})
        db.session.commit()

        response = client.get(f'/api/sync/runs/{started_run.id}/issues?type=malformed')

        data = json.loads(response.data)['data']
        assert data['total'] == 1
        assert data['issues'][0]['listing_id'] == 2

    def test_stream_status(self, client):
        response = client.get('/api/sync/stream/status')

        assert response.status_code == 200
        assert 'subscriber_count' in json.loads(response.data)['data']


class TestNodesAPI:
    """Tests for the node graph endpoints."""

    def test_list_nodes(self, client, sample_nodes):
        response = client.get('/api/nodes')

        assert response.status_code == 200
        assert json.loads(response.data)['data']['total'] == 4

    def test_filter_by_type(self, client, sample_nodes):
        response = client.get('/api/nodes?type=FeaturedEtsyListing')

        ids = [item['id'] for item in json.loads(response.data)['data']['items']]
        assert ids == ['etsy_listing_42', 'etsy_listing_43']

    def test_filter_by_parent(self, client, sample_nodes):
        response = client.get('/api/nodes?parent_id=etsy_listing_42')

        assert json.loads(response.data)['data']['total'] == 2

    def test_unknown_type(self, client):
        assert client.get('/api/nodes?type=Review').status_code == 400

    def test_get_node(self, client, sample_nodes):
        response = client.get('/api/nodes/etsy_listing_42')

        data = json.loads(response.data)['data']
        assert data['payload'] == {'listing_id': 42}
        assert data['children'] == ['etsy_listing_42_image_1', 'etsy_listing_42_product_7']

    def test_get_node_not_found(self, client):
        assert client.get('/api/nodes/etsy_listing_0').status_code == 404


class TestMedia:
    """Tests for GET /api/media/<filename>."""

    def test_serve_file(self, client, app):
        os.makedirs(app.config['MEDIA_PATH'], exist_ok=True)
        with open(os.path.join(app.config['MEDIA_PATH'], 'a.jpg'), 'wb') as f:
            f.write(b'jpeg')

        response = client.get('/api/media/a.jpg')

        assert response.status_code == 200
        assert response.data == b'jpeg'
        response.close()

    def test_missing_file(self, client):
        assert client.get('/api/media/missing.jpg').status_code == 404
