"""
Pytest Configuration and Fixtures

This module provides shared fixtures and in-memory fakes for all tests.
"""
import threading

import pytest

from etsy_sync import create_app
from etsy_sync.config import TestingConfig
from etsy_sync.exceptions import FileDownloadError, NodeNotFoundError, TransportError
from etsy_sync.extensions import db
from etsy_sync.services.sync.identity import TYPE_FILE, file_node_id
from etsy_sync.services.sync.node_store import NodeView
from etsy_sync.services.sync.request_scheduler import RequestScheduler
from etsy_sync.services.sync.etsy_client import EtsyClient

BASE_URL = 'https://etsy.test/v2'
SHOP_ID = 'TestShop'


@pytest.fixture(scope='function')
def app(tmp_path):
    """Create application for testing."""
    app = create_app(TestingConfig)
    app.config['MEDIA_PATH'] = str(tmp_path / 'media')

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


# ==================== In-memory fakes ====================

class FakeTransport:
    """Serves canned JSON bodies by URL path; records every request."""

    def __init__(self, routes=None):
        self.routes = dict(routes or {})
        self.calls = []
        self._lock = threading.Lock()

    def get_json(self, url, params=None):
        path = url[len(BASE_URL):] if url.startswith(BASE_URL) else url
        with self._lock:
            self.calls.append((path, dict(params or {})))
        body = self.routes.get(path)
        if isinstance(body, Exception):
            raise body
        if body is None:
            raise TransportError(f"GET {url} returned HTTP 404", url=url, status_code=404)
        return body

    def paths(self):
        with self._lock:
            return [path for path, _ in self.calls]


class FakeCache:
    def __init__(self):
        self.values = {}
        self.writes = []

    def get(self, key):
        return self.values.get(key)

    def set(self, key, value):
        self.values[key] = value
        self.writes.append(key)


class FakeNodeStore:
    """Node graph held in a dict, with per-operation call logs."""

    def __init__(self):
        self.nodes = {}
        self.created = []
        self.kept_alive = []
        self.links = []
        self._lock = threading.Lock()

    def resolve(self, node_id):
        with self._lock:
            return self.nodes.get(node_id)

    def create(self, node_id, parent_id, node_type, content_digest, payload):
        view = NodeView(node_id, node_type, parent_id, content_digest, dict(payload))
        with self._lock:
            self.nodes[node_id] = view
            self.created.append(node_id)
        return view

    def link(self, parent_id, child_id):
        with self._lock:
            if parent_id not in self.nodes or child_id not in self.nodes:
                raise NodeNotFoundError(f"Cannot link {child_id} under {parent_id}")
            self.links.append((parent_id, child_id))

    def keep_alive(self, node_id):
        with self._lock:
            self.kept_alive.append(node_id)
            return node_id in self.nodes

    def reset_calls(self):
        with self._lock:
            self.created.clear()
            self.kept_alive.clear()
            self.links.clear()


class FakeDownloader:
    """Creates File nodes without touching the network."""

    def __init__(self, node_store, fail_urls=()):
        self.node_store = node_store
        self.fail_urls = set(fail_urls)
        self.urls = []

    def materialize(self, source_url, parent_node_id):
        self.urls.append(source_url)
        if source_url in self.fail_urls:
            raise FileDownloadError(f"Failed to download {source_url}", url=source_url)
        node_id = file_node_id(parent_node_id, source_url)
        return self.node_store.create(node_id, parent_node_id, TYPE_FILE, 'digest', {'url': source_url})


def listing_payload(listing_id=42, marker=100, **fields):
    payload = {'listing_id': listing_id, 'title': f'Listing {listing_id}', 'last_modified_tsz': marker}
    payload.update(fields)
    return payload


def image_payload(image_id, listing_id=42):
    return {
        'listing_image_id': image_id,
        'listing_id': listing_id,
        'url_fullxfull': f'https://img.etsy.test/{listing_id}/{image_id}.jpg',
    }


def product_payload(product_id):
    return {'product_id': product_id, 'sku': f'SKU-{product_id}', 'is_deleted': 0}


def shop_routes(listings):
    """Routes for a shop whose listings are given as (payload, images, products)."""
    routes = {
        f'/shops/{SHOP_ID}/listings/active': {
            'count': len(listings),
            'results': [payload for payload, _, _ in listings],
            'pagination': {'next_offset': None},
        }
    }
    for payload, images, products in listings:
        listing_id = payload['listing_id']
        routes[f'/listings/{listing_id}/images'] = {'count': len(images), 'results': images}
        routes[f'/listings/{listing_id}/inventory'] = {'results': {'products': products}}
    return routes


def make_client(transport, **kwargs):
    scheduler = RequestScheduler(min_interval=0.0, max_concurrent=4, transport=transport)
    return EtsyClient(scheduler, api_key='test-api-key', shop_id=SHOP_ID, base_url=BASE_URL, **kwargs)


@pytest.fixture
def node_store():
    return FakeNodeStore()


@pytest.fixture
def cache():
    return FakeCache()


@pytest.fixture
def downloader(node_store):
    return FakeDownloader(node_store)


@pytest.fixture
def listing_42_routes():
    """Listing 42, marker 100, two images and one product."""
    return shop_routes([
        (listing_payload(42, 100), [image_payload(1), image_payload(2)], [product_payload(7)]),
    ])
