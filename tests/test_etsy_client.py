"""
Etsy Client Tests

Tests for URL building, envelope decoding and error mapping.
"""
import pytest

from etsy_sync.exceptions import ChildFetchError, TopLevelFetchError, TransportError
from etsy_sync.services.sync.records import KIND_IMAGE, KIND_LISTING, KIND_PRODUCT

from conftest import (
    SHOP_ID, FakeTransport, image_payload, listing_payload, make_client, shop_routes,
)


class TestFetchListings:
    """Tests for the top-level listings fetch."""

    def test_fetch_listings(self, listing_42_routes):
        transport = FakeTransport(listing_42_routes)
        client = make_client(transport)

        listings = client.fetch_listings()

        assert len(listings) == 1
        listing = listings[0]
        assert listing.kind == KIND_LISTING
        assert listing.record_id == 42
        assert listing.modification_marker == 100
        path, params = transport.calls[0]
        assert path == f'/shops/{SHOP_ID}/listings/active'
        assert params['api_key'] == 'test-api-key'
        assert params['limit'] == 25
        assert 'language' not in params

    def test_language_and_limit_are_sent(self, listing_42_routes):
        transport = FakeTransport(listing_42_routes)
        client = make_client(transport, language='de', limit=50)

        client.fetch_listings()

        _, params = transport.calls[0]
        assert params['language'] == 'de'
        assert params['limit'] == 50

    def test_transport_failure_is_top_level_error(self):
        transport = FakeTransport({
            f'/shops/{SHOP_ID}/listings/active': TransportError('HTTP 503', status_code=503),
        })
        client = make_client(transport)

        with pytest.raises(TopLevelFetchError):
            client.fetch_listings()

    def test_missing_results_is_top_level_error(self):
        transport = FakeTransport({f'/shops/{SHOP_ID}/listings/active': {'count': 0}})
        client = make_client(transport)

        with pytest.raises(TopLevelFetchError):
            client.fetch_listings()

    def test_non_json_body_is_top_level_error(self):
        transport = FakeTransport({f'/shops/{SHOP_ID}/listings/active': 'not json'})
        client = make_client(transport)

        with pytest.raises(TopLevelFetchError):
            client.fetch_listings()

    def test_listing_without_id_is_top_level_error(self):
        transport = FakeTransport({
            f'/shops/{SHOP_ID}/listings/active': {'results': [{'title': 'no id'}]},
        })
        client = make_client(transport)

        with pytest.raises(TopLevelFetchError):
            client.fetch_listings()

    def test_follows_pagination(self):
        class PagedTransport(FakeTransport):
            def get_json(self, url, params=None):
                self.calls.append((url, dict(params or {})))
                if params.get('offset') is None:
                    return {'results': [listing_payload(1)], 'pagination': {'next_offset': 25}}
                return {'results': [listing_payload(2)], 'pagination': {'next_offset': None}}

        transport = PagedTransport()
        client = make_client(transport, max_pages=3)

        listings = client.fetch_listings()

        assert [listing.record_id for listing in listings] == [1, 2]
        assert len(transport.calls) == 2
        assert transport.calls[1][1]['offset'] == 25

    def test_stops_at_max_pages(self):
        class EndlessTransport(FakeTransport):
            def get_json(self, url, params=None):
                self.calls.append((url, dict(params or {})))
                return {'results': [listing_payload(len(self.calls))], 'pagination': {'next_offset': 99}}

        transport = EndlessTransport()
        client = make_client(transport, max_pages=2)

        assert len(client.fetch_listings()) == 2
        assert len(transport.calls) == 2

    def test_listing_repeated_across_pages_is_kept_once(self):
        class ShiftingTransport(FakeTransport):
            def get_json(self, url, params=None):
                self.calls.append((url, dict(params or {})))
                if params.get('offset') is None:
                    return {'results': [listing_payload(42)], 'pagination': {'next_offset': 1}}
                return {'results': [listing_payload(42, marker=200), listing_payload(43)],
                        'pagination': {'next_offset': None}}

        client = make_client(ShiftingTransport(), max_pages=2)

        listings = client.fetch_listings()

        assert [listing.record_id for listing in listings] == [42, 43]
        assert listings[0].modification_marker == 100

    def test_same_page_served_twice_yields_each_listing_once(self):
        class RepeatingTransport(FakeTransport):
            def get_json(self, url, params=None):
                self.calls.append((url, dict(params or {})))
                return {'results': [listing_payload(42)], 'pagination': {'next_offset': 1}}

        transport = RepeatingTransport()
        client = make_client(transport, max_pages=2)

        assert [listing.record_id for listing in client.fetch_listings()] == [42]
        assert len(transport.calls) == 2

    @pytest.mark.parametrize('pagination', ['next', ['25'], 25])
    def test_malformed_pagination_stops_after_first_page(self, pagination):
        class OddPagedTransport(FakeTransport):
            def get_json(self, url, params=None):
                self.calls.append((url, dict(params or {})))
                return {'results': [listing_payload(1)], 'pagination': pagination}

        transport = OddPagedTransport()
        client = make_client(transport, max_pages=3)

        assert [listing.record_id for listing in client.fetch_listings()] == [1]
        assert len(transport.calls) == 1


class TestFetchChildren:
    """Tests for image and inventory fetches."""

    def test_fetch_images(self, listing_42_routes):
        client = make_client(FakeTransport(listing_42_routes))

        images = client.fetch_images(42)

        assert [image.record_id for image in images] == [1, 2]
        assert all(image.kind == KIND_IMAGE for image in images)

    def test_fetch_inventory_reads_nested_products(self, listing_42_routes):
        client = make_client(FakeTransport(listing_42_routes))

        products = client.fetch_inventory(42)

        assert [product.record_id for product in products] == [7]
        assert products[0].kind == KIND_PRODUCT

    def test_fetch_children_dispatches_by_kind(self, listing_42_routes):
        client = make_client(FakeTransport(listing_42_routes))

        assert len(client.fetch_children(42, KIND_IMAGE)) == 2
        assert len(client.fetch_children(42, KIND_PRODUCT)) == 1
        with pytest.raises(ValueError):
            client.fetch_children(42, 'review')

    @pytest.mark.parametrize('body', [
        {'count': 0},
        {'results': None},
        {'results': 'oops'},
        'not json',
        [],
    ])
    def test_malformed_image_envelope_is_empty(self, body):
        transport = FakeTransport({'/listings/42/images': body})
        client = make_client(transport)

        assert client.fetch_images(42) == []

    @pytest.mark.parametrize('body', [
        {'results': []},
        {'results': {}},
        {'results': {'products': None}},
        'not json',
    ])
    def test_malformed_inventory_envelope_is_empty(self, body):
        client = make_client(FakeTransport({'/listings/42/inventory': body}))

        assert client.fetch_inventory(42) == []

    def test_child_without_id_is_skipped(self):
        routes = shop_routes([(listing_payload(42), [image_payload(1), {'url_fullxfull': 'x'}], [])])
        client = make_client(FakeTransport(routes))

        assert [image.record_id for image in client.fetch_images(42)] == [1]

    def test_child_transport_failure(self):
        transport = FakeTransport({'/listings/42/inventory': TransportError('HTTP 500', status_code=500)})
        client = make_client(transport)

        with pytest.raises(ChildFetchError) as exc_info:
            client.fetch_inventory(42)
        assert exc_info.value.listing_id == 42
        assert exc_info.value.kind == KIND_PRODUCT

    def test_child_requests_carry_api_key(self, listing_42_routes):
        transport = FakeTransport(listing_42_routes)
        client = make_client(transport)

        client.fetch_images(42)

        path, params = transport.calls[0]
        assert path == '/listings/42/images'
        assert params == {'api_key': 'test-api-key'}
