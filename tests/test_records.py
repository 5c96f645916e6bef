"""
Record and Identity Tests
"""
import pytest

from etsy_sync.exceptions import MalformedRecordError
from etsy_sync.services.sync import identity
from etsy_sync.services.sync.records import KIND_IMAGE, KIND_LISTING, KIND_PRODUCT, ExternalRecord, SyncSnapshot
from etsy_sync.utils.validators import validate_language, validate_limit, validate_pagination


class TestExternalRecord:

    def test_listing_carries_marker(self):
        record = ExternalRecord.from_payload(KIND_LISTING, {'listing_id': 42, 'last_modified_tsz': 100})
        assert record.record_id == 42
        assert record.modification_marker == 100

    def test_children_have_no_marker(self):
        record = ExternalRecord.from_payload(KIND_PRODUCT, {'product_id': 7, 'last_modified_tsz': 5})
        assert record.modification_marker is None

    def test_missing_id(self):
        with pytest.raises(MalformedRecordError):
            ExternalRecord.from_payload(KIND_IMAGE, {'url_fullxfull': 'https://x.test/a.jpg'})


class TestSyncSnapshot:

    def test_cache_shape(self):
        snapshot = SyncSnapshot('etsy_listing_42', ['a'], ['b'], 'digest')
        assert snapshot.to_cache() == {
            'cachedListingNodeId': 'etsy_listing_42',
            'cachedImageNodeIds': ['a'],
            'cachedProductIds': ['b'],
            'cachedListingDigest': 'digest',
        }

    @pytest.mark.parametrize('value', [None, [], 'x', {}, {'cachedListingNodeId': ''}])
    def test_unusable_cache_values(self, value):
        assert SyncSnapshot.from_cache(value) is None

    def test_missing_lists_default_to_empty(self):
        snapshot = SyncSnapshot.from_cache({'cachedListingNodeId': 'etsy_listing_1'})
        assert snapshot.image_node_ids == []
        assert snapshot.product_node_ids == []
        assert snapshot.top_node_digest is None


class TestIdentity:

    def test_node_ids(self):
        top = identity.listing_node_id(42)
        assert top == 'etsy_listing_42'
        assert identity.image_node_id(top, 1) == 'etsy_listing_42_image_1'
        assert identity.product_node_id(top, 7) == 'etsy_listing_42_product_7'
        assert identity.snapshot_cache_key(top) == 'cached-etsy_listing_42'

    def test_file_node_id_is_stable_per_url(self):
        first = identity.file_node_id('p', 'https://x.test/a.jpg?lid=1')
        assert first == identity.file_node_id('p', 'https://x.test/a.jpg?lid=1')
        assert first != identity.file_node_id('p', 'https://x.test/a.jpg?lid=2')

    def test_content_digest_ignores_key_order(self):
        assert identity.content_digest({'a': 1, 'b': 2}) == identity.content_digest({'b': 2, 'a': 1})
        assert identity.content_digest({'a': 1}) != identity.content_digest({'a': 2})


class TestValidators:

    def test_limit(self):
        assert validate_limit(None) == (True, None, None)
        assert validate_limit('30') == (True, None, 30)
        assert validate_limit(True)[0] is False
        assert validate_limit(500)[0] is False

    def test_language(self):
        assert validate_language(' EN ') == (True, None, 'en')
        assert validate_language('pt-BR') == (True, None, 'pt-br')
        assert validate_language('e')[0] is False

    def test_pagination(self):
        assert validate_pagination(None, None) == (True, None, 1, 50)
        assert validate_pagination('2', '10') == (True, None, 2, 10)
        assert validate_pagination('1', '1000')[0] is False
