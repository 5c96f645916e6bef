"""
Node identity helpers.

Every id is a pure function of the record kind, the upstream record id and,
for nested nodes, the parent node id, so the same record maps to the same
node across runs.
"""
import hashlib
import json
import uuid
from typing import Any

LISTING_PREFIX = 'etsy_listing'

# Node types stored in the graph
TYPE_LISTING = 'FeaturedEtsyListing'
TYPE_IMAGE = 'EtsyListingImage'
TYPE_PRODUCT = 'EtsyListingInventory'
TYPE_FILE = 'File'

NODE_TYPES = (TYPE_LISTING, TYPE_IMAGE, TYPE_PRODUCT, TYPE_FILE)


def listing_node_id(listing_id: Any) -> str:
    return f"{LISTING_PREFIX}_{listing_id}"


def image_node_id(listing_node: str, image_id: Any) -> str:
    return f"{listing_node}_image_{image_id}"


def product_node_id(listing_node: str, product_id: Any) -> str:
    return f"{listing_node}_product_{product_id}"


def file_node_id(parent_node: str, source_url: str) -> str:
    return f"{parent_node}_file_{uuid.uuid5(uuid.NAMESPACE_URL, source_url).hex}"


def snapshot_cache_key(listing_node: str) -> str:
    """Cache key under which a listing's SyncSnapshot is stored."""
    return f"cached-{listing_node}"


def content_digest(payload: Any) -> str:
    """md5 over the canonical JSON form of a payload."""
    encoded = json.dumps(payload, sort_keys=True, ensure_ascii=False, default=str)
    return hashlib.md5(encoded.encode('utf-8')).hexdigest()
