"""
Sync Records - In-memory shapes passed between sync components

ExternalRecord wraps a decoded JSON object from the Etsy API.
SyncSnapshot is the durable "what did we build last time" entry for a listing.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ...exceptions import MalformedRecordError

KIND_LISTING = 'listing'
KIND_IMAGE = 'image'
KIND_PRODUCT = 'product'

# Field carrying the record id for each kind
ID_FIELDS = {
    KIND_LISTING: 'listing_id',
    KIND_IMAGE: 'listing_image_id',
    KIND_PRODUCT: 'product_id',
}

MODIFICATION_MARKER_FIELD = 'last_modified_tsz'


@dataclass(frozen=True)
class ExternalRecord:
    """A record as returned by the external source."""
    kind: str
    record_id: Any
    payload: Dict[str, Any] = field(default_factory=dict, compare=False)
    modification_marker: Any = None

    @classmethod
    def from_payload(cls, kind: str, payload: Dict[str, Any]) -> 'ExternalRecord':
        """Build a record from a decoded JSON object.

        Raises:
            MalformedRecordError: If the id field for ``kind`` is missing
        """
        id_field = ID_FIELDS[kind]
        record_id = payload.get(id_field)
        if record_id is None:
            raise MalformedRecordError(f"{kind} record has no '{id_field}'")
        marker = payload.get(MODIFICATION_MARKER_FIELD) if kind == KIND_LISTING else None
        return cls(kind=kind, record_id=record_id, payload=payload, modification_marker=marker)


@dataclass
class SyncSnapshot:
    """Cached node identities of the last completed rebuild of a listing."""
    top_node_id: str
    image_node_ids: List[str] = field(default_factory=list)
    product_node_ids: List[str] = field(default_factory=list)
    top_node_digest: Optional[str] = None

    def to_cache(self) -> Dict[str, Any]:
        return {
            'cachedListingNodeId': self.top_node_id,
            'cachedImageNodeIds': list(self.image_node_ids),
            'cachedProductIds': list(self.product_node_ids),
            'cachedListingDigest': self.top_node_digest,
        }

    @classmethod
    def from_cache(cls, value: Optional[Dict[str, Any]]) -> Optional['SyncSnapshot']:
        """Parse a cache value; anything without a listing node id is no snapshot."""
        if not isinstance(value, dict) or not value.get('cachedListingNodeId'):
            return None
        return cls(
            top_node_id=value['cachedListingNodeId'],
            image_node_ids=list(value.get('cachedImageNodeIds') or []),
            product_node_ids=list(value.get('cachedProductIds') or []),
            top_node_digest=value.get('cachedListingDigest'),
        )
