"""
Cache Decision - Reuse or rebuild a listing's subtree

A listing is reused only when its last rebuild completed (a snapshot
exists), the cached listing node still resolves, and the node's stored
``last_modified_tsz`` equals the incoming one. Anything else rebuilds.
"""
from dataclasses import dataclass
from typing import Optional

from ...utils.logger import get_logger
from .identity import listing_node_id, snapshot_cache_key
from .records import MODIFICATION_MARKER_FIELD, ExternalRecord, SyncSnapshot

logger = get_logger('cache_decision')

REUSE = 'reuse'
REBUILD = 'rebuild'

# Rebuild reasons
REASON_NO_SNAPSHOT = 'no_snapshot'
REASON_UNRESOLVABLE = 'unresolvable'
REASON_MARKER_CHANGED = 'marker_changed'
REASON_STALE_NODE = 'stale_node'


@dataclass(frozen=True)
class CacheDecision:
    action: str
    snapshot: Optional[SyncSnapshot] = None
    reason: Optional[str] = None

    @property
    def reuse(self) -> bool:
        return self.action == REUSE


def decide(listing: ExternalRecord, cache, node_store) -> CacheDecision:
    """Decide whether ``listing`` can reuse its cached subtree.

    Args:
        listing: Incoming top-level record
        cache: DurableCache holding SyncSnapshots
        node_store: NodeStore used to resolve the cached listing node

    Raises:
        CacheUnavailableError: If the cache cannot be read
    """
    key = snapshot_cache_key(listing_node_id(listing.record_id))
    snapshot = SyncSnapshot.from_cache(cache.get(key))
    if snapshot is None:
        return CacheDecision(REBUILD, reason=REASON_NO_SNAPSHOT)

    cached_node = node_store.resolve(snapshot.top_node_id)
    if cached_node is None:
        return CacheDecision(REBUILD, snapshot, REASON_UNRESOLVABLE)

    if cached_node.payload.get(MODIFICATION_MARKER_FIELD) != listing.modification_marker:
        return CacheDecision(REBUILD, snapshot, REASON_MARKER_CHANGED)

    # A rebuild that failed after overwriting the listing node leaves the
    # new marker behind without a matching snapshot
    if snapshot.top_node_digest and cached_node.content_digest != snapshot.top_node_digest:
        return CacheDecision(REBUILD, snapshot, REASON_STALE_NODE)

    return CacheDecision(REUSE, snapshot)


def revive(snapshot: SyncSnapshot, node_store, touch_products: bool = False) -> int:
    """Keep the cached listing node and its image nodes alive.

    Product nodes are left to the listing node's keep-alive unless
    ``touch_products`` is set.

    Returns:
        Number of keep-alive calls issued
    """
    node_ids = [snapshot.top_node_id, *snapshot.image_node_ids]
    if touch_products:
        node_ids.extend(snapshot.product_node_ids)

    for node_id in node_ids:
        node_store.keep_alive(node_id)

    logger.info(f"[CacheDecision] Using cached version of listing node {snapshot.top_node_id}")
    return len(node_ids)
