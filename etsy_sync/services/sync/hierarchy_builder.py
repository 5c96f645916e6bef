"""
Hierarchy Builder - Materializes a listing's full subtree

Rebuild order for one listing:
1. create/overwrite the listing node
2. images: fetch, then per image create + link the image node and
   materialize its file under it
3. inventory: fetch, then per product create + link the product node
4. write the SyncSnapshot once 2 and 3 have both finished

Steps 2 and 3 run concurrently, and so do the children inside each step.
Any failure propagates before step 4, so no partial snapshot is written.
"""
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, List, Sequence

from ...exceptions import MalformedRecordError
from ...utils.logger import get_logger
from .identity import (
    TYPE_IMAGE, TYPE_LISTING, TYPE_PRODUCT,
    content_digest, image_node_id, listing_node_id, product_node_id, snapshot_cache_key,
)
from .records import ExternalRecord, SyncSnapshot

logger = get_logger('hierarchy_builder')

IMAGE_URL_FIELD = 'url_fullxfull'


def image_source_url(image: ExternalRecord, listing_id) -> str:
    """Full-size image URL tagged with the owning listing id."""
    url = image.payload.get(IMAGE_URL_FIELD)
    if not url or not isinstance(url, str):
        raise MalformedRecordError(f"Image {image.record_id} of listing {listing_id} has no {IMAGE_URL_FIELD}")
    separator = '&' if '?' in url else '?'
    return f"{url}{separator}lid={listing_id}"


class HierarchyBuilder:
    """Rebuilds listing subtrees.

    Example:
        >>> builder = HierarchyBuilder(client, node_store, cache, downloader, max_workers=8)
        >>> snapshot = builder.rebuild(listing)
    """

    def __init__(self, client, node_store, cache, downloader, max_workers: int = 8):
        """Initialize the builder.

        Args:
            client: EtsyClient used for child fetches
            node_store: NodeStore receiving the nodes
            cache: DurableCache receiving the snapshot
            downloader: RemoteFileDownloader materializing image files
            max_workers: Thread cap for child fan-out per collection
        """
        self.client = client
        self.node_store = node_store
        self.cache = cache
        self.downloader = downloader
        self.max_workers = max(1, max_workers)

    def rebuild(self, listing: ExternalRecord) -> SyncSnapshot:
        """Materialize ``listing`` and its children, then store the new snapshot."""
        top_id = listing_node_id(listing.record_id)
        digest = content_digest(listing.payload)
        self.node_store.create(top_id, None, TYPE_LISTING, digest, listing.payload)

        with ThreadPoolExecutor(max_workers=2, thread_name_prefix=f'rebuild_{listing.record_id}') as pool:
            images_future = pool.submit(self._build_images, listing, top_id)
            products_future = pool.submit(self._build_products, listing, top_id)
            image_ids = images_future.result()
            product_ids = products_future.result()

        snapshot = SyncSnapshot(
            top_node_id=top_id,
            image_node_ids=image_ids,
            product_node_ids=product_ids,
            top_node_digest=digest,
        )
        self.cache.set(snapshot_cache_key(top_id), snapshot.to_cache())
        logger.info(
            f"[HierarchyBuilder] Rebuilt {top_id}: "
            f"{len(image_ids)} images, {len(product_ids)} products"
        )
        return snapshot

    def _build_images(self, listing: ExternalRecord, top_id: str) -> List[str]:
        images = self.client.fetch_images(listing.record_id)
        return self._fan_out(lambda image: self._build_image(listing, top_id, image), images)

    def _build_image(self, listing: ExternalRecord, top_id: str, image: ExternalRecord) -> str:
        node_id = image_node_id(top_id, image.record_id)
        self.node_store.create(node_id, top_id, TYPE_IMAGE, content_digest(image.payload), image.payload)
        self.node_store.link(top_id, node_id)

        file_node = self.downloader.materialize(image_source_url(image, listing.record_id), node_id)
        self.node_store.link(node_id, file_node.id)
        return node_id

    def _build_products(self, listing: ExternalRecord, top_id: str) -> List[str]:
        products = self.client.fetch_inventory(listing.record_id)
        return self._fan_out(lambda product: self._build_product(top_id, product), products)

    def _build_product(self, top_id: str, product: ExternalRecord) -> str:
        node_id = product_node_id(top_id, product.record_id)
        self.node_store.create(node_id, top_id, TYPE_PRODUCT, content_digest(product.payload), product.payload)
        self.node_store.link(top_id, node_id)
        return node_id

    def _fan_out(self, fn: Callable[[ExternalRecord], str], records: Sequence[ExternalRecord]) -> List[str]:
        # Results keep upstream order
        if not records:
            return []
        with ThreadPoolExecutor(max_workers=min(self.max_workers, len(records))) as pool:
            futures = [pool.submit(fn, record) for record in records]
            return [future.result() for future in futures]
