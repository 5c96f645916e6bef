"""
Etsy Client - Typed read access to the Etsy listings API

Builds request URLs, sends them through the RequestScheduler and decodes
the ``results`` envelope into ExternalRecord objects. Nothing is cached
here; every call reaches the network.
"""
from typing import Any, Dict, List, Optional

from ...exceptions import ChildFetchError, MalformedRecordError, TopLevelFetchError, TransportError
from ...utils.logger import get_logger
from .records import ExternalRecord, KIND_IMAGE, KIND_LISTING, KIND_PRODUCT

logger = get_logger('etsy_client')

ETSY_BASE_URL = 'https://openapi.etsy.com/v2'
DEFAULT_LIMIT = 25


class EtsyClient:
    """Record fetcher for one shop.

    Example:
        >>> client = EtsyClient(scheduler, api_key='key', shop_id='MyShop')
        >>> listings = client.fetch_listings()
        >>> images = client.fetch_children(listings[0].record_id, 'image')
    """

    def __init__(
        self,
        scheduler,
        api_key: str,
        shop_id: str,
        base_url: str = ETSY_BASE_URL,
        language: Optional[str] = None,
        limit: Optional[int] = None,
        max_pages: int = 1
    ):
        """Initialize the client.

        Args:
            scheduler: RequestScheduler all calls go through
            api_key: Etsy API key, passed through as a query parameter
            shop_id: Shop id or name whose active listings are synced
            base_url: API root
            language: Optional language code for listing texts
            limit: Page size of the listings fetch (default 25)
            max_pages: Listing pages to follow via pagination
        """
        self.scheduler = scheduler
        self.api_key = api_key
        self.shop_id = shop_id
        self.base_url = base_url.rstrip('/')
        self.language = language
        self.limit = limit or DEFAULT_LIMIT
        self.max_pages = max(1, max_pages)

    def fetch_listings(self) -> List[ExternalRecord]:
        """Fetch the shop's active listings.

        Raises:
            TopLevelFetchError: On transport failure or an unusable envelope
        """
        url = f"{self.base_url}/shops/{self.shop_id}/listings/active"
        params: Dict[str, Any] = {'api_key': self.api_key, 'limit': self.limit}
        if self.language:
            params['language'] = self.language

        listings: List[ExternalRecord] = []
        seen = set()
        for page in range(self.max_pages):
            try:
                envelope = self.scheduler.get(url, params=dict(params))
            except TransportError as e:
                raise TopLevelFetchError(f"Failed to fetch listings for shop {self.shop_id}: {e}") from e

            results = envelope.get('results') if isinstance(envelope, dict) else None
            if not isinstance(results, list):
                raise TopLevelFetchError(f"Listings response for shop {self.shop_id} has no results")

            try:
                page_records = [
                    ExternalRecord.from_payload(KIND_LISTING, item)
                    for item in results if isinstance(item, dict)
                ]
            except MalformedRecordError as e:
                raise TopLevelFetchError(f"Malformed listing for shop {self.shop_id}: {e}") from e
            for record in page_records:
                if record.record_id in seen:
                    logger.debug(f"[EtsyClient] Skipping duplicate listing {record.record_id} on page {page + 1}")
                    continue
                seen.add(record.record_id)
                listings.append(record)

            pagination = envelope.get('pagination')
            next_offset = pagination.get('next_offset') if isinstance(pagination, dict) else None
            if next_offset is None:
                break
            params['offset'] = next_offset
            logger.debug(f"[EtsyClient] Following listings page {page + 2} at offset {next_offset}")

        logger.info(f"[EtsyClient] Fetched {len(listings)} listings for shop {self.shop_id}")
        return listings

    def fetch_images(self, listing_id) -> List[ExternalRecord]:
        """Fetch image metadata for a listing."""
        envelope = self._get_child_envelope(listing_id, 'images', KIND_IMAGE)
        results = envelope.get('results') if isinstance(envelope, dict) else None
        return self._decode_children(listing_id, KIND_IMAGE, results)

    def fetch_inventory(self, listing_id) -> List[ExternalRecord]:
        """Fetch inventory products for a listing.

        The inventory endpoint nests products: ``{"results": {"products": [...]}}``.
        """
        envelope = self._get_child_envelope(listing_id, 'inventory', KIND_PRODUCT)
        results = envelope.get('results') if isinstance(envelope, dict) else None
        products = results.get('products') if isinstance(results, dict) else None
        return self._decode_children(listing_id, KIND_PRODUCT, products)

    def fetch_children(self, listing_id, kind: str) -> List[ExternalRecord]:
        """Fetch the child collection of ``kind`` ('image' or 'product')."""
        if kind == KIND_IMAGE:
            return self.fetch_images(listing_id)
        if kind == KIND_PRODUCT:
            return self.fetch_inventory(listing_id)
        raise ValueError(f"Unknown child kind: {kind}")

    def _get_child_envelope(self, listing_id, endpoint: str, kind: str) -> Any:
        url = f"{self.base_url}/listings/{listing_id}/{endpoint}"
        try:
            return self.scheduler.get(url, params={'api_key': self.api_key})
        except TransportError as e:
            raise ChildFetchError(
                f"Failed to fetch {endpoint} for listing {listing_id}: {e}",
                listing_id=listing_id,
                kind=kind
            ) from e

    @staticmethod
    def _decode_children(listing_id, kind: str, items: Any) -> List[ExternalRecord]:
        # A missing or malformed envelope means "no children", never an error
        if not isinstance(items, list):
            logger.warning(f"[EtsyClient] No usable {kind} envelope for listing {listing_id}, treating as empty")
            return []

        records = []
        for item in items:
            if not isinstance(item, dict):
                continue
            try:
                records.append(ExternalRecord.from_payload(kind, item))
            except MalformedRecordError as e:
                logger.warning(f"[EtsyClient] Skipping {kind} of listing {listing_id}: {e}")
        return records
