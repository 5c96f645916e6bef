"""
Listing Synchronizer - Drives one sync run over all listings

Fetches the shop's listings once, then handles every listing in its own
task: reuse the cached subtree or rebuild it. A listing's failure is
recorded and never aborts the other listings; only the top-level fetch
failing fails the whole run.
"""
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ...exceptions import SyncError
from ...utils.logger import get_logger
from . import cache_decision
from .hierarchy_builder import HierarchyBuilder
from .records import ExternalRecord

logger = get_logger('listing_sync')

OUTCOME_REUSED = 'reused'
OUTCOME_REBUILT = 'rebuilt'


@dataclass
class ListingFailure:
    listing_id: Any
    error_type: str
    message: str

    def to_dict(self) -> Dict[str, Any]:
        return {'listing_id': self.listing_id, 'error': self.error_type, 'message': self.message}


@dataclass
class SyncReport:
    """Per-listing outcome of a run."""
    total: int = 0
    reused: List[Any] = field(default_factory=list)
    rebuilt: List[Any] = field(default_factory=list)
    failed: List[ListingFailure] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.failed

    def to_dict(self) -> Dict[str, Any]:
        return {
            'total': self.total,
            'reused': list(self.reused),
            'rebuilt': list(self.rebuilt),
            'failed': [failure.to_dict() for failure in self.failed],
            'success': self.success,
        }


class ListingSynchronizer:
    """Synchronizes every active listing of a shop.

    Example:
        >>> synchronizer = ListingSynchronizer(client, node_store, cache, downloader)
        >>> report = synchronizer.run()
        >>> report.success, report.rebuilt, report.failed
    """

    def __init__(
        self,
        client,
        node_store,
        cache,
        downloader,
        max_workers: int = 8,
        touch_products: bool = False,
        log_collector=None,
        reporter=None,
        run_id: Optional[int] = None
    ):
        """Initialize the synchronizer.

        Args:
            client: EtsyClient (record fetcher)
            node_store: NodeStore for this run
            cache: DurableCache holding snapshots
            downloader: RemoteFileDownloader for image files
            max_workers: Threads for listing tasks and child fan-out
            touch_products: Also keep product nodes alive on reuse
            log_collector: Optional SyncLogCollector for run logs
            reporter: Optional broadcaster with info/warn/error(message, **kw)
            run_id: Run id attached to reported messages
        """
        self.client = client
        self.node_store = node_store
        self.cache = cache
        self.max_workers = max(1, max_workers)
        self.touch_products = touch_products
        self.log_collector = log_collector
        self.reporter = reporter
        self.run_id = run_id
        self.builder = HierarchyBuilder(client, node_store, cache, downloader, max_workers=self.max_workers)

    def run(self) -> SyncReport:
        """Synchronize all listings.

        Raises:
            TopLevelFetchError: If the listings cannot be fetched
        """
        listings = self.client.fetch_listings()
        report = SyncReport(total=len(listings))
        if self.log_collector:
            self.log_collector.set_total(len(listings))
        self._report('info', f"Got {len(listings)} listings", extra={'total': len(listings)})

        if not listings:
            return report

        with ThreadPoolExecutor(max_workers=min(self.max_workers, len(listings)), thread_name_prefix='listing') as pool:
            futures = [(listing, pool.submit(self.sync_listing, listing)) for listing in listings]
            for listing, future in futures:
                try:
                    outcome = future.result()
                except SyncError as e:
                    self._record_failure(report, listing, e)
                    continue
                except Exception as e:
                    logger.exception(f"[ListingSync] Unexpected error for listing {listing.record_id}")
                    self._record_failure(report, listing, e)
                    continue

                if outcome == OUTCOME_REUSED:
                    report.reused.append(listing.record_id)
                else:
                    report.rebuilt.append(listing.record_id)

        logger.info(
            f"[ListingSync] Run finished: {len(report.reused)} reused, "
            f"{len(report.rebuilt)} rebuilt, {len(report.failed)} failed"
        )
        return report

    def sync_listing(self, listing: ExternalRecord) -> str:
        """Reuse or rebuild a single listing.

        Returns:
            OUTCOME_REUSED or OUTCOME_REBUILT
        """
        decision = cache_decision.decide(listing, self.cache, self.node_store)
        if decision.reuse:
            cache_decision.revive(decision.snapshot, self.node_store, touch_products=self.touch_products)
            if self.log_collector:
                self.log_collector.record_reused()
            return OUTCOME_REUSED

        logger.info(f"[ListingSync] Rebuilding listing {listing.record_id} ({decision.reason})")
        self.builder.rebuild(listing)
        if self.log_collector:
            self.log_collector.record_rebuilt()
        self._report('info', f"Rebuilt listing {listing.record_id}", listing_id=listing.record_id)
        return OUTCOME_REBUILT

    def _record_failure(self, report: SyncReport, listing: ExternalRecord, error: Exception) -> None:
        report.failed.append(ListingFailure(listing.record_id, type(error).__name__, str(error)))
        logger.warning(f"[ListingSync] Listing {listing.record_id} failed: {error}")
        if self.log_collector:
            self.log_collector.record_failure(listing.record_id, error)
        self._report('error', f"Listing {listing.record_id} failed: {error}", listing_id=listing.record_id)

    def _report(self, level: str, message: str, listing_id=None, extra: Optional[Dict] = None) -> None:
        if self.reporter is None:
            return
        getattr(self.reporter, level)(message, run_id=self.run_id, listing_id=listing_id, extra=extra)
