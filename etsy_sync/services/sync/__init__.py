"""
Sync Service Module - Incremental listing synchronization

This package contains the sync engine and its collaborators:
- request_scheduler: Throttled, concurrency-capped request dispatch
- session_pool: Pooled HTTP transport
- etsy_client: Record fetcher for listings, images and inventory
- cache_decision: Reuse-vs-rebuild decision per listing
- hierarchy_builder: Listing subtree materialization
- listing_sync: Per-run driver and report
- node_store / cache / file_downloader: Graph, snapshot cache and file assets
- log_collector: Sync run log collection and storage
"""
from .request_scheduler import RequestScheduler
from .session_pool import RequestSessionPool
from .etsy_client import EtsyClient
from .records import ExternalRecord, SyncSnapshot
from .cache_decision import CacheDecision, decide, revive
from .hierarchy_builder import HierarchyBuilder
from .listing_sync import ListingSynchronizer, SyncReport
from .node_store import NodeStore, NodeView
from .cache import DurableCache
from .file_downloader import RemoteFileDownloader
from .log_collector import SyncLogCollector

__all__ = [
    'RequestScheduler',
    'RequestSessionPool',
    'EtsyClient',
    'ExternalRecord',
    'SyncSnapshot',
    'CacheDecision',
    'decide',
    'revive',
    'HierarchyBuilder',
    'ListingSynchronizer',
    'SyncReport',
    'NodeStore',
    'NodeView',
    'DurableCache',
    'RemoteFileDownloader',
    'SyncLogCollector',
]
