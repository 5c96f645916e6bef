"""
Service Layer

This module exports the sync service and its building blocks.
"""
from .sync_service import SyncService
from .sync_log_broadcaster import sync_log_broadcaster

from .sync.request_scheduler import RequestScheduler
from .sync.etsy_client import EtsyClient
from .sync.listing_sync import ListingSynchronizer, SyncReport
from .sync.log_collector import SyncLogCollector

__all__ = [
    'SyncService',
    'sync_log_broadcaster',
    'RequestScheduler',
    'EtsyClient',
    'ListingSynchronizer',
    'SyncReport',
    'SyncLogCollector',
]
