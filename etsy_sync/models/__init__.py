"""
Database models
"""
from .node import Node
from .cache_entry import CacheEntry
from .sync_run import SyncRun

__all__ = ['Node', 'CacheEntry', 'SyncRun']
