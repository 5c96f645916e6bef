"""
Sync Exceptions

Error taxonomy for a synchronization run. Everything raised by the sync
package derives from SyncError so callers can isolate failures per listing.
"""
from typing import Optional


class SyncError(Exception):
    """Base class for all synchronization errors."""


class TransportError(SyncError):
    """Network failure or non-success status from the external source."""

    def __init__(self, message: str, url: Optional[str] = None, status_code: Optional[int] = None):
        super().__init__(message)
        self.url = url
        self.status_code = status_code


class TopLevelFetchError(SyncError):
    """The listings fetch failed; the whole run cannot continue."""


class ChildFetchError(SyncError):
    """Fetching images or inventory for one listing failed."""

    def __init__(self, message: str, listing_id=None, kind: Optional[str] = None):
        super().__init__(message)
        self.listing_id = listing_id
        self.kind = kind


class MalformedRecordError(SyncError):
    """A record is missing a field the sync needs (id, image url)."""


class FileDownloadError(SyncError):
    """A remote file asset could not be downloaded."""

    def __init__(self, message: str, url: Optional[str] = None):
        super().__init__(message)
        self.url = url


class CacheUnavailableError(SyncError):
    """The durable cache could not be read or written."""


class NodeNotFoundError(SyncError):
    """A node referenced by a graph operation does not exist."""


class SyncConfigurationError(SyncError):
    """Required sync settings (API key, shop id) are missing or invalid."""


class SyncAlreadyRunningError(SyncError):
    """A sync run is already active in this process."""
