"""
Sync Log Collector - Collect and store sync run logs

This module provides structured logging for sync runs, tracking how each
listing was handled and which listings failed.
"""
import json
import threading
from datetime import datetime
from typing import Any, Dict, List, Optional

from ...exceptions import (
    CacheUnavailableError, ChildFetchError, FileDownloadError, MalformedRecordError, TransportError,
)
from ...utils.logger import get_logger

logger = get_logger('log_collector')


class SyncLogCollector:
    """Sync log collector for one run.

    Collects issue types:
    - Child fetch failures (images / inventory)
    - Failed rebuilds
    - Cache read/write failures
    - Malformed records
    - File download failures

    Example:
        >>> collector = SyncLogCollector(run_id=1)
        >>> collector.set_total(25)
        >>> collector.record_reused()
        >>> collector.add_issue(SyncLogCollector.TYPE_FETCH_FAILED, listing_id=42, message='HTTP 503')
        >>> logs = collector.finalize()
        >>> collector.save_to_db()
    """

    # Issue type constants
    TYPE_FETCH_FAILED = 'fetch_failed'        # Child collection fetch failure
    TYPE_REBUILD_FAILED = 'rebuild_failed'    # Any other rebuild failure
    TYPE_CACHE_FAILED = 'cache_failed'        # Durable cache unavailable
    TYPE_MALFORMED = 'malformed'              # Record missing required fields
    TYPE_DOWNLOAD_FAILED = 'download_failed'  # File asset download failure

    # Maximum issues to store (prevent memory bloat)
    MAX_ISSUES = 500

    # Maximum message length
    MAX_MESSAGE_LENGTH = 500

    def __init__(self, run_id: int):
        """Initialize the log collector.

        Args:
            run_id: The SyncRun id this collector is tracking
        """
        self.run_id = run_id
        self.start_time = datetime.utcnow().isoformat() + 'Z'
        self.end_time: Optional[str] = None
        self.issues: List[Dict] = []
        self.summary = {
            'total': 0,            # Listings fetched
            'reused': 0,           # Cached subtree kept alive
            'rebuilt': 0,          # Subtree rebuilt
            'failed': 0,           # Listings whose sync failed
            'fetch_failed': 0,
            'rebuild_failed': 0,
            'cache_failed': 0,
            'malformed': 0,
            'download_failed': 0,
        }
        self._lock = threading.Lock()

    @classmethod
    def issue_type_for(cls, error: BaseException) -> str:
        """Map an exception to the issue type it is reported under."""
        if isinstance(error, (ChildFetchError, TransportError)):
            return cls.TYPE_FETCH_FAILED
        if isinstance(error, CacheUnavailableError):
            return cls.TYPE_CACHE_FAILED
        if isinstance(error, MalformedRecordError):
            return cls.TYPE_MALFORMED
        if isinstance(error, FileDownloadError):
            return cls.TYPE_DOWNLOAD_FAILED
        return cls.TYPE_REBUILD_FAILED

    def add_issue(
        self,
        issue_type: str,
        listing_id: Any = None,
        message: Optional[str] = None,
        extra: Optional[Dict[str, Any]] = None
    ) -> None:
        """Add an issue record.

        Args:
            issue_type: Type of issue (use TYPE_* constants)
            listing_id: Related listing id
            message: Error message (truncated to MAX_MESSAGE_LENGTH)
            extra: Additional context data
        """
        with self._lock:
            issue = {
                'type': issue_type,
                'time': datetime.utcnow().isoformat() + 'Z',
            }
            if listing_id is not None:
                issue['listing_id'] = listing_id
            if message:
                issue['message'] = message[:self.MAX_MESSAGE_LENGTH]
            if extra:
                issue['extra'] = extra

            if len(self.issues) < self.MAX_ISSUES:
                self.issues.append(issue)

            if issue_type in self.summary:
                self.summary[issue_type] += 1

    def record_failure(self, listing_id: Any, error: BaseException) -> None:
        """Record a failed listing together with its issue."""
        self.add_issue(
            self.issue_type_for(error),
            listing_id=listing_id,
            message=str(error),
            extra={'error': type(error).__name__}
        )
        with self._lock:
            self.summary['failed'] += 1

    def record_reused(self) -> None:
        with self._lock:
            self.summary['reused'] += 1

    def record_rebuilt(self) -> None:
        with self._lock:
            self.summary['rebuilt'] += 1

    def set_total(self, total: int) -> None:
        with self._lock:
            self.summary['total'] = total

    def finalize(self) -> Dict:
        """Finalize log collection.

        Returns:
            Dictionary containing times, summary, and issues
        """
        with self._lock:
            self.end_time = datetime.utcnow().isoformat() + 'Z'
            return {
                'start_time': self.start_time,
                'end_time': self.end_time,
                'summary': self.summary.copy(),
                'issues': self.issues.copy(),
            }

    def save_to_db(self) -> bool:
        """Save logs onto the SyncRun row.

        Returns:
            True if save succeeded, False otherwise
        """
        from sqlalchemy.exc import SQLAlchemyError

        # Import here to avoid circular imports
        from ...models import SyncRun
        from ...extensions import db

        logs_data = self.finalize()
        try:
            run = db.session.get(SyncRun, self.run_id)
            if run is None:
                logger.warning(f"SyncRun {self.run_id} not found, cannot save logs")
                return False
            run.sync_logs = json.dumps(logs_data, ensure_ascii=False, default=str)
            db.session.commit()
            logger.info(f"Sync logs saved for run {self.run_id}")
            return True
        except SQLAlchemyError as e:
            logger.error(f"Failed to save sync logs: {e}")
            db.session.rollback()
            return False

    def get_summary(self) -> Dict:
        with self._lock:
            return self.summary.copy()

    def get_issue_count(self) -> int:
        with self._lock:
            return len(self.issues)

    def has_problems(self) -> bool:
        """True if any listing failed or any issue was recorded."""
        with self._lock:
            return self.summary['failed'] > 0 or len(self.issues) > 0
