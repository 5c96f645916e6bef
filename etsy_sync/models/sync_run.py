"""
Sync run model
"""
import json
from datetime import datetime
from ..extensions import db


class SyncRun(db.Model):
    """One synchronization run of the shop"""
    __tablename__ = 'sync_runs'

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    shop_id = db.Column(db.String(128), index=True)
    status = db.Column(db.String(32), default='pending', index=True)  # pending, processing, completed, failed
    error_message = db.Column(db.Text)

    # Counters
    total_listings = db.Column(db.Integer, default=0)
    reused = db.Column(db.Integer, default=0)
    rebuilt = db.Column(db.Integer, default=0)
    failed = db.Column(db.Integer, default=0)
    collected_nodes = db.Column(db.Integer, default=0)  # nodes removed by garbage collection

    # Run logs (JSON):
    # {
    #   "start_time": "...", "end_time": "...",
    #   "summary": {"total": 10, "reused": 7, "rebuilt": 2, "failed": 1, ...},
    #   "issues": [{"type": "rebuild_failed", "listing_id": 42, "message": "...", "time": "..."}]
    # }
    sync_logs = db.Column(db.Text)

    sync_heartbeat = db.Column(db.DateTime)  # heartbeat for stale run detection
    started_at = db.Column(db.DateTime)
    finished_at = db.Column(db.DateTime)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def get_sync_logs(self):
        if self.sync_logs:
            try:
                return json.loads(self.sync_logs)
            except (json.JSONDecodeError, TypeError):
                return None
        return None

    def to_dict(self, include_full_logs=False):
        """Serialize the run.

        Args:
            include_full_logs: Include the full issues list. By default only
                               the summary and the issue count are returned.
        """
        sync_logs_data = None
        full_logs = self.get_sync_logs()
        if full_logs:
            if include_full_logs:
                sync_logs_data = full_logs
            else:
                sync_logs_data = {
                    'start_time': full_logs.get('start_time'),
                    'end_time': full_logs.get('end_time'),
                    'summary': full_logs.get('summary'),
                    'issues_count': len(full_logs.get('issues', [])),
                }

        return {
            'id': self.id,
            'shop_id': self.shop_id,
            'status': self.status,
            'error_message': self.error_message,
            'total_listings': self.total_listings,
            'reused': self.reused,
            'rebuilt': self.rebuilt,
            'failed': self.failed,
            'collected_nodes': self.collected_nodes,
            'sync_logs': sync_logs_data,
            'sync_heartbeat': self.sync_heartbeat.isoformat() + 'Z' if self.sync_heartbeat else None,
            'started_at': self.started_at.isoformat() + 'Z' if self.started_at else None,
            'finished_at': self.finished_at.isoformat() + 'Z' if self.finished_at else None,
            'created_at': self.created_at.isoformat() + 'Z' if self.created_at else None,
        }

    def get_sync_logs_issues(self, page=1, page_size=50, issue_type=None):
        """Paginate the issues list of the run logs.

        Returns:
            dict: {issues: [], total: int, page: int, page_size: int, total_pages: int}
        """
        full_logs = self.get_sync_logs()
        if not full_logs:
            return {'issues': [], 'total': 0, 'page': page, 'page_size': page_size, 'total_pages': 0}

        all_issues = full_logs.get('issues', [])
        if issue_type:
            all_issues = [i for i in all_issues if i.get('type') == issue_type]

        total = len(all_issues)
        total_pages = (total + page_size - 1) // page_size if page_size > 0 else 0
        start = (page - 1) * page_size

        return {
            'issues': all_issues[start:start + page_size],
            'total': total,
            'page': page,
            'page_size': page_size,
            'total_pages': total_pages,
        }

    def __repr__(self):
        return f'<SyncRun {self.id} {self.status}>'
