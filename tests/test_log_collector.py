"""
Sync Log Tests

Tests for SyncLogCollector and the SSE broadcaster.
"""
from etsy_sync.exceptions import (
    CacheUnavailableError, ChildFetchError, FileDownloadError, MalformedRecordError, NodeNotFoundError,
)
from etsy_sync.extensions import db
from etsy_sync.models import SyncRun
from etsy_sync.services.sync.log_collector import SyncLogCollector
from etsy_sync.services.sync_log_broadcaster import SyncLogBroadcaster


class TestSyncLogCollector:
    """Tests for SyncLogCollector."""

    def test_add_issue(self):
        """Test adding issues."""
        collector = SyncLogCollector(run_id=1)
        collector.set_total(100)

        collector.add_issue(
            SyncLogCollector.TYPE_FETCH_FAILED,
            listing_id=42,
            message='HTTP 503'
        )

        summary = collector.get_summary()
        assert summary['fetch_failed'] == 1
        assert collector.get_issue_count() == 1

    def test_record_outcomes(self):
        collector = SyncLogCollector(run_id=1)
        collector.record_reused()
        collector.record_reused()
        collector.record_rebuilt()

        summary = collector.get_summary()
        assert summary['reused'] == 2
        assert summary['rebuilt'] == 1

    def test_issue_type_mapping(self):
        assert SyncLogCollector.issue_type_for(ChildFetchError('x')) == 'fetch_failed'
        assert SyncLogCollector.issue_type_for(CacheUnavailableError('x')) == 'cache_failed'
        assert SyncLogCollector.issue_type_for(MalformedRecordError('x')) == 'malformed'
        assert SyncLogCollector.issue_type_for(FileDownloadError('x')) == 'download_failed'
        assert SyncLogCollector.issue_type_for(NodeNotFoundError('x')) == 'rebuild_failed'
        assert SyncLogCollector.issue_type_for(KeyError('x')) == 'rebuild_failed'

    def test_record_failure(self):
        collector = SyncLogCollector(run_id=1)

        collector.record_failure(42, FileDownloadError('HTTP 404'))

        logs = collector.finalize()
        assert logs['summary']['failed'] == 1
        assert logs['summary']['download_failed'] == 1
        assert logs['issues'][0]['listing_id'] == 42
        assert logs['issues'][0]['extra'] == {'error': 'FileDownloadError'}

    def test_finalize(self):
        """Test finalizing logs."""
        collector = SyncLogCollector(run_id=1)
        collector.set_total(10)
        collector.record_rebuilt()
        collector.add_issue(SyncLogCollector.TYPE_MALFORMED, listing_id=7)

        logs = collector.finalize()

        assert logs['start_time'] is not None
        assert logs['end_time'] is not None
        assert logs['summary']['total'] == 10
        assert logs['summary']['rebuilt'] == 1
        assert len(logs['issues']) == 1

    def test_message_truncated(self):
        collector = SyncLogCollector(run_id=1)
        collector.add_issue(SyncLogCollector.TYPE_REBUILD_FAILED, message='x' * 2000)

        assert len(collector.finalize()['issues'][0]['message']) == SyncLogCollector.MAX_MESSAGE_LENGTH

    def test_has_problems(self):
        """Test problem detection."""
        collector = SyncLogCollector(run_id=1)
        assert not collector.has_problems()

        collector.add_issue(SyncLogCollector.TYPE_CACHE_FAILED)
        assert collector.has_problems()

    def test_save_to_db(self, app):
        run = SyncRun(shop_id='TestShop', status='processing')
        db.session.add(run)
        db.session.commit()

        collector = SyncLogCollector(run_id=run.id)
        collector.record_failure(42, ChildFetchError('HTTP 500', listing_id=42, kind='image'))

        assert collector.save_to_db() is True
        logs = db.session.get(SyncRun, run.id).get_sync_logs()
        assert logs['summary']['fetch_failed'] == 1

    def test_save_to_db_missing_run(self, app):
        assert SyncLogCollector(run_id=999).save_to_db() is False


class TestSyncLogBroadcaster:
    """Tests for SyncLogBroadcaster."""

    def test_singleton(self):
        assert SyncLogBroadcaster() is SyncLogBroadcaster()

    def test_broadcast_reaches_subscriber(self):
        broadcaster = SyncLogBroadcaster()
        client_id, generator = broadcaster.subscribe()
        try:
            broadcaster.info('Rebuilt listing 42', run_id=3, listing_id=42)
            event = next(generator)
        finally:
            generator.close()

        assert event.startswith('data: ')
        assert '"listing_id": 42' in event
        assert '"run_id": 3' in event
        assert client_id not in broadcaster._subscribers
