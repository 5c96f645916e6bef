"""
Sync Service - Run lifecycle for shop synchronization

Creates SyncRun records, wires the per-run components together and runs
the ListingSynchronizer either in a background thread (API) or inline
(CLI). Only one run may be active per process.

Components (see the sync package):
- sync.request_scheduler: Throttled request dispatch
- sync.etsy_client: Record fetcher
- sync.listing_sync: Reuse/rebuild driver
- sync.log_collector: Run log collection
"""
import threading
from datetime import datetime, timedelta
from typing import Optional, Tuple

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..exceptions import SyncAlreadyRunningError, SyncConfigurationError, TopLevelFetchError
from ..extensions import db, db_lock
from ..models import SyncRun
from ..utils.logger import get_logger
from .sync_log_broadcaster import sync_log_broadcaster
from .sync.cache import DurableCache
from .sync.etsy_client import EtsyClient
from .sync.file_downloader import RemoteFileDownloader
from .sync.listing_sync import ListingSynchronizer, SyncReport
from .sync.log_collector import SyncLogCollector
from .sync.node_store import NodeStore
from .sync.request_scheduler import RequestScheduler
from .sync.session_pool import RequestSessionPool

logger = get_logger('sync')


class SyncService:
    """Shop sync service.

    Features:
    - Single active run per process
    - Heartbeat monitoring for stale run detection
    - Garbage collection of nodes no longer reached after a clean run
    """

    _run_lock = threading.Lock()

    # Runs without a heartbeat for this long are considered stale
    HEARTBEAT_TIMEOUT = 300  # 5 minutes
    HEARTBEAT_INTERVAL = 30

    @staticmethod
    def is_running() -> bool:
        return SyncService._run_lock.locked()

    @staticmethod
    def _check_config(config) -> None:
        if not config.get('ETSY_API_KEY') or not config.get('ETSY_SHOP_ID'):
            raise SyncConfigurationError('ETSY_API_KEY and ETSY_SHOP_ID must be configured')

    @staticmethod
    def _create_run(shop_id: str) -> SyncRun:
        run = SyncRun(shop_id=shop_id, status='pending')
        db.session.add(run)
        db.session.commit()
        return run

    @staticmethod
    def start_sync(language: Optional[str] = None, limit: Optional[int] = None) -> SyncRun:
        """Start a run in a background thread.

        Must be called inside an app context.

        Raises:
            SyncConfigurationError: If Etsy credentials are missing
            SyncAlreadyRunningError: If a run is active
        """
        app = current_app._get_current_object()
        SyncService._check_config(app.config)

        if not SyncService._run_lock.acquire(blocking=False):
            raise SyncAlreadyRunningError('A sync run is already in progress')

        try:
            run = SyncService._create_run(app.config['ETSY_SHOP_ID'])
            thread = threading.Thread(
                target=SyncService._run_in_background,
                args=(app, run.id, language, limit),
                name=f'sync_run_{run.id}',
                daemon=True
            )
            thread.start()
        except Exception:
            SyncService._run_lock.release()
            raise

        logger.info(f"Started sync run {run.id} for shop {run.shop_id}")
        return run

    @staticmethod
    def _run_in_background(app, run_id: int, language: Optional[str], limit: Optional[int]) -> None:
        try:
            with app.app_context():
                SyncService.execute_run(run_id, language=language, limit=limit)
        except Exception as e:
            logger.exception(f"Sync run {run_id} crashed: {e}")
        finally:
            SyncService._run_lock.release()

    @staticmethod
    def run_sync(language: Optional[str] = None, limit: Optional[int] = None) -> Tuple[SyncRun, Optional[SyncReport]]:
        """Run a sync inline and return the run with its report.

        Raises:
            SyncConfigurationError: If Etsy credentials are missing
            SyncAlreadyRunningError: If a run is active
        """
        SyncService._check_config(current_app.config)
        if not SyncService._run_lock.acquire(blocking=False):
            raise SyncAlreadyRunningError('A sync run is already in progress')
        try:
            run = SyncService._create_run(current_app.config['ETSY_SHOP_ID'])
            report = SyncService.execute_run(run.id, language=language, limit=limit)
            return db.session.get(SyncRun, run.id), report
        finally:
            SyncService._run_lock.release()

    @staticmethod
    def execute_run(run_id: int, language: Optional[str] = None, limit: Optional[int] = None) -> Optional[SyncReport]:
        """Execute a created run. Requires an app context.

        Returns:
            The SyncReport, or None when the listings fetch failed
        """
        app = current_app._get_current_object()
        cfg = app.config

        run = db.session.get(SyncRun, run_id)
        run.status = 'processing'
        run.started_at = datetime.utcnow()
        run.sync_heartbeat = run.started_at
        run.error_message = None
        db.session.commit()

        sync_log_broadcaster.info(f"Starting sync of shop {run.shop_id}", run_id=run_id)

        collector = SyncLogCollector(run_id)
        pool = RequestSessionPool(pool_maxsize=cfg['REQUEST_MAX_CONCURRENT'], timeout=cfg['REQUEST_TIMEOUT'])
        scheduler = RequestScheduler(
            min_interval=cfg['REQUEST_MIN_INTERVAL'],
            max_concurrent=cfg['REQUEST_MAX_CONCURRENT'],
            transport=pool
        )
        client = EtsyClient(
            scheduler,
            api_key=cfg['ETSY_API_KEY'],
            shop_id=cfg['ETSY_SHOP_ID'],
            base_url=cfg['ETSY_BASE_URL'],
            language=language or cfg.get('ETSY_LANGUAGE'),
            limit=limit or cfg['ETSY_LIMIT'],
            max_pages=cfg['ETSY_MAX_PAGES']
        )
        node_store = NodeStore(app, run_id)
        downloader = RemoteFileDownloader(
            node_store,
            cfg['MEDIA_PATH'],
            session=pool.session,
            max_concurrent=cfg['MEDIA_DOWNLOAD_CONCURRENCY'],
            timeout=cfg['REQUEST_TIMEOUT']
        )
        synchronizer = ListingSynchronizer(
            client,
            node_store,
            DurableCache(app),
            downloader,
            max_workers=cfg['SYNC_MAX_WORKERS'],
            touch_products=cfg['SYNC_TOUCH_PRODUCT_NODES'],
            log_collector=collector,
            reporter=sync_log_broadcaster,
            run_id=run_id
        )

        stop_heartbeat = threading.Event()
        heartbeat = threading.Thread(
            target=SyncService._heartbeat_loop,
            args=(app, run_id, stop_heartbeat),
            daemon=True
        )
        heartbeat.start()

        report = None
        try:
            report = synchronizer.run()
        except TopLevelFetchError as e:
            logger.error(f"Sync run {run_id} failed: {e}")
            sync_log_broadcaster.error(str(e), run_id=run_id)
            SyncService._finish_run(run_id, 'failed', error_message=str(e))
        except Exception as e:
            SyncService._finish_run(run_id, 'failed', error_message=f"Unexpected error: {e}")
            raise
        finally:
            stop_heartbeat.set()
            heartbeat.join()
            pool.close()
            collector.save_to_db()
            logger.info(f"Run {run_id} scheduler stats: {scheduler.get_stats()}")

        if report is None:
            return None

        collected = 0
        if report.success and cfg['SYNC_COLLECT_GARBAGE']:
            collected = NodeStore.collect_garbage(app, run_id)

        error_message = None
        if not report.success:
            failed_ids = ', '.join(str(f.listing_id) for f in report.failed[:20])
            error_message = f"{len(report.failed)} listings failed: {failed_ids}"

        SyncService._finish_run(
            run_id,
            'completed' if report.success else 'failed',
            error_message=error_message,
            report=report,
            collected=collected
        )
        sync_log_broadcaster.info(
            f"Sync finished: {len(report.reused)} reused, {len(report.rebuilt)} rebuilt, "
            f"{len(report.failed)} failed",
            run_id=run_id,
            extra=report.to_dict()
        )
        return report

    @staticmethod
    def _finish_run(
        run_id: int,
        status: str,
        error_message: Optional[str] = None,
        report: Optional[SyncReport] = None,
        collected: int = 0
    ) -> None:
        run = db.session.get(SyncRun, run_id)
        run.status = status
        run.error_message = error_message
        run.finished_at = datetime.utcnow()
        run.sync_heartbeat = None
        run.collected_nodes = collected
        if report is not None:
            run.total_listings = report.total
            run.reused = len(report.reused)
            run.rebuilt = len(report.rebuilt)
            run.failed = len(report.failed)
        db.session.commit()

    @staticmethod
    def _heartbeat_loop(app, run_id: int, stop_event: threading.Event) -> None:
        while not stop_event.wait(SyncService.HEARTBEAT_INTERVAL):
            SyncService._update_heartbeat(app, run_id)

    @staticmethod
    def _update_heartbeat(app, run_id: int) -> None:
        """Update the run's heartbeat time."""
        with db_lock, app.app_context():
            try:
                SyncRun.query.filter_by(id=run_id).update(
                    {'sync_heartbeat': datetime.utcnow()},
                    synchronize_session=False
                )
                db.session.commit()
            except SQLAlchemyError as e:
                logger.warning(f"Failed to update heartbeat (run_id={run_id}): {e}")
                db.session.rollback()

    @staticmethod
    def cleanup_stale_runs(timeout_seconds: Optional[int] = None) -> int:
        """Mark runs stuck in 'processing' without a recent heartbeat as failed.

        Args:
            timeout_seconds: Heartbeat timeout, defaults to HEARTBEAT_TIMEOUT

        Returns:
            Number of runs cleaned up
        """
        if timeout_seconds is None:
            timeout_seconds = SyncService.HEARTBEAT_TIMEOUT

        try:
            cutoff_time = datetime.utcnow() - timedelta(seconds=timeout_seconds)
            stale_runs = SyncRun.query.filter(
                db.or_(
                    db.and_(
                        SyncRun.status == 'processing',
                        db.or_(
                            SyncRun.sync_heartbeat.is_(None),
                            SyncRun.sync_heartbeat < cutoff_time
                        )
                    ),
                    db.and_(SyncRun.status == 'pending', SyncRun.created_at < cutoff_time)
                )
            ).all()

            for run in stale_runs:
                logger.warning(f"[StaleRunCleanup] Run {run.id} has no recent heartbeat, marking as failed")
                run.status = 'failed'
                run.error_message = 'Sync run terminated abnormally (heartbeat timeout)'
                run.sync_heartbeat = None
                run.finished_at = datetime.utcnow()

            if stale_runs:
                db.session.commit()
                logger.info(f"[StaleRunCleanup] Cleaned up {len(stale_runs)} stale runs")
            return len(stale_runs)

        except SQLAlchemyError as e:
            logger.error(f"[StaleRunCleanup] Cleanup failed: {e}")
            db.session.rollback()
            return 0
