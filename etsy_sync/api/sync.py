"""
Sync run API
"""
from flask import Blueprint, Response, request, stream_with_context

from ..exceptions import SyncAlreadyRunningError, SyncConfigurationError
from ..extensions import db
from ..middleware.auth import require_auth
from ..models import SyncRun
from ..services.sync_log_broadcaster import sync_log_broadcaster
from ..services.sync_service import SyncService
from ..utils.logger import get_logger
from ..utils.responses import ApiResponse, success_response
from ..utils.validators import validate_language, validate_limit, validate_pagination, sanitize_string

sync_bp = Blueprint('sync', __name__)
logger = get_logger('api.sync')


@sync_bp.route('/sync', methods=['POST'])
@require_auth
def start_sync():
    """
    Start a shop sync run in the background

    Request Body (optional):
        - language: Listing language code
        - limit: Listings page size (1-100)
    """
    data = request.get_json(silent=True) or {}

    is_valid, error_msg, language = validate_language(data.get('language'))
    if not is_valid:
        return ApiResponse.validation_error(error_msg)

    is_valid, error_msg, limit = validate_limit(data.get('limit'))
    if not is_valid:
        return ApiResponse.validation_error(error_msg)

    try:
        run = SyncService.start_sync(language=language, limit=limit)
    except SyncConfigurationError as e:
        return ApiResponse.error(str(e), 400, 'NOT_CONFIGURED')
    except SyncAlreadyRunningError as e:
        return ApiResponse.conflict(str(e), 'SYNC_RUNNING')

    return ApiResponse.accepted(run.to_dict(), f'Sync run {run.id} started')


@sync_bp.route('/sync/runs', methods=['GET'])
def list_runs():
    """
    List sync runs, newest first

    Query params:
    - status: Filter by run status
    - page / page_size: Pagination
    """
    is_valid, error_msg, page, page_size = validate_pagination(
        request.args.get('page'), request.args.get('page_size'), default_page_size=20
    )
    if not is_valid:
        return ApiResponse.validation_error(error_msg)

    query = SyncRun.query
    status = sanitize_string(request.args.get('status'), max_length=20)
    if status:
        query = query.filter_by(status=status)

    total = query.count()
    runs = query.order_by(SyncRun.id.desc()).offset((page - 1) * page_size).limit(page_size).all()

    return success_response({
        'items': [run.to_dict() for run in runs],
        'total': total,
        'page': page,
        'page_size': page_size,
        'total_pages': (total + page_size - 1) // page_size,
        'running': SyncService.is_running(),
    })


@sync_bp.route('/sync/runs/<int:run_id>', methods=['GET'])
def get_run(run_id):
    """Run detail with full logs"""
    run = db.session.get(SyncRun, run_id)
    if not run:
        return ApiResponse.not_found('Sync run not found')
    return success_response(run.to_dict(include_full_logs=True))


@sync_bp.route('/sync/runs/<int:run_id>/issues', methods=['GET'])
def get_run_issues(run_id):
    """
    Paginated issues of a run

    Query params:
    - type: Issue type filter (fetch_failed, rebuild_failed, ...)
    - page / page_size: Pagination
    """
    run = db.session.get(SyncRun, run_id)
    if not run:
        return ApiResponse.not_found('Sync run not found')

    is_valid, error_msg, page, page_size = validate_pagination(
        request.args.get('page'), request.args.get('page_size')
    )
    if not is_valid:
        return ApiResponse.validation_error(error_msg)

    issue_type = sanitize_string(request.args.get('type'), max_length=32) or None
    return success_response(run.get_sync_logs_issues(page, page_size, issue_type))


@sync_bp.route('/sync/stream', methods=['GET'])
def stream_sync_logs():
    """
    SSE endpoint streaming live run logs

    Format:
        data: {"timestamp": "...", "level": "info|warn|error", "message": "...", ...}
    """
    client_id, generator = sync_log_broadcaster.subscribe()

    def generate():
        yield f"data: {{\"level\": \"info\", \"message\": \"Connected to sync log stream\", \"client_id\": \"{client_id}\"}}\n\n"
        yield from generator

    return Response(
        stream_with_context(generate()),
        mimetype='text/event-stream',
        headers={
            'Cache-Control': 'no-cache',
            'Connection': 'keep-alive',
            'X-Accel-Buffering': 'no',  # disable nginx buffering
        }
    )


@sync_bp.route('/sync/stream/status', methods=['GET'])
def stream_status():
    return success_response({
        'subscriber_count': sync_log_broadcaster.subscriber_count,
        'running': SyncService.is_running(),
    })
