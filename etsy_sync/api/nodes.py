"""
Node graph API
"""
import os

from flask import Blueprint, current_app, request, send_from_directory

from ..extensions import db
from ..models import Node
from ..services.sync.identity import NODE_TYPES
from ..utils.responses import ApiResponse, success_response
from ..utils.validators import validate_node_type, validate_pagination, sanitize_string

nodes_bp = Blueprint('nodes', __name__)


@nodes_bp.route('/nodes', methods=['GET'])
def list_nodes():
    """
    List nodes

    Query params:
    - type: Node type (FeaturedEtsyListing, EtsyListingImage, ...)
    - parent_id: Only children of this node
    - page / page_size: Pagination
    """
    is_valid, error_msg, node_type = validate_node_type(request.args.get('type'), NODE_TYPES)
    if not is_valid:
        return ApiResponse.validation_error(error_msg)

    is_valid, error_msg, page, page_size = validate_pagination(
        request.args.get('page'), request.args.get('page_size')
    )
    if not is_valid:
        return ApiResponse.validation_error(error_msg)

    query = Node.query
    if node_type:
        query = query.filter_by(type=node_type)
    parent_id = sanitize_string(request.args.get('parent_id'))
    if parent_id:
        query = query.filter_by(parent_id=parent_id)

    total = query.count()
    nodes = query.order_by(Node.id).offset((page - 1) * page_size).limit(page_size).all()

    return success_response({
        'items': [node.to_dict() for node in nodes],
        'total': total,
        'page': page,
        'page_size': page_size,
        'total_pages': (total + page_size - 1) // page_size,
    })


@nodes_bp.route('/nodes/<path:node_id>', methods=['GET'])
def get_node(node_id):
    node = db.session.get(Node, node_id)
    if not node:
        return ApiResponse.not_found('Node not found')
    return success_response(node.to_dict(include_children=True))


@nodes_bp.route('/media/<path:filename>', methods=['GET'])
def get_media(filename):
    """Serve a downloaded file asset"""
    media_path = current_app.config['MEDIA_PATH']
    filepath = os.path.join(media_path, filename)
    if not os.path.isfile(filepath):
        return ApiResponse.not_found('Media not found')
    return send_from_directory(media_path, filename)
