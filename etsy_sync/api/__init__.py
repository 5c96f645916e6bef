"""
API blueprints
"""
from .nodes import nodes_bp
from .sync import sync_bp

__all__ = ['nodes_bp', 'sync_bp']
