"""
Utilities
"""
from .responses import success_response, error_response, ApiResponse
from .validators import validate_limit, validate_language, validate_pagination, sanitize_string
from .logger import setup_logger, get_logger

__all__ = [
    'success_response',
    'error_response',
    'ApiResponse',
    'validate_limit',
    'validate_language',
    'validate_pagination',
    'sanitize_string',
    'setup_logger',
    'get_logger',
]
