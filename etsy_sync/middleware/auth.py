"""
Authentication middleware
Protects the endpoints that trigger work
"""
from functools import wraps
from flask import request, current_app
from ..utils.responses import ApiResponse


def get_current_api_key() -> str:
    """Read the API key from the request headers"""
    return request.headers.get('X-API-Key', '')


def require_auth(f):
    """
    API key decorator

    Checks the X-API-Key header against the API_KEY setting.
    When API_KEY is unset the check is skipped (development mode).
    """
    @wraps(f)
    def decorated(*args, **kwargs):
        api_key = get_current_api_key()
        expected_key = current_app.config.get('API_KEY')

        if not expected_key:
            return f(*args, **kwargs)

        if not api_key:
            return ApiResponse.unauthorized('Missing API key, send it in the X-API-Key header')

        if api_key != expected_key:
            return ApiResponse.unauthorized('Invalid API key')

        return f(*args, **kwargs)
    return decorated

