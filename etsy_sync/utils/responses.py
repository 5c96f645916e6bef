"""
Uniform API response envelopes
"""
from flask import jsonify
from typing import Any, Optional, Dict


class ApiResponse:
    """API response builder"""

    @staticmethod
    def success(data: Any = None, message: str = 'OK', code: int = 200) -> tuple:
        """
        Success response

        Args:
            data: Response payload
            message: Success message
            code: HTTP status code

        Returns:
            (Flask Response, status code)
        """
        response = {
            'success': True,
            'message': message,
        }
        if data is not None:
            response['data'] = data
        return jsonify(response), code

    @staticmethod
    def accepted(data: Any = None, message: str = 'Accepted') -> tuple:
        """202 response for work started in the background"""
        return ApiResponse.success(data, message, 202)

    @staticmethod
    def error(
        message: str,
        code: int = 400,
        error_code: str = 'BAD_REQUEST',
        details: Optional[Dict] = None
    ) -> tuple:
        """
        Error response

        Args:
            message: Error message
            code: HTTP status code
            error_code: Machine readable error code
            details: Extra error details

        Returns:
            (Flask Response, status code)
        """
        response = {
            'success': False,
            'error': {
                'code': error_code,
                'message': message,
            }
        }
        if details:
            response['error']['details'] = details
        return jsonify(response), code

    @staticmethod
    def not_found(message: str = 'Resource not found') -> tuple:
        return ApiResponse.error(message, 404, 'NOT_FOUND')

    @staticmethod
    def unauthorized(message: str = 'Unauthorized') -> tuple:
        return ApiResponse.error(message, 401, 'UNAUTHORIZED')

    @staticmethod
    def conflict(message: str, error_code: str = 'CONFLICT') -> tuple:
        return ApiResponse.error(message, 409, error_code)

    @staticmethod
    def validation_error(message: str, details: Optional[Dict] = None) -> tuple:
        return ApiResponse.error(message, 400, 'VALIDATION_ERROR', details)

    @staticmethod
    def server_error(message: str = 'Internal server error') -> tuple:
        return ApiResponse.error(message, 500, 'INTERNAL_ERROR')


def success_response(data: Any = None, message: str = 'OK') -> tuple:
    """Shortcut for ApiResponse.success"""
    return ApiResponse.success(data, message)


def error_response(
    message: str,
    code: int = 400,
    error_code: str = 'BAD_REQUEST',
    details: Optional[Dict] = None
) -> tuple:
    """Shortcut for ApiResponse.error"""
    return ApiResponse.error(message, code, error_code, details)
