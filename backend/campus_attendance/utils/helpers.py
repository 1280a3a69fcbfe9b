"""Helper functions for the application."""
from flask import jsonify
from typing import Any, Dict, Optional


def handle_error(error, status_code: int):
    """Handle application errors with consistent format."""
    return jsonify({
        'error': True,
        'message': str(error),
        'status_code': status_code
    }), status_code


def success_response(data: Any = None, message: str = "Success", status_code: int = 200,
                     meta: Optional[Dict] = None):
    """Return consistent success response."""
    response = {
        'error': False,
        'message': message
    }

    if data is not None:
        response['data'] = data
    if meta is not None:
        response['meta'] = meta

    return jsonify(response), status_code


def error_response(message: str, status_code: int = 400, **extra):
    """Return consistent error response.

    Extra keyword arguments (``code``, ``reason``, ``detail``...) are merged
    into the body so clients can branch on a machine-readable discriminator.
    """
    response = {
        'error': True,
        'message': message,
        'status_code': status_code
    }
    response.update({key: value for key, value in extra.items() if value is not None})

    return jsonify(response), status_code
