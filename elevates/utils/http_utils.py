"""
Helpers shared by the API blueprints.
"""

import logging
import math

import pydantic
from flask import jsonify, request

from ..exceptions import ElevatesError, ValidationError

logger = logging.getLogger(__name__)


def error_response(e, action):
    """
    Convert an exception raised while handling a request into a JSON response.

    Service errors carry their own status code; anything unexpected is logged
    with a traceback and reported as a 500.
    """
    if isinstance(e, ElevatesError):
        if e.status_code >= 500:
            logger.error(f"Error {action}: {e}", exc_info=True)
        else:
            logger.info(f"Rejected {action}: {e}")
        return jsonify({'success': False, 'error': str(e)}), e.status_code

    if isinstance(e, pydantic.ValidationError):
        return jsonify({
            'success': False,
            'error': 'Validation failed',
            'details': [
                {'field': '.'.join(str(p) for p in err['loc']), 'message': err['msg']}
                for err in e.errors()
            ],
        }), 400

    logger.error(f"Error {action}: {e}", exc_info=True)
    return jsonify({'success': False, 'error': f"Failed {action}", 'details': str(e)}), 500


def get_json_body():
    """Request body as a dict; raises ValidationError for anything else"""
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError('Request body must be a JSON object')
    return data


def json_safe(value):
    """Replace non-finite floats (infinite runway, undefined ratios) with None"""
    if isinstance(value, float) and not math.isfinite(value):
        return None
    if isinstance(value, dict):
        return {k: json_safe(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [json_safe(v) for v in value]
    return value
