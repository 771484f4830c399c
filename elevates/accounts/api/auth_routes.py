"""
Authentication Routes

Login, logout and session inspection for the dashboard operator.
Login attempts are rate limited per client IP.
"""

import logging

from flask import Blueprint, jsonify, make_response, request

from ...auth import create_session_token, get_current_session, verify_password
from ...config import config
from ...utils.http_utils import error_response
from ...utils.rate_limit import check_rate_limit, reset_rate_limit

logger = logging.getLogger(__name__)

# Create Blueprint for auth routes
auth_bp = Blueprint('auth', __name__, url_prefix='/api/auth')


def get_client_ip():
    """Client IP from proxy headers, falling back to 'unknown'"""
    forwarded = request.headers.get('x-forwarded-for')
    if forwarded:
        return forwarded.split(',')[0].strip()
    return request.headers.get('x-real-ip') or 'unknown'


@auth_bp.route('/login', methods=['POST'])
def login():
    """Verify credentials and issue a session cookie"""
    try:
        client_ip = get_client_ip()
        limit = check_rate_limit(client_ip)
        if not limit['allowed']:
            logger.warning(f"Login rate limit exceeded for {client_ip}")
            response = jsonify({
                'error': 'Too many login attempts. Please try again later.',
                'resetIn': limit['resetIn'],
            })
            response.status_code = 429
            response.headers['Retry-After'] = str(limit['resetIn'])
            return response

        data = request.get_json(silent=True) or {}
        user_id = data.get('userId')
        password = data.get('password')
        if not user_id or not password:
            return jsonify({'error': 'User ID and password are required'}), 400

        if not config.AUTH_USER_ID or not config.AUTH_PASSWORD_HASH:
            logger.error("Authentication is not configured (AUTH_USER_ID / AUTH_PASSWORD_HASH)")
            return jsonify({'error': 'Server configuration error'}), 500

        if user_id != config.AUTH_USER_ID or not verify_password(password, config.AUTH_PASSWORD_HASH):
            logger.warning(f"Failed login attempt from {client_ip}")
            return jsonify({
                'error': 'Invalid credentials',
                'remainingAttempts': limit['remaining'],
            }), 401

        reset_rate_limit(client_ip)
        token = create_session_token(user_id)

        response = make_response(jsonify({'success': True, 'user': {'id': user_id}}))
        response.set_cookie(
            config.SESSION_COOKIE_NAME,
            token,
            max_age=config.SESSION_MAX_AGE,
            httponly=True,
            secure=config.is_production,
            samesite='Lax',
            path='/',
        )
        logger.info(f"User {user_id} logged in")
        return response

    except Exception as e:
        return error_response(e, 'logging in')


@auth_bp.route('/session', methods=['GET'])
def session():
    """Report the current session"""
    current = get_current_session()
    if not current:
        return jsonify({'authenticated': False}), 401

    return jsonify({
        'authenticated': True,
        'user': {'id': current['userId']},
        'expiresAt': current['exp'],
    })


@auth_bp.route('/logout', methods=['POST'])
def logout():
    """Clear the session cookie"""
    response = make_response(jsonify({'success': True}))
    response.delete_cookie(config.SESSION_COOKIE_NAME, path='/')
    return response
