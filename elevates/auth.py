"""
Session authentication.

The dashboard has a single operator account configured through
AUTH_USER_ID / AUTH_PASSWORD_HASH. A successful login issues a signed
session cookie:

    base64url(JSON{userId, exp}) + "." + base64url(HMAC-SHA256(payload))
"""

import binascii
import hashlib
import json
import logging
import time
from functools import wraps

from flask import g, jsonify, request

from .config import config
from .exceptions import ConfigurationError
from .utils.crypto_utils import b64url_decode, b64url_encode, constant_time_equals, hmac_sha256

logger = logging.getLogger(__name__)


def hash_password(password):
    """SHA-256 hex digest of a password"""
    return hashlib.sha256(password.encode('utf-8')).hexdigest()


def verify_password(password, expected_hash):
    """Check a password against a stored SHA-256 hex digest in constant time"""
    if not expected_hash:
        return False
    return constant_time_equals(hash_password(password), expected_hash.lower())


def _session_secret():
    problems = config.validate_session_settings()
    if problems:
        raise ConfigurationError(f"Invalid session configuration: {'; '.join(problems)}")
    return config.SESSION_SECRET


def create_session_token(user_id):
    """Create a signed session token valid for SESSION_MAX_AGE seconds"""
    secret = _session_secret()
    session = {
        'userId': user_id,
        'exp': int(time.time() * 1000) + config.SESSION_MAX_AGE * 1000,
    }
    payload = b64url_encode(json.dumps(session, separators=(',', ':')))
    return f"{payload}.{hmac_sha256(secret, payload)}"


def verify_session_token(token):
    """
    Verify a session token.

    Returns:
        dict: {'userId', 'exp'} for a valid token, None otherwise
    """
    if not token or token.count('.') != 1:
        return None

    payload, signature = token.split('.')
    try:
        secret = _session_secret()
    except ConfigurationError as e:
        logger.error(f"Cannot verify session: {e}")
        return None

    if not constant_time_equals(hmac_sha256(secret, payload), signature):
        return None

    try:
        session = json.loads(b64url_decode(payload))
    except (binascii.Error, ValueError):
        return None

    if not isinstance(session, dict) or 'userId' not in session or 'exp' not in session:
        return None
    if session['exp'] < int(time.time() * 1000):
        return None

    return session


def get_current_session():
    """Session of the current request, or None"""
    return verify_session_token(request.cookies.get(config.SESSION_COOKIE_NAME))


def unauthorized():
    return jsonify({'error': 'Unauthorized'}), 401


def requires_session(f):
    """Decorator that requires a valid session cookie"""
    @wraps(f)
    def decorated(*args, **kwargs):
        session = get_current_session()
        if not session:
            return unauthorized()
        g.user_id = session['userId']
        return f(*args, **kwargs)
    return decorated


def enforce_session():
    """before_request hook for blueprints whose routes all require a session"""
    if request.method == 'OPTIONS':
        return None
    session = get_current_session()
    if not session:
        return unauthorized()
    g.user_id = session['userId']
    return None
