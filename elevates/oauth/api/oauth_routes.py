"""
Google OAuth Routes

Connect, inspect and disconnect a user's Google Calendar:
- /init        redirect to Google's consent screen
- /callback    verify state, exchange the code and store encrypted tokens
- /status      connection and sync state
- /disconnect  revoke and forget the tokens
"""

import logging
from urllib.parse import urlencode

from flask import Blueprint, g, jsonify, redirect, request

from ...auth import get_current_session, requires_session
from ...config import config
from ...exceptions import EncryptionError, InvalidStateError
from ...google_calendar.services import sync_metadata_repository
from ...utils.http_utils import error_response
from ..services import token_storage
from ..services.google_oauth import (
    exchange_code_for_tokens,
    get_authorization_url,
    revoke_token,
    verify_state_parameter,
)

logger = logging.getLogger(__name__)

# Create Blueprint for Google OAuth routes
oauth_bp = Blueprint('google_oauth', __name__, url_prefix='/api/calendar/google/auth')


def _calendar_redirect(**params):
    return redirect(f"{config.APP_URL.rstrip('/')}/calendar?{urlencode(params)}")


@oauth_bp.route('/init', methods=['GET'])
@requires_session
def init_oauth():
    """Start the authorization flow for the signed-in user"""
    try:
        auth_url = get_authorization_url(g.user_id)
        logger.info(f"Starting Google OAuth flow for user {g.user_id}")

        if request.args.get('format') == 'json':
            return jsonify({'success': True, 'authUrl': auth_url})
        return redirect(auth_url)

    except Exception as e:
        return error_response(e, 'initiating Google OAuth')


@oauth_bp.route('/callback', methods=['GET'])
def oauth_callback():
    """Handle Google's redirect after the consent screen"""
    error = request.args.get('error')
    if error:
        logger.warning(f"Google OAuth returned error: {error}")
        return _calendar_redirect(error=error)

    code = request.args.get('code')
    state = request.args.get('state')
    if not code or not state:
        return _calendar_redirect(error='missing_parameters')

    try:
        user_id = verify_state_parameter(state)
    except InvalidStateError as e:
        logger.warning(f"Rejected OAuth callback: {e}")
        return _calendar_redirect(error='invalid_state')

    session = get_current_session()
    if session and session['userId'] != user_id:
        logger.warning("OAuth callback state does not match the signed-in user")
        return _calendar_redirect(error='invalid_state')

    try:
        tokens = exchange_code_for_tokens(code, state=state)
        token_storage.save_tokens(user_id, tokens)
    except Exception as e:
        logger.error(f"Failed to complete Google OAuth for user {user_id}: {e}", exc_info=True)
        return _calendar_redirect(error='token_exchange_failed')

    logger.info(f"Google Calendar connected for user {user_id}")
    return _calendar_redirect(google_connected='true')


@oauth_bp.route('/status', methods=['GET'])
@requires_session
def oauth_status():
    """Report whether the user has connected Google Calendar"""
    try:
        tokens = token_storage.load_tokens(g.user_id)
        if tokens is None:
            return jsonify({'connected': False})

        metadata = sync_metadata_repository.load(g.user_id)
        return jsonify({
            'connected': True,
            'expiresAt': tokens.expires_at,
            'scope': tokens.scope,
            'lastFullSync': metadata.last_full_sync,
            'lastIncrementalSync': metadata.last_incremental_sync,
        })

    except Exception as e:
        return error_response(e, 'checking Google Calendar status')


@oauth_bp.route('/disconnect', methods=['POST'])
@requires_session
def disconnect():
    """Revoke the user's grant and delete stored tokens and sync state"""
    try:
        try:
            tokens = token_storage.load_tokens(g.user_id)
        except EncryptionError as e:
            logger.warning(f"Stored tokens for user {g.user_id} are unreadable, deleting: {e}")
            tokens = None

        if tokens is not None:
            try:
                revoke_token(tokens.refresh_token)
            except Exception as e:
                logger.warning(f"Could not revoke Google token for user {g.user_id}: {e}")

        token_storage.delete_tokens(g.user_id)
        sync_metadata_repository.delete(g.user_id)
        logger.info(f"Google Calendar disconnected for user {g.user_id}")
        return jsonify({'success': True})

    except Exception as e:
        return error_response(e, 'disconnecting Google Calendar')
