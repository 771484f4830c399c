"""
Xero Routes

- /auth        redirect to Xero's consent screen
- /callback    verify state, exchange the code, store tokens and run a first sync
- /sync        POST pulls the last twelve months, GET reports the last sync
- /data        cached data from the last sync
- /disconnect  forget the stored tokens
"""

import logging
from urllib.parse import urlencode

from flask import Blueprint, g, jsonify, redirect, request

from ...auth import get_current_session, requires_session
from ...config import config
from ...exceptions import InvalidStateError
from ...oauth.services.google_oauth import verify_state_parameter
from ...utils.http_utils import error_response
from ..services import xero_service

logger = logging.getLogger(__name__)

# Create Blueprint for Xero routes
xero_bp = Blueprint('xero', __name__, url_prefix='/api/integrations/xero')


def _settings_redirect(**params):
    return redirect(f"{config.APP_URL.rstrip('/')}/finance/settings?{urlencode(params)}")


def _not_connected():
    return jsonify({'success': False, 'error': 'Xero not connected. Please connect your account first.'}), 401


@xero_bp.route('/auth', methods=['GET'])
@requires_session
def xero_auth():
    """Start the Xero authorization flow for the signed-in user"""
    try:
        auth_url = xero_service.get_authorization_url(g.user_id)
        logger.info(f"Starting Xero OAuth flow for user {g.user_id}")

        if request.args.get('format') == 'json':
            return jsonify({'success': True, 'authUrl': auth_url})
        return redirect(auth_url)

    except Exception as e:
        return error_response(e, 'initiating Xero authorization')


@xero_bp.route('/callback', methods=['GET'])
def xero_callback():
    """Handle Xero's redirect after the consent screen"""
    error = request.args.get('error')
    if error:
        logger.warning(f"Xero OAuth returned error: {error}")
        return _settings_redirect(error='xero_denied')

    code = request.args.get('code')
    state = request.args.get('state')
    if not code:
        return _settings_redirect(error='missing_code')

    try:
        user_id = verify_state_parameter(state or '')
    except InvalidStateError as e:
        logger.warning(f"Rejected Xero callback: {e}")
        return _settings_redirect(error='invalid_state')

    session = get_current_session()
    if session and session['userId'] != user_id:
        logger.warning("Xero callback state does not match the signed-in user")
        return _settings_redirect(error='invalid_state')

    try:
        xero_service.exchange_code_for_tokens(user_id, code, state=state)
    except Exception as e:
        logger.error(f"Failed to complete Xero OAuth for user {user_id}: {e}", exc_info=True)
        return _settings_redirect(error='xero_callback', message=str(e))

    try:
        xero_service.sync_xero_data(user_id)
    except Exception as e:
        logger.error(f"Initial Xero sync failed for user {user_id}: {e}", exc_info=True)

    return _settings_redirect(connected='xero')


@xero_bp.route('/sync', methods=['POST'])
@requires_session
def sync_xero():
    """Pull accounts, transactions and reports from Xero into the cache"""
    try:
        if not xero_service.is_connected(g.user_id):
            return _not_connected()
        return jsonify(xero_service.sync_xero_data(g.user_id))

    except Exception as e:
        return error_response(e, 'syncing Xero data')


@xero_bp.route('/sync', methods=['GET'])
@requires_session
def xero_sync_status():
    try:
        return jsonify(xero_service.get_sync_metadata(g.user_id))
    except Exception as e:
        return error_response(e, 'reading Xero sync metadata')


@xero_bp.route('/data', methods=['GET'])
@requires_session
def xero_data():
    """Accounts, transactions, balance sheet and P&L from the last sync"""
    try:
        return jsonify({'success': True, **xero_service.get_cached_data(g.user_id)})
    except Exception as e:
        return error_response(e, 'reading cached Xero data')


@xero_bp.route('/disconnect', methods=['POST'])
@requires_session
def disconnect_xero():
    try:
        xero_service.disconnect(g.user_id)
        logger.info(f"Xero disconnected for user {g.user_id}")
        return jsonify({'success': True})
    except Exception as e:
        return error_response(e, 'disconnecting Xero')
