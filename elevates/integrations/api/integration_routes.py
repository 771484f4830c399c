"""
Integration Routes

- /status         connection state of every external service
- /stripe/metrics live billing metrics from Stripe
- /stripe/sync    pull Stripe subscriptions, customers and invoices into the cache
"""

import logging

from flask import Blueprint, g, jsonify

from ...auth import enforce_session
from ...config import config
from ...google_calendar.services import sync_metadata_repository
from ...oauth.services.token_refresh import is_connected
from ...utils.http_utils import error_response
from ..services import stripe_service, xero_service

logger = logging.getLogger(__name__)

# Create Blueprint for integration routes
integrations_bp = Blueprint('integrations', __name__, url_prefix='/api/integrations')
integrations_bp.before_request(enforce_session)


def _status(service, connected, last_sync_at=None):
    return {
        'service': service,
        'connected': connected,
        'lastSyncAt': last_sync_at,
        'status': 'active' if connected else 'disconnected',
    }


@integrations_bp.route('/status', methods=['GET'])
def integration_status():
    """Connection status for every external service the dashboard uses"""
    try:
        user_id = g.user_id
        calendar_connected = is_connected(user_id)
        last_sync = None
        if calendar_connected:
            metadata = sync_metadata_repository.load(user_id)
            last_sync = metadata.last_incremental_sync or metadata.last_full_sync

        xero_connected = xero_service.is_connected(user_id)
        stripe_connected = stripe_service.is_configured()

        return jsonify({
            'google_calendar': _status('google_calendar', calendar_connected, last_sync),
            'xero': _status('xero', xero_connected,
                            xero_service.get_sync_metadata(user_id)['lastSyncAt'] if xero_connected else None),
            'stripe': _status('stripe', stripe_connected,
                              stripe_service.get_last_sync_time() if stripe_connected else None),
            'anthropic': _status('anthropic', bool(config.ANTHROPIC_API_KEY)),
            'gemini': _status('gemini', bool(config.GEMINI_API_KEY)),
            'outreach': _status('outreach', bool(config.OUTREACH_API_URL)),
        })
    except Exception as e:
        return error_response(e, 'checking integration status')


@integrations_bp.route('/stripe/metrics', methods=['GET'])
def stripe_metrics():
    try:
        return jsonify({'success': True, 'metrics': stripe_service.get_metrics()})
    except Exception as e:
        return error_response(e, 'calculating Stripe metrics')


@integrations_bp.route('/stripe/sync', methods=['POST'])
def sync_stripe():
    try:
        return jsonify(stripe_service.sync_stripe_data())
    except Exception as e:
        return error_response(e, 'syncing Stripe data')
