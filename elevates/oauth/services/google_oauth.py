"""
Google OAuth Service

Authorization-code flow for Google Calendar access:
- Signed, time-boxed state parameter protecting the redirect against CSRF
- Consent URL with offline access so Google issues a refresh token
- Code exchange and token revocation
"""

import binascii
import logging
import os
import time

import requests
from google_auth_oauthlib.flow import Flow

from ...config import config
from ...exceptions import ConfigurationError, InvalidStateError, OAuthError, ValidationError
from ...utils.crypto_utils import (
    b64url_decode,
    b64url_encode,
    constant_time_equals,
    generate_state_token,
    hmac_sha256,
)
from .token_storage import OAuthTokens

# Google may add openid to the granted scopes; do not treat that as an error
os.environ.setdefault('OAUTHLIB_RELAX_TOKEN_SCOPE', '1')

logger = logging.getLogger(__name__)

SCOPES = [
    'https://www.googleapis.com/auth/calendar.events',
    'https://www.googleapis.com/auth/userinfo.email',
]

AUTH_URI = 'https://accounts.google.com/o/oauth2/auth'
TOKEN_URI = 'https://oauth2.googleapis.com/token'
REVOKE_URI = 'https://oauth2.googleapis.com/revoke'

STATE_MAX_AGE_MS = 10 * 60 * 1000


def get_client_settings():
    """Return (client_id, client_secret, redirect_uri) or raise ConfigurationError"""
    missing = [
        name for name in ('GOOGLE_OAUTH_CLIENT_ID', 'GOOGLE_OAUTH_CLIENT_SECRET', 'GOOGLE_OAUTH_REDIRECT_URI')
        if not getattr(config, name)
    ]
    if missing:
        raise ConfigurationError(f"Missing Google OAuth configuration: {', '.join(missing)}")
    return config.GOOGLE_OAUTH_CLIENT_ID, config.GOOGLE_OAUTH_CLIENT_SECRET, config.GOOGLE_OAUTH_REDIRECT_URI


def get_oauth_flow(state=None):
    """Build an OAuth flow for the configured web client, bound to `state` when given"""
    client_id, client_secret, redirect_uri = get_client_settings()
    client_config = {
        'web': {
            'client_id': client_id,
            'client_secret': client_secret,
            'auth_uri': AUTH_URI,
            'token_uri': TOKEN_URI,
            'redirect_uris': [redirect_uri],
        }
    }
    # The callback runs in a separate request, so no PKCE verifier can be carried over
    return Flow.from_client_config(
        client_config,
        scopes=SCOPES,
        redirect_uri=redirect_uri,
        state=state,
        autogenerate_code_verifier=False,
    )


def _state_secret():
    if not config.OAUTH_STATE_SECRET:
        raise ConfigurationError("OAUTH_STATE_SECRET not configured")
    return config.OAUTH_STATE_SECRET


def generate_state_parameter(user_id):
    """
    Create a signed state parameter for the authorization redirect.

    Format: base64url("userId:timestampMs:nonce:signature") where signature is
    the base64url HMAC-SHA256 of "userId:timestampMs:nonce".
    """
    if not user_id or ':' in user_id:
        raise ValidationError("User id cannot be used in a state parameter")

    payload = f"{user_id}:{int(time.time() * 1000)}:{generate_state_token()}"
    signature = hmac_sha256(_state_secret(), payload)
    return b64url_encode(f"{payload}:{signature}")


def verify_state_parameter(state):
    """
    Verify a state parameter returned by Google.

    Returns:
        str: The user id the state was issued for

    Raises:
        InvalidStateError: malformed, tampered or expired state
    """
    try:
        decoded = b64url_decode(state).decode('utf-8')
    except (binascii.Error, ValueError, UnicodeDecodeError) as e:
        raise InvalidStateError("Invalid state parameter structure") from e

    parts = decoded.split(':')
    if len(parts) != 4:
        raise InvalidStateError("Invalid state parameter structure")

    user_id, timestamp, nonce, signature = parts
    expected = hmac_sha256(_state_secret(), f"{user_id}:{timestamp}:{nonce}")
    if not constant_time_equals(expected, signature):
        raise InvalidStateError("Invalid state parameter signature")

    try:
        issued_at = int(timestamp)
    except ValueError as e:
        raise InvalidStateError("Invalid state parameter structure") from e

    if int(time.time() * 1000) - issued_at > STATE_MAX_AGE_MS:
        raise InvalidStateError("State parameter expired")

    return user_id


def get_authorization_url(user_id):
    """Consent screen URL requesting offline access for user_id"""
    flow = get_oauth_flow()
    url, _ = flow.authorization_url(
        access_type='offline',
        prompt='consent',
        state=generate_state_parameter(user_id),
    )
    return url


def tokens_from_response(token, previous=None, provider='Google'):
    """
    Convert an OAuth token response into OAuthTokens.

    Missing fields fall back to the previous tokens; the expiry defaults to
    one hour from now.
    """
    now_ms = int(time.time() * 1000)

    refresh_token = token.get('refresh_token') or (previous.refresh_token if previous else None)
    if not refresh_token:
        raise OAuthError(f"{provider} did not return a refresh token")

    if token.get('expires_at'):
        expires_at = int(float(token['expires_at']) * 1000)
    else:
        expires_at = now_ms + int(token.get('expires_in') or 3600) * 1000

    scope = token.get('scope') or (previous.scope if previous else '')
    if isinstance(scope, (list, tuple)):
        scope = ' '.join(scope)

    return OAuthTokens(
        access_token=token['access_token'],
        refresh_token=refresh_token,
        expires_at=expires_at,
        scope=scope,
        token_type=token.get('token_type') or (previous.token_type if previous else 'Bearer'),
    )


def exchange_code_for_tokens(code, state=None):
    """Exchange an authorization code for tokens"""
    flow = get_oauth_flow(state)
    try:
        token = flow.fetch_token(code=code)
    except Exception as e:
        logger.error(f"Token exchange failed: {e}", exc_info=True)
        raise OAuthError("Failed to exchange authorization code") from e
    return tokens_from_response(token)


def revoke_token(token):
    """Revoke an access or refresh token at Google"""
    response = requests.post(
        REVOKE_URI,
        params={'token': token},
        headers={'Content-Type': 'application/x-www-form-urlencoded'},
        timeout=10,
    )
    response.raise_for_status()
    logger.info("Revoked Google OAuth token")
