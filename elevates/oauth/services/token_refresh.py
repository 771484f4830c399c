"""
Access token refresh.

Access tokens are refreshed shortly before they expire so API calls never
go out with a token that lapses mid-request.
"""

import datetime
import logging
import threading
import time
from collections import defaultdict

import google.auth.exceptions
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials

from ...exceptions import TokenRefreshError, TokensNotFoundError
from . import token_storage
from .google_oauth import SCOPES, TOKEN_URI, get_client_settings, tokens_from_response
from .token_storage import OAuthTokens

logger = logging.getLogger(__name__)

REFRESH_BUFFER_MS = 5 * 60 * 1000

# One refresh at a time per user
_refresh_locks = defaultdict(threading.Lock)
_locks_guard = threading.Lock()


def _user_lock(user_id):
    with _locks_guard:
        return _refresh_locks[user_id]


def needs_refresh(tokens: OAuthTokens) -> bool:
    """True when the access token expires within the refresh buffer"""
    return tokens.expires_at - int(time.time() * 1000) < REFRESH_BUFFER_MS


def refresh_access_token(user_id: str, tokens: OAuthTokens) -> OAuthTokens:
    """
    Refresh the access token with the stored refresh token and persist the result.

    Raises:
        TokenRefreshError: Google rejected the refresh token
    """
    client_id, client_secret, _ = get_client_settings()
    credentials = Credentials(
        token=None,
        refresh_token=tokens.refresh_token,
        token_uri=TOKEN_URI,
        client_id=client_id,
        client_secret=client_secret,
        scopes=tokens.scope.split() if tokens.scope else SCOPES,
    )

    try:
        credentials.refresh(Request())
    except google.auth.exceptions.RefreshError as e:
        logger.error(f"Failed to refresh access token for user {user_id}: {e}")
        raise TokenRefreshError("Failed to refresh access token") from e

    # scope and token type are not part of a refresh response; the stored ones are kept
    response = {
        'access_token': credentials.token,
        'refresh_token': credentials.refresh_token,
    }
    if credentials.expiry is not None:
        # google-auth reports expiry as naive UTC
        now = datetime.datetime.now(datetime.timezone.utc).replace(tzinfo=None)
        response['expires_in'] = max(int((credentials.expiry.replace(tzinfo=None) - now).total_seconds()), 0)

    refreshed = tokens_from_response(response, previous=tokens)
    token_storage.save_tokens(user_id, refreshed)
    logger.info(f"Refreshed access token for user {user_id}")
    return refreshed


def get_valid_access_token(user_id: str) -> str:
    """
    Return an access token for user_id, refreshing it first if it is about to expire.

    Raises:
        TokensNotFoundError: the user has not connected Google Calendar
        TokenRefreshError: the refresh failed
    """
    with _user_lock(user_id):
        tokens = token_storage.load_tokens(user_id)
        if tokens is None:
            raise TokensNotFoundError("No tokens found for user")

        if needs_refresh(tokens):
            tokens = refresh_access_token(user_id, tokens)

        return tokens.access_token


def is_connected(user_id: str) -> bool:
    return token_storage.has_tokens(user_id)
