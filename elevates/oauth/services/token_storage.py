"""
Encrypted OAuth token storage.

Google tokens for each user are kept in DATA_DIR/oauth-tokens/<userId>.json,
other providers under DATA_DIR/oauth-tokens/<provider>/<userId>.json. Each
file holds the AES-GCM encrypted JSON document, never the plain tokens.
"""

import json
import logging
from typing import Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from ...config import config
from ...exceptions import ConfigurationError
from ...utils.crypto_utils import decrypt, encrypt
from ...utils.json_store import safe_component, write_text

logger = logging.getLogger(__name__)

TOKEN_DIR = 'oauth-tokens'
GOOGLE = 'google'


class OAuthTokens(BaseModel):
    """OAuth tokens for one provider; expires_at is epoch milliseconds"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    access_token: str
    refresh_token: str
    expires_at: int
    scope: str = ''
    token_type: str = 'Bearer'


def _encryption_key():
    if not config.OAUTH_ENCRYPTION_KEY:
        raise ConfigurationError("OAUTH_ENCRYPTION_KEY not configured")
    return config.OAUTH_ENCRYPTION_KEY


def _token_path(user_id, provider=GOOGLE):
    filename = f"{safe_component(user_id, 'user id')}.json"
    if provider == GOOGLE:
        return config.data_path(TOKEN_DIR, filename)
    return config.data_path(TOKEN_DIR, safe_component(provider, 'provider'), filename)


def save_tokens(user_id: str, tokens: OAuthTokens, provider: str = GOOGLE) -> None:
    """Encrypt and persist tokens for a user"""
    payload = tokens.model_dump_json(by_alias=True)
    write_text(_token_path(user_id, provider), encrypt(payload, _encryption_key()))
    logger.info(f"Saved {provider} OAuth tokens for user {user_id}")


def load_tokens(user_id: str, provider: str = GOOGLE) -> Optional[OAuthTokens]:
    """Load and decrypt tokens, or None when the user has not connected"""
    path = _token_path(user_id, provider)
    if not path.exists():
        return None

    encrypted = path.read_text(encoding='utf-8')
    data = json.loads(decrypt(encrypted, _encryption_key()))
    return OAuthTokens.model_validate(data)


def delete_tokens(user_id: str, provider: str = GOOGLE) -> None:
    path = _token_path(user_id, provider)
    if path.exists():
        path.unlink()
        logger.info(f"Deleted {provider} OAuth tokens for user {user_id}")


def has_tokens(user_id: str, provider: str = GOOGLE) -> bool:
    return _token_path(user_id, provider).exists()
