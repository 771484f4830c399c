import json
import time
from unittest.mock import patch

from elevates import auth
from elevates.config import config
from elevates.exceptions import EncryptionError
from elevates.utils import crypto_utils
from elevates.utils.rate_limit import MAX_ATTEMPTS, check_rate_limit, reset_rate_limit
from tests.base import BaseTestCase, TEST_PASSWORD


class TestEncryption(BaseTestCase):
    """AES-GCM encryption of stored secrets."""

    def test_decrypt_returns_original_plaintext(self):
        encrypted = crypto_utils.encrypt('{"accessToken": "abc"}', 'master-key')
        self.assertEqual(crypto_utils.decrypt(encrypted, 'master-key'), '{"accessToken": "abc"}')

    def test_encrypted_format_has_four_parts(self):
        encrypted = crypto_utils.encrypt('hello', 'master-key')
        self.assertEqual(len(encrypted.split(':')), 4)
        self.assertNotIn('hello', encrypted)

    def test_same_plaintext_encrypts_differently(self):
        first = crypto_utils.encrypt('hello', 'master-key')
        second = crypto_utils.encrypt('hello', 'master-key')
        self.assertNotEqual(first, second)

    def test_wrong_key_fails_authentication(self):
        encrypted = crypto_utils.encrypt('hello', 'master-key')
        with self.assertRaises(EncryptionError):
            crypto_utils.decrypt(encrypted, 'other-key')

    def test_malformed_payload_raises(self):
        with self.assertRaises(EncryptionError) as ctx:
            crypto_utils.decrypt('not-encrypted', 'master-key')
        self.assertIn('Invalid encrypted data format', str(ctx.exception))

    def test_empty_key_rejected(self):
        with self.assertRaises(EncryptionError):
            crypto_utils.encrypt('hello', '')

    def test_b64url_has_no_padding(self):
        encoded = crypto_utils.b64url_encode(b'\xff\xfe')
        self.assertNotIn('=', encoded)
        self.assertEqual(crypto_utils.b64url_decode(encoded), b'\xff\xfe')


class TestSessionTokens(BaseTestCase):
    """Signed session cookies."""

    def test_password_hash_verification(self):
        self.assertTrue(auth.verify_password(TEST_PASSWORD, config.AUTH_PASSWORD_HASH))
        self.assertFalse(auth.verify_password('wrong', config.AUTH_PASSWORD_HASH))
        self.assertFalse(auth.verify_password(TEST_PASSWORD, ''))

    def test_valid_token_verifies(self):
        token = auth.create_session_token('operator')
        session = auth.verify_session_token(token)
        self.assertEqual(session['userId'], 'operator')
        self.assertGreater(session['exp'], int(time.time() * 1000))

    def test_tampered_payload_rejected(self):
        token = auth.create_session_token('operator')
        payload, signature = token.split('.')
        forged = crypto_utils.b64url_encode(json.dumps({'userId': 'admin', 'exp': 9999999999999}))
        self.assertIsNone(auth.verify_session_token(f"{forged}.{signature}"))
        self.assertIsNone(auth.verify_session_token(f"{payload}.{signature}x"))

    def test_expired_token_rejected(self):
        payload = crypto_utils.b64url_encode(json.dumps({'userId': 'operator', 'exp': 1000}))
        token = f"{payload}.{crypto_utils.hmac_sha256(config.SESSION_SECRET, payload)}"
        self.assertIsNone(auth.verify_session_token(token))

    def test_malformed_tokens_rejected(self):
        for token in (None, '', 'no-dot', 'a.b.c'):
            self.assertIsNone(auth.verify_session_token(token))

    def test_invalid_settings_reject_tokens(self):
        token = auth.create_session_token('operator')
        with patch.object(config, 'SESSION_SECRET', 'short'):
            self.assertIsNone(auth.verify_session_token(token))


class TestRateLimit(BaseTestCase):
    """Login attempt rate limiting."""

    def test_blocks_after_max_attempts(self):
        for expected_remaining in range(MAX_ATTEMPTS - 1, -1, -1):
            result = check_rate_limit('10.0.0.1')
            self.assertTrue(result['allowed'])
            self.assertEqual(result['remaining'], expected_remaining)

        blocked = check_rate_limit('10.0.0.1')
        self.assertFalse(blocked['allowed'])
        self.assertEqual(blocked['remaining'], 0)
        self.assertGreater(blocked['resetIn'], 0)

    def test_identifiers_are_independent(self):
        for _ in range(MAX_ATTEMPTS + 1):
            check_rate_limit('10.0.0.1')
        self.assertTrue(check_rate_limit('10.0.0.2')['allowed'])

    def test_reset_clears_attempts(self):
        for _ in range(MAX_ATTEMPTS + 1):
            check_rate_limit('10.0.0.1')
        reset_rate_limit('10.0.0.1')
        self.assertTrue(check_rate_limit('10.0.0.1')['allowed'])
