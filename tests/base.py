"""Unittest base class for creating a clean test environment."""
import hashlib
import shutil
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

from elevates.auth import create_session_token
from elevates.config import config
from elevates.utils.rate_limit import clear_rate_limits

TEST_USER_ID = 'operator'
TEST_PASSWORD = 'correct-horse-battery'

TEST_SETTINGS = {
    'AUTH_USER_ID': TEST_USER_ID,
    'AUTH_PASSWORD_HASH': hashlib.sha256(TEST_PASSWORD.encode('utf-8')).hexdigest(),
    'SESSION_SECRET': 'test-session-secret-with-enough-length',
    'SESSION_MAX_AGE': 3600,
    'OAUTH_STATE_SECRET': 'test-oauth-state-secret',
    'OAUTH_ENCRYPTION_KEY': 'test-oauth-encryption-key',
    'GOOGLE_OAUTH_CLIENT_ID': 'client-id.apps.googleusercontent.com',
    'GOOGLE_OAUTH_CLIENT_SECRET': 'client-secret',
    'GOOGLE_OAUTH_REDIRECT_URI': 'http://localhost:5001/api/calendar/google/auth/callback',
    'APP_URL': 'http://localhost:3000',
    'DEFAULT_TIMEZONE': 'UTC',
    'ANTHROPIC_API_KEY': 'test-anthropic-key',
    'GEMINI_API_KEY': 'test-gemini-key',
    'OUTREACH_API_URL': 'http://outreach.test/api/prospects',
    'STRIPE_SECRET_KEY': 'sk_test_elevates',
    'XERO_CLIENT_ID': 'xero-client-id',
    'XERO_CLIENT_SECRET': 'xero-client-secret',
    'XERO_REDIRECT_URI': 'http://localhost:5001/api/integrations/xero/callback',
    'FLASK_ENV': 'testing',
}


class BaseTestCase(unittest.TestCase):
    """
    Base test case.

    Every test gets its own DATA_DIR and a known set of settings. Patches
    started inside tests are stopped in tearDown.
    """

    def setUp(self):
        super().setUp()
        self.data_dir = Path(tempfile.mkdtemp(prefix='elevates-test-'))

        settings = dict(TEST_SETTINGS, DATA_DIR=str(self.data_dir))
        for key, value in settings.items():
            patch.object(config, key, value).start()

        clear_rate_limits()

    def tearDown(self):
        patch.stopall()
        shutil.rmtree(self.data_dir, ignore_errors=True)
        super().tearDown()


class APITestCase(BaseTestCase):
    """Base test case with a Flask test client"""

    def setUp(self):
        super().setUp()
        from elevates.app import create_app

        self.app = create_app()
        self.app.config['TESTING'] = True
        self.client = self.app.test_client()

    def login(self, user_id=TEST_USER_ID):
        """Attach a valid session cookie to the test client"""
        self.client.set_cookie(config.SESSION_COOKIE_NAME, create_session_token(user_id))
