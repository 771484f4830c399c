#!/usr/bin/env python3
"""
Configuration module for the Elevates dashboard backend
Reads from environment variables with fallbacks to .env file
"""

import os
import re
from pathlib import Path
from dotenv import load_dotenv

# Load .env file from project root
project_root = Path(__file__).resolve().parent.parent
env_file = project_root / '.env'
load_dotenv(env_file)

# Also try to load from package directory as fallback
env_path = Path(__file__).parent / '.env'
if env_path.exists():
    load_dotenv(env_path)


class Config:
    """Configuration class that reads from environment variables"""

    # Flask Configuration
    SECRET_KEY = os.getenv('SECRET_KEY', 'dev-secret-key-change-in-production')
    FLASK_ENV = os.getenv('FLASK_ENV', 'development')
    FLASK_DEBUG = os.getenv('FLASK_DEBUG', 'false').lower() == 'true'

    # Server Configuration
    HOST = os.getenv('HOST', '0.0.0.0' if os.getenv('FLASK_ENV') == 'production' else 'localhost')
    PORT = int(os.getenv('PORT', '5001'))

    # Allowed Origins for CORS
    ALLOWED_ORIGINS = os.getenv('ALLOWED_ORIGINS', 'http://localhost:3000,http://localhost:5001').split(',')

    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO').upper()

    # JSON file storage root
    DATA_DIR = os.getenv('DATA_DIR', str(project_root / 'data'))

    # Session authentication
    AUTH_USER_ID = os.getenv('AUTH_USER_ID', '')
    AUTH_PASSWORD_HASH = os.getenv('AUTH_PASSWORD_HASH', '')
    SESSION_SECRET = os.getenv('SESSION_SECRET', '')
    SESSION_MAX_AGE = int(os.getenv('SESSION_MAX_AGE', '86400'))
    SESSION_COOKIE_NAME = 'elevates-session'

    # Google OAuth
    GOOGLE_OAUTH_CLIENT_ID = os.getenv('GOOGLE_OAUTH_CLIENT_ID', '')
    GOOGLE_OAUTH_CLIENT_SECRET = os.getenv('GOOGLE_OAUTH_CLIENT_SECRET', '')
    GOOGLE_OAUTH_REDIRECT_URI = os.getenv('GOOGLE_OAUTH_REDIRECT_URI', '')
    OAUTH_STATE_SECRET = os.getenv('OAUTH_STATE_SECRET', '')
    OAUTH_ENCRYPTION_KEY = os.getenv('OAUTH_ENCRYPTION_KEY', '')
    APP_URL = os.getenv('APP_URL', 'http://localhost:3000')

    # Timezones
    DEFAULT_TIMEZONE = os.getenv('DEFAULT_TIMEZONE', 'UTC')
    DISPLAY_TIMEZONE = os.getenv('DISPLAY_TIMEZONE', 'Europe/London')

    # AI providers
    ANTHROPIC_API_KEY = os.getenv('ANTHROPIC_API_KEY', '')
    ANTHROPIC_MODEL = os.getenv('ANTHROPIC_MODEL', 'claude-sonnet-4-20250514')
    ANTHROPIC_MAX_TOKENS = int(os.getenv('ANTHROPIC_MAX_TOKENS', '1024'))
    GEMINI_API_KEY = os.getenv('GEMINI_API_KEY', '')
    GEMINI_IMAGE_MODEL = os.getenv('GEMINI_IMAGE_MODEL', 'gemini-2.0-flash-exp-image-generation')

    # Outreach system
    OUTREACH_API_URL = os.getenv('OUTREACH_API_URL', 'http://localhost:5000/api/prospects')
    OUTREACH_TIMEOUT = int(os.getenv('OUTREACH_TIMEOUT', '15'))

    # Finance integrations
    STRIPE_SECRET_KEY = os.getenv('STRIPE_SECRET_KEY', '')
    XERO_CLIENT_ID = os.getenv('XERO_CLIENT_ID', '')
    XERO_CLIENT_SECRET = os.getenv('XERO_CLIENT_SECRET', '')
    XERO_REDIRECT_URI = os.getenv('XERO_REDIRECT_URI', '')

    @property
    def is_production(self):
        """Check if running in production environment"""
        return self.FLASK_ENV == 'production' or os.getenv('RAILWAY_ENVIRONMENT') is not None

    @property
    def is_development(self):
        return self.FLASK_ENV == 'development'

    def data_path(self, *parts):
        """Build a path below the data directory"""
        return Path(self.DATA_DIR).joinpath(*parts)

    def validate_session_settings(self):
        """Return a list of problems with the session auth settings (empty when valid)"""
        problems = []
        if not self.AUTH_USER_ID:
            problems.append('AUTH_USER_ID is required')
        if not re.fullmatch(r'[0-9a-fA-F]{64}', self.AUTH_PASSWORD_HASH or ''):
            problems.append('AUTH_PASSWORD_HASH must be a valid SHA-256 hash')
        if len(self.SESSION_SECRET or '') < 16:
            problems.append('SESSION_SECRET must be at least 16 characters')
        if self.SESSION_MAX_AGE <= 0:
            problems.append('SESSION_MAX_AGE must be positive')
        return problems


# Create singleton instance
config = Config()
