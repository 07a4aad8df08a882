import os

from dotenv import load_dotenv

# Local .env for development; real environment variables win
load_dotenv(override=False)


def _env_int(name, default, minimum=None):
    raw = os.environ.get(name, '').strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        return default
    if minimum is not None and value < minimum:
        return minimum
    return value


def _env_bool(name, default):
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in ('1', 'true', 'yes', 'on')


# Flask configuration
SECRET_KEY = os.environ.get('SECRET_KEY', 'your-secret-key-change-this')
DEBUG = _env_bool('DEBUG', False)
PORT = _env_int('PORT', 5000)

# Allowed cross-origin caller (the frontend)
CORS_ORIGIN = os.environ.get('CORS_ORIGIN', '*')

# Document store location
DATA_DIR = os.environ.get('DATA_DIR', 'data')

# Auth tokens
TOKEN_MAX_AGE_SECONDS = _env_int('TOKEN_MAX_AGE_SECONDS', 3600)

# Email settings (SendGrid)
SENDGRID_API_KEY = os.environ.get('SENDGRID_API_KEY', '')
SENDGRID_SENDER_EMAIL = os.environ.get('SENDGRID_SENDER_EMAIL', '')
SENDGRID_API_URL = os.environ.get('SENDGRID_API_URL', 'https://api.sendgrid.com/v3/mail/send')
APP_URL = os.environ.get('APP_URL', '')

# Due-task scanner
SCANNER_ENABLED = _env_bool('SCANNER_ENABLED', True)
SCAN_INTERVAL_MINUTES = _env_int('SCAN_INTERVAL_MINUTES', 15, minimum=1)
NOTIFY_WINDOW_BEFORE_MINUTES = _env_int('NOTIFY_WINDOW_BEFORE_MINUTES', 15, minimum=0)
NOTIFY_WINDOW_AFTER_MINUTES = _env_int('NOTIFY_WINDOW_AFTER_MINUTES', 30, minimum=0)
SCAN_TIMEOUT_SECONDS = _env_int('SCAN_TIMEOUT_SECONDS', 300, minimum=1)
MAX_NOTIFICATION_ATTEMPTS = _env_int('MAX_NOTIFICATION_ATTEMPTS', 3, minimum=1)
# One zone for every due-time comparison, not per user
SCHEDULER_TIMEZONE = os.environ.get('SCHEDULER_TIMEZONE', 'UTC')

# Logging
LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')
LOG_DIR = os.environ.get('LOG_DIR', '')
