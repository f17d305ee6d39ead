# twofactor/config.py

import os
from datetime import timedelta


def _env_bool(name, default):
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY', 'change-me-in-production')
    JWT_SECRET_KEY = os.environ.get('JWT_SECRET_KEY', 'change-me-in-production-jwt')
    JWT_ACCESS_TOKEN_EXPIRES = timedelta(minutes=15)
    JWT_TOKEN_LOCATION = ['headers', 'cookies']
    JWT_COOKIE_CSRF_PROTECT = False

    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL', 'sqlite:///twofactor.db')
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Master key for encrypting TOTP secrets at rest (32 bytes)
    ENCRYPTION_MASTER_KEY = os.environ.get('ENCRYPTION_MASTER_KEY', 'default-32-byte-key!!!!!1234567890abcd')

    AUDIT_LOG_DIR = os.environ.get('AUDIT_LOG_DIR', 'logs')

    RATELIMIT_STORAGE_URI = os.environ.get('REDIS_URL', 'memory://')
    RATELIMIT_DEFAULT = '1000/hour'

    # Two-factor engine
    TWOFACTOR_ISSUER = os.environ.get('TWOFACTOR_ISSUER', 'FinanceAI')
    TWOFACTOR_SECRET_LENGTH = int(os.environ.get('TWOFACTOR_SECRET_LENGTH', 32))
    TWOFACTOR_VERIFY_WINDOW = int(os.environ.get('TWOFACTOR_VERIFY_WINDOW', 3))
    TWOFACTOR_PENDING_TTL_SECONDS = int(os.environ.get('TWOFACTOR_PENDING_TTL_SECONDS', 600))
    TWOFACTOR_REPLAY_PROTECTION = _env_bool('TWOFACTOR_REPLAY_PROTECTION', True)
    TWOFACTOR_VERIFY_RATE_LIMIT = os.environ.get('TWOFACTOR_VERIFY_RATE_LIMIT', '10/minute')
    TWOFACTOR_NOTIFY_WEBHOOK_URL = os.environ.get('TWOFACTOR_NOTIFY_WEBHOOK_URL', '')

    NTP_SERVERS = [s for s in os.environ.get(
        'NTP_SERVERS', 'pool.ntp.org,time.google.com,time.windows.com,time.apple.com').split(',') if s]


class TestingConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'
    JWT_SECRET_KEY = 'test-jwt-secret-key-with-enough-length'
    ENCRYPTION_MASTER_KEY = '0' * 32
    RATELIMIT_ENABLED = False
