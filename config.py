# config.py - settings read from the environment (and a local .env file)

import os
import tempfile

from dotenv import load_dotenv

load_dotenv()


def env_flag(name, default=False):
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


class Config:
    SECRET_KEY = os.getenv('SECRET_KEY', 'change-me-in-production')
    SQLALCHEMY_DATABASE_URI = os.getenv('DATABASE_URL', 'sqlite:///storefront.db')
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')

    # proof-of-payment uploads, one flat folder; None means <instance>/uploads
    UPLOAD_FOLDER = os.getenv('UPLOAD_FOLDER')
    MAX_UPLOAD_BYTES = 10 * 1024 * 1024
    # hard cap on the request body so oversized uploads never reach the handler in full
    MAX_CONTENT_LENGTH = MAX_UPLOAD_BYTES + 1024 * 1024
    ALLOWED_UPLOAD_TYPES = {
        'application/pdf': 'pdf',
        'image/jpeg': 'jpg',
        'image/jpg': 'jpg',
        'image/png': 'png',
        'application/msword': 'doc',
        'application/vnd.openxmlformats-officedocument.wordprocessingml.document': 'docx',
    }

    # off: prices are recomputed from the catalog at checkout
    TRUST_CLIENT_PRICES = env_flag('TRUST_CLIENT_PRICES')
    # off: admins may set any of the seven statuses
    ENFORCE_STATUS_TRANSITIONS = env_flag('ENFORCE_STATUS_TRANSITIONS')

    LOW_STOCK_THRESHOLD = int(os.getenv('LOW_STOCK_THRESHOLD', '10'))
    DEFAULT_PAGE_SIZE = 12
    MAX_PAGE_SIZE = 100

    ADMIN_EMAIL = os.getenv('ADMIN_EMAIL', 'admin@example.com')
    ADMIN_PASSWORD = os.getenv('ADMIN_PASSWORD')


class TestingConfig(Config):
    TESTING = True
    SECRET_KEY = 'testing'
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    UPLOAD_FOLDER = os.path.join(tempfile.gettempdir(), 'storefront-test-uploads')
    TRUST_CLIENT_PRICES = False
    ENFORCE_STATUS_TRANSITIONS = False
