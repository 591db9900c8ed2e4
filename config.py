import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

BASE_DIR = Path(__file__).resolve().parent


def _database_url():
    url = os.getenv('DATABASE_URL', '').strip()
    if not url:
        return f"sqlite:///{BASE_DIR / 'portfolio.db'}"
    # hosted Postgres hands out postgres://
    if url.startswith('postgres://'):
        url = url.replace('postgres://', 'postgresql+psycopg2://', 1)
    return url


class Config:
    """Base configuration, loaded with app.config.from_object"""

    SECRET_KEY = os.getenv('SECRET_KEY', 'dev-key-change-in-production')
    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')

    SQLALCHEMY_DATABASE_URI = _database_url()
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {'pool_pre_ping': True}

    SESSION_COOKIE_SAMESITE = 'Lax'
    REMEMBER_COOKIE_SAMESITE = 'Lax'

    VISITOR_PAGE_SIZE = int(os.getenv('VISITOR_PAGE_SIZE', '100'))
    HTTP_TIMEOUT = int(os.getenv('HTTP_TIMEOUT', '10'))

    STRIPE_SECRET_KEY = os.getenv('STRIPE_SECRET_KEY')
    PAYMENT_CURRENCY = os.getenv('PAYMENT_CURRENCY', 'usd')

    OPENAI_API_KEY = os.getenv('OPENAI_API_KEY')
    OPENAI_API_BASE = os.getenv('OPENAI_API_BASE', 'https://api.openai.com/v1')
    OPENAI_MODEL = os.getenv('OPENAI_MODEL', 'gpt-4o')

    GITHUB_USERNAME = os.getenv('GITHUB_USERNAME', 'febrideveloper')
    GITHUB_TOKEN = os.getenv('GITHUB_TOKEN')


class TestConfig(Config):
    TESTING = True
    SECRET_KEY = 'test-secret'
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_ENGINE_OPTIONS = {}
    WTF_CSRF_ENABLED = False
    LOG_LEVEL = 'WARNING'

    STRIPE_SECRET_KEY = None
    OPENAI_API_KEY = None
    GITHUB_TOKEN = None
