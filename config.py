import os
from datetime import timedelta

from dotenv import load_dotenv

load_dotenv()

BASE_DIR = os.path.abspath(os.path.dirname(__file__))


class Config:
    # Environment
    FLASK_ENV = os.getenv('FLASK_ENV', 'development')
    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')

    SECRET_KEY = os.getenv('SECRET_KEY', 'dev-secret-key-change-in-production')
    SQLALCHEMY_DATABASE_URI = os.getenv('DATABASE_URL', 'sqlite:///loops.db')
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Bearer tokens issued by /api/auth/login
    AUTH_TOKEN_MAX_AGE = int(os.getenv('AUTH_TOKEN_MAX_AGE', 24 * 3600))
    PERMANENT_SESSION_LIFETIME = timedelta(minutes=30)

    # JSON API authenticated by bearer token; forms are not CSRF-protected
    WTF_CSRF_ENABLED = False

    # File storage (one directory per bucket under UPLOAD_ROOT)
    UPLOAD_ROOT = os.getenv('UPLOAD_ROOT', os.path.join(BASE_DIR, 'uploads'))
    MAX_CONTENT_LENGTH = 50 * 1024 * 1024
    TEMPLATE_MAX_BYTES = 10 * 1024 * 1024
    IMAGE_MAX_BYTES = 5 * 1024 * 1024

    # Loop dashboards
    APP_TIMEZONE = os.getenv('APP_TIMEZONE', 'America/New_York')
    CLOSING_SOON_DAYS = int(os.getenv('CLOSING_SOON_DAYS', 3))
    PDF_MAX_IMAGES = 6

    # Mail settings
    MAIL_SERVER = os.getenv('MAIL_SERVER', 'smtp.gmail.com')
    MAIL_PORT = int(os.getenv('MAIL_PORT', 587))
    MAIL_USE_TLS = os.getenv('MAIL_USE_TLS', 'True').lower() == 'true'
    MAIL_USERNAME = os.getenv('MAIL_USERNAME')
    MAIL_PASSWORD = os.getenv('MAIL_PASSWORD')
    MAIL_DEFAULT_SENDER = (os.getenv('MAIL_SENDER_NAME', 'Real Estate System'), os.getenv('MAIL_SENDER_EMAIL', 'noreply@example.com'))
    MAIL_MAX_EMAILS = None
    MAIL_ASCII_ATTACHMENTS = False


class TestConfig(Config):
    TESTING = True
    LOG_LEVEL = 'DEBUG'
    SECRET_KEY = 'test-secret-key'
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    MAIL_SUPPRESS_SEND = True
    MAIL_DEFAULT_SENDER = 'noreply@example.com'
